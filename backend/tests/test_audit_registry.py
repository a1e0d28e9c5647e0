import re

import pytest

from app.services.audit.registry import AuditConfigurationError, AuditRegistry, AuditRule


def _noop(response_data, context):
    return {"ok": True}


def test_find_matches_strips_query_and_normalizes_method():
    registry = AuditRegistry()
    rule = registry.add_endpoint_to_audit(r"^/profile/me$", ["patch"], "Update my profile", _noop)

    assert registry.find_matches("/profile/me?x=1", "PATCH") == (rule,)
    assert registry.find_matches("/profile/me", "patch") == (rule,)
    assert registry.find_matches("/profile/me", "GET") == ()
    assert registry.find_matches("/profile/me/extra", "PATCH") == ()


def test_path_matching_is_case_sensitive():
    registry = AuditRegistry()
    registry.add_endpoint_to_audit(r"^/profile/me$", ["PATCH"], "Update my profile", _noop)

    assert registry.find_matches("/Profile/Me", "PATCH") == ()


def test_matches_are_returned_in_registration_order():
    registry = AuditRegistry()
    first = registry.add_endpoint_to_audit(r"^/workspace/", ["PATCH"], "first", _noop)
    registry.add_endpoint_to_audit(r"^/other$", ["PATCH"], "unrelated", _noop)
    second = registry.add_endpoint_to_audit(r"/team/", ["PATCH", "PUT"], "second", _noop)

    assert registry.find_matches("/workspace/abc/team/1", "PATCH") == (first, second)
    assert registry.is_audited("/workspace/abc/team/1", "put")
    assert not registry.is_audited("/nothing", "PATCH")


def test_methods_none_matches_any_method():
    registry = AuditRegistry()
    rule = registry.add_endpoint_to_audit(re.compile(r"^/files"), None, "Files", _noop)

    for method in ("GET", "POST", "DELETE"):
        assert registry.find_matches("/files/1", method) == (rule,)


def test_event_type_may_be_computed():
    registry = AuditRegistry()
    rule = registry.add_endpoint_to_audit(
        r"^/roles",
        ["POST", "DELETE"],
        lambda method, path: f"{method} {path}",
        _noop,
    )

    assert rule.resolve_event_type("post", "/roles?a=b") == "POST /roles"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"path_matcher": "([unclosed"},
        {"path_matcher": ""},
        {"methods": []},
        {"methods": [1]},
        {"methods": ["POST", None]},
        {"methods": 5},
        {"event_type": "   "},
        {"detail_extractor": "not callable"},
    ],
)
def test_invalid_rules_are_rejected_before_storage(kwargs):
    registry = AuditRegistry()
    params = {
        "path_matcher": r"^/ok$",
        "methods": ["POST"],
        "event_type": "Ok",
        "detail_extractor": _noop,
    }
    params.update(kwargs)

    with pytest.raises(AuditConfigurationError):
        registry.add_endpoint_to_audit(**params)
    assert len(registry) == 0


def test_register_validates_prebuilt_rules():
    registry = AuditRegistry()
    bad = AuditRule(
        path_matcher=re.compile(r"^/x$"),
        methods=frozenset({"GET"}),
        event_type="",
        detail_extractor=_noop,
    )
    with pytest.raises(AuditConfigurationError):
        registry.register(bad)
    assert registry.rules == ()


def test_registries_are_independent():
    one = AuditRegistry()
    two = AuditRegistry()
    one.add_endpoint_to_audit(r"^/a$", ["GET"], "A", _noop)

    assert len(one) == 1
    assert len(two) == 0
