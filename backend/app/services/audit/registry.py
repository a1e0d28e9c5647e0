from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Pattern, Union

from app.services.audit.context import RequestContext

logger = logging.getLogger(__name__)

# (response_data, request_context) -> details | None
DetailExtractor = Callable[[Any, RequestContext], Optional[dict]]
# (method, path) -> event type label
EventTypeResolver = Callable[[str, str], str]


class AuditConfigurationError(ValueError):
    """Raised when an audit rule is rejected at registration time."""


def strip_query(path: str) -> str:
    return path.split("?", 1)[0]


@dataclass(frozen=True)
class AuditRule:
    path_matcher: Pattern[str]
    methods: Optional[frozenset]
    event_type: Union[str, EventTypeResolver]
    detail_extractor: DetailExtractor
    name: str = ""

    def matches(self, path: str, method: str) -> bool:
        if self.methods is not None and method.upper() not in self.methods:
            return False
        return self.path_matcher.search(strip_query(path)) is not None

    def resolve_event_type(self, method: str, path: str) -> str:
        if callable(self.event_type):
            return self.event_type(method.upper(), strip_query(path))
        return self.event_type

    @property
    def label(self) -> str:
        return self.name or f"{self.event_type} {self.path_matcher.pattern}"


def _compile(path_matcher: Union[str, Pattern[str]]) -> Pattern[str]:
    if isinstance(path_matcher, re.Pattern):
        if not path_matcher.pattern:
            raise AuditConfigurationError("Audit rule path pattern must not be empty")
        return path_matcher
    if not isinstance(path_matcher, str) or not path_matcher:
        raise AuditConfigurationError("Audit rule path pattern must be a non-empty string or compiled regex")
    try:
        return re.compile(path_matcher)
    except re.error as exc:
        raise AuditConfigurationError(f"Invalid audit path pattern {path_matcher!r}: {exc}") from exc


def _normalize_methods(methods: Optional[Iterable[str]]) -> Optional[frozenset]:
    if methods is None:
        return None
    if isinstance(methods, str):
        methods = [methods]
    try:
        methods = list(methods)
    except TypeError as exc:
        raise AuditConfigurationError(f"Audit rule methods must be an iterable of strings, got {methods!r}") from exc
    for method in methods:
        if not isinstance(method, str):
            raise AuditConfigurationError(f"Audit rule method must be a string, got {method!r}")
    normalized = frozenset(m.strip().upper() for m in methods if m.strip())
    if not normalized:
        raise AuditConfigurationError("Audit rule methods must not be empty (use None for any method)")
    return normalized


class AuditRegistry:
    """
    Ordered, append-only collection of audit rules.

    Feature modules register their rules during application startup; afterwards the
    registry is only read. Rules cannot be removed.
    """

    def __init__(self) -> None:
        self._rules: list[AuditRule] = []

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def rules(self) -> tuple[AuditRule, ...]:
        return tuple(self._rules)

    def register(self, rule: AuditRule) -> AuditRule:
        if not isinstance(rule.path_matcher, re.Pattern) or not rule.path_matcher.pattern:
            raise AuditConfigurationError("Audit rule requires a compiled, non-empty path pattern")
        if rule.methods is not None and not rule.methods:
            raise AuditConfigurationError("Audit rule methods must not be empty")
        if not callable(rule.event_type) and not (isinstance(rule.event_type, str) and rule.event_type.strip()):
            raise AuditConfigurationError("Audit rule requires an event type")
        if not callable(rule.detail_extractor):
            raise AuditConfigurationError("Audit rule detail extractor must be callable")
        self._rules.append(rule)
        logger.debug("audit_rule_registered rule=%s methods=%s", rule.label, sorted(rule.methods or []))
        return rule

    def add_endpoint_to_audit(
        self,
        path_matcher: Union[str, Pattern[str]],
        methods: Optional[Iterable[str]],
        event_type: Union[str, EventTypeResolver],
        detail_extractor: DetailExtractor,
        name: str = "",
    ) -> AuditRule:
        rule = AuditRule(
            path_matcher=_compile(path_matcher),
            methods=_normalize_methods(methods),
            event_type=event_type,
            detail_extractor=detail_extractor,
            name=name,
        )
        return self.register(rule)

    def find_matches(self, path: str, method: str) -> tuple[AuditRule, ...]:
        clean_path = strip_query(path)
        upper_method = method.upper()
        return tuple(rule for rule in self._rules if rule.matches(clean_path, upper_method))

    def is_audited(self, path: str, method: str) -> bool:
        clean_path = strip_query(path)
        upper_method = method.upper()
        return any(rule.matches(clean_path, upper_method) for rule in self._rules)
