from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Protocol
from uuid import uuid4

from app.services.audit.context import RequestContext
from app.services.audit.registry import AuditRule, strip_query

logger = logging.getLogger(__name__)

_ACTION_BY_METHOD = {
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}


@dataclass(frozen=True)
class AuditEvent:
    event_type: str
    user_id: Optional[str] = None
    org_id: Optional[str] = None
    action: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    device_info: Optional[Mapping[str, Any]] = None
    id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self) -> None:
        # events are immutable once built, including their mappings
        object.__setattr__(self, "details", MappingProxyType(copy.deepcopy(dict(self.details or {}))))
        if self.device_info is not None:
            object.__setattr__(self, "device_info", MappingProxyType(copy.deepcopy(dict(self.device_info))))


class AuditStore(Protocol):
    def insert(self, event: AuditEvent) -> None: ...

    def query(self, filters: Any, offset: int, limit: int) -> tuple[list[AuditEvent], int]: ...

    def iter_events(self, filters: Any) -> Iterable[AuditEvent]: ...

    def delete_for_user(self, user_id: str, org_id: Optional[str] = None) -> int: ...


def map_method_to_action(method: str) -> str:
    return _ACTION_BY_METHOD.get(method.upper(), "read")


def extract_resource_type(path: str, prefix: str = "") -> str:
    """/api/v1/orgs/current -> 'org' (first segment after the prefix, naive singular)."""
    clean = strip_query(path)
    if prefix and clean.startswith(prefix):
        clean = clean[len(prefix):]
    parts = [p for p in clean.split("/") if p]
    if not parts:
        return "unknown"
    resource = parts[0]
    return resource[:-1] if resource.endswith("s") else resource


def extract_resource_id(response_data: Any, params: Mapping[str, Any]) -> Optional[str]:
    if isinstance(response_data, Mapping):
        for key in ("_id", "id"):
            if response_data.get(key):
                return str(response_data[key])
        nested = response_data.get("data")
        if isinstance(nested, Mapping):
            for key in ("_id", "id"):
                if nested.get(key):
                    return str(nested[key])

    for key in ("id", "_id"):
        if params.get(key):
            return str(params[key])
    for key, value in params.items():
        if key.lower().endswith("id") and value:
            return str(value)
    return None


def _safe_device_info(context: RequestContext) -> Optional[dict]:
    if not context.device_info:
        return None
    return dict(context.device_info)


class AuditRecorder:
    """
    Turns a matched rule plus extracted details into an AuditEvent and persists it.

    Persistence is best-effort: store failures are logged and swallowed so auditing can
    never fail the request that triggered it.
    """

    def __init__(self, store: AuditStore, path_prefix: str = "") -> None:
        self.store = store
        self.path_prefix = path_prefix

    def record(
        self,
        rule: AuditRule,
        details: dict,
        context: RequestContext,
        response_data: Any = None,
    ) -> AuditEvent:
        event = AuditEvent(
            event_type=rule.resolve_event_type(context.method, context.path),
            user_id=context.user_id or _details_user_id(details),
            org_id=context.org_id,
            action=map_method_to_action(context.method),
            resource_type=extract_resource_type(context.path, self.path_prefix),
            resource_id=extract_resource_id(response_data, context.params),
            details=dict(details),
            correlation_id=context.correlation_id or uuid4().hex,
            user_agent=context.user_agent,
            ip_address=context.ip_address,
            device_info=_safe_device_info(context),
        )
        self._persist(event)
        return event

    def record_manual(
        self,
        *,
        event_type: str,
        action: Optional[str],
        resource_type: Optional[str],
        resource_id: Optional[str],
        details: Optional[dict],
        context: RequestContext,
        strict: bool = False,
    ) -> AuditEvent:
        """Record an event from explicit fields. With strict=True store errors propagate."""
        event = AuditEvent(
            event_type=event_type,
            user_id=context.user_id,
            org_id=context.org_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=dict(details or {}),
            correlation_id=context.correlation_id or uuid4().hex,
            user_agent=context.user_agent,
            ip_address=context.ip_address,
            device_info=_safe_device_info(context),
        )
        self._persist(event, strict=strict)
        return event

    def _persist(self, event: AuditEvent, strict: bool = False) -> bool:
        try:
            self.store.insert(event)
        except Exception:
            if strict:
                raise
            logger.exception(
                "audit_event_dropped event_type=%s user_id=%s correlation_id=%s",
                event.event_type,
                event.user_id,
                event.correlation_id,
            )
            return False
        logger.info(
            "audit_event event_type=%s action=%s resource_type=%s resource_id=%s user_id=%s",
            event.event_type,
            event.action,
            event.resource_type,
            event.resource_id,
            event.user_id,
        )
        return True


def _details_user_id(details: Mapping[str, Any]) -> Optional[str]:
    value = details.get("userId")
    return str(value) if value else None
