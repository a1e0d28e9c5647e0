from __future__ import annotations

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _freeze(value: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not value:
        return _EMPTY
    return MappingProxyType(dict(value))


@dataclass(frozen=True)
class RequestContext:
    """
    Read-only snapshot of an HTTP request as seen by detail extractors and the recorder.

    Built once per audited request by the audit middleware; extractors receive it as-is
    and must not rely on anything outside these fields.
    """

    method: str
    path: str
    query_string: str = ""
    params: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    body: Any = None
    principal: Optional[Mapping[str, Any]] = None
    correlation_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    device_info: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)

    @classmethod
    def build(
        cls,
        *,
        method: str,
        path: str,
        query_string: str = "",
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        principal: Optional[Mapping[str, Any]] = None,
        correlation_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        device_info: Optional[Mapping[str, Any]] = None,
    ) -> "RequestContext":
        return cls(
            method=method.upper(),
            path=path,
            query_string=query_string,
            params=_freeze(params),
            body=copy.deepcopy(body),
            principal=_freeze(principal) if principal else None,
            correlation_id=correlation_id,
            ip_address=ip_address,
            user_agent=user_agent,
            device_info=_freeze(device_info),
        )

    @property
    def user_id(self) -> Optional[str]:
        if not self.principal:
            return None
        return self.principal.get("sub")

    @property
    def org_id(self) -> Optional[str]:
        if not self.principal:
            return None
        return self.principal.get("org_id")
