from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class AuditEventOut(_CamelModel):
    id: str
    user_id: Optional[str] = None
    org_id: Optional[str] = None
    event_type: str
    action: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    correlation_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    device_info: Optional[dict[str, Any]] = None


class PaginationOut(_CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class PaginatedAuditResponse(_CamelModel):
    data: List[AuditEventOut]
    pagination: PaginationOut


class DocumentStats(_CamelModel):
    event_type: str
    count: int
    unique_users: int
    avg_view_duration: Optional[float] = None


class AuditCreate(_CamelModel):
    event_type: str = Field(min_length=1, max_length=255)
    action: str = Field(min_length=1, max_length=32)
    resource_type: str = Field(min_length=1, max_length=128)
    resource_id: str = Field(min_length=1, max_length=128)
    details: Optional[dict[str, Any]] = None


class AuditPurgeResult(BaseModel):
    deleted_count: int
