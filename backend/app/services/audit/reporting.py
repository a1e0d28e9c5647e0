from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

from app.schemas.audit import (
    AuditEventOut,
    DocumentStats,
    PaginatedAuditResponse,
    PaginationOut,
)
from app.services.audit.recorder import AuditStore

VIEW_DURATION_FIELD = "viewDuration"


class AuditQueryError(ValueError):
    """Invalid input to the audit reporting layer."""


@dataclass(frozen=True)
class AuditFilter:
    user_id: Optional[str] = None
    org_id: Optional[str] = None
    event_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None


def _validate(filters: AuditFilter, page: int, limit: int) -> None:
    if page < 1:
        raise AuditQueryError("page must be >= 1")
    if limit < 1:
        raise AuditQueryError("limit must be >= 1")
    if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
        raise AuditQueryError("start_date must not be after end_date")


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0


def list_events(
    store: AuditStore,
    filters: AuditFilter,
    page: int = 1,
    limit: int = 10,
) -> PaginatedAuditResponse:
    """Newest-first page of events matching ``filters``. Pages are 1-indexed."""
    _validate(filters, page, limit)
    items, total = store.query(filters, (page - 1) * limit, limit)
    return PaginatedAuditResponse(
        data=[AuditEventOut.model_validate(item) for item in items[:limit]],
        pagination=PaginationOut(
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages(total, limit),
        ),
    )


def _numeric(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def compute_document_stats(
    store: AuditStore,
    event_type: Optional[str] = None,
    org_id: Optional[str] = None,
) -> list[DocumentStats]:
    """
    Per event type: number of events, distinct users and, when any event of that type
    carries a numeric ``viewDuration`` in its details, the mean of those durations.
    """
    counts: dict[str, int] = {}
    users: dict[str, set] = {}
    durations: dict[str, list[float]] = {}

    for event in store.iter_events(AuditFilter(event_type=event_type, org_id=org_id)):
        key = event.event_type
        counts[key] = counts.get(key, 0) + 1
        bucket = users.setdefault(key, set())
        if event.user_id:
            bucket.add(event.user_id)
        duration = (event.details or {}).get(VIEW_DURATION_FIELD)
        if _numeric(duration):
            durations.setdefault(key, []).append(float(duration))

    stats = []
    for key in sorted(counts):
        values = durations.get(key)
        stats.append(
            DocumentStats(
                event_type=key,
                count=counts[key],
                unique_users=len(users[key]),
                avg_view_duration=sum(values) / len(values) if values else None,
            )
        )
    return stats
