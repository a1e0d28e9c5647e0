from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Callable, Iterator, Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Query, Session

from app.models.audit_log import AuditLog
from app.models.user import User
from app.services.audit.recorder import AuditEvent
from app.services.audit.reporting import AuditFilter


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _clip(value: Optional[str], length: int) -> Optional[str]:
    return value[:length] if value else value


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_event(row: AuditLog) -> AuditEvent:
    return AuditEvent(
        id=row.id,
        event_type=row.event_type,
        user_id=row.user_id,
        org_id=row.org_id,
        action=row.action,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        details=dict(row.details or {}),
        timestamp=_as_utc(row.timestamp),
        correlation_id=row.correlation_id,
        user_agent=row.user_agent,
        ip_address=row.ip_address,
        device_info=dict(row.device_info) if row.device_info else None,
    )


def _apply_filters(query: Query, filters: AuditFilter) -> Query:
    if filters.org_id:
        query = query.filter(AuditLog.org_id == filters.org_id)
    if filters.user_id:
        query = query.filter(AuditLog.user_id == filters.user_id)
    if filters.event_type:
        query = query.filter(AuditLog.event_type == filters.event_type)
    if filters.resource_type:
        query = query.filter(AuditLog.resource_type == filters.resource_type)
    if filters.resource_id:
        query = query.filter(AuditLog.resource_id == filters.resource_id)
    if filters.start_date:
        start = datetime.combine(filters.start_date, time.min, tzinfo=timezone.utc)
        query = query.filter(AuditLog.timestamp >= start)
    if filters.end_date:
        end = datetime.combine(filters.end_date, time.max, tzinfo=timezone.utc)
        query = query.filter(AuditLog.timestamp <= end)
    if filters.search and filters.search.strip():
        pattern = f"%{_escape_like(filters.search.strip())}%"
        # the acting user is matched by email or name, events of deleted users by details only
        query = query.outerjoin(User, User.id == AuditLog.user_id).filter(
            or_(
                cast(AuditLog.details, String).ilike(pattern, escape="\\"),
                User.email.ilike(pattern, escape="\\"),
                User.full_name.ilike(pattern, escape="\\"),
            )
        )
    return query


class SqlAlchemyAuditStore:
    """AuditStore backed by the ``audit_logs`` table. One short-lived session per call."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    def insert(self, event: AuditEvent) -> None:
        db = self.session_factory()
        try:
            db.add(
                AuditLog(
                    id=event.id,
                    user_id=event.user_id,
                    org_id=event.org_id,
                    event_type=event.event_type,
                    action=event.action,
                    resource_type=event.resource_type,
                    resource_id=event.resource_id,
                    details=dict(event.details),
                    timestamp=event.timestamp,
                    correlation_id=_clip(event.correlation_id, 64),
                    user_agent=_clip(event.user_agent, 512),
                    ip_address=_clip(event.ip_address, 64),
                    device_info=dict(event.device_info) if event.device_info is not None else None,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def query(self, filters: AuditFilter, offset: int, limit: int) -> tuple[list[AuditEvent], int]:
        db = self.session_factory()
        try:
            query = _apply_filters(db.query(AuditLog), filters)
            total = query.count()
            rows = (
                query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [_to_event(row) for row in rows], total
        finally:
            db.close()

    def iter_events(self, filters: AuditFilter) -> Iterator[AuditEvent]:
        db = self.session_factory()
        try:
            query = _apply_filters(db.query(AuditLog), filters).order_by(AuditLog.timestamp.asc())
            for row in query.yield_per(500):
                yield _to_event(row)
        finally:
            db.close()

    def delete_for_user(self, user_id: str, org_id: Optional[str] = None) -> int:
        db = self.session_factory()
        try:
            query = db.query(AuditLog).filter(AuditLog.user_id == user_id)
            if org_id:
                query = query.filter(AuditLog.org_id == org_id)
            deleted = query.delete(synchronize_session=False)
            db.commit()
            return deleted
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
