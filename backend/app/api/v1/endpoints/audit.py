from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError

from app.core.audit import build_request_context, get_audit_trail
from app.core.security import require_roles
from app.models.user import User
from app.schemas.audit import (
    AuditCreate,
    AuditEventOut,
    AuditPurgeResult,
    DocumentStats,
    PaginatedAuditResponse,
)
from app.services.audit.recorder import AuditStore
from app.services.audit.reporting import (
    AuditFilter,
    AuditQueryError,
    compute_document_stats,
    list_events,
)

router = APIRouter()


def get_audit_store(request: Request) -> AuditStore:
    store = getattr(request.app.state, "audit_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Audit store not configured",
        )
    return store


def _paginate(store: AuditStore, filters: AuditFilter, page: int, limit: int) -> PaginatedAuditResponse:
    try:
        return list_events(store, filters, page=page, limit=limit)
    except AuditQueryError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Audit query failed",
        )


@router.get("", response_model=PaginatedAuditResponse)
def list_audit_events(
    store: AuditStore = Depends(get_audit_store),
    user: User = Depends(require_roles("ADMIN", "DEV")),
    user_id: Optional[str] = Query(default=None),
    event_type: Optional[str] = Query(default=None),
    start_date: Optional[date] = Query(default=None, description="YYYY-MM-DD, inclusive"),
    end_date: Optional[date] = Query(default=None, description="YYYY-MM-DD, inclusive"),
    search: Optional[str] = Query(default=None, description="Substring of the event details"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> PaginatedAuditResponse:
    filters = AuditFilter(
        org_id=user.org_id,
        user_id=user_id,
        event_type=event_type,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return _paginate(store, filters, page, limit)


@router.get("/user/{user_id}", response_model=PaginatedAuditResponse)
def list_user_audit_events(
    user_id: str,
    store: AuditStore = Depends(get_audit_store),
    user: User = Depends(require_roles("ADMIN", "DEV")),
    event_type: Optional[str] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> PaginatedAuditResponse:
    filters = AuditFilter(
        org_id=user.org_id,
        user_id=user_id,
        event_type=event_type,
        start_date=start_date,
        end_date=end_date,
    )
    return _paginate(store, filters, page, limit)


@router.get("/resource/{resource_type}/{resource_id}", response_model=PaginatedAuditResponse)
def list_resource_audit_events(
    resource_type: str,
    resource_id: str,
    store: AuditStore = Depends(get_audit_store),
    user: User = Depends(require_roles("ADMIN", "DEV")),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> PaginatedAuditResponse:
    filters = AuditFilter(org_id=user.org_id, resource_type=resource_type, resource_id=resource_id)
    return _paginate(store, filters, page, limit)


@router.get("/stats", response_model=List[DocumentStats], response_model_exclude_none=True)
def audit_stats(
    store: AuditStore = Depends(get_audit_store),
    user: User = Depends(require_roles("ADMIN", "DEV")),
    event_type: Optional[str] = Query(default=None),
) -> List[DocumentStats]:
    try:
        return compute_document_stats(store, event_type=event_type, org_id=user.org_id)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Audit query failed",
        )


@router.post("/register", response_model=AuditEventOut, status_code=status.HTTP_201_CREATED)
def register_audit_event(
    payload: AuditCreate,
    request: Request,
    _user: User = Depends(require_roles("ADMIN", "DEV")),
) -> AuditEventOut:
    trail = get_audit_trail(request)
    if trail is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Audit trail not configured",
        )
    try:
        event = trail.recorder.record_manual(
            event_type=payload.event_type,
            action=payload.action,
            resource_type=payload.resource_type,
            resource_id=payload.resource_id,
            details=payload.details,
            context=build_request_context(request),
            strict=True,
        )
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Audit event could not be stored",
        )
    return AuditEventOut.model_validate(event)


@router.delete("/user/{user_id}", response_model=AuditPurgeResult)
def purge_user_audit_events(
    user_id: str,
    store: AuditStore = Depends(get_audit_store),
    user: User = Depends(require_roles("DEV")),
) -> AuditPurgeResult:
    try:
        deleted = store.delete_for_user(user_id, org_id=user.org_id)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Audit purge failed",
        )
    return AuditPurgeResult(deleted_count=deleted)
