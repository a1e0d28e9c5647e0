from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.security import hash_password, require_roles
from app.db.session import get_db
from app.models.refresh_token import RefreshToken
from app.models.role import Role
from app.models.user import User
from app.schemas.admin_users import (
    AdminActionResult,
    AdminUserCreate,
    AdminUserOut,
    AdminUserUpdate,
)

router = APIRouter()

_team_admin = require_roles("ADMIN", "DEV")


def _member_out(member: User) -> AdminUserOut:
    return AdminUserOut(
        id=member.id,
        email=member.email,
        full_name=member.full_name,
        org_id=member.org_id,
        is_active=member.is_active,
        roles=[role.name for role in member.roles],
        created_at=member.created_at,
    )


def _resolve_roles(db: Session, names: List[str]) -> List[Role]:
    wanted = {name.strip().upper() for name in names if name and name.strip()}
    if not wanted:
        return []

    roles = db.query(Role).filter(Role.name.in_(sorted(wanted))).all()
    unknown = sorted(wanted - {role.name for role in roles})
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown roles: {', '.join(unknown)}",
        )
    return roles


def _get_member(db: Session, org_id: str, user_id: str) -> User:
    member = db.get(User, user_id)
    # members of other workspaces are reported as missing
    if member is None or member.org_id != org_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return member


@router.get("", response_model=List[AdminUserOut])
def list_members(
    db: Session = Depends(get_db),
    q: Optional[str] = Query(default=None, description="Case-insensitive email filter"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    admin: User = Depends(_team_admin),
) -> List[AdminUserOut]:
    query = db.query(User).filter(User.org_id == admin.org_id)
    if q and q.strip():
        query = query.filter(User.email.ilike(f"%{q.strip()}%"))

    members = query.order_by(User.email.asc()).offset(offset).limit(limit).all()
    return [_member_out(member) for member in members]


@router.post("", response_model=AdminUserOut, status_code=status.HTTP_201_CREATED)
def create_member(
    payload: AdminUserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(_team_admin),
) -> AdminUserOut:
    email = payload.email.strip().lower()
    if db.query(User.id).filter(User.email == email).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

    member = User(
        email=email,
        full_name=payload.full_name,
        hashed_password=hash_password(payload.password),
        is_active=payload.is_active is not False,
        org_id=admin.org_id,
        roles=_resolve_roles(db, payload.roles),
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return _member_out(member)


@router.patch("/{user_id}", response_model=AdminUserOut)
def update_member(
    user_id: str,
    payload: AdminUserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(_team_admin),
) -> AdminUserOut:
    member = _get_member(db, admin.org_id, user_id)

    if payload.is_active is False and member.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account",
        )

    if payload.is_active is not None:
        member.is_active = payload.is_active
    if payload.roles is not None:
        member.roles = _resolve_roles(db, payload.roles)
    if payload.full_name is not None:
        member.full_name = payload.full_name

    db.commit()
    db.refresh(member)
    return _member_out(member)


@router.delete("/{user_id}", response_model=AdminActionResult)
def delete_member(
    user_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(_team_admin),
) -> AdminActionResult:
    member = _get_member(db, admin.org_id, user_id)
    if member.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account",
        )

    email = member.email
    db.query(RefreshToken).filter(RefreshToken.user_id == member.id).delete(synchronize_session=False)
    member.roles = []
    db.delete(member)
    db.commit()
    return AdminActionResult(success=True, message=f"User {email} removed from the workspace")
