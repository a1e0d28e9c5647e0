from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.security import require_roles
from app.db.session import get_db
from app.models.role import Role
from app.models.user import User, user_roles
from app.schemas.admin_users import AdminActionResult, RoleCreate, RoleOut, RoleUpdate

router = APIRouter()

# permission checks across the API depend on these names
BUILTIN_ROLES = frozenset({"DEV", "ADMIN", "VIEW"})

_role_reader = require_roles("ADMIN", "DEV")
# roles are shared by every workspace, so only DEV may change them
_role_admin = require_roles("DEV")


def _member_count(db: Session, role_id: int, org_id: str) -> int:
    return (
        db.query(func.count(User.id))
        .join(user_roles, user_roles.c.user_id == User.id)
        .filter(user_roles.c.role_id == role_id, User.org_id == org_id)
        .scalar()
        or 0
    )


def _role_out(db: Session, role: Role, org_id: str) -> RoleOut:
    return RoleOut(id=role.id, name=role.name, member_count=_member_count(db, role.id, org_id))


def _get_role(db: Session, role_id: int) -> Role:
    role = db.get(Role, role_id)
    if role is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return role


def _ensure_mutable(role: Role) -> None:
    if role.name in BUILTIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Built-in role {role.name} cannot be changed",
        )


def _ensure_unique(db: Session, name: str) -> None:
    if db.query(Role.id).filter(Role.name == name).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role already exists")


@router.get("", response_model=List[RoleOut])
def list_roles(
    db: Session = Depends(get_db),
    user: User = Depends(_role_reader),
) -> List[RoleOut]:
    roles = db.query(Role).order_by(Role.name.asc()).all()
    return [_role_out(db, role, user.org_id) for role in roles]


@router.post("", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
def create_role(
    payload: RoleCreate,
    db: Session = Depends(get_db),
    user: User = Depends(_role_admin),
) -> RoleOut:
    name = payload.name.upper()
    _ensure_unique(db, name)

    role = Role(name=name)
    db.add(role)
    db.commit()
    db.refresh(role)
    return _role_out(db, role, user.org_id)


@router.patch("/{role_id}", response_model=RoleOut)
def update_role(
    role_id: int,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(_role_admin),
) -> RoleOut:
    role = _get_role(db, role_id)
    _ensure_mutable(role)

    name = payload.name.upper()
    if name != role.name:
        _ensure_unique(db, name)
        role.name = name
        db.commit()
        db.refresh(role)
    return _role_out(db, role, user.org_id)


@router.delete("/{role_id}", response_model=AdminActionResult)
def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(_role_admin),
) -> AdminActionResult:
    role = _get_role(db, role_id)
    _ensure_mutable(role)

    assigned = db.query(func.count()).select_from(user_roles).filter(user_roles.c.role_id == role.id).scalar()
    if assigned:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Role {role.name} is still assigned to {assigned} user(s)",
        )

    name = role.name
    db.delete(role)
    db.commit()
    return AdminActionResult(success=True, message=f"Role {name} deleted")
