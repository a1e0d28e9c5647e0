from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.user import ProfileOut, ProfileUpdate

router = APIRouter()


def _build_profile_out(user: User) -> ProfileOut:
    return ProfileOut(
        id=user.id,
        email=user.email,
        org_id=user.org_id,
        full_name=user.full_name,
        phone=user.phone,
        roles=[role.name for role in user.roles],
    )


@router.get("/me", response_model=ProfileOut)
def get_my_profile(user: User = Depends(get_current_user)) -> ProfileOut:
    return _build_profile_out(user)


@router.patch("/me", response_model=ProfileOut)
def update_my_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProfileOut:
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return _build_profile_out(user)
