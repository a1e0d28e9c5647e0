from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import (
    build_principal,
    create_access_token,
    create_refresh_token,
    generate_jti,
    get_current_user,
    unauthorized,
    verify_password,
    verify_token,
)
from app.db.session import get_db
from app.models.refresh_token import RefreshToken
from app.models.user import User
from app.schemas.auth import LoginRequest, LogoutRequest, RefreshRequest, TokenResponse
from app.schemas.user import UserOut

router = APIRouter()


def _build_user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        org_id=user.org_id,
        roles=[role.name for role in user.roles],
    )


def _issue_tokens(db: Session, user_id: str, now: datetime) -> tuple[TokenResponse, str]:
    jti = generate_jti()
    db.add(
        RefreshToken(
            user_id=user_id,
            jti=jti,
            issued_at=now,
            expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )
    )
    tokens = TokenResponse(
        access_token=create_access_token({"sub": user_id}),
        refresh_token=create_refresh_token({"sub": user_id, "jti": jti}),
    )
    return tokens, jti


def _load_refresh_token(db: Session, raw_token: str) -> RefreshToken:
    token_payload = verify_token(raw_token, "refresh")
    jti = token_payload.get("jti")
    if not token_payload.get("sub") or not jti:
        raise unauthorized("Invalid refresh token")

    stored = db.query(RefreshToken).filter(RefreshToken.jti == jti).first()
    if not stored or stored.is_revoked:
        raise unauthorized("Refresh token revoked")
    return stored


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TokenResponse:
    email = payload.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise unauthorized("Invalid credentials")
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )

    tokens, _ = _issue_tokens(db, user.id, datetime.utcnow())
    db.commit()

    # no bearer token on this request, so expose the actor for the session audit rules
    request.state.principal = build_principal(user)
    return tokens


@router.post("/refresh", response_model=TokenResponse)
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)) -> TokenResponse:
    stored = _load_refresh_token(db, payload.refresh_token)
    now = datetime.utcnow()
    if stored.is_expired(now):
        raise unauthorized("Refresh token expired")

    tokens, new_jti = _issue_tokens(db, stored.user_id, now)
    stored.revoke(now, replaced_by=new_jti)
    db.commit()
    return tokens


@router.post("/logout")
def logout(
    payload: LogoutRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> dict:
    stored = _load_refresh_token(db, payload.refresh_token)
    stored.revoke(datetime.utcnow())
    db.commit()

    if stored.user is not None:
        request.state.principal = build_principal(stored.user)
    return {"status": "ok"}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return _build_user_out(user)
