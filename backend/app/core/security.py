from datetime import datetime, timedelta
from typing import Any, Dict, Iterable
from uuid import uuid4

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.models.user import User

ALGORITHM = "HS256"
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _encode(payload: Dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    issued_at = datetime.utcnow()
    claims = {**payload, "type": token_type, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(payload: Dict[str, Any]) -> str:
    return _encode(payload, "access", timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(payload: Dict[str, Any]) -> str:
    return _encode(payload, "refresh", timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def generate_jti() -> str:
    return uuid4().hex


def verify_token(token: str, token_type: str) -> Dict[str, Any]:
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise unauthorized("Could not validate credentials") from exc
    if claims.get("type") != token_type:
        raise unauthorized("Invalid token type")
    return claims


def build_principal(user: User) -> Dict[str, Any]:
    """Claims of the authenticated user exposed to request observers such as the audit trail."""
    return {
        "sub": user.id,
        "email": user.email,
        "org_id": user.org_id,
        "roles": [role.name for role in user.roles],
    }


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> User:
    user_id = verify_token(token, "access").get("sub")
    if not user_id:
        raise unauthorized("Invalid token payload")

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise unauthorized("Inactive or missing user")

    request.state.principal = build_principal(user)
    return user


def has_any_role(user: User, roles: Iterable[str]) -> bool:
    return not {role.name for role in user.roles}.isdisjoint(roles)


def require_roles(*roles: str):
    """Dependency factory: the current user must hold at least one of ``roles``."""

    def _dependency(user: User = Depends(get_current_user)) -> User:
        if not has_any_role(user, roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return _dependency
