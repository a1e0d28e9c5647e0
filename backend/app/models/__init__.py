from app.db.base import Base
from app.models.audit_log import AuditLog
from app.models.org import Org
from app.models.refresh_token import RefreshToken
from app.models.role import Role
from app.models.user import User, user_roles

__all__ = [
    "Base",
    "AuditLog",
    "Org",
    "Role",
    "User",
    "RefreshToken",
    "user_roles",
]
