from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Optional

from app.core.config import settings
from app.services.audit.context import RequestContext

_UUID = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")


def api_path(pattern: str) -> str:
    """Anchor ``pattern`` under the versioned API prefix."""
    return f"^{re.escape(settings.API_V1_STR)}{pattern}$"


def resolve_actor(context: RequestContext) -> Optional[dict]:
    """Acting user's id/email, or None when the principal is missing or malformed."""
    user_id = context.user_id
    if not user_id or not _UUID.match(str(user_id)):
        return None
    email = (context.principal or {}).get("email") or "unavailable"
    return {"userId": user_id, "userEmail": email}


def updated_fields(context: RequestContext) -> list[str]:
    if isinstance(context.body, Mapping):
        return list(context.body.keys())
    return []


def body_value(context: RequestContext, key: str) -> Any:
    if isinstance(context.body, Mapping):
        return context.body.get(key)
    return None
