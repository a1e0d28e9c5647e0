from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.core.security import get_current_user
from app.models.org import Org
from app.models.user import User


def _ensure_header_matches(expected: Optional[str], sent: Optional[str]) -> None:
    if sent and sent != expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Workspace mismatch",
        )


def get_current_org(
    user: User = Depends(get_current_user),
    x_org_id: Optional[str] = Header(default=None, alias="X-Org-Id"),
    x_org_slug: Optional[str] = Header(default=None, alias="X-Org-Slug"),
) -> Org:
    """Workspace of the authenticated user. Optional headers must agree with it."""
    org = user.org
    if org is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workspace not found",
        )

    _ensure_header_matches(org.id, x_org_id)
    _ensure_header_matches(org.slug, x_org_slug)
    return org
