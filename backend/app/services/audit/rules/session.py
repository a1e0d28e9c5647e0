from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from app.services.audit.registry import AuditRegistry
from app.services.audit.rules.common import api_path, resolve_actor

FIRST_ACCESS_WINDOW = timedelta(hours=24)


class FirstAccessTracker:
    """
    Remembers when each user's first access was last recorded.

    Only the first login inside ``window`` produces a "Login" event. State is per
    process, so a restart or a second worker may record one extra login.
    """

    def __init__(
        self,
        window: timedelta = FIRST_ACCESS_WINDOW,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.window = window
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._seen: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def claim(self, user_id: str) -> bool:
        now = self._clock()
        with self._lock:
            last = self._seen.get(user_id)
            if last is not None and now - last < self.window:
                return False
            self._seen[user_id] = now
            return True


def _login_details(tracker: FirstAccessTracker):
    def extract(response_data, context):
        actor = resolve_actor(context)
        if actor is None or not tracker.claim(actor["userId"]):
            return None
        return {**actor, "firstAccess": True}

    return extract


def _logout_details(response_data, context):
    return resolve_actor(context)


def register_session_audit(
    registry: AuditRegistry,
    tracker: Optional[FirstAccessTracker] = None,
) -> FirstAccessTracker:
    tracker = tracker or FirstAccessTracker()
    registry.add_endpoint_to_audit(
        api_path(r"/auth/login"),
        ["POST"],
        "Login",
        _login_details(tracker),
        name="session.first_access",
    )
    registry.add_endpoint_to_audit(
        api_path(r"/auth/logout"),
        ["POST"],
        "Logout",
        _logout_details,
        name="session.logout",
    )
    return tracker
