import os
import sys

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ENV", "dev")
# seeds roles, the default workspace and admin@example.com / admin123
os.environ.setdefault("SEED_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import app.models  # noqa: E402,F401
from app.db.base import Base  # noqa: E402
from app.db.session import engine  # noqa: E402
from app.services.audit.recorder import AuditEvent  # noqa: E402

# bcrypt is slow and irrelevant here
from app.core import security  # noqa: E402

security.pwd_context.hash = lambda pw: f"hashed:{pw[:72]}"
security.pwd_context.verify = lambda plain, hashed: hashed == f"hashed:{plain[:72]}"

from main import app  # noqa: E402


class InMemoryAuditStore:
    """List-backed AuditStore used by unit tests."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    def _matches(self, event, filters) -> bool:
        for attr in ("user_id", "org_id", "event_type", "resource_type", "resource_id"):
            wanted = getattr(filters, attr)
            if wanted and getattr(event, attr) != wanted:
                return False
        return True

    def insert(self, event):
        self.events.append(event)

    def query(self, filters, offset, limit):
        matching = [e for e in self.events if self._matches(e, filters)]
        matching.sort(key=lambda e: e.timestamp, reverse=True)
        return matching[offset:offset + limit], len(matching)

    def iter_events(self, filters):
        return iter([e for e in self.events if self._matches(e, filters)])

    def delete_for_user(self, user_id, org_id=None):
        before = len(self.events)
        self.events = [
            e for e in self.events
            if not (e.user_id == user_id and (org_id is None or e.org_id == org_id))
        ]
        return before - len(self.events)


class FailingAuditStore(InMemoryAuditStore):
    def insert(self, event):
        raise ConnectionError("audit store unavailable")


@pytest.fixture()
def memory_store():
    return InMemoryAuditStore()


@pytest.fixture()
def failing_store():
    return FailingAuditStore()


@pytest.fixture()
def client():
    Base.metadata.create_all(bind=engine)
    with TestClient(app) as test_client:
        yield test_client
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def auth_headers(client):
    """Logs in and returns the bearer header for the given credentials."""

    def _headers(email: str = "admin@example.com", password: str = "admin123") -> dict:
        response = client.post(
            "/api/v1/auth/login",
            json={"email": email, "password": password},
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _headers


@pytest.fixture()
def make_user(client):
    """Creates a user with the given roles, in a new workspace when ``org_slug`` is unknown."""
    from app.core.security import hash_password
    from app.db.session import SessionLocal
    from app.models.org import Org
    from app.models.role import Role
    from app.models.user import User

    def _make(email: str, password: str, roles=("VIEW",), org_slug: str | None = None) -> str:
        db = SessionLocal()
        try:
            if org_slug is None:
                org = db.query(Org).filter(Org.name == "Default Workspace").one()
            else:
                org = db.query(Org).filter(Org.slug == org_slug).first()
                if org is None:
                    org = Org(name=org_slug.replace("-", " ").title(), slug=org_slug)
                    db.add(org)
                    db.flush()
            user = User(
                email=email,
                hashed_password=hash_password(password),
                org_id=org.id,
                is_active=True,
                roles=db.query(Role).filter(Role.name.in_(list(roles))).all(),
            )
            db.add(user)
            db.commit()
            return user.id
        finally:
            db.close()

    return _make
