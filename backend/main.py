import logging
import re
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from app.api.v1.api import api_router
from app.core.audit import AuditMiddleware
from app.core.config import settings
from app.core.logging import configure_logging
from app.core.request_context import CorrelationIdMiddleware
from app.core.security import hash_password, verify_password
from app.db.session import SessionLocal
from app.models.org import Org
from app.models.role import Role
from app.models.user import User
from app.services.audit.recorder import AuditRecorder
from app.services.audit.registry import AuditRegistry
from app.services.audit.rules import register_default_rules
from app.services.audit.store import SqlAlchemyAuditStore
from app.services.audit.trail import AuditTrail

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def _slugify(value: str) -> str:
    words = re.split(r"[^0-9a-z]+", value.strip().lower())
    return "-".join(word for word in words if word) or "org"


def _ensure_roles(db: Session, names: list[str]) -> None:
    existing = {name for (name,) in db.query(Role.name).all()}
    db.add_all(Role(name=name) for name in names if name not in existing)
    db.commit()


def _ensure_workspace(db: Session, name: str) -> Org:
    org = db.query(Org).filter(Org.name == name).first()
    if org is None:
        org = Org(name=name)
        db.add(org)
    if not org.slug:
        org.slug = _slugify(name)
    db.commit()
    return org


def _ensure_master_user(db: Session, org: Org) -> User:
    user = db.query(User).filter(User.email == settings.MASTER_EMAIL).first()
    if user is None:
        user = User(email=settings.MASTER_EMAIL, org_id=org.id, is_active=True)
        db.add(user)
    if not user.hashed_password or not verify_password(settings.MASTER_PASSWORD, user.hashed_password):
        user.hashed_password = hash_password(settings.MASTER_PASSWORD)

    wanted = {role.strip().upper() for role in settings.MASTER_ROLES.split(",") if role.strip()}
    missing = wanted - {role.name for role in user.roles}
    if missing:
        user.roles.extend(db.query(Role).filter(Role.name.in_(sorted(missing))).all())
    db.commit()
    return user


def seed_dev_data() -> None:
    """Idempotent dev bootstrap: base roles, the default workspace and the master user."""
    if not settings.SEED_ENABLED:
        return

    db = SessionLocal()
    try:
        _ensure_roles(db, ["DEV", "ADMIN", "VIEW"])
        org = _ensure_workspace(db, settings.SEED_ORG_NAME)
        _ensure_master_user(db, org)
        logger.info("dev seed applied org=%s master=%s", org.slug, settings.MASTER_EMAIL)
    finally:
        db.close()


def configure_audit(app: FastAPI) -> AuditTrail:
    """Builds the audit registry and lets every feature module register its rules."""
    registry = register_default_rules(AuditRegistry())
    store = SqlAlchemyAuditStore(SessionLocal)
    trail = AuditTrail(registry, AuditRecorder(store, path_prefix=settings.API_V1_STR))
    app.state.audit_registry = registry
    app.state.audit_store = store
    app.state.audit_trail = trail
    return trail


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_audit(app)
    seed_dev_data()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# Last added runs first: correlation id must exist before the audit middleware looks at it.
app.add_middleware(AuditMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[settings.CORRELATION_ID_HEADER],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/healthz")
def healthz():
    return {"status": "ok"}
