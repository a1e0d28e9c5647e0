import json

from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings


def _json_serializer(value) -> str:
    # JSON columns keep non-ASCII text readable so substring search can match it
    return json.dumps(value, ensure_ascii=False)


def _engine_options(database_url: str) -> tuple[dict, dict]:
    engine_kwargs: dict = {"pool_pre_ping": True, "json_serializer": _json_serializer}
    connect_args: dict = {}

    backend = make_url(database_url).get_backend_name()
    if backend in {"postgresql", "postgres"}:
        # audit timestamps are compared as UTC calendar days
        connect_args["options"] = "-c client_encoding=UTF8 -c timezone=UTC"
    elif backend == "sqlite":
        connect_args["check_same_thread"] = False
        if ":memory:" in database_url:
            # one shared connection, audit writes happen on worker threads
            engine_kwargs["poolclass"] = StaticPool

    return engine_kwargs, connect_args


_engine_kwargs, _connect_args = _engine_options(settings.DATABASE_URL)
engine = create_engine(settings.DATABASE_URL, connect_args=_connect_args, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
