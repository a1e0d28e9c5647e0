import json
import logging
from typing import Any, Optional

from starlette.background import BackgroundTask
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import settings
from app.core.logging import correlation_id_var
from app.core.request_context import build_device_info, client_ip
from app.services.audit.context import RequestContext
from app.services.audit.trail import AuditTrail

logger = logging.getLogger(__name__)


def _is_json(content_type: Optional[str]) -> bool:
    return bool(content_type) and "json" in content_type.lower()


def _parse_json(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError):
        return None


async def _read_json_body(request: Request) -> Any:
    if not _is_json(request.headers.get("content-type")):
        return None
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > settings.AUDIT_MAX_BODY_BYTES:
        return None
    raw = await request.body()
    if len(raw) > settings.AUDIT_MAX_BODY_BYTES:
        return None
    return _parse_json(raw)


def build_request_context(request: Request, body: Any = None) -> RequestContext:
    """Snapshot of ``request`` after routing and authentication have populated its state."""
    return RequestContext.build(
        method=request.method,
        path=request.url.path,
        query_string=request.url.query,
        params=request.scope.get("path_params") or {},
        body=body,
        principal=getattr(request.state, "principal", None),
        correlation_id=getattr(request.state, "correlation_id", None),
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        device_info=build_device_info(request),
    )


def run_audit_trail(trail: AuditTrail, context: RequestContext, response_data: Any) -> None:
    token = correlation_id_var.set(context.correlation_id or "-")
    try:
        trail.process(context, response_data)
    except Exception:
        logger.exception("audit_trail_failed path=%s", context.path)
    finally:
        correlation_id_var.reset(token)


def get_audit_trail(request: Request) -> Optional[AuditTrail]:
    return getattr(request.app.state, "audit_trail", None)


class AuditMiddleware(BaseHTTPMiddleware):
    """
    Observes successful responses of audited endpoints.

    The audit pipeline is attached as a background task, so it runs only after the
    response has been sent and can never change or delay it.
    """

    async def dispatch(self, request: Request, call_next):
        trail = get_audit_trail(request)
        if (
            not settings.AUDIT_ENABLED
            or trail is None
            or not trail.registry.is_audited(request.url.path, request.method)
        ):
            return await call_next(request)

        body = await _read_json_body(request)
        response = await call_next(request)
        if response.status_code >= 400:
            return response

        raw = b""
        async for chunk in response.body_iterator:
            raw += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
        response_data = _parse_json(raw) if _is_json(response.headers.get("content-type")) else None

        context = build_request_context(request, body)
        audited = Response(
            content=raw,
            status_code=response.status_code,
            background=BackgroundTask(run_audit_trail, trail, context, response_data),
        )
        audited.raw_headers = list(response.raw_headers)
        return audited
