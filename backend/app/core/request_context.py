import base64
import binascii
import json
import logging
import re
from typing import Any, Dict
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.core.config import settings
from app.core.logging import correlation_id_var

logger = logging.getLogger(__name__)

_SAFE_CORRELATION_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")
# Fields the client is not allowed to override through X-Device-Info.
_PROTECTED_DEVICE_KEYS = {"deviceId", "ipAddress"}


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "0.0.0.0"


def _decode_device_header(raw: str) -> Dict[str, Any]:
    try:
        decoded = json.loads(base64.b64decode(raw, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.debug("ignoring undecodable X-Device-Info header")
        return {}
    if not isinstance(decoded, dict):
        return {}
    return decoded


def build_device_info(request: Request) -> Dict[str, Any]:
    """Device context from client headers. No user-agent parsing happens here."""
    frontend = {}
    raw = request.headers.get("x-device-info")
    if raw:
        frontend = _decode_device_header(raw)

    user_agent = frontend.get("userAgent") or request.headers.get("user-agent") or ""
    app_version = request.headers.get("x-app-version")
    is_app = frontend.get("isMobile")
    if is_app is None:
        is_app = "okhttp" in user_agent.lower() or bool(app_version)

    info: Dict[str, Any] = {
        key: value
        for key, value in frontend.items()
        if value is not None and key not in _PROTECTED_DEVICE_KEYS
    }
    info.update(
        {
            "deviceId": request.headers.get("x-device-id") or request.cookies.get("device_id"),
            "ipAddress": client_ip(request),
            "userAgent": user_agent or None,
            "isApp": bool(is_app),
            "appVersion": app_version,
        }
    )
    return {key: value for key, value in info.items() if value is not None}


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Reuses the client's correlation id when it looks sane, otherwise mints one."""

    async def dispatch(self, request: Request, call_next):
        header = settings.CORRELATION_ID_HEADER
        incoming = (request.headers.get(header) or "").strip()
        correlation_id = incoming if _SAFE_CORRELATION_ID.match(incoming) else uuid4().hex

        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
        response.headers[header] = correlation_id
        return response
