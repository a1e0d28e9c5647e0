from __future__ import annotations

import copy
import dataclasses
import json
import logging
from collections.abc import Mapping
from typing import Any, Optional

from app.services.audit.context import RequestContext
from app.services.audit.registry import AuditRule

logger = logging.getLogger(__name__)


def invoke_extractor(
    rule: AuditRule,
    response_data: Any,
    context: RequestContext,
) -> Optional[dict]:
    """
    Run the rule's extractor and normalize its result.

    Returns the details payload, or None when the event must be suppressed: the
    extractor returned None or an empty mapping, returned something that is not a
    JSON-compatible mapping, or raised. Failures are logged once as a warning and never
    propagate to the caller.
    """
    try:
        details = rule.detail_extractor(
            copy.deepcopy(response_data),
            dataclasses.replace(context, body=copy.deepcopy(context.body)),
        )
    except Exception as exc:
        logger.warning(
            "audit_extractor_failed rule=%s method=%s path=%s error=%r",
            rule.label,
            context.method,
            context.path,
            exc,
        )
        return None

    if details is None:
        return None
    if not isinstance(details, Mapping):
        logger.warning(
            "audit_extractor_malformed rule=%s type=%s",
            rule.label,
            type(details).__name__,
        )
        return None
    if not details:
        return None

    details = dict(details)
    try:
        json.dumps(details)
    except (TypeError, ValueError) as exc:
        logger.warning(
            "audit_extractor_malformed rule=%s error=%r",
            rule.label,
            exc,
        )
        return None
    return details
