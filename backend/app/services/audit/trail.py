from __future__ import annotations

import logging
from typing import Any

from app.services.audit.context import RequestContext
from app.services.audit.extraction import invoke_extractor
from app.services.audit.recorder import AuditEvent, AuditRecorder
from app.services.audit.registry import AuditRegistry

logger = logging.getLogger(__name__)


class AuditTrail:
    """Matches a finished request against the registry and records one event per firing rule."""

    def __init__(self, registry: AuditRegistry, recorder: AuditRecorder) -> None:
        self.registry = registry
        self.recorder = recorder

    def process(self, context: RequestContext, response_data: Any) -> list[AuditEvent]:
        events: list[AuditEvent] = []
        # every matching rule fires independently, in registration order
        for rule in self.registry.find_matches(context.path, context.method):
            details = invoke_extractor(rule, response_data, context)
            if details is None:
                logger.debug("audit_suppressed rule=%s path=%s", rule.label, context.path)
                continue
            try:
                events.append(self.recorder.record(rule, details, context, response_data))
            except Exception:
                logger.exception("audit_record_failed rule=%s path=%s", rule.label, context.path)
        return events
