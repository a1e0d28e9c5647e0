from app.services.audit.context import RequestContext
from app.services.audit.extraction import invoke_extractor
from app.services.audit.recorder import AuditEvent, AuditRecorder, AuditStore
from app.services.audit.registry import AuditConfigurationError, AuditRegistry, AuditRule
from app.services.audit.reporting import (
    AuditFilter,
    AuditQueryError,
    compute_document_stats,
    list_events,
)
from app.services.audit.trail import AuditTrail

__all__ = [
    "AuditConfigurationError",
    "AuditEvent",
    "AuditFilter",
    "AuditQueryError",
    "AuditRecorder",
    "AuditRegistry",
    "AuditRule",
    "AuditStore",
    "AuditTrail",
    "RequestContext",
    "compute_document_stats",
    "invoke_extractor",
    "list_events",
]
