from app.services.audit.registry import AuditRegistry
from app.services.audit.rules.profile import register_profile_audit
from app.services.audit.rules.session import register_session_audit
from app.services.audit.rules.workspace import register_workspace_audit


def register_default_rules(registry: AuditRegistry) -> AuditRegistry:
    register_session_audit(registry)
    register_profile_audit(registry)
    register_workspace_audit(registry)
    return registry
