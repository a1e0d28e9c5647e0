from __future__ import annotations

from app.services.audit.registry import AuditRegistry
from app.services.audit.rules.common import api_path, resolve_actor, updated_fields


def _profile_update_details(response_data, context):
    actor = resolve_actor(context)
    if actor is None:
        return None
    return {**actor, "updatedFields": updated_fields(context)}


def register_profile_audit(registry: AuditRegistry) -> None:
    registry.add_endpoint_to_audit(
        api_path(r"/profile/me"),
        ["PATCH"],
        "Update my profile",
        _profile_update_details,
        name="profile.update_me",
    )
