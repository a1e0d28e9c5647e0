from __future__ import annotations

from collections.abc import Mapping

from app.services.audit.registry import AuditRegistry
from app.services.audit.rules.common import api_path, body_value, resolve_actor, updated_fields


def _response_value(response_data, key):
    if isinstance(response_data, Mapping):
        return response_data.get(key)
    return None


def _workspace_update_details(response_data, context):
    actor = resolve_actor(context)
    if actor is None:
        return None
    return {
        **actor,
        "workspaceId": context.org_id,
        "updatedFields": updated_fields(context),
        "workspaceName": _response_value(response_data, "name"),
    }


def _team_member_create_details(response_data, context):
    actor = resolve_actor(context)
    if actor is None:
        return None
    return {
        **actor,
        "workspaceId": context.org_id,
        "memberEmail": body_value(context, "email"),
        "memberRoles": body_value(context, "roles") or [],
        "createdUserId": _response_value(response_data, "id"),
    }


def _team_member_update_details(response_data, context):
    actor = resolve_actor(context)
    if actor is None:
        return None
    return {
        **actor,
        "workspaceId": context.org_id,
        "teamMemberId": context.params.get("user_id"),
        "updatedFields": updated_fields(context),
        "newRoles": body_value(context, "roles"),
        "newStatus": body_value(context, "is_active"),
    }


def _team_member_delete_details(response_data, context):
    actor = resolve_actor(context)
    if actor is None:
        return None
    return {
        **actor,
        "workspaceId": context.org_id,
        "teamMemberId": context.params.get("user_id"),
        "success": _response_value(response_data, "success"),
        "message": _response_value(response_data, "message"),
    }


def _role_create_details(response_data, context):
    actor = resolve_actor(context)
    if actor is None:
        return None
    return {
        **actor,
        "workspaceId": context.org_id,
        "roleName": _response_value(response_data, "name") or body_value(context, "name"),
        "createdRoleId": _response_value(response_data, "id"),
    }


def _role_update_details(response_data, context):
    actor = resolve_actor(context)
    if actor is None:
        return None
    return {
        **actor,
        "workspaceId": context.org_id,
        "roleId": context.params.get("role_id"),
        "updatedFields": updated_fields(context),
        "newName": _response_value(response_data, "name"),
    }


def _role_delete_details(response_data, context):
    actor = resolve_actor(context)
    if actor is None:
        return None
    return {
        **actor,
        "workspaceId": context.org_id,
        "roleId": context.params.get("role_id"),
        "success": _response_value(response_data, "success"),
        "message": _response_value(response_data, "message"),
    }


def register_workspace_audit(registry: AuditRegistry) -> None:
    registry.add_endpoint_to_audit(
        api_path(r"/orgs/current"),
        ["PUT", "PATCH"],
        "Update workspace data",
        _workspace_update_details,
        name="workspace.update",
    )
    registry.add_endpoint_to_audit(
        api_path(r"/admin/users"),
        ["POST"],
        "Create user",
        _team_member_create_details,
        name="workspace.team.create_user",
    )
    registry.add_endpoint_to_audit(
        api_path(r"/admin/users/[^/]+"),
        ["PUT", "PATCH"],
        "Update user data",
        _team_member_update_details,
        name="workspace.team.update_user",
    )
    registry.add_endpoint_to_audit(
        api_path(r"/admin/users/[^/]+"),
        ["DELETE"],
        "Delete user",
        _team_member_delete_details,
        name="workspace.team.delete_user",
    )
    registry.add_endpoint_to_audit(
        api_path(r"/admin/roles"),
        ["POST"],
        "Create role",
        _role_create_details,
        name="workspace.roles.create",
    )
    registry.add_endpoint_to_audit(
        api_path(r"/admin/roles/[^/]+"),
        ["PUT", "PATCH"],
        "Update role",
        _role_update_details,
        name="workspace.roles.update",
    )
    registry.add_endpoint_to_audit(
        api_path(r"/admin/roles/[^/]+"),
        ["DELETE"],
        "Delete role",
        _role_delete_details,
        name="workspace.roles.delete",
    )
