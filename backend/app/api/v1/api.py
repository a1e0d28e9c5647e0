from fastapi import APIRouter

from app.api.v1.endpoints import admin_roles, admin_users, audit, auth, orgs, profile

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(orgs.router, prefix="/orgs", tags=["orgs"])
api_router.include_router(profile.router, prefix="/profile", tags=["profile"])
api_router.include_router(admin_users.router, prefix="/admin/users", tags=["admin"])
api_router.include_router(admin_roles.router, prefix="/admin/roles", tags=["admin"])
api_router.include_router(audit.router, prefix="/audit", tags=["audit"])
