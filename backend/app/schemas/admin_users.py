from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class AdminUserOut(BaseModel):
    id: str
    email: EmailStr
    full_name: Optional[str] = None
    org_id: str
    is_active: bool
    roles: List[str]
    created_at: datetime


class AdminUserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    full_name: Optional[str] = Field(default=None, max_length=255)
    roles: List[str] = Field(default_factory=list)
    is_active: Optional[bool] = None


class AdminUserUpdate(BaseModel):
    roles: Optional[List[str]] = None
    is_active: Optional[bool] = None
    full_name: Optional[str] = Field(default=None, max_length=255)


class AdminActionResult(BaseModel):
    success: bool
    message: str


class RoleOut(BaseModel):
    id: int
    name: str
    member_count: int = 0


class RoleCreate(BaseModel):
    name: str = Field(min_length=2, max_length=32, pattern=r"^[A-Za-z][A-Za-z0-9_]*$")


class RoleUpdate(BaseModel):
    name: str = Field(min_length=2, max_length=32, pattern=r"^[A-Za-z][A-Za-z0-9_]*$")
