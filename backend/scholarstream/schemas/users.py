"""Pydantic schemas for users"""
from pydantic import BaseModel
from typing import Optional


class RegisterUserRequest(BaseModel):
    name: Optional[str] = None
    photo_url: Optional[str] = None


class RoleUpdateRequest(BaseModel):
    role: str  # 'student', 'moderator', 'admin'
