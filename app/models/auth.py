"""
Authentication models
"""
from pydantic import BaseModel
from typing import Optional


class AuthenticatedUser(BaseModel):
    """Supabase user resolved from an access token"""
    id: str
    email: Optional[str] = None


class ProfileResponse(BaseModel):
    success: bool = True
    credits: int
    plan: str
    isPro: bool
    isStudio: bool


class SyncProfileResponse(BaseModel):
    success: bool = True
    credits: int
