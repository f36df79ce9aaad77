"""
Billing request/response models
"""
from pydantic import BaseModel
from typing import Optional


class CheckoutRequest(BaseModel):
    planId: Optional[str] = None


class CreateSessionRequest(BaseModel):
    priceId: Optional[str] = None


class CheckoutResponse(BaseModel):
    url: str


class CreateSessionResponse(BaseModel):
    ok: bool = True
    url: str


class ConfirmRequest(BaseModel):
    sessionId: Optional[str] = None
    planId: Optional[str] = None


class ConfirmResponse(BaseModel):
    success: bool = True
    credits: int
    plan: str
    alreadyApplied: bool = False


class GrantFreeResponse(BaseModel):
    success: bool = True
    credits: int
    plan: str


class PurchaseResult(BaseModel):
    """Outcome of applying a purchase to a profile"""
    applied: bool
    credits: int
    plan: str
