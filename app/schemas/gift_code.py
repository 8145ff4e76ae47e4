# app/schemas/gift_code.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class GiftCodeStatus(str, Enum):
    unused = "unused"
    used = "used"
    expired = "expired"


class GiftCodePackCreate(BaseModel):
    quantity: int = Field(..., ge=1)
    expires_at: Optional[datetime] = None
    notes: Optional[str] = None
    recipient_email: Optional[EmailStr] = None


class GiftCodeResponse(BaseModel):
    id: str
    code: str
    status: GiftCodeStatus
    pack_id: Optional[str] = None
    ticket_id: Optional[str] = None
    recipient_email: Optional[str] = None
    notes: Optional[str] = None
    expires_at: Optional[datetime] = None
    used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class GiftCodePackResponse(BaseModel):
    pack_id: str
    quantity: int
    codes: List[GiftCodeResponse]


class GiftCodeListResponse(BaseModel):
    codes: List[GiftCodeResponse]
    total: int
    limit: int
    offset: int


class GiftCodePackSummary(BaseModel):
    pack_id: str
    total: int
    unused: int
    used: int
    expired: int
    created_at: Optional[datetime] = None


class GiftCodeCheckResponse(BaseModel):
    code: str
    valid: bool = True
    expires_at: Optional[datetime] = None


# ============================================
# Purchases
# ============================================

class GiftCodePurchaseStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    cancelled = "cancelled"


class GiftCodePurchaseRequest(BaseModel):
    quantity: int = Field(..., ge=1)
    email: EmailStr
    language: Optional[str] = "fr"
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class GiftCodePurchaseResponse(BaseModel):
    checkout_id: str
    checkout_url: Optional[str] = None
    quantity: int
    total_amount: Decimal


class GiftCodePurchaseStatusResponse(BaseModel):
    checkout_id: str
    status: GiftCodePurchaseStatus
    quantity: int
    total_amount: Decimal

    model_config = {"from_attributes": True}
