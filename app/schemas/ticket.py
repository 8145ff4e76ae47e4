# app/schemas/ticket.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum


# ============================================
# Enums
# ============================================

class TicketStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    cancelled = "cancelled"
    used = "used"
    expired = "expired"


# Statuses that hold a seat in a slot
CAPACITY_HOLDING_STATUSES = (TicketStatus.pending.value, TicketStatus.paid.value)


# ============================================
# Requests
# ============================================

class TicketCreate(BaseModel):
    """Single ticket created by staff or as one line of a basket."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    reservation_date: date
    slot_start_time: time
    slot_end_time: time
    ticket_price: Decimal
    donation_amount: Decimal = Decimal("0")
    notes: Optional[str] = None
    language: Optional[str] = "fr"


class BasketItem(BaseModel):
    reservation_date: date
    slot_start_time: time
    slot_end_time: time
    # Price shown to the visitor; checked against the server price, never trusted
    ticket_price: Optional[Decimal] = None
    donation_amount: Decimal = Decimal("0")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None


class BasketCheckoutRequest(BaseModel):
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    language: Optional[str] = "fr"
    items: List[BasketItem] = Field(..., min_length=1)
    gift_codes: List[str] = Field(default_factory=list)
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class TicketValidateRequest(BaseModel):
    code: str = Field(..., min_length=1)


class TicketStatusUpdate(BaseModel):
    status: TicketStatus


# ============================================
# Responses
# ============================================

class TicketResponse(BaseModel):
    id: str
    code: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    reservation_date: date
    slot_start_time: time
    slot_end_time: time
    ticket_price: Decimal
    donation_amount: Decimal
    total_amount: Decimal
    status: TicketStatus
    used_at: Optional[datetime] = None
    checkout_id: Optional[str] = None
    language: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TicketListResponse(BaseModel):
    tickets: List[TicketResponse]
    total: int
    limit: int
    offset: int


class BasketCheckoutResponse(BaseModel):
    checkout_id: Optional[str] = None
    checkout_url: Optional[str] = None
    total_amount: Decimal
    is_free: bool = False
    tickets: List[TicketResponse]


class CheckoutTicketsResponse(BaseModel):
    checkout_id: str
    status: str
    tickets: List[TicketResponse]


class TicketValidationResponse(BaseModel):
    valid: bool = True
    ticket: TicketResponse
    message: str = "Ticket validated"
