# app/services/payment/provider_interface.py
from abc import ABC, abstractmethod
from typing import Optional, Dict, Union
from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime


class CheckoutSessionStatusEnum(str, Enum):
    """Standardized hosted-checkout status."""
    OPEN = "open"
    COMPLETE = "complete"
    EXPIRED = "expired"


class PaymentStatusEnum(str, Enum):
    """Payment status reported on a checkout session."""
    PAID = "paid"
    UNPAID = "unpaid"
    NO_PAYMENT_REQUIRED = "no_payment_required"


@dataclass
class CreateCheckoutSessionParams:
    """Parameters for opening a hosted checkout session."""
    reference: str  # our basket reference, echoed back on payment-intent events
    amount: int  # In smallest currency unit (cents)
    currency: str  # ISO 4217
    description: str
    customer_email: str
    success_url: str
    cancel_url: str
    metadata: Dict[str, str] = field(default_factory=dict)
    idempotency_key: Optional[str] = None
    locale: Optional[str] = None


@dataclass
class CheckoutSessionResult:
    """Result of opening a checkout session."""
    session_id: str
    reference: str
    url: Optional[str]
    status: CheckoutSessionStatusEnum
    expires_at: Optional[datetime] = None


@dataclass
class CheckoutSessionState:
    """Current state of a checkout session."""
    session_id: str
    status: CheckoutSessionStatusEnum
    payment_status: Optional[str]
    amount_total: Optional[int] = None
    currency: Optional[str] = None


# ---------------------------------------------------------------------------
# Webhook events: one variant per event kind the booking engine understands.
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    session_id: str
    payment_status: Optional[str]


@dataclass(frozen=True)
class CheckoutAsyncPaymentSucceeded:
    event_id: str
    session_id: str


@dataclass(frozen=True)
class CheckoutAsyncPaymentFailed:
    event_id: str
    session_id: str


@dataclass(frozen=True)
class CheckoutExpired:
    event_id: str
    session_id: str


@dataclass(frozen=True)
class PaymentIntentSucceeded:
    event_id: str
    intent_id: str
    checkout_reference: Optional[str]


@dataclass(frozen=True)
class PaymentIntentFailed:
    event_id: str
    intent_id: str
    checkout_reference: Optional[str]


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: str
    event_type: str


WebhookEvent = Union[
    CheckoutCompleted,
    CheckoutAsyncPaymentSucceeded,
    CheckoutAsyncPaymentFailed,
    CheckoutExpired,
    PaymentIntentSucceeded,
    PaymentIntentFailed,
    UnhandledEvent,
]


@dataclass
class HealthCheckResult:
    """Health check result."""
    healthy: bool
    latency_ms: float
    message: Optional[str] = None


class PaymentProviderInterface(ABC):
    """
    Interface the booking engine needs from a payment provider.
    Business logic only talks to this, never to a provider SDK.
    """

    @property
    @abstractmethod
    def code(self) -> str:
        """Provider code identifier (e.g., 'stripe')."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def create_checkout_session(
        self, params: CreateCheckoutSessionParams
    ) -> CheckoutSessionResult:
        """Open a hosted payment page for the given amount."""
        pass

    @abstractmethod
    async def expire_checkout_session(self, session_id: str) -> None:
        """Close a session that can no longer be paid."""
        pass

    @abstractmethod
    async def get_checkout_session(self, session_id: str) -> CheckoutSessionState:
        pass

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        pass

    @abstractmethod
    def parse_webhook_event(self, payload: bytes) -> WebhookEvent:
        """Turn a raw webhook body into one of the event variants above."""
        pass

    @abstractmethod
    async def health_check(self) -> HealthCheckResult:
        pass
