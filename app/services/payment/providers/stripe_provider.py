# app/services/payment/providers/stripe_provider.py
import json
import stripe
import time
import logging
from typing import Any, Dict
from datetime import datetime, timezone
from dataclasses import dataclass

from app.core.exceptions import PaymentError
from ..provider_interface import (
    PaymentProviderInterface,
    CreateCheckoutSessionParams,
    CheckoutSessionResult,
    CheckoutSessionState,
    CheckoutSessionStatusEnum,
    CheckoutCompleted,
    CheckoutAsyncPaymentSucceeded,
    CheckoutAsyncPaymentFailed,
    CheckoutExpired,
    PaymentIntentSucceeded,
    PaymentIntentFailed,
    UnhandledEvent,
    WebhookEvent,
    HealthCheckResult,
)

logger = logging.getLogger(__name__)

# Metadata key carrying our basket reference on the session and its payment intent
REFERENCE_METADATA_KEY = "checkout_reference"


@dataclass
class StripeConfig:
    """Configuration for Stripe provider."""
    secret_key: str
    webhook_secret: str
    api_version: str = "2024-06-20"
    max_retries: int = 2


# Mapping from Stripe checkout session status to our standardized status
STRIPE_SESSION_STATUS_MAP: Dict[str, CheckoutSessionStatusEnum] = {
    "open": CheckoutSessionStatusEnum.OPEN,
    "complete": CheckoutSessionStatusEnum.COMPLETE,
    "expired": CheckoutSessionStatusEnum.EXPIRED,
}


class StripeProvider(PaymentProviderInterface):
    """
    Stripe Checkout implementation.

    Tickets are paid on Stripe's hosted page; the result comes back through
    checkout.session.* and payment_intent.* webhooks.
    """

    def __init__(self, config: StripeConfig):
        """Initialize Stripe provider with configuration."""
        self._config = config

        # Initialize Stripe with locked API version
        stripe.api_key = config.secret_key
        stripe.api_version = config.api_version
        stripe.max_network_retries = config.max_retries

    @property
    def code(self) -> str:
        return "stripe"

    @property
    def name(self) -> str:
        return "Stripe"

    async def create_checkout_session(
        self, params: CreateCheckoutSessionParams
    ) -> CheckoutSessionResult:
        """
        Create a Stripe Checkout session for a whole basket.

        The basket reference is copied into the payment intent metadata so
        payment_intent.* events can be traced back to the session.
        """
        metadata = {**params.metadata, REFERENCE_METADATA_KEY: params.reference}
        session_params: Dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": params.currency.lower(),
                        "product_data": {"name": params.description},
                        "unit_amount": params.amount,
                    },
                    "quantity": 1,
                }
            ],
            "customer_email": params.customer_email,
            "client_reference_id": params.reference,
            "success_url": params.success_url,
            "cancel_url": params.cancel_url,
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
        }
        if params.locale:
            session_params["locale"] = params.locale

        try:
            session = stripe.checkout.Session.create(
                **session_params,
                idempotency_key=params.idempotency_key or params.reference,
            )
        except stripe.RateLimitError as e:
            logger.error(f"Rate limit error: {e}")
            raise PaymentError(
                code="RATE_LIMIT",
                message="Too many requests. Please try again.",
                retryable=True,
            )
        except stripe.InvalidRequestError as e:
            logger.error(f"Invalid checkout session request: {e}")
            raise PaymentError(
                code="INVALID_REQUEST",
                message=str(e),
                retryable=False,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating checkout session: {e}")
            raise PaymentError(
                code="PROVIDER_ERROR",
                message="Payment service temporarily unavailable",
                retryable=True,
            )

        expires_at = getattr(session, "expires_at", None)
        return CheckoutSessionResult(
            session_id=session.id,
            reference=params.reference,
            url=session.url,
            status=STRIPE_SESSION_STATUS_MAP.get(session.status, CheckoutSessionStatusEnum.OPEN),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc) if expires_at else None,
        )

    async def expire_checkout_session(self, session_id: str) -> None:
        """Expire an open session."""
        try:
            stripe.checkout.Session.expire(session_id)
        except stripe.InvalidRequestError as e:
            # Session might already be expired or completed
            logger.info(f"Checkout session {session_id} not expired: {e}")
        except stripe.StripeError as e:
            logger.error(f"Error expiring checkout session {session_id}: {e}")
            raise PaymentError(
                code="PROVIDER_ERROR",
                message="Could not expire checkout session",
                retryable=True,
            )

    async def get_checkout_session(self, session_id: str) -> CheckoutSessionState:
        """Retrieve current status of a checkout session."""
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as e:
            logger.error(f"Error retrieving checkout session {session_id}: {e}")
            raise PaymentError(
                code="PROVIDER_ERROR",
                message="Could not retrieve checkout status",
                retryable=True,
            )

        return CheckoutSessionState(
            session_id=session.id,
            status=STRIPE_SESSION_STATUS_MAP.get(session.status, CheckoutSessionStatusEnum.OPEN),
            payment_status=getattr(session, "payment_status", None),
            amount_total=getattr(session, "amount_total", None),
            currency=(getattr(session, "currency", None) or "").upper() or None,
        )

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify Stripe webhook signature."""
        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                self._config.webhook_secret,
            )
            return True
        except stripe.SignatureVerificationError:
            return False
        except ValueError as e:
            logger.error(f"Error verifying webhook signature: {e}")
            return False

    def parse_webhook_event(self, payload: bytes) -> WebhookEvent:
        """Parse a Stripe webhook body into a typed event."""
        try:
            body = json.loads(payload.decode("utf-8"))
            event_id = body["id"]
            event_type = body["type"]
            data_object = body.get("data", {}).get("object", {}) or {}
        except (ValueError, KeyError, AttributeError) as e:
            logger.error(f"Error parsing webhook event: {e}")
            raise PaymentError(
                code="PARSE_ERROR",
                message="Could not parse webhook event",
                retryable=False,
            )

        object_id = data_object.get("id")
        metadata = data_object.get("metadata") or {}

        if event_type == "checkout.session.completed":
            return CheckoutCompleted(event_id, object_id, data_object.get("payment_status"))
        if event_type == "checkout.session.async_payment_succeeded":
            return CheckoutAsyncPaymentSucceeded(event_id, object_id)
        if event_type == "checkout.session.async_payment_failed":
            return CheckoutAsyncPaymentFailed(event_id, object_id)
        if event_type == "checkout.session.expired":
            return CheckoutExpired(event_id, object_id)
        if event_type == "payment_intent.succeeded":
            return PaymentIntentSucceeded(event_id, object_id, metadata.get(REFERENCE_METADATA_KEY))
        if event_type == "payment_intent.payment_failed":
            return PaymentIntentFailed(event_id, object_id, metadata.get(REFERENCE_METADATA_KEY))

        return UnhandledEvent(event_id, event_type)

    async def health_check(self) -> HealthCheckResult:
        """Health check for Stripe API."""
        try:
            start_time = time.time()
            stripe.Balance.retrieve()
            latency_ms = (time.time() - start_time) * 1000

            return HealthCheckResult(
                healthy=True,
                latency_ms=latency_ms,
                message="Stripe API is healthy",
            )
        except stripe.AuthenticationError:
            return HealthCheckResult(
                healthy=False,
                latency_ms=0,
                message="Invalid Stripe API key",
            )
        except stripe.StripeError as e:
            return HealthCheckResult(
                healthy=False,
                latency_ms=0,
                message=f"Stripe API error: {str(e)}",
            )
