# app/api/v1/endpoints/tickets.py
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.api import deps
from app.core.limiter import limiter
from app.core.pubsub import TopicRegistry
from app.schemas.ticket import (
    BasketCheckoutRequest,
    BasketCheckoutResponse,
    CheckoutTicketsResponse,
    TicketCreate,
    TicketListResponse,
    TicketResponse,
    TicketStatus,
    TicketStatusUpdate,
    TicketValidateRequest,
    TicketValidationResponse,
)
from app.schemas.token import TokenPayload
from app.services.notifications import TicketNotifier
from app.services.payment.provider_interface import PaymentProviderInterface
from app.services.ticket_management.reconciliation import sync_checkout_status
from app.services.ticket_management.ticket_service import ticket_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["Tickets"])


# ==================== Public Endpoints ====================

@router.post("/checkout", response_model=BasketCheckoutResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_checkout(
    basket: BasketCheckoutRequest,
    request: Request,
    db: Session = Depends(deps.get_db),
    provider: Optional[PaymentProviderInterface] = Depends(deps.get_payment_provider_optional),
    notifier: TicketNotifier = Depends(deps.get_notifier),
    topics: TopicRegistry = Depends(deps.get_topics),
):
    """
    Reserve up to 10 tickets and open a payment session for them.

    Returns the hosted payment page URL. Baskets fully covered by gift codes
    are issued immediately and need no payment.
    """
    result = await ticket_service.create_basket_with_payment(db, basket, provider, notifier, topics)
    return BasketCheckoutResponse(
        checkout_id=result.checkout_id,
        checkout_url=result.checkout_url,
        total_amount=result.total_amount,
        is_free=result.is_free,
        tickets=[TicketResponse.model_validate(t) for t in result.tickets],
    )


@router.get("/checkout/{checkout_id}", response_model=CheckoutTicketsResponse)
async def get_checkout_tickets(
    checkout_id: str,
    db: Session = Depends(deps.get_db),
    provider: Optional[PaymentProviderInterface] = Depends(deps.get_payment_provider_optional),
    notifier: TicketNotifier = Depends(deps.get_notifier),
    topics: TopicRegistry = Depends(deps.get_topics),
):
    """
    Tickets of a checkout, for the payment return page.

    While tickets are still pending the session state is pulled from the
    provider, so the page does not depend on webhook latency.
    """
    tickets = ticket_service.get_tickets_by_checkout(db, checkout_id)
    if provider and any(t.status == TicketStatus.pending.value for t in tickets):
        try:
            await sync_checkout_status(db, checkout_id, provider, notifier, topics)
            tickets = ticket_service.get_tickets_by_checkout(db, checkout_id)
        except Exception as e:
            logger.warning(f"Could not sync checkout {checkout_id} with provider: {e}")

    statuses = {t.status for t in tickets}
    overall = statuses.pop() if len(statuses) == 1 else "mixed"
    return CheckoutTicketsResponse(
        checkout_id=checkout_id,
        status=overall,
        tickets=[TicketResponse.model_validate(t) for t in tickets],
    )


# ==================== Staff Endpoints ====================

@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(
    ticket_in: TicketCreate,
    db: Session = Depends(deps.get_db),
    topics: TopicRegistry = Depends(deps.get_topics),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """**[STAFF]** Create a single pending ticket (desk sale, phone booking)."""
    return ticket_service.create_ticket(db, ticket_in, topics)


@router.get("", response_model=TicketListResponse)
def list_tickets(
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    reservation_date: Optional[date] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """**[STAFF]** List tickets with filters."""
    tickets, total = ticket_service.list_tickets(
        db,
        status=status_filter.value if status_filter else None,
        reservation_date=reservation_date,
        search=search,
        limit=limit,
        offset=offset,
    )
    return TicketListResponse(
        tickets=[TicketResponse.model_validate(t) for t in tickets],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/validate", response_model=TicketValidationResponse)
def validate_ticket(
    body: TicketValidateRequest,
    db: Session = Depends(deps.get_db),
    topics: TopicRegistry = Depends(deps.get_topics),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    **[STAFF]** Scan a ticket at the door.

    **Errors**:
    - 404: Unknown code
    - 409: Already used, not paid, past or future reservation date
    """
    ticket = ticket_service.validate_ticket(db, body.code, topics)
    return TicketValidationResponse(ticket=TicketResponse.model_validate(ticket))


@router.get("/{ticket_id}", response_model=TicketResponse)
def get_ticket(
    ticket_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return ticket_service.get_ticket(db, ticket_id)


@router.patch("/{ticket_id}/status", response_model=TicketResponse)
def update_ticket_status(
    ticket_id: str,
    body: TicketStatusUpdate,
    db: Session = Depends(deps.get_db),
    notifier: TicketNotifier = Depends(deps.get_notifier),
    topics: TopicRegistry = Depends(deps.get_topics),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """**[STAFF]** Mark a pending ticket as paid or cancelled."""
    return ticket_service.update_ticket_status(db, ticket_id, body.status.value, notifier, topics)
