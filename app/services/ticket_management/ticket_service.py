# app/services/ticket_management/ticket_service.py
"""
Ticket Lifecycle Service

Handles business logic for:
- Creating single tickets and paid baskets of tickets
- Applying gift codes to a basket
- Validating a ticket at the door
- Admin status changes
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    GiftCodeAlreadyUsed,
    InvalidTicketState,
    PaymentSessionError,
    ReservationExpired,
    ReservationNotToday,
    TicketAlreadyUsed,
    TicketNotFound,
    ValidationError,
)
from app.core.pubsub import SLOTS_TOPIC, TICKETS_TOPIC, TopicRegistry
from app.crud.gift_code_crud import gift_code_crud
from app.crud.ticket_crud import ticket_crud
from app.models.gift_code import GiftCode
from app.models.ticket import Ticket
from app.schemas.ticket import BasketCheckoutRequest, TicketCreate, TicketStatus
from app.services.codes import (
    TICKET_CODE_LENGTH,
    generate_unique_code,
    normalize_code,
    persist_with_unique_codes,
)
from app.services.notifications import TicketNotifier
from app.services.payment.provider_interface import (
    CreateCheckoutSessionParams,
    PaymentProviderInterface,
)
from app.services.scheduling.slot_planner import calculate_slot_price
from app.services.ticket_management.gift_code_service import gift_code_service
from app.utils.clock import utcnow, venue_today
from app.utils.money import to_minor_units, to_money

logger = logging.getLogger(__name__)

TICKET_CODE_COLLISION_MARKERS = ("uq_tickets_code", "tickets.code")


@dataclass
class BasketLine:
    """One ticket of a basket after server-side pricing."""
    reservation_date: date
    slot_start_time: time
    slot_end_time: time
    ticket_price: Decimal
    donation_amount: Decimal
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    notes: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return self.ticket_price + self.donation_amount


@dataclass
class BasketResult:
    tickets: List[Ticket]
    total_amount: Decimal
    checkout_id: Optional[str] = None
    checkout_url: Optional[str] = None
    is_free: bool = False


def check_ticket_details(
    email: Optional[str],
    ticket_price,
    donation_amount,
    slot_start_time: time,
    slot_end_time: time,
) -> None:
    """Reject a ticket before anything is written."""
    if not email or not email.strip():
        raise ValidationError("Email is required")
    if ticket_price is None or Decimal(ticket_price) < 0:
        raise ValidationError("Ticket price must be zero or positive")
    if donation_amount is None or Decimal(donation_amount) < 0:
        raise ValidationError("Donation amount must be zero or positive")
    if slot_end_time <= slot_start_time:
        raise ValidationError("Slot end time must be after start time")


class TicketLifecycleService:
    """Service owning ticket creation, validation and status changes."""

    # ========================================
    # Reads
    # ========================================

    def get_ticket(self, db: Session, ticket_id: str) -> Ticket:
        ticket = ticket_crud.get(db, ticket_id)
        if not ticket:
            raise TicketNotFound()
        return ticket

    def get_ticket_by_code(self, db: Session, code: str) -> Ticket:
        ticket = ticket_crud.get_by_code(db, normalize_code(code))
        if not ticket:
            raise TicketNotFound()
        return ticket

    def get_tickets_by_checkout(self, db: Session, checkout_id: str) -> List[Ticket]:
        tickets = ticket_crud.get_by_checkout(db, checkout_id)
        if not tickets:
            raise TicketNotFound("No tickets for this checkout")
        return tickets

    def list_tickets(
        self,
        db: Session,
        status: Optional[str] = None,
        reservation_date: Optional[date] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Ticket], int]:
        return ticket_crud.get_multi_filtered(db, status, reservation_date, search, limit, offset)

    # ========================================
    # Creation
    # ========================================

    def _new_ticket(
        self,
        db: Session,
        line: BasketLine,
        issued: set,
        status: str,
        checkout_id: Optional[str] = None,
        checkout_reference: Optional[str] = None,
        transaction_status: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Ticket:
        ticket_price = to_money(line.ticket_price)
        donation_amount = to_money(line.donation_amount)
        return Ticket(
            code=generate_unique_code(
                TICKET_CODE_LENGTH,
                lambda c: ticket_crud.code_exists(db, c),
                issued=issued,
            ),
            first_name=line.first_name,
            last_name=line.last_name,
            email=line.email.strip(),
            reservation_date=line.reservation_date,
            slot_start_time=line.slot_start_time,
            slot_end_time=line.slot_end_time,
            ticket_price=ticket_price,
            donation_amount=donation_amount,
            total_amount=ticket_price + donation_amount,
            status=status,
            checkout_id=checkout_id,
            checkout_reference=checkout_reference,
            transaction_status=transaction_status,
            notes=line.notes,
            language=language or "fr",
        )

    def create_ticket(
        self, db: Session, details: TicketCreate, topics: Optional[TopicRegistry] = None
    ) -> Ticket:
        """Create one pending ticket with a fresh code."""
        check_ticket_details(
            details.email,
            details.ticket_price,
            details.donation_amount,
            details.slot_start_time,
            details.slot_end_time,
        )
        line = BasketLine(
            reservation_date=details.reservation_date,
            slot_start_time=details.slot_start_time,
            slot_end_time=details.slot_end_time,
            ticket_price=details.ticket_price,
            donation_amount=details.donation_amount,
            email=details.email,
            first_name=details.first_name,
            last_name=details.last_name,
            notes=details.notes,
        )

        def build() -> Ticket:
            ticket = self._new_ticket(
                db, line, set(), TicketStatus.pending.value, language=details.language
            )
            db.add(ticket)
            db.flush()
            return ticket

        ticket = persist_with_unique_codes(db, build, TICKET_CODE_COLLISION_MARKERS)
        db.refresh(ticket)
        logger.info(f"Created ticket {ticket.id} ({ticket.code}) for {ticket.reservation_date}")
        if topics:
            topics.publish(SLOTS_TOPIC)
        return ticket

    def price_basket(self, basket: BasketCheckoutRequest) -> List[BasketLine]:
        """Validate every line and price it from the configured ticket price.

        A price sent by the client is only checked against the server's
        price for that slot (full or half); it never sets the amount.
        """
        if not 1 <= len(basket.items) <= settings.MAX_TICKETS_PER_BASKET:
            raise ValidationError(
                f"A basket holds between 1 and {settings.MAX_TICKETS_PER_BASKET} tickets"
            )

        lines = []
        for item in basket.items:
            if item.slot_end_time <= item.slot_start_time:
                raise ValidationError("Slot end time must be after start time")
            ticket_price = calculate_slot_price(
                settings.TICKET_BASE_PRICE,
                item.slot_start_time,
                item.slot_end_time,
                settings.SLOT_DURATION_HOURS,
            )
            if item.ticket_price is not None and to_money(item.ticket_price) != to_money(ticket_price):
                raise ValidationError(
                    f"Ticket price {to_money(item.ticket_price)} does not match "
                    f"the price of this slot ({to_money(ticket_price)})"
                )
            email = item.email or basket.email
            check_ticket_details(
                email, ticket_price, item.donation_amount, item.slot_start_time, item.slot_end_time
            )
            lines.append(
                BasketLine(
                    reservation_date=item.reservation_date,
                    slot_start_time=item.slot_start_time,
                    slot_end_time=item.slot_end_time,
                    ticket_price=to_money(ticket_price),
                    donation_amount=to_money(item.donation_amount),
                    email=email,
                    first_name=item.first_name or basket.first_name,
                    last_name=item.last_name or basket.last_name,
                    notes=item.notes,
                )
            )
        return lines

    def apply_gift_codes(
        self, db: Session, lines: List[BasketLine], codes: List[str]
    ) -> Dict[int, GiftCode]:
        """Validate codes and make the most expensive tickets free.

        Returns line index -> gift code to redeem once the tickets exist.
        """
        normalized = [normalize_code(c) for c in codes if c and c.strip()]
        if len(set(normalized)) != len(normalized):
            raise ValidationError("The same gift code was entered twice")
        if len(normalized) > len(lines):
            raise ValidationError("More gift codes than tickets")

        gift_codes = [gift_code_service.validate(db, code) for code in normalized]

        by_price = sorted(range(len(lines)), key=lambda i: lines[i].ticket_price, reverse=True)
        assignments: Dict[int, GiftCode] = {}
        for gift_code, index in zip(gift_codes, by_price):
            lines[index].ticket_price = Decimal("0.00")
            assignments[index] = gift_code
        return assignments

    def _persist_basket(
        self,
        db: Session,
        lines: List[BasketLine],
        assignments: Dict[int, GiftCode],
        status: str,
        language: Optional[str],
        checkout_id: Optional[str],
        checkout_reference: str,
        transaction_status: Optional[str],
    ) -> List[Ticket]:
        """Insert every ticket and redeem every gift code in one transaction."""

        def build() -> List[Ticket]:
            issued: set = set()
            tickets = [
                self._new_ticket(
                    db,
                    line,
                    issued,
                    status,
                    checkout_id=checkout_id,
                    checkout_reference=checkout_reference,
                    transaction_status=transaction_status,
                    language=language,
                )
                for line in lines
            ]
            db.add_all(tickets)
            db.flush()

            now = utcnow()
            for index, gift_code in assignments.items():
                if not gift_code_crud.redeem(db, gift_code.id, tickets[index].id, now, commit=False):
                    raise GiftCodeAlreadyUsed(f"Gift code {gift_code.code} has already been used")
            return tickets

        tickets = persist_with_unique_codes(db, build, TICKET_CODE_COLLISION_MARKERS)
        for ticket in tickets:
            db.refresh(ticket)
        return tickets

    async def create_basket_with_payment(
        self,
        db: Session,
        basket: BasketCheckoutRequest,
        provider: Optional[PaymentProviderInterface],
        notifier: TicketNotifier,
        topics: Optional[TopicRegistry] = None,
    ) -> BasketResult:
        """
        Create every ticket of a basket behind one payment session.

        A paid basket opens the payment session first and only then writes
        the tickets, tagged with the session ids, in a single transaction.
        A basket made free by gift codes skips payment and is paid at once.
        """
        lines = self.price_basket(basket)
        assignments = self.apply_gift_codes(db, lines, basket.gift_codes)
        total = to_money(sum((line.total for line in lines), Decimal("0")))
        reference = str(uuid.uuid4())

        if total == 0:
            tickets = self._persist_basket(
                db,
                lines,
                assignments,
                TicketStatus.paid.value,
                basket.language,
                checkout_id=None,
                checkout_reference=reference,
                transaction_status="free",
            )
            logger.info(f"Free basket {reference}: {len(tickets)} tickets issued as paid")
            notifier.notify_paid(tickets)
            if topics:
                topics.publish(SLOTS_TOPIC)
            return BasketResult(tickets=tickets, total_amount=total, is_free=True)

        if provider is None:
            raise PaymentSessionError("Payments are not configured")

        params = CreateCheckoutSessionParams(
            reference=reference,
            amount=to_minor_units(total),
            currency=settings.DEFAULT_CURRENCY,
            description=f"{settings.VENUE_NAME} - {len(lines)} ticket(s)",
            customer_email=str(basket.email),
            success_url=basket.success_url or settings.CHECKOUT_SUCCESS_URL,
            cancel_url=basket.cancel_url or settings.CHECKOUT_CANCEL_URL,
            metadata={"ticket_count": str(len(lines))},
            idempotency_key=reference,
            locale=(basket.language or None),
        )
        try:
            session = await provider.create_checkout_session(params)
        except Exception as e:
            logger.error(f"Could not open checkout session for basket {reference}: {e}")
            raise PaymentSessionError("Could not open the payment session") from e

        try:
            tickets = self._persist_basket(
                db,
                lines,
                assignments,
                TicketStatus.pending.value,
                basket.language,
                checkout_id=session.session_id,
                checkout_reference=session.reference,
                transaction_status=session.status.value,
            )
        except Exception:
            logger.error(f"Basket {reference} not persisted, expiring session {session.session_id}")
            await self._expire_quietly(provider, session.session_id)
            raise

        logger.info(
            f"Basket {reference}: {len(tickets)} pending tickets on checkout {session.session_id}, total {total}"
        )
        if topics:
            topics.publish(SLOTS_TOPIC)
        return BasketResult(
            tickets=tickets,
            total_amount=total,
            checkout_id=session.session_id,
            checkout_url=session.url,
        )

    async def _expire_quietly(self, provider: PaymentProviderInterface, session_id: str) -> None:
        try:
            await provider.expire_checkout_session(session_id)
        except Exception as e:
            logger.warning(f"Could not expire checkout session {session_id}: {e}")

    # ========================================
    # Door validation
    # ========================================

    def validate_ticket(
        self, db: Session, code: str, topics: Optional[TopicRegistry] = None
    ) -> Ticket:
        """Admit the holder of ``code``: paid -> used, exactly once."""
        ticket = ticket_crud.get_by_code(db, normalize_code(code))
        if not ticket:
            raise TicketNotFound()

        if ticket.status == TicketStatus.used.value or ticket.used_at is not None:
            raise TicketAlreadyUsed()

        if ticket.status != TicketStatus.paid.value:
            raise InvalidTicketState(f"Ticket is {ticket.status}, not paid")

        today = venue_today()
        if ticket.reservation_date < today:
            raise ReservationExpired()
        if ticket.reservation_date > today:
            raise ReservationNotToday(f"Reservation is for {ticket.reservation_date.isoformat()}")

        if not ticket_crud.mark_used(db, ticket.id, utcnow()):
            raise TicketAlreadyUsed()

        db.refresh(ticket)
        logger.info(f"Ticket {ticket.code} validated")
        if topics:
            topics.publish(TICKETS_TOPIC)
        return ticket

    # ========================================
    # Admin
    # ========================================

    def update_ticket_status(
        self,
        db: Session,
        ticket_id: str,
        new_status: str,
        notifier: TicketNotifier,
        topics: Optional[TopicRegistry] = None,
    ) -> Ticket:
        """Explicit admin decision on a pending ticket (paid or cancelled)."""
        if new_status not in (TicketStatus.paid.value, TicketStatus.cancelled.value):
            raise ValidationError("Status can only be set to paid or cancelled")

        ticket = self.get_ticket(db, ticket_id)
        if ticket.status != TicketStatus.pending.value:
            raise InvalidTicketState(f"Ticket is {ticket.status}, only pending tickets can change")

        if not ticket_crud.transition(db, ticket_id, TicketStatus.pending.value, new_status):
            raise InvalidTicketState("Ticket status changed meanwhile")

        db.refresh(ticket)
        logger.info(f"Ticket {ticket.id} set to {new_status} by staff")
        if new_status == TicketStatus.paid.value:
            notifier.notify_paid([ticket])
        if topics:
            topics.publish(SLOTS_TOPIC)
        return ticket


ticket_service = TicketLifecycleService()
