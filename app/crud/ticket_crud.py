# app/crud/ticket_crud.py
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_, update
from sqlalchemy.orm import Session

from app.models.ticket import Ticket
from app.schemas.ticket import CAPACITY_HOLDING_STATUSES, TicketStatus
from app.utils.clock import utcnow


class CRUDTicket:
    """CRUD operations for tickets."""

    def get(self, db: Session, ticket_id: str) -> Optional[Ticket]:
        """Get a ticket by ID."""
        return db.query(Ticket).filter(Ticket.id == ticket_id).first()

    def get_by_code(self, db: Session, code: str) -> Optional[Ticket]:
        """Get a ticket by its QR code."""
        return db.query(Ticket).filter(Ticket.code == code).first()

    def code_exists(self, db: Session, code: str) -> bool:
        return db.query(Ticket.id).filter(Ticket.code == code).first() is not None

    def get_many(self, db: Session, ticket_ids: List[str]) -> List[Ticket]:
        if not ticket_ids:
            return []
        return db.query(Ticket).filter(Ticket.id.in_(ticket_ids)).order_by(Ticket.id).all()

    def get_by_checkout(self, db: Session, checkout_id: str) -> List[Ticket]:
        """Get all tickets paid through one checkout session."""
        return (
            db.query(Ticket)
            .filter(Ticket.checkout_id == checkout_id)
            .order_by(Ticket.created_at, Ticket.id)
            .all()
        )

    def get_checkout_id_by_reference(self, db: Session, reference: str) -> Optional[str]:
        row = (
            db.query(Ticket.checkout_id)
            .filter(Ticket.checkout_reference == reference, Ticket.checkout_id.isnot(None))
            .first()
        )
        return row[0] if row else None

    def get_multi_filtered(
        self,
        db: Session,
        status: Optional[str] = None,
        reservation_date: Optional[date] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Ticket], int]:
        """List tickets with pagination."""
        query = db.query(Ticket)

        if status:
            query = query.filter(Ticket.status == status)

        if reservation_date:
            query = query.filter(Ticket.reservation_date == reservation_date)

        if search:
            search_term = f"%{search}%"
            query = query.filter(
                or_(
                    Ticket.first_name.ilike(search_term),
                    Ticket.last_name.ilike(search_term),
                    Ticket.email.ilike(search_term),
                    Ticket.code.ilike(search_term),
                )
            )

        total = query.count()
        tickets = (
            query.order_by(Ticket.created_at.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )
        return tickets, total

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    def count_overlapping(
        self, db: Session, on: date, slot_start: time, slot_end: time
    ) -> int:
        """Tickets holding a seat whose interval overlaps [slot_start, slot_end).

        Touching endpoints do not overlap.
        """
        return (
            db.query(func.count(Ticket.id))
            .filter(
                Ticket.reservation_date == on,
                Ticket.status.in_(CAPACITY_HOLDING_STATUSES),
                Ticket.slot_start_time < slot_end,
                Ticket.slot_end_time > slot_start,
            )
            .scalar()
            or 0
        )

    def count_unique_booked(self, db: Session, on: date) -> int:
        """Distinct tickets holding a seat on ``on``, whatever slots they span."""
        return (
            db.query(func.count(func.distinct(Ticket.id)))
            .filter(
                Ticket.reservation_date == on,
                Ticket.status.in_(CAPACITY_HOLDING_STATUSES),
            )
            .scalar()
            or 0
        )

    # ------------------------------------------------------------------
    # Transitions (conditional updates)
    # ------------------------------------------------------------------

    def transition_checkout(
        self,
        db: Session,
        checkout_id: str,
        to_status: str,
        transaction_status: Optional[str] = None,
    ) -> List[str]:
        """Move every still-pending ticket of a checkout to ``to_status``.

        Returns the ids actually updated; a replayed event finds none.
        """
        values = {"status": to_status, "updated_at": utcnow()}
        if transaction_status is not None:
            values["transaction_status"] = transaction_status

        result = db.execute(
            update(Ticket)
            .where(
                and_(
                    Ticket.checkout_id == checkout_id,
                    Ticket.status == TicketStatus.pending.value,
                )
            )
            .values(**values)
            .returning(Ticket.id)
            .execution_options(synchronize_session=False)
        )
        updated_ids = [row[0] for row in result.all()]
        db.commit()
        return updated_ids

    def count_by_checkout_and_status(self, db: Session, checkout_id: str, status: str) -> int:
        return (
            db.query(func.count(Ticket.id))
            .filter(Ticket.checkout_id == checkout_id, Ticket.status == status)
            .scalar()
            or 0
        )

    def transition(
        self, db: Session, ticket_id: str, from_status: str, to_status: str
    ) -> bool:
        """Single-ticket conditional status change. False when the ticket moved meanwhile."""
        result = db.execute(
            update(Ticket)
            .where(and_(Ticket.id == ticket_id, Ticket.status == from_status))
            .values(status=to_status, updated_at=utcnow())
            .returning(Ticket.id)
            .execution_options(synchronize_session=False)
        )
        updated = result.scalar_one_or_none()
        db.commit()
        return updated is not None

    def mark_used(self, db: Session, ticket_id: str, used_at: datetime) -> bool:
        """Atomically mark a paid, unscanned ticket as used.

        The WHERE clause is the guard against two scanners racing on the
        same code: only one UPDATE can match.
        """
        result = db.execute(
            update(Ticket)
            .where(
                and_(
                    Ticket.id == ticket_id,
                    Ticket.status == TicketStatus.paid.value,
                    Ticket.used_at.is_(None),
                )
            )
            .values(status=TicketStatus.used.value, used_at=used_at, updated_at=used_at)
            .returning(Ticket.id)
            .execution_options(synchronize_session=False)
        )
        updated = result.scalar_one_or_none()
        db.commit()
        return updated is not None

    def cancel_expired_pending(self, db: Session, older_than: datetime) -> int:
        """Cancel pending tickets created before ``older_than``. Returns the count."""
        result = db.execute(
            update(Ticket)
            .where(
                and_(
                    Ticket.status == TicketStatus.pending.value,
                    Ticket.created_at < older_than,
                )
            )
            .values(status=TicketStatus.cancelled.value, updated_at=utcnow())
            .returning(Ticket.id)
            .execution_options(synchronize_session=False)
        )
        count = len(result.all())
        db.commit()
        return count


ticket_crud = CRUDTicket()
