import asyncio
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from app.models.gift_code import GiftCode
from app.models.gift_code_purchase import GiftCodePurchase
from app.models.schedule import Schedule
from app.models.special_period import SpecialPeriod
from app.models.ticket import Ticket
from app.services.codes import CODE_ALPHABET, generate_code
from app.utils.clock import utcnow, venue_today


def run_async(coro):
    """Helper to run async coroutines in sync tests."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def create_ticket_row(db: Session, **overrides) -> Ticket:
    """Insert a ticket directly, bypassing the service."""
    price = Decimal(str(overrides.pop("ticket_price", "10.00")))
    donation = Decimal(str(overrides.pop("donation_amount", "0.00")))
    values = {
        "code": generate_code(8, CODE_ALPHABET),
        "email": "visitor@example.com",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "reservation_date": venue_today(),
        "slot_start_time": time(14, 0),
        "slot_end_time": time(15, 0),
        "ticket_price": price,
        "donation_amount": donation,
        "total_amount": price + donation,
        "status": "paid",
        "created_at": utcnow(),
    }
    values.update(overrides)
    ticket = Ticket(**values)
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    return ticket


def create_gift_code_row(db: Session, **overrides) -> GiftCode:
    values = {
        "code": generate_code(12, CODE_ALPHABET),
        "status": "unused",
        "pack_id": "pack-test",
    }
    values.update(overrides)
    gift_code = GiftCode(**values)
    db.add(gift_code)
    db.commit()
    db.refresh(gift_code)
    return gift_code


def create_gift_code_purchase_row(db: Session, **overrides) -> GiftCodePurchase:
    values = {
        "checkout_id": "cs_gift_1",
        "checkout_reference": "ref-gift-1",
        "quantity": 3,
        "unit_price": Decimal("20.00"),
        "total_amount": Decimal("60.00"),
        "buyer_email": "buyer@example.com",
        "language": "en",
        "status": "pending",
    }
    values.update(overrides)
    purchase = GiftCodePurchase(**values)
    db.add(purchase)
    db.commit()
    db.refresh(purchase)
    return purchase


def create_schedule_row(db: Session, **overrides) -> Schedule:
    values = {
        "day_of_week": 1,
        "start_time": time(10, 0),
        "end_time": time(18, 0),
        "audience_type": "public",
        "is_exception": False,
        "is_closed": False,
        "position": 0,
    }
    values.update(overrides)
    schedule = Schedule(**values)
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule


def create_special_period_row(db: Session, **overrides) -> SpecialPeriod:
    values = {
        "type": "closure",
        "name": "Works",
        "start_date": date(2026, 8, 1),
        "end_date": date(2026, 8, 31),
        "is_active": True,
    }
    values.update(overrides)
    period = SpecialPeriod(**values)
    db.add(period)
    db.commit()
    db.refresh(period)
    return period


def minutes_ago(minutes: int) -> datetime:
    return utcnow() - timedelta(minutes=minutes)
