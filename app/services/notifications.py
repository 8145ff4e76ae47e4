# app/services/notifications.py
"""
Notifications sent after a ticket or a gift code purchase becomes paid.

Sending is fire-and-forget for the engine: a failure is logged and never
undoes the transition that triggered it.
"""
import logging

from app.core import email
from app.models.gift_code_purchase import GiftCodePurchase
from app.models.ticket import Ticket

logger = logging.getLogger(__name__)


def _slot_label(ticket: Ticket) -> str:
    return f"{ticket.slot_start_time.strftime('%H:%M')} - {ticket.slot_end_time.strftime('%H:%M')}"


class TicketNotifier:
    def send_ticket_confirmation(self, ticket: Ticket) -> bool:
        try:
            result = email.send_ticket_confirmation_email(
                to_email=ticket.email,
                holder_name=ticket.holder_name,
                ticket_code=ticket.code,
                reservation_date=ticket.reservation_date.isoformat(),
                slot_label=_slot_label(ticket),
                total_amount=f"{ticket.total_amount:.2f}",
                language=ticket.language,
            )
        except Exception as e:
            logger.error(f"Ticket confirmation for {ticket.id} failed: {e}")
            return False
        if not result.get("success"):
            logger.warning(f"Ticket confirmation for {ticket.id} not delivered: {result.get('error')}")
            return False
        return True

    def send_donation_receipt(self, ticket: Ticket) -> bool:
        try:
            result = email.send_donation_receipt_email(
                to_email=ticket.email,
                donor_name=ticket.holder_name,
                donation_amount=f"{ticket.donation_amount:.2f}",
                ticket_code=ticket.code,
                language=ticket.language,
            )
        except Exception as e:
            logger.error(f"Donation receipt for {ticket.id} failed: {e}")
            return False
        return bool(result.get("success"))

    def send_gift_codes(self, purchase: GiftCodePurchase, codes) -> bool:
        try:
            result = email.send_gift_codes_email(
                to_email=purchase.buyer_email,
                codes=[c.code for c in codes],
                language=purchase.language,
            )
        except Exception as e:
            logger.error(f"Gift codes for purchase {purchase.checkout_id} failed: {e}")
            return False
        if not result.get("success"):
            logger.warning(
                f"Gift codes for purchase {purchase.checkout_id} not delivered: {result.get('error')}"
            )
            return False
        return True

    def notify_paid(self, tickets) -> None:
        """Confirmation for every ticket, plus a receipt when it carries a donation."""
        for ticket in tickets:
            self.send_ticket_confirmation(ticket)
            if ticket.donation_amount and ticket.donation_amount > 0:
                self.send_donation_receipt(ticket)


ticket_notifier = TicketNotifier()
