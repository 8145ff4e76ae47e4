# app/core/email.py
"""
Email service using Resend for sending transactional emails.
"""
import logging

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)

SUBJECTS = {
    "ticket": {
        "fr": "Votre billet pour {venue}",
        "en": "Your ticket for {venue}",
    },
    "donation": {
        "fr": "Reçu de votre don à {venue}",
        "en": "Receipt for your donation to {venue}",
    },
    "gift_codes": {
        "fr": "Vos codes cadeaux pour {venue}",
        "en": "Your gift codes for {venue}",
    },
}


def init_resend():
    """Initialize Resend with API key."""
    resend.api_key = settings.RESEND_API_KEY


def _subject(kind: str, language: str | None) -> str:
    templates = SUBJECTS[kind]
    template = templates.get((language or "fr")[:2], templates["en"])
    return template.format(venue=settings.VENUE_NAME)


def _send(params: dict) -> dict:
    try:
        response = resend.Emails.send(params)
        logger.info(f"Email '{params['subject']}' sent to {params['to'][0]}")
        return {"success": True, "id": response.get("id")}
    except Exception as e:
        logger.error(f"Failed to send email to {params['to'][0]}: {e}")
        return {"success": False, "error": str(e)}


def send_ticket_confirmation_email(
    to_email: str,
    holder_name: str,
    ticket_code: str,
    reservation_date: str,
    slot_label: str,
    total_amount: str,
    language: str | None = None,
) -> dict:
    """
    Send the entry ticket with its code.

    Args:
        to_email: Recipient email address
        holder_name: Name printed on the ticket
        ticket_code: The 8-character code encoded in the entry QR
        reservation_date: Visit date (ISO format)
        slot_label: e.g. "14:00 - 15:00"
        total_amount: Amount paid, already formatted

    Returns:
        Dict with success flag and Resend message id or error
    """
    init_resend()

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .ticket-box {{ background: white; border: 2px dashed #1f3b57; padding: 20px; text-align: center; margin: 20px 0; border-radius: 8px; }}
            .ticket-code {{ font-size: 28px; font-weight: bold; color: #1f3b57; letter-spacing: 3px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1>{settings.VENUE_NAME}</h1>
            <p>{holder_name},</p>
            <div class="ticket-box">
                <p class="ticket-code">{ticket_code}</p>
                <p><strong>{reservation_date}</strong> &middot; {slot_label}</p>
                <p>{total_amount} {settings.DEFAULT_CURRENCY}</p>
            </div>
        </div>
    </body>
    </html>
    """

    return _send(
        {
            "from": settings.EMAIL_FROM,
            "to": [to_email],
            "subject": _subject("ticket", language),
            "html": html_content,
        }
    )


def send_donation_receipt_email(
    to_email: str,
    donor_name: str,
    donation_amount: str,
    ticket_code: str,
    language: str | None = None,
) -> dict:
    """Send a receipt for the donation attached to a ticket."""
    init_resend()

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <body style="font-family: Arial, sans-serif; color: #333;">
        <h1>{settings.VENUE_NAME}</h1>
        <p>{donor_name},</p>
        <p>Donation: <strong>{donation_amount} {settings.DEFAULT_CURRENCY}</strong></p>
        <p>Ticket reference: {ticket_code}</p>
    </body>
    </html>
    """

    return _send(
        {
            "from": settings.EMAIL_FROM,
            "to": [to_email],
            "subject": _subject("donation", language),
            "html": html_content,
        }
    )


def send_gift_codes_email(
    to_email: str,
    codes: list[str],
    language: str | None = None,
) -> dict:
    """
    Send the codes of a purchased pack to the buyer.

    Each code can be entered once at checkout to make one ticket free.
    """
    init_resend()

    codes_html = "<br>".join(codes)
    html_content = f"""
    <!DOCTYPE html>
    <html>
    <body style="font-family: Arial, sans-serif; color: #333;">
        <h1>{settings.VENUE_NAME}</h1>
        <p style="font-family: monospace; font-size: 16px; font-weight: bold;">{codes_html}</p>
    </body>
    </html>
    """

    return _send(
        {
            "from": settings.EMAIL_FROM,
            "to": [to_email],
            "subject": _subject("gift_codes", language),
            "html": html_content,
        }
    )
