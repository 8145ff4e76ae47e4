from datetime import timedelta
from decimal import Decimal

from app.core.exceptions import PaymentError
from app.models.ticket import Ticket
from app.services.payment.provider_interface import (
    CheckoutSessionResult,
    CheckoutSessionState,
    CheckoutSessionStatusEnum,
)
from app.utils.clock import venue_today
from tests.utils.auth import get_staff_authentication_headers
from tests.utils.factories import create_gift_code_row, create_ticket_row


def _checkout_body(count=2, gift_codes=None):
    visit = (venue_today() + timedelta(days=2)).isoformat()
    return {
        "email": "visitor@example.com",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "items": [
            {
                "reservation_date": visit,
                "slot_start_time": "14:00:00",
                "slot_end_time": "15:00:00",
                "ticket_price": "12.00",
                "donation_amount": "0",
            }
            for _ in range(count)
        ],
        "gift_codes": gift_codes or [],
    }


def _open_session(params):
    return CheckoutSessionResult(
        session_id="cs_test_api",
        reference=params.reference,
        url="https://checkout.stripe.com/c/pay/cs_test_api",
        status=CheckoutSessionStatusEnum.OPEN,
    )


# ==================== Checkout ====================

def test_checkout_returns_payment_url(client, db, provider):
    provider.create_checkout_session.side_effect = _open_session

    response = client.post("/api/v1/tickets/checkout", json=_checkout_body())

    assert response.status_code == 201
    data = response.json()
    assert data["checkout_url"].endswith("cs_test_api")
    assert Decimal(data["total_amount"]) == Decimal("24.00")
    assert [t["status"] for t in data["tickets"]] == ["pending", "pending"]
    assert db.query(Ticket).count() == 2


def test_checkout_session_failure_hides_provider_details(client, db, provider):
    provider.create_checkout_session.side_effect = PaymentError(
        code="PROVIDER_ERROR", message="api key sk_live_xxx rejected", retryable=True
    )

    response = client.post("/api/v1/tickets/checkout", json=_checkout_body())

    assert response.status_code == 502
    assert response.json()["code"] == "payment_session_error"
    assert "sk_live" not in response.text
    assert db.query(Ticket).count() == 0


def test_checkout_fully_covered_by_gift_code(client, db, provider, notifier):
    gift_code = create_gift_code_row(db)

    response = client.post(
        "/api/v1/tickets/checkout", json=_checkout_body(count=1, gift_codes=[gift_code.code])
    )

    assert response.status_code == 201
    data = response.json()
    assert data["is_free"] is True
    assert data["checkout_url"] is None
    assert data["tickets"][0]["status"] == "paid"
    provider.create_checkout_session.assert_not_called()
    notifier.notify_paid.assert_called_once()


def test_checkout_rejects_unknown_gift_code(client, provider):
    response = client.post("/api/v1/tickets/checkout", json=_checkout_body(gift_codes=["UNKNOWN00000"]))

    assert response.status_code == 404
    assert response.json()["code"] == "gift_code_not_found"
    provider.create_checkout_session.assert_not_called()


def test_checkout_rejects_empty_basket(client):
    body = _checkout_body()
    body["items"] = []
    assert client.post("/api/v1/tickets/checkout", json=body).status_code == 422


def test_checkout_status_syncs_pending_tickets(client, db, provider):
    for _ in range(2):
        create_ticket_row(db, status="pending", checkout_id="cs_test_api")
    provider.get_checkout_session.return_value = CheckoutSessionState(
        session_id="cs_test_api", status=CheckoutSessionStatusEnum.COMPLETE, payment_status="paid"
    )

    response = client.get("/api/v1/tickets/checkout/cs_test_api")

    assert response.status_code == 200
    assert response.json()["status"] == "paid"


def test_checkout_status_survives_provider_errors(client, db, provider):
    create_ticket_row(db, status="pending", checkout_id="cs_test_api")
    provider.get_checkout_session.side_effect = PaymentError(code="PROVIDER_ERROR", message="down")

    response = client.get("/api/v1/tickets/checkout/cs_test_api")

    assert response.status_code == 200
    assert response.json()["status"] == "pending"


def test_checkout_status_unknown(client):
    assert client.get("/api/v1/tickets/checkout/cs_missing").status_code == 404


# ==================== Staff ====================

def test_validate_ticket_once(client, db):
    ticket = create_ticket_row(db, status="paid")

    first = client.post("/api/v1/tickets/validate", json={"code": ticket.code})
    second = client.post("/api/v1/tickets/validate", json={"code": ticket.code})

    assert first.status_code == 200
    assert first.json()["ticket"]["status"] == "used"
    assert second.status_code == 409
    assert second.json()["code"] == "ticket_already_used"


def test_validate_unknown_ticket(client):
    response = client.post("/api/v1/tickets/validate", json={"code": "ZZZZ9999"})
    assert response.status_code == 404
    assert response.json()["code"] == "ticket_not_found"


def test_create_and_list_tickets(client):
    body = {
        "email": "desk@example.com",
        "last_name": "Hopper",
        "reservation_date": venue_today().isoformat(),
        "slot_start_time": "10:00:00",
        "slot_end_time": "11:00:00",
        "ticket_price": "12",
    }

    created = client.post("/api/v1/tickets", json=body)
    listed = client.get("/api/v1/tickets", params={"status": "pending", "search": "hopper"})

    assert created.status_code == 201
    assert listed.status_code == 200
    assert listed.json()["total"] == 1
    assert listed.json()["tickets"][0]["id"] == created.json()["id"]


def test_update_ticket_status(client, db, notifier):
    ticket = create_ticket_row(db, status="pending")

    response = client.patch(f"/api/v1/tickets/{ticket.id}/status", json={"status": "paid"})

    assert response.status_code == 200
    assert response.json()["status"] == "paid"
    notifier.notify_paid.assert_called_once()


def test_staff_endpoints_require_a_token(anonymous_client):
    assert anonymous_client.get("/api/v1/tickets").status_code == 401


def test_staff_endpoints_accept_a_valid_token(anonymous_client):
    response = anonymous_client.get("/api/v1/tickets", headers=get_staff_authentication_headers())
    assert response.status_code == 200
