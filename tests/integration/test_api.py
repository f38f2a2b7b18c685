"""Integration tests for API endpoints"""

from decimal import Decimal
from fastapi.testclient import TestClient
from debtflow.domain.models import Channel
from debtflow.domain.exceptions import SendFailed


def _create_debt(client: TestClient, customer_id, amount: str = "1500.00", due_date: str = "2024-04-01") -> dict:
    response = client.post(
        "/v1/debts",
        json={
            "user_id": "user_pro",
            "customer_id": str(customer_id),
            "amount": amount,
            "invoice_number": "INV-2024-001",
            "due_date": due_date,
        },
    )
    assert response.status_code == 201
    return response.json()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "debtflow_reminders_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"


def test_create_customer_and_template(client: TestClient, user):
    customer = client.post(
        "/v1/customers",
        json={"user_id": user.id, "name": "Alon Levi", "email": "alon@example.com", "phone": "052-1234567"},
    )
    assert customer.status_code == 201
    assert customer.json()["name"] == "Alon Levi"

    first = client.post(
        "/v1/templates",
        json={"user_id": user.id, "channel": "email", "subject": "Hi", "body": "Pay {{amount}}", "is_default": True},
    )
    second = client.post(
        "/v1/templates",
        json={"user_id": user.id, "channel": "email", "subject": "Hi", "body": "Please pay", "is_default": True},
    )
    assert first.status_code == second.status_code == 201
    assert second.json()["is_default"] is True


def test_customer_for_unknown_user_is_404(client: TestClient):
    response = client.post("/v1/customers", json={"user_id": "nobody", "name": "Alon Levi"})
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_save_reminder_settings(client: TestClient, user, templates):
    response = client.put(
        "/v1/settings/reminders",
        json={
            "user_id": user.id,
            "enabled": True,
            "reminder_days": [-7, -1, 3],
            "default_channel": "whatsapp",
            "default_template_id": str(templates[Channel.WHATSAPP].id),
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["reminder_days"] == [-7, -1, 3]
    assert data["default_channel"] == "whatsapp"


def test_reminder_settings_reject_template_of_other_channel(client: TestClient, user, templates):
    response = client.put(
        "/v1/settings/reminders",
        json={
            "user_id": user.id,
            "enabled": True,
            "reminder_days": [3],
            "default_channel": "whatsapp",
            "default_template_id": str(templates[Channel.EMAIL].id),
        },
    )

    assert response.status_code == 422
    assert response.json()["error"] == "no_template_configured"


def test_create_and_get_debt(client: TestClient, customer):
    created = _create_debt(client, customer.id)

    assert created["status"] == "overdue"
    assert Decimal(created["paid_amount"]) == Decimal("0")

    fetched = client.get(f"/v1/debts/{created['id']}")
    assert fetched.status_code == 200
    assert Decimal(fetched.json()["amount"]) == Decimal("1500")


def test_future_debt_is_pending(client: TestClient, customer):
    assert _create_debt(client, customer.id, due_date="2024-05-01")["status"] == "pending"


def test_debt_amount_must_be_positive(client: TestClient, customer):
    response = client.post(
        "/v1/debts",
        json={
            "user_id": "user_pro",
            "customer_id": str(customer.id),
            "amount": "0",
            "invoice_number": "INV-0",
            "due_date": "2024-04-01",
        },
    )
    assert response.status_code == 422


def test_unknown_debt_is_404(client: TestClient):
    response = client.get("/v1/debts/6f1c2d8e-4a3b-4c5d-9e8f-0a1b2c3d4e5f")
    assert response.status_code == 404


def test_payments_and_corrections(client: TestClient, customer):
    debt = _create_debt(client, customer.id)

    partial = client.post(f"/v1/debts/{debt['id']}/payments", json={"amount": "500.00", "paid_date": "2024-04-09"})
    assert partial.status_code == 200
    assert partial.json()["status"] == "partially_paid"
    assert partial.json()["paid_date"] == "2024-04-09"

    overpay = client.post(f"/v1/debts/{debt['id']}/payments", json={"amount": "1500.00"})
    assert overpay.status_code == 422
    assert overpay.json()["error"] == "invalid_payment"

    paid = client.post(f"/v1/debts/{debt['id']}/payments", json={"amount": "1000.00"})
    assert paid.json()["status"] == "paid"

    corrected = client.post(f"/v1/debts/{debt['id']}/payments", json={"amount": "-1500.00"})
    assert corrected.json()["status"] == "overdue"
    assert corrected.json()["paid_date"] is None


def test_manual_reminder_is_sent_and_listed(client: TestClient, customer, templates, senders):
    debt = _create_debt(client, customer.id)

    response = client.post("/v1/reminders", json={"debt_id": debt["id"], "channel": "email"})

    assert response.status_code == 201
    assert response.json()["status"] == "sent"
    assert response.json()["message_id"] == "email_msg_1"
    senders[Channel.EMAIL].send.assert_awaited_once()

    history = client.get(f"/v1/debts/{debt['id']}/reminders").json()
    assert len(history) == 1
    assert history[0]["offset_days"] is None


def test_manual_reminder_without_template_is_422(client: TestClient, customer):
    debt = _create_debt(client, customer.id)

    response = client.post("/v1/reminders", json={"debt_id": debt["id"], "channel": "email"})

    assert response.status_code == 422
    assert response.json()["error"] == "no_template_configured"


def test_manual_reminder_provider_failure_is_502(client: TestClient, customer, templates, senders):
    senders[Channel.WHATSAPP].send.side_effect = SendFailed("WhatsApp API error: 503")
    debt = _create_debt(client, customer.id)

    response = client.post("/v1/reminders", json={"debt_id": debt["id"], "channel": "whatsapp"})

    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "send_failed"
    history = client.get(f"/v1/debts/{debt['id']}/reminders").json()
    assert [r["id"] for r in history] == [body["reminder_id"]]
    assert history[0]["status"] == "failed"


def test_free_plan_whatsapp_is_403(client: TestClient, make_user):
    make_user("user_free", plan="free")
    customer = client.post(
        "/v1/customers", json={"user_id": "user_free", "name": "Dana", "phone": "050-7654321"}
    ).json()
    client.post("/v1/templates", json={"user_id": "user_free", "channel": "whatsapp", "body": "Hi", "is_default": True})
    debt = client.post(
        "/v1/debts",
        json={
            "user_id": "user_free",
            "customer_id": customer["id"],
            "amount": "100.00",
            "invoice_number": "INV-9",
            "due_date": "2024-04-01",
        },
    ).json()

    response = client.post("/v1/reminders", json={"debt_id": debt["id"], "channel": "whatsapp"})

    assert response.status_code == 403
    assert response.json()["error"] == "plan_not_eligible"


def test_claim_verify_flow(client: TestClient, customer):
    debt = _create_debt(client, customer.id)

    claim = client.post(
        f"/v1/debts/{debt['id']}/responses",
        json={"response_type": "email", "payment_amount": "1500.00", "payment_reference": "TRX-1"},
    )
    assert claim.status_code == 201
    assert client.get(f"/v1/debts/{debt['id']}").json()["status"] == "payment_claimed"

    duplicate = client.post(f"/v1/debts/{debt['id']}/responses", json={"response_type": "whatsapp"})
    assert duplicate.status_code == 409

    pending = client.get("/v1/responses", params={"user_id": "user_pro", "status": "pending"}).json()
    assert [c["id"] for c in pending] == [claim.json()["id"]]

    verified = client.post(f"/v1/responses/{claim.json()['id']}/verify", json={"note": "Bank statement"})
    assert verified.status_code == 200
    assert verified.json()["status"] == "paid"

    again = client.post(f"/v1/responses/{claim.json()['id']}/reject", json={})
    assert again.status_code == 409
    assert again.json()["error"] == "already_resolved"


def test_claim_reject_flow(client: TestClient, customer):
    debt = _create_debt(client, customer.id)
    claim = client.post(f"/v1/debts/{debt['id']}/responses", json={"response_type": "whatsapp"}).json()

    rejected = client.post(f"/v1/responses/{claim['id']}/reject", json={"note": "Nothing received"})

    assert rejected.status_code == 200
    assert rejected.json()["status"] == "overdue"
    assert client.get("/v1/responses", params={"user_id": "user_pro", "status": "pending"}).json() == []


def test_quota_endpoints(client: TestClient, customer, templates):
    debt = _create_debt(client, customer.id)

    before = client.get("/v1/quota", params={"user_id": "user_pro"}).json()
    assert before == {"user_id": "user_pro", "channel": "whatsapp", "period": "2024-04", "remaining": 1000}

    client.post("/v1/reminders", json={"debt_id": debt["id"], "channel": "whatsapp"})
    assert client.get("/v1/quota", params={"user_id": "user_pro"}).json()["remaining"] == 999

    email = client.get("/v1/quota", params={"user_id": "user_pro", "channel": "email"}).json()
    assert email["remaining"] is None

    reset = client.post("/v1/quota/reset", json={"period": "2024-04"})
    assert reset.status_code == 200
    assert reset.json()["counters_reset"] == 1
    assert client.get("/v1/quota", params={"user_id": "user_pro"}).json()["remaining"] == 1000


def test_quota_reset_rejects_bad_period(client: TestClient):
    assert client.post("/v1/quota/reset", json={"period": "April"}).status_code == 422


def test_run_endpoint_sends_due_reminders(client: TestClient, customer, templates):
    debt = _create_debt(client, customer.id, due_date="2024-04-07")
    client.put("/v1/settings/reminders", json={"user_id": "user_pro", "enabled": True, "reminder_days": [3]})

    first = client.post("/v1/reminders/run", params={"user_id": "user_pro"})
    second = client.post("/v1/reminders/run", params={"user_id": "user_pro"})

    assert first.status_code == 200
    (report,) = first.json()
    assert report["run_date"] == "2024-04-10"
    assert len(report["sent"]) == 1
    assert second.json()[0]["sent"] == []
    history = client.get(f"/v1/debts/{debt['id']}/reminders").json()
    assert [r["offset_days"] for r in history] == [3]
