"""Tests for the payment webhook endpoint."""

import pytest

from storefront import models
from storefront.db import settings
from support import sign_webhook


def _post(client, payment_id="2001", request_id="req-1", signature=None, payload=None, headers=None):
    body = payload if payload is not None else {"type": "payment", "action": "payment.updated", "data": {"id": payment_id}}
    if headers is None:
        headers = {
            "x-signature": signature or sign_webhook(payment_id, request_id),
            "x-request-id": request_id,
        }
    return client.post("/payments/webhook", json=body, headers=headers)


@pytest.fixture
def product(make_product):
    return make_product(name="Colar X", stock=5)


@pytest.fixture
def order(make_order, product):
    return make_order([(product, 2)], gateway_payment_id="2001")


class TestWebhookAuthentication:
    def test_missing_signature_is_rejected(self, client, db, fake_gateway, order):
        """No x-signature: 401, the gateway is not called and nothing is written."""
        fake_gateway.add_payment("2001", "approved", order.order_number)
        response = _post(client, headers={"x-request-id": "req-1"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}
        assert fake_gateway.requests == []
        db.expire_all()
        assert db.get(models.Order, order.id).status == "pending"

    def test_tampered_signature_is_rejected(self, client, db, fake_gateway, order):
        fake_gateway.add_payment("2001", "approved", order.order_number)
        signature = sign_webhook("2001", "req-1", secret="someone-elses-secret-123")
        response = _post(client, signature=signature)
        assert response.status_code == 401
        assert fake_gateway.requests == []

    def test_signature_for_another_request_id(self, client, fake_gateway, order):
        response = _post(client, signature=sign_webhook("2001", "req-other"), request_id="req-1")
        assert response.status_code == 401


class TestWebhookReconciliation:
    def test_duplicate_approved_webhook(self, client, db, fake_gateway, channels, order, product):
        """Approved twice: confirmed, stock 5 -> 3, one customer e-mail."""
        fake_gateway.add_payment("2001", "approved", order.order_number)

        first = _post(client, request_id="req-1")
        second = _post(client, request_id="req-2")

        assert first.status_code == 200
        assert first.json() == {"received": True}
        assert second.status_code == 200

        db.expire_all()
        assert db.get(models.Order, order.id).status == "confirmed"
        assert db.get(models.Product, product.id).stock == 3

        customer_email, admin_email, telegram = channels
        assert len(customer_email.sent) == 1
        assert len(admin_email.sent) == 1
        assert len(telegram.sent) == 1
        assert customer_email.sent[0].order_number == order.order_number

    def test_rejected_payment_cancels_quietly(self, client, db, fake_gateway, channels, order):
        fake_gateway.add_payment("2001", "rejected", order.order_number)
        assert _post(client).status_code == 200
        db.expire_all()
        assert db.get(models.Order, order.id).status == "cancelled"
        assert all(not channel.sent for channel in channels)

    def test_unknown_order_is_acknowledged(self, client, fake_gateway, channels):
        fake_gateway.add_payment("5005", "approved", "ELA-20990101-000")
        response = _post(client, payment_id="5005")
        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert all(not channel.sent for channel in channels)

    def test_failing_channel_does_not_change_response(self, client, db, fake_gateway, channels, order):
        channels[0].fail = True
        fake_gateway.add_payment("2001", "approved", order.order_number)
        assert _post(client).status_code == 200
        assert len(channels[1].sent) == 1
        db.expire_all()
        assert db.get(models.Order, order.id).status == "confirmed"

    def test_gateway_error_is_acknowledged_by_default(self, client, db, fake_gateway, order):
        response = _post(client, payment_id="404404")
        assert response.status_code == 200
        db.expire_all()
        assert db.get(models.Order, order.id).status == "pending"

    def test_gateway_error_can_ask_for_retry(self, client, fake_gateway, order, monkeypatch):
        monkeypatch.setattr(settings, "webhook_fail_on_error", True)
        response = _post(client, payment_id="404404")
        assert response.status_code == 500

    def test_payment_id_from_query_string(self, client, db, fake_gateway, order):
        fake_gateway.add_payment("2001", "approved", order.order_number)
        response = client.post(
            "/payments/webhook?data.id=2001&type=payment",
            json={"type": "payment", "data": {"id": "2001"}},
            headers={"x-signature": sign_webhook("2001", "req-9"), "x-request-id": "req-9"},
        )
        assert response.status_code == 200
        db.expire_all()
        assert db.get(models.Order, order.id).status == "confirmed"
