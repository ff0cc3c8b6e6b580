"""Tests for the payment provider adapter."""

import asyncio

import httpx
import pytest

from storefront import models
from storefront.errors import GatewayError, PaymentDeclined
from storefront.services.gateway import GatewayClient, GatewayPayment
from support import GATEWAY_URL


def _order(**overrides) -> models.Order:
    values = dict(
        order_number="ELA-20261018-010",
        customer_name="Maria da Silva Souza",
        customer_email="maria@example.com",
        customer_tax_id="12345678909",
    )
    values.update(overrides)
    return models.Order(**values)


def _client(handler) -> GatewayClient:
    return GatewayClient(
        base_url=GATEWAY_URL,
        access_token="tok",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


class TestGatewayPayment:
    def test_numeric_id_becomes_text(self):
        payment = GatewayPayment.model_validate({"id": 123, "status": "Approved", "extra": "ignored"})
        assert payment.id == "123"
        assert payment.status == "approved"
        assert payment.transaction_data == {}


class TestErrors:
    def test_non_2xx(self):
        client = _client(lambda request: httpx.Response(500, json={"message": "boom"}))
        with pytest.raises(GatewayError) as exc_info:
            asyncio.run(client.get_payment("1"))
        assert exc_info.value.status_code == 500

    def test_invalid_json(self):
        client = _client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(GatewayError):
            asyncio.run(client.get_payment("1"))

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GatewayError) as exc_info:
            asyncio.run(_client(handler).get_payment("1"))
        assert isinstance(exc_info.value.cause, httpx.ReadTimeout)

    def test_payload_without_status(self):
        client = _client(lambda request: httpx.Response(200, json={"id": 1}))
        with pytest.raises(GatewayError):
            asyncio.run(client.get_payment("1"))


class TestCustomers:
    def test_existing_customer_is_reused(self, fake_gateway, gateway_client):
        fake_gateway.customers["maria@example.com"] = "cus-77"
        assert asyncio.run(gateway_client.ensure_customer(_order())) == "cus-77"
        assert [r.method for r in fake_gateway.requests] == ["GET"]

    def test_missing_customer_is_created(self, fake_gateway, gateway_client):
        assert asyncio.run(gateway_client.ensure_customer(_order())) == "cus-1"
        assert fake_gateway.customers == {"maria@example.com": "cus-1"}


class TestCharges:
    def test_pix_charge(self, fake_gateway, gateway_client):
        charge = asyncio.run(gateway_client.create_pix_payment(_order(), 25650, customer_id="cus-1"))
        assert charge.raw_status == "pending"
        assert charge.qr_code.startswith("000201")
        assert charge.expires_at is not None
        [body] = fake_gateway.payment_requests()
        assert body["transaction_amount"] == 256.5
        assert body["payer"]["first_name"] == "Maria"
        assert body["payer"]["last_name"] == "da Silva Souza"
        assert body["payer"]["id"] == "cus-1"

    def test_card_pending_is_not_approved(self, fake_gateway, gateway_client):
        fake_gateway.card_status = "in_process"
        charge = asyncio.run(
            gateway_client.create_card_payment(
                _order(), 10000, card_token="tok_1", installments=1, payment_method_id="master"
            )
        )
        assert charge.approved is False
        assert charge.raw_status == "in_process"

    def test_card_declined(self, fake_gateway, gateway_client):
        fake_gateway.card_status = "rejected"
        fake_gateway.card_status_detail = "cc_rejected_bad_filled_security_code"
        with pytest.raises(PaymentDeclined) as exc_info:
            asyncio.run(
                gateway_client.create_card_payment(
                    _order(), 10000, card_token="tok_1", installments=1, payment_method_id="visa"
                )
            )
        assert exc_info.value.status_detail == "cc_rejected_bad_filled_security_code"
        assert exc_info.value.gateway_payment_id

    def test_get_payment(self, fake_gateway, gateway_client):
        fake_gateway.add_payment("2001", "approved", "ELA-20261018-010")
        payment = asyncio.run(gateway_client.get_payment("2001"))
        assert payment.id == "2001"
        assert payment.external_reference == "ELA-20261018-010"
