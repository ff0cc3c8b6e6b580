"""Tests for the admin order endpoint."""

import pytest

from storefront import models
from storefront.domain.core.enums import OrderStatus
from storefront.security import create_access_token, create_admin_token


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_admin_token('ops@example.com')}"}


@pytest.fixture
def confirmed_order(make_order, make_product):
    return make_order([(make_product(), 1)], status=OrderStatus.confirmed)


class TestUpdateOrder:
    def test_ship_with_tracking_code(self, client, db, auth_headers, confirmed_order, status_channels):
        response = client.patch(
            f"/admin/orders/{confirmed_order.order_number}",
            json={"status": "shipped", "tracking_code": "BR123456789BR"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json() == {
            "order_number": confirmed_order.order_number,
            "status": "shipped",
            "tracking_code": "BR123456789BR",
        }
        [snapshot] = status_channels[0].sent
        assert snapshot.order_number == confirmed_order.order_number
        assert snapshot.status == "shipped"
        assert snapshot.tracking_code == "BR123456789BR"
        assert snapshot.customer_email == "maria@example.com"

    def test_tracking_code_after_shipping(self, client, auth_headers, make_order, make_product, status_channels):
        order = make_order([(make_product(), 1)], status=OrderStatus.shipped)
        response = client.patch(
            f"/admin/orders/{order.order_number}",
            json={"tracking_code": "BR000000001BR"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["tracking_code"] == "BR000000001BR"
        assert status_channels[0].sent == []

    def test_tracking_code_before_shipping(self, client, auth_headers, confirmed_order):
        response = client.patch(
            f"/admin/orders/{confirmed_order.order_number}",
            json={"tracking_code": "BR000000001BR"},
            headers=auth_headers,
        )
        assert response.status_code == 409

    def test_backwards_move_refused(self, client, db, auth_headers, confirmed_order):
        response = client.patch(
            f"/admin/orders/{confirmed_order.order_number}",
            json={"status": "pending"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        db.expire_all()
        assert db.get(models.Order, confirmed_order.id).status == "confirmed"

    def test_skip_refused(self, client, auth_headers, make_order, make_product):
        order = make_order([(make_product(), 1)])
        response = client.patch(
            f"/admin/orders/{order.order_number}", json={"status": "delivered"}, headers=auth_headers
        )
        assert response.status_code == 409

    def test_cancel_refused(self, client, db, auth_headers, confirmed_order, status_channels):
        response = client.patch(
            f"/admin/orders/{confirmed_order.order_number}", json={"status": "cancelled"}, headers=auth_headers
        )
        assert response.status_code == 409
        db.expire_all()
        assert db.get(models.Order, confirmed_order.id).status == "confirmed"
        assert status_channels[0].sent == []

    def test_cancel_pending_refused(self, client, auth_headers, make_order, make_product):
        order = make_order([(make_product(), 1)])
        response = client.patch(
            f"/admin/orders/{order.order_number}", json={"status": "cancelled"}, headers=auth_headers
        )
        assert response.status_code == 409

    def test_confirm_unpaid_refused(self, client, db, auth_headers, make_order, make_product, channels):
        """Confirmation only comes from the payment webhook: stock and notifications stay untouched."""
        product = make_product(stock=5)
        order = make_order([(product, 2)])
        response = client.patch(
            f"/admin/orders/{order.order_number}", json={"status": "confirmed"}, headers=auth_headers
        )
        assert response.status_code == 409
        db.expire_all()
        assert db.get(models.Order, order.id).status == "pending"
        assert db.get(models.Product, product.id).stock == 5
        assert all(not channel.sent for channel in channels)

    def test_deliver_shipped(self, client, auth_headers, make_order, make_product, status_channels):
        order = make_order([(make_product(), 1)], status=OrderStatus.shipped)
        response = client.patch(
            f"/admin/orders/{order.order_number}", json={"status": "delivered"}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "delivered"
        [snapshot] = status_channels[0].sent
        assert snapshot.status == "delivered"

    def test_requires_token(self, client, confirmed_order):
        response = client.patch(f"/admin/orders/{confirmed_order.order_number}", json={"status": "shipped"})
        assert response.status_code == 401

    def test_requires_admin_role(self, client, confirmed_order):
        token = create_access_token({"sub": "someone", "role": "viewer"})
        response = client.patch(
            f"/admin/orders/{confirmed_order.order_number}",
            json={"status": "shipped"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 403

    def test_unknown_order(self, client, auth_headers):
        response = client.patch("/admin/orders/ELA-20990101-000", json={"status": "shipped"}, headers=auth_headers)
        assert response.status_code == 404

    def test_empty_update(self, client, auth_headers, confirmed_order):
        response = client.patch(f"/admin/orders/{confirmed_order.order_number}", json={}, headers=auth_headers)
        assert response.status_code == 400
