"""Pytest fixtures for storefront tests."""

import os
import uuid
from decimal import Decimal

from support import GATEWAY_URL, WEBHOOK_SECRET, FakeGateway, RecordingChannel

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTH_SECRET", "test-auth-secret-with-at-least-32-characters")
os.environ.setdefault("WEBHOOK_SECRET", WEBHOOK_SECRET)
os.environ.setdefault("CHECKOUT_RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("GATEWAY_ACCESS_TOKEN", "test-gateway-token")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront import models
from storefront.db import Base, get_db
from storefront.domain.core.enums import OrderStatus, PaymentMethod
from storefront.main import app
from storefront.services.gateway import GatewayClient, get_gateway_client
from storefront.services.notifications import get_notification_channels, get_status_update_channels


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def gateway_client(fake_gateway):
    return GatewayClient(
        base_url=GATEWAY_URL,
        access_token="test-gateway-token",
        timeout=2.0,
        transport=httpx.MockTransport(fake_gateway.handler),
    )


@pytest.fixture
def channels():
    return [
        RecordingChannel("customer_email"),
        RecordingChannel("admin_email"),
        RecordingChannel("telegram"),
    ]


@pytest.fixture
def status_channels():
    return [RecordingChannel("status_email")]


@pytest.fixture
def client(session_factory, gateway_client, channels, status_channels):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway_client] = lambda: gateway_client
    app.dependency_overrides[get_notification_channels] = lambda: channels
    app.dependency_overrides[get_status_update_channels] = lambda: status_channels
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    def _make(name: str = "Colar Ponto de Luz", price_cents: int = 10000, stock: int = 5, **kwargs):
        product = models.Product(
            id=str(uuid.uuid4()),
            name=name,
            price_cents=price_cents,
            stock=stock,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def make_coupon(db):
    def _make(code: str, kind=models.CouponKind.percent, value: str = "10", **kwargs):
        coupon = models.Coupon(
            id=str(uuid.uuid4()),
            code=code.upper(),
            kind=kind,
            value=Decimal(value),
            min_order_cents=kwargs.pop("min_order_cents", 0),
            active=kwargs.pop("active", True),
            **kwargs,
        )
        db.add(coupon)
        db.commit()
        return coupon

    return _make


@pytest.fixture
def make_order(db):
    def _make(
        items: list[tuple[models.Product, int]],
        *,
        order_number: str = "ELA-20261018-001",
        status: OrderStatus = OrderStatus.pending,
        gateway_payment_id: str | None = None,
        payment_method: PaymentMethod = PaymentMethod.pix,
    ) -> models.Order:
        subtotal = sum(p.price_cents * q for p, q in items)
        order = models.Order(
            id=str(uuid.uuid4()),
            order_number=order_number,
            customer_name="Maria Souza",
            customer_email="maria@example.com",
            customer_phone="11999990000",
            address_street="Rua das Flores",
            address_number="100",
            address_city="São Paulo",
            address_state="SP",
            address_postal_code="01001000",
            subtotal_cents=subtotal,
            shipping_cents=0,
            discount_cents=0,
            payment_discount_cents=0,
            total_cents=subtotal,
            payment_method=payment_method,
            gateway_payment_id=gateway_payment_id,
            status=status.value,
        )
        order.items = [
            models.OrderItem(
                id=str(uuid.uuid4()),
                position=i,
                product_id=p.id,
                name=p.name,
                quantity=q,
                unit_price_cents=p.price_cents,
            )
            for i, (p, q) in enumerate(items)
        ]
        db.add(order)
        db.commit()
        return order

    return _make
