"""Tests for the versioned checkout session snapshot."""

import pytest

from storefront.domain.cart.session import (
    CURRENT_SCHEMA_VERSION,
    dump_checkout_session,
    load_checkout_session,
)
from storefront.domain.core.enums import PaymentMethod
from storefront.errors import ValidationError

LEGACY_CART = [
    {"id": "p-1", "nome": "Colar Ponto de Luz", "variacao": "Dourado", "quantidade": 2, "preco": 129.9},
    {"id": "p-2", "nome": "Brinco Argola", "quantidade": 1, "preco": "89.90", "precoPromocional": 79.9},
]


class TestLoadCheckoutSession:
    def test_legacy_array_is_migrated(self):
        session = load_checkout_session(LEGACY_CART)
        assert session.schema_version == CURRENT_SCHEMA_VERSION
        assert session.step == "cart"
        first, second = session.items
        assert first.product_id == "p-1"
        assert first.variant == "Dourado"
        assert first.quantity == 2
        assert first.unit_price_cents == 12990
        assert second.unit_price_cents == 8990
        assert second.promo_price_cents == 7990

    def test_versioned_legacy_object(self):
        session = load_checkout_session({"version": 1, "items": LEGACY_CART[:1]})
        assert len(session.items) == 1

    def test_snake_case_promo_key(self):
        session = load_checkout_session(
            [{"id": "p-3", "nome": "Anel", "quantidade": 1, "preco": 50, "preco_promocional": 45.5}]
        )
        assert session.items[0].promo_price_cents == 4550

    def test_current_version_round_trip(self):
        session = load_checkout_session(
            {
                "schema_version": 2,
                "items": [{"product_id": "p-1", "name": "Colar", "quantity": 1, "unit_price_cents": 12990}],
                "step": "payment",
                "region": "SP",
                "coupon_code": "PROMO10",
                "payment_method": "pix",
            }
        )
        assert session.payment_method == PaymentMethod.pix
        dumped = dump_checkout_session(session)
        assert dumped["schema_version"] == 2
        assert dumped["payment_method"] == "pix"
        assert load_checkout_session(dumped) == session

    def test_future_version_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            load_checkout_session({"schema_version": 3, "items": []})
        assert exc_info.value.field == "session"

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError):
            load_checkout_session([{"id": "p-1", "nome": "Colar", "quantidade": 0, "preco": 10}])

    def test_bad_price_rejected(self):
        with pytest.raises(ValidationError):
            load_checkout_session([{"id": "p-1", "nome": "Colar", "quantidade": 1, "preco": "abc"}])

    def test_not_a_session(self):
        with pytest.raises(ValidationError):
            load_checkout_session("cart")
