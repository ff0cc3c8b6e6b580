from __future__ import annotations

from storefront.errors import ValidationError

FREE_SHIPPING_THRESHOLD_CENTS = 29900

_SOUTHEAST = ("SP", "RJ", "MG", "ES")
_SOUTH = ("PR", "SC", "RS")
_MIDWEST = ("GO", "MT", "MS", "DF")
_NORTHEAST = ("BA", "SE", "AL", "PE", "PB", "RN", "CE", "PI", "MA")
_NORTH = ("PA", "AM", "AP", "RR", "AC", "RO", "TO")

REGION_SHIPPING_CENTS: dict[str, int] = {
    **{uf: 1590 for uf in _SOUTHEAST},
    **{uf: 1990 for uf in _SOUTH},
    **{uf: 1990 for uf in _MIDWEST},
    **{uf: 2490 for uf in _NORTHEAST},
    **{uf: 2490 for uf in _NORTH},
}


def normalize_region(value: str | None) -> str | None:
    cleaned = (value or "").strip().upper()
    return cleaned or None


def region_fee_cents(region: str) -> int:
    normalized = normalize_region(region)
    if normalized is None or normalized not in REGION_SHIPPING_CENTS:
        raise ValidationError(f"Unsupported shipping region: {region}", field="region")
    return REGION_SHIPPING_CENTS[normalized]


def qualifies_for_free_shipping(subtotal_cents: int) -> bool:
    return subtotal_cents > FREE_SHIPPING_THRESHOLD_CENTS
