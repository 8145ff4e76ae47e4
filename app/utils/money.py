from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(value if value is not None else 0).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Amount in cents, as the payment provider expects it."""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))
