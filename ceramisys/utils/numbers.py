from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value, default: Decimal = Decimal(0)) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> Decimal:
    """Rounds to cents, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
