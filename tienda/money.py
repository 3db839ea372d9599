from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    # str() primero: Decimal(0.1) arrastra el error binario del float
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(value) -> str:
    return str(to_money(value))
