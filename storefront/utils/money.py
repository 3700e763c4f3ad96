# storefront/utils/money.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

Money = Decimal
ZERO = Decimal("0")

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_money(x: Money) -> Money:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

def parse_money(v) -> Money | None:
    """Lenient parse used by request handlers; None for blank input, ValueError for garbage."""
    if v is None or (isinstance(v, str) and v.strip() == ""):
        return None
    if isinstance(v, bool):
        raise ValueError("invalid amount")
    try:
        return Decimal(str(v).strip())
    except InvalidOperation:
        raise ValueError(f"invalid amount: {v!r}")

def to_float(x) -> float | None:
    return None if x is None else float(x)

def format_vnd(value, symbol="₫") -> str:
    n = round_money(D(value)).to_integral_value(rounding=ROUND_HALF_UP)
    return f"{n:,}".replace(",", ".") + f" {symbol}"
