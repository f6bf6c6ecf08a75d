from decimal import Decimal, InvalidOperation

Amount = int  # smallest unit, e.g. 6-decimal USDC
Timestamp = float  # seconds since epoch

DEFAULT_DECIMALS = 6


def format_units(amount: Amount, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """Render an integral smallest-unit amount as a decimal value."""
    if decimals < 0:
        raise ValueError("decimals must be >= 0")
    return Decimal(int(amount)).scaleb(-decimals)


def parse_units(text: str, decimals: int = DEFAULT_DECIMALS) -> Amount:
    """Parse a human decimal string into smallest units."""
    try:
        value = Decimal(str(text).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {text!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {text!r}")
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {text!r} has more than {decimals} fractional digits")
    return int(scaled)
