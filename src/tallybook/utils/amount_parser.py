"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re
import unicodedata

# Currency symbols, thousands separators and spaces found in bank exports
_NOISE = re.compile(r"[￥¥$€£,，、\s]")


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "¥1,234" / "￥１，２３４" (full-width characters are normalized)
    - "-123.45" / "+123.45"
    - "(123.45)" (negative in parentheses)
    - "△123" (Japanese minus sign)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if amount_str is None or not str(amount_str).strip():
        raise ValueError("Empty amount string")

    value = unicodedata.normalize("NFKC", str(amount_str)).strip()
    # A leading quote is how formula-looking cells were escaped on import
    value = value.lstrip("'")

    is_negative = False
    if value.startswith("(") and value.endswith(")"):
        is_negative = True
        value = value[1:-1]
    if value.startswith(("△", "▲")):
        is_negative = True
        value = value[1:]

    value = _NOISE.sub("", value)

    try:
        amount = Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}'") from e
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount
