"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "500"
    - "₹1,250.50"
    - "-₹25"
    - "Rs. 300"
    - "1,00,000" (Indian digit grouping)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    text = amount_str.strip()

    # Remove currency markers
    text = re.sub(r"(?i)^(-?)\s*(rs\.?|inr)\s*", r"\1", text)
    text = re.sub(r"[₹$]", "", text)

    # Remove grouping separators
    text = text.replace(",", "").replace(" ", "")

    try:
        amount = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return amount
