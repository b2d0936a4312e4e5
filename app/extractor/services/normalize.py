"""
Number normalization for values that arrive as display strings.

Structured outputs return numbers for number fields, but rows posted back
by clients (edited tables, raw exports) may carry strings such as
"$1,234.56" or "1.349,36".
"""

import re
from typing import Any

from price_parser import Price


def parse_number(value: Any) -> float | None:
    """
    Parse a number or amount string to float using price-parser.

    Handles international formats:
    - "$1,234.56", "€1.234,56", "1000 USD", "£500.00"
    - "-55,26" (comma decimal), "1.349,36" (European)

    Returns None when no number can be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None

    value = value.strip()
    if not value:
        return None

    negative = value.startswith("-") or (value.startswith("(") and value.endswith(")"))

    try:
        price = Price.fromstring(value)
        if price.amount_float is not None:
            amount = price.amount_float
            return -abs(amount) if negative else amount

        # Fallback: price-parser gave up, read the digits directly
        cleaned = re.sub(r"[^\d.,\-]", "", value)
        if not cleaned:
            return None
        if "," in cleaned and "." in cleaned:
            if cleaned.rfind(",") > cleaned.rfind("."):
                cleaned = cleaned.replace(".", "").replace(",", ".")
            else:
                cleaned = cleaned.replace(",", "")
        elif "," in cleaned:
            parts = cleaned.split(",")
            if len(parts) == 2 and len(parts[1]) == 2:
                cleaned = cleaned.replace(",", ".")
            else:
                cleaned = cleaned.replace(",", "")
        return float(cleaned)

    except (ValueError, AttributeError):
        return None
