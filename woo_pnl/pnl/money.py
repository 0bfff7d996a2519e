"""
Numeric coercion for monetary fields.
"""

import logging
import math
from typing import Any, Optional

logger = logging.getLogger(__name__)


def to_number(value: Any, field: Optional[str] = None, default: float = 0.0) -> float:
    """
    Coerce a monetary value (number or numeric string) to a float.

    Missing values (None or "") give `default` silently. Anything else that
    is not a finite number gives `default` with a warning; this never raises.
    """
    if value is None or value == "":
        return default

    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Non-numeric value {value!r}{f' for {field}' if field else ''}, using {default}")
        return default

    if not math.isfinite(number):
        logger.warning(f"Non-finite value {value!r}{f' for {field}' if field else ''}, using {default}")
        return default

    return number


def to_optional_number(value: Any, field: Optional[str] = None) -> Optional[float]:
    """Like to_number, but missing values stay None."""
    if value is None or value == "":
        return None
    return to_number(value, field)


def percent(part: float, whole: float) -> float:
    """part / whole * 100, or 0 when whole is not positive."""
    if whole <= 0:
        return 0.0
    return part / whole * 100
