"""
Field Transforms

Two families of functions live here:

- Coercers turn raw input (posted form strings, snapshot attributes) into
  typed values for a FieldKind. They raise ValueError on bad input; the
  resolver turns that into a ValidationError.
- Formatters turn typed values into display strings for the canonical
  document. They never raise.
"""

import logging
import math
import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable, Dict, Optional, Tuple

from .types import FieldKind

logger = logging.getLogger(__name__)

CoerceFunc = Callable[[Any], Any]

DATE_FORMATS = ["%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y"]
TIME_FORMATS = ["%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M%p"]
TRUE_VALUES = {'true', '1', 'yes', 'on', 'y'}
FALSE_VALUES = {'false', '0', 'no', 'off', 'n'}
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MAX_INTEGER_DIGITS = 15


def is_empty(value: Any) -> bool:
    """None, blank strings and empty collections count as absent. False and 0 do not."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set)):
        return len(value) == 0
    return False


# =============================================================================
# COERCERS
# =============================================================================

def _clean_number(value: Any) -> str:
    return str(value).replace('$', '').replace(',', '').replace('%', '').strip()


def coerce_text(value: Any) -> str:
    return str(value).strip()


def coerce_longtext(value: Any) -> str:
    # Keep paragraph breaks, normalise line endings
    return str(value).replace('\r\n', '\n').strip()


def coerce_email(value: Any) -> str:
    email = str(value).strip()
    if not EMAIL_PATTERN.match(email):
        raise ValueError(f"not a valid email address: {email!r}")
    return email


def coerce_phone(value: Any) -> str:
    digits = re.sub(r'\D', '', str(value))
    if len(digits) not in (10, 11):
        raise ValueError(f"not a valid phone number: {value!r}")
    return digits


def coerce_integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected a whole number")
    if isinstance(value, int):
        return value
    try:
        number = Decimal(_clean_number(value))
    except InvalidOperation:
        raise ValueError(f"not a whole number: {value!r}")
    if not number.is_finite():
        raise ValueError(f"not a whole number: {value!r}")
    # Bound the exponent before int() expands it digit by digit
    if number.adjusted() > MAX_INTEGER_DIGITS:
        raise ValueError(f"number too large: {value!r}")
    if number != number.to_integral_value():
        raise ValueError(f"not a whole number: {value!r}")
    return int(number)


def coerce_decimal(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("expected a number")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(Decimal(_clean_number(value)))
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    if not math.isfinite(number):
        raise ValueError(f"not a number: {value!r}")
    return number


def coerce_money(value: Any) -> float:
    amount = coerce_decimal(value)
    return float(Decimal(str(amount)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"not a valid date: {value!r}")


def coerce_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    text = str(value).strip().upper()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"not a valid time: {value!r}")


def coerce_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValueError(f"not a yes/no value: {value!r}")


def coerce_list(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        items = value.split(',')
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        raise ValueError(f"not a list: {value!r}")
    return tuple(str(item).strip() for item in items if str(item).strip())


COERCERS: Dict[FieldKind, CoerceFunc] = {
    FieldKind.TEXT: coerce_text,
    FieldKind.LONGTEXT: coerce_longtext,
    FieldKind.EMAIL: coerce_email,
    FieldKind.PHONE: coerce_phone,
    FieldKind.INTEGER: coerce_integer,
    FieldKind.DECIMAL: coerce_decimal,
    FieldKind.MONEY: coerce_money,
    FieldKind.PERCENT: coerce_decimal,
    FieldKind.DATE: coerce_date,
    FieldKind.TIME: coerce_time,
    FieldKind.BOOLEAN: coerce_boolean,
    FieldKind.LIST: coerce_list,
}


def coerce(kind: FieldKind, value: Any) -> Any:
    """Coerce a raw value to the given kind. Raises ValueError."""
    return COERCERS[kind](value)


# =============================================================================
# FORMATTERS
# =============================================================================

def format_currency(value: Any) -> str:
    """
    Format a number as US currency.

    Examples:
        2500 -> "$2,500.00"
        1234.5 -> "$1,234.50"
    """
    if value is None:
        return ""
    try:
        return f"${float(value):,.2f}"
    except (ValueError, TypeError):
        logger.warning(f"Could not format as currency: {value}")
        return str(value)


def format_percent(value: Any) -> str:
    """
    Format a number as a percentage.

    Examples:
        6 -> "6%"
        32.5 -> "32.5%"
    """
    if value is None:
        return ""
    try:
        num = float(value)
    except (ValueError, TypeError):
        return str(value)
    if num == int(num):
        return f"{int(num)}%"
    return f"{num}%"


def format_date(value: Any) -> str:
    """
    Format a date in long US format.

    Examples:
        date(2026, 1, 15) -> "January 15, 2026"
    """
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.strftime("%B %d, %Y")
    return str(value)


def format_time(value: Any) -> str:
    """time(14, 30) -> "2:30 PM" """
    if value is None:
        return ""
    if isinstance(value, time):
        return value.strftime("%I:%M %p").lstrip('0')
    return str(value)


def format_phone(value: Any) -> str:
    """
    Format a phone number in US format.

    Examples:
        "7137254459" -> "(713) 725-4459"
        "17137254459" -> "(713) 725-4459"
    """
    if value is None:
        return ""
    digits = re.sub(r'\D', '', str(value))
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits[0] == '1':
        return f"({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    return str(value)


def format_number(value: Any) -> str:
    """3.0 -> "3", 2.5 -> "2.5", 1200 -> "1,200" """
    if value is None:
        return ""
    try:
        num = float(value)
    except (ValueError, TypeError):
        return str(value)
    if num == int(num):
        return f"{int(num):,}"
    return f"{num:,}"


def format_boolean(value: Any) -> str:
    if value is None:
        return ""
    return "Yes" if value else "No"


def format_list(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


FORMATTERS: Dict[FieldKind, Callable[[Any], str]] = {
    FieldKind.TEXT: lambda v: "" if v is None else str(v),
    FieldKind.LONGTEXT: lambda v: "" if v is None else str(v),
    FieldKind.EMAIL: lambda v: "" if v is None else str(v),
    FieldKind.PHONE: format_phone,
    FieldKind.INTEGER: format_number,
    FieldKind.DECIMAL: format_number,
    FieldKind.MONEY: format_currency,
    FieldKind.PERCENT: format_percent,
    FieldKind.DATE: format_date,
    FieldKind.TIME: format_time,
    FieldKind.BOOLEAN: format_boolean,
    FieldKind.LIST: format_list,
}


def format_value(kind: FieldKind, value: Any, fallback: Optional[str] = None) -> str:
    """Format a typed value for display. Absent values render as `fallback` or ''."""
    if is_empty(value):
        return fallback if fallback is not None else ""
    return FORMATTERS[kind](value)
