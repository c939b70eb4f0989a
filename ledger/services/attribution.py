"""
Attribution rules — window check and fee resolution.

Pure functions shared by automatic matching and manual placement creation,
so both paths apply exactly the same policy.

The window is a coarse calendar-month difference, not elapsed days: a hire on
the 1st and a hire on the 28th of the same month count the same.
"""
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from ledger.config import ATTRIBUTION_WINDOW_MONTHS

CENTS = Decimal('0.01')


def as_date(value):
    """Calendar date of a date/datetime. Aware datetimes are taken in UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f'Expected date or datetime, got {type(value).__name__}')


def months_between(intro_timestamp, hire_date):
    """(hire_year - intro_year) * 12 + (hire_month - intro_month). May be negative."""
    intro = as_date(intro_timestamp)
    hire = as_date(hire_date)
    return (hire.year - intro.year) * 12 + (hire.month - intro.month)


def resolve_window(terms, default=None):
    """Partner's attribution window in months, or the system default when unset."""
    if default is None:
        default = ATTRIBUTION_WINDOW_MONTHS
    window = (terms or {}).get('attribution_window_months')
    if window is None:
        return default
    return int(window)


def check_window(intro_timestamp, hire_date, window):
    """
    Return None when the hire is attributable, else a reason string.

    Two conditions: months_between <= window, and the hire is not dated before
    the introduction (guards against reordered external data).
    """
    if as_date(hire_date) < as_date(intro_timestamp):
        return 'Hire date precedes the introduction'
    months = months_between(intro_timestamp, hire_date)
    if months > window:
        return f'Hire date is outside attribution window ({window} months from introduction)'
    return None


def is_within_window(intro_timestamp, hire_date, window):
    return check_window(intro_timestamp, hire_date, window) is None


def to_decimal(value):
    if value is None:
        return None
    try:
        return Decimal(str(value)).quantize(CENTS)
    except (InvalidOperation, ValueError):
        raise ValueError(f'Invalid fee amount: {value!r}')


def resolve_fee(terms, override=None):
    """
    Fee for a new placement, as an exact Decimal.

    Order: caller override > flat fee > fee percentage > zero. The percentage
    branch resolves to zero because no salary data is available; the fee is
    expected to be entered manually afterwards.
    """
    if override is not None:
        return to_decimal(override)
    terms = terms or {}
    if terms.get('flat_fee'):
        return to_decimal(terms['flat_fee'])
    if terms.get('fee_percentage'):
        return Decimal('0.00')
    return Decimal('0.00')
