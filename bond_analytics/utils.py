from __future__ import annotations

import pandas as pd

from .errors import InvalidInput

_THIRTY_360 = {"30/360", "30/360US", "30U/360", "30/360BOND"}


def to_timestamp(value) -> pd.Timestamp:
    """Coerce a date-like value to a midnight ``pd.Timestamp``."""
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Invalid date: {value!r}") from exc
    if pd.isna(ts):
        raise InvalidInput(f"Invalid date: {value!r}")
    return ts.normalize()


def normalize_day_count(convention: str) -> str:
    """
    Canonical day count name.

    30/360, 30/360US, 30U/360 (US bond basis) map to ``"30/360"``. Any other
    name (ACT/ACT, ACT/360, 30E/360, BUS/252, ...) is returned upper-cased and
    accrues on calendar days.
    """
    if not isinstance(convention, str) or not convention.strip():
        raise InvalidInput(f"Day count convention must be a non-empty string: {convention!r}")
    key = convention.upper().replace(" ", "")
    if key in _THIRTY_360:
        return "30/360"
    return key


def days_between(start: pd.Timestamp, end: pd.Timestamp) -> int:
    """Calendar days from start to end (negative if end precedes start)."""
    return (pd.Timestamp(end) - pd.Timestamp(start)).days


def years_between(start: pd.Timestamp, end: pd.Timestamp, days_per_year: float) -> float:
    """
    Discounting year fraction: actual days / days_per_year (365.25 in settings).

    Used for every discount factor regardless of the bond's declared
    day count convention.
    """
    return days_between(start, end) / days_per_year


def days_30_360(start: pd.Timestamp, end: pd.Timestamp) -> int:
    """Day count under 30/360 US bond basis."""
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)

    y1, m1, d1 = start.year, start.month, start.day
    y2, m2, d2 = end.year, end.month, end.day

    if d1 == 31:
        d1 = 30
    if d2 == 31 and d1 == 30:
        d2 = 30

    return (y2 - y1) * 360 + (m2 - m1) * 30 + (d2 - d1)


def accrual_fraction(last_coupon: pd.Timestamp, settle: pd.Timestamp, next_coupon: pd.Timestamp, convention: str) -> float:
    """Elapsed share of the coupon period [last_coupon, next_coupon] at settle."""
    if normalize_day_count(convention) == "30/360":
        elapsed = days_30_360(last_coupon, settle)
        period = days_30_360(last_coupon, next_coupon)
    else:
        elapsed = days_between(last_coupon, settle)
        period = days_between(last_coupon, next_coupon)

    if period <= 0:
        return 0.0
    return elapsed / period


def one_year_after(date: pd.Timestamp) -> pd.Timestamp:
    return pd.Timestamp(date) + pd.DateOffset(years=1)
