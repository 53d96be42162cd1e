from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, NamedTuple, Optional, Tuple

import numpy as np
import pandas as pd

from .config import EngineSettings, get_settings
from .errors import InvalidInput
from .utils import accrual_fraction, normalize_day_count, to_timestamp, years_between

_AMOUNT_TOL = 1e-6


@dataclass(frozen=True)
class CashFlow:
    date: pd.Timestamp
    coupon_amount: float
    principal_amount: float
    total_amount: float
    remaining_principal: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", to_timestamp(self.date))

    @classmethod
    def from_record(cls, record: Mapping) -> "CashFlow":
        """
        Build from a mapping with either snake_case keys or the
        schedule-generator keys (couponPayment, principalPayment, ...).
        """
        def pick(*keys, default=None):
            for k in keys:
                if k in record and record[k] is not None:
                    return record[k]
            return default

        coupon = float(pick("coupon_amount", "couponPayment", "coupon", default=0.0))
        principal = float(pick("principal_amount", "principalPayment", "principal", default=0.0))
        total = pick("total_amount", "totalPayment", "total")
        remaining = pick("remaining_principal", "remainingNotional", "outstandingNotional", default=0.0)
        return cls(
            date=pick("date"),
            coupon_amount=coupon,
            principal_amount=principal,
            total_amount=coupon + principal if total is None else float(total),
            remaining_principal=float(remaining),
        )


@dataclass(frozen=True)
class BondForAnalytics:
    face_value: float
    issue_date: pd.Timestamp
    maturity_date: pd.Timestamp
    settlement_lag_days: int = 2
    day_count_convention: str = "30/360"
    cash_flows: Tuple[CashFlow, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "issue_date", to_timestamp(self.issue_date))
        object.__setattr__(self, "maturity_date", to_timestamp(self.maturity_date))
        object.__setattr__(self, "cash_flows", tuple(self.cash_flows))

    @classmethod
    def from_records(cls, records: Iterable[Mapping], **bond_info) -> "BondForAnalytics":
        return cls(cash_flows=tuple(CashFlow.from_record(r) for r in records), **bond_info)

    def validate(self) -> None:
        """Boundary checks; raises InvalidInput on the first violation."""
        if not self.cash_flows:
            raise InvalidInput("Bond has no cash flows.")
        if not (self.face_value > 0):
            raise InvalidInput("Face value must be positive.")
        normalize_day_count(self.day_count_convention)

        for prev, cur in zip(self.cash_flows, self.cash_flows[1:]):
            if cur.date <= prev.date:
                raise InvalidInput(f"Cash flows not strictly ascending at {cur.date.date()}.")
            if cur.remaining_principal > prev.remaining_principal + _AMOUNT_TOL:
                raise InvalidInput(f"Remaining principal increases at {cur.date.date()}.")

        for cf in self.cash_flows:
            if abs(cf.coupon_amount + cf.principal_amount - cf.total_amount) > _AMOUNT_TOL:
                raise InvalidInput(f"Cash flow on {cf.date.date()}: total != coupon + principal.")


class PriceResult(NamedTuple):
    clean_price: float
    dirty_price: float
    accrued_interest: float


def future_cash_flows(bond: BondForAnalytics, settle) -> List[CashFlow]:
    """Flows dated strictly after settlement, in schedule order."""
    settle = to_timestamp(settle)
    return [cf for cf in bond.cash_flows if cf.date > settle]


def flow_arrays(
    cash_flows: Iterable[CashFlow],
    settle,
    settings: Optional[EngineSettings] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """(times in years from settle, total amounts) as float arrays."""
    settings = settings or get_settings()
    settle = to_timestamp(settle)
    flows = list(cash_flows)
    times = np.array([years_between(settle, cf.date, settings.days_per_year) for cf in flows], dtype=float)
    amounts = np.array([cf.total_amount for cf in flows], dtype=float)
    return times, amounts


def discount_factors(times: np.ndarray, yield_decimal: float) -> np.ndarray:
    """Annually compounded: (1 + y) ** -t."""
    return (1.0 + yield_decimal) ** (-times)


def present_value(cash_flows: Iterable[CashFlow], yield_decimal: float, settle, settings: Optional[EngineSettings] = None) -> float:
    """
    PV at settlement of the flows dated strictly after settle.
    Discounting uses actual/365.25 year fractions.
    """
    settle = to_timestamp(settle)
    flows = [cf for cf in cash_flows if cf.date > settle]
    if not flows:
        return 0.0
    times, amounts = flow_arrays(flows, settle, settings)
    return float(np.dot(amounts, discount_factors(times, yield_decimal)))


def pv_and_duration(times: np.ndarray, amounts: np.ndarray, yield_decimal: float) -> Tuple[float, float]:
    """Returns (pv, PV-weighted average time); duration is 0 if pv <= 0."""
    pv_cf = amounts * discount_factors(times, yield_decimal)
    pv = float(np.sum(pv_cf))
    if pv <= 0.0:
        return pv, 0.0
    return pv, float(np.dot(pv_cf, times)) / pv


def accrued_interest(bond: BondForAnalytics, settle) -> float:
    """
    Share of the next coupon earned since the last coupon-bearing flow
    on or before settlement. Zero when either side of the period is missing.
    """
    settle = to_timestamp(settle)

    last_coupon: Optional[CashFlow] = None
    next_coupon: Optional[CashFlow] = None
    for cf in bond.cash_flows:
        if cf.coupon_amount <= 0:
            continue
        if cf.date <= settle:
            last_coupon = cf
        elif next_coupon is None:
            next_coupon = cf

    if last_coupon is None or next_coupon is None:
        return 0.0

    fraction = accrual_fraction(last_coupon.date, settle, next_coupon.date, bond.day_count_convention)
    return next_coupon.coupon_amount * fraction


def price_from_yield(bond: BondForAnalytics, yield_decimal: float, settle, settings: Optional[EngineSettings] = None) -> PriceResult:
    """Dirty = PV of future flows at the yield; clean = dirty - accrued."""
    if yield_decimal is None or not math.isfinite(yield_decimal) or yield_decimal <= -1.0:
        raise InvalidInput(f"Yield must be a finite decimal above -100%: {yield_decimal!r}")

    dirty = present_value(bond.cash_flows, yield_decimal, settle, settings)
    ai = accrued_interest(bond, settle)
    return PriceResult(clean_price=dirty - ai, dirty_price=dirty, accrued_interest=ai)


def outstanding_principal(bond: BondForAnalytics, settle) -> float:
    """Remaining principal after the last flow on or before settle (face if none)."""
    settle = to_timestamp(settle)
    outstanding = bond.face_value
    for cf in bond.cash_flows:
        if cf.date > settle:
            break
        outstanding = cf.remaining_principal
    return outstanding


def cashflow_table(bond: BondForAnalytics, settle, yield_decimal: float, settings: Optional[EngineSettings] = None) -> pd.DataFrame:
    """Future schedule with year fractions, discount factors and PVs at a yield."""
    settle = to_timestamp(settle)
    flows = future_cash_flows(bond, settle)
    times, amounts = flow_arrays(flows, settle, settings)
    dfs = discount_factors(times, yield_decimal)

    return pd.DataFrame(
        {
            "date": [cf.date for cf in flows],
            "coupon": [cf.coupon_amount for cf in flows],
            "principal": [cf.principal_amount for cf in flows],
            "total": amounts,
            "remaining_principal": [cf.remaining_principal for cf in flows],
            "years": times,
            "discount_factor": dfs,
            "pv": amounts * dfs,
        },
        columns=["date", "coupon", "principal", "total", "remaining_principal", "years", "discount_factor", "pv"],
    )
