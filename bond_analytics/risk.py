from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .bonds import CashFlow, discount_factors, flow_arrays
from .config import EngineSettings, get_settings
from .errors import NoFutureCashFlows
from .utils import days_between, one_year_after, to_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskMetrics:
    macaulay_duration: float
    modified_duration: float
    effective_duration: float
    convexity: float
    dollar_duration: float
    average_life: float
    current_yield: float
    days_to_next_cash_flow: int
    next_payment_date: pd.Timestamp
    next_payment_amount: float


def _future(cash_flows: Sequence[CashFlow], settle: pd.Timestamp) -> list:
    future = [cf for cf in cash_flows if cf.date > settle]
    if not future:
        raise NoFutureCashFlows(f"No cash flows after settlement {settle.date()}.")
    return future


def _pv_weights(cash_flows, yield_decimal, settle, settings) -> Tuple[np.ndarray, np.ndarray]:
    times, amounts = flow_arrays(cash_flows, settle, settings)
    return times, amounts * discount_factors(times, yield_decimal)


def macaulay_duration(cash_flows: Sequence[CashFlow], yield_decimal: float, settle, settings: Optional[EngineSettings] = None) -> float:
    """PV-weighted average time to cash flow, in years."""
    settle = to_timestamp(settle)
    times, pv_cf = _pv_weights(_future(cash_flows, settle), yield_decimal, settle, settings)
    pv = pv_cf.sum()
    if pv <= 0:
        return 0.0
    return float(np.dot(pv_cf, times) / pv)


def modified_duration(macaulay: float, yield_decimal: float) -> float:
    return macaulay / (1.0 + yield_decimal)


def effective_duration(
    cash_flows: Sequence[CashFlow],
    yield_decimal: float,
    settle,
    price: float,
    settings: Optional[EngineSettings] = None,
) -> float:
    """Central difference over a +/- bp_shock parallel move in yield."""
    settings = settings or get_settings()
    settle = to_timestamp(settle)
    if price <= 0:
        return 0.0

    h = settings.bp_shock
    times, amounts = flow_arrays(_future(cash_flows, settle), settle, settings)
    pv_down = float(np.dot(amounts, discount_factors(times, yield_decimal - h)))
    pv_up = float(np.dot(amounts, discount_factors(times, yield_decimal + h)))
    return (pv_down - pv_up) / (2.0 * price * h)


def convexity(cash_flows: Sequence[CashFlow], yield_decimal: float, settle, settings: Optional[EngineSettings] = None) -> float:
    """sum(PV_i * t_i * (t_i + 1)) / ((1 + y)^2 * sum(PV_i))"""
    settle = to_timestamp(settle)
    times, pv_cf = _pv_weights(_future(cash_flows, settle), yield_decimal, settle, settings)
    pv = pv_cf.sum()
    if pv <= 0:
        return 0.0
    return float(np.dot(pv_cf, times * (times + 1.0)) / ((1.0 + yield_decimal) ** 2 * pv))


def dollar_duration(modified: float, price: float, settings: Optional[EngineSettings] = None) -> float:
    """DV01: price change for a 1bp move."""
    settings = settings or get_settings()
    return modified * price * settings.bp_shock


def average_life(cash_flows: Sequence[CashFlow], settle, settings: Optional[EngineSettings] = None) -> float:
    """Principal-weighted average time; 0 when no future flow repays principal."""
    settle = to_timestamp(settle)
    principal_flows = [cf for cf in cash_flows if cf.date > settle and cf.principal_amount > 0]
    if not principal_flows:
        return 0.0

    times, _ = flow_arrays(principal_flows, settle, settings)
    principal = np.array([cf.principal_amount for cf in principal_flows], dtype=float)
    return float(np.dot(principal, times) / principal.sum())


def current_yield(cash_flows: Sequence[CashFlow], settle, clean_price: float) -> float:
    """Coupons due in (settle, settle + 1y] over clean price (decimal)."""
    settle = to_timestamp(settle)
    if clean_price <= 0:
        return 0.0
    horizon = one_year_after(settle)
    annual = sum(cf.coupon_amount for cf in cash_flows if settle < cf.date <= horizon)
    return annual / clean_price


def next_payment(cash_flows: Sequence[CashFlow], settle) -> Tuple[pd.Timestamp, float]:
    """(date, total amount) of the first flow after settlement."""
    settle = to_timestamp(settle)
    first = _future(cash_flows, settle)[0]
    return first.date, first.total_amount


def days_to_next_cash_flow(cash_flows: Sequence[CashFlow], settle) -> int:
    settle = to_timestamp(settle)
    date, _ = next_payment(cash_flows, settle)
    return days_between(settle, date)


def compute_risk_metrics(
    cash_flows: Sequence[CashFlow],
    yield_decimal: float,
    settle,
    clean_price: float,
    settings: Optional[EngineSettings] = None,
) -> RiskMetrics:
    """Effective duration and DV01 are quoted against the clean price."""
    settings = settings or get_settings()
    settle = to_timestamp(settle)

    mac = macaulay_duration(cash_flows, yield_decimal, settle, settings)
    mod = modified_duration(mac, yield_decimal)
    next_date, next_amount = next_payment(cash_flows, settle)

    metrics = RiskMetrics(
        macaulay_duration=mac,
        modified_duration=mod,
        effective_duration=effective_duration(cash_flows, yield_decimal, settle, clean_price, settings),
        convexity=convexity(cash_flows, yield_decimal, settle, settings),
        dollar_duration=dollar_duration(mod, clean_price, settings),
        average_life=average_life(cash_flows, settle, settings),
        current_yield=current_yield(cash_flows, settle, clean_price),
        days_to_next_cash_flow=days_between(settle, next_date),
        next_payment_date=next_date,
        next_payment_amount=next_amount,
    )
    logger.debug("Risk at y=%.8f: mac=%.4f mod=%.4f conv=%.4f", yield_decimal, mac, mod, metrics.convexity)
    return metrics
