"""
Single-bond analytics entry points.

compute_from_price : price (clean or dirty) -> yield, risk, spreads
compute_from_yield : yield -> clean/dirty/accrued
analyze            : either direction from a MarketInput
"""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Tuple

import pandas as pd

from .bonds import (
    BondForAnalytics,
    PriceResult,
    accrued_interest,
    future_cash_flows,
    outstanding_principal,
    price_from_yield,
)
from .config import EngineSettings, get_settings
from .curves import BenchmarkCurve, CurveLookup
from .errors import InvalidInput, NoFutureCashFlows
from .risk import compute_risk_metrics
from .solver import solve_yield
from .spreads import compute_spreads
from .utils import to_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketInput:
    settlement_date: pd.Timestamp
    clean_price: Optional[float] = None
    dirty_price: Optional[float] = None
    yield_decimal: Optional[float] = None
    benchmark_curve: Optional[BenchmarkCurve] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "settlement_date", to_timestamp(self.settlement_date))
        given = [v for v in (self.clean_price, self.dirty_price, self.yield_decimal) if v is not None]
        if len(given) != 1:
            raise InvalidInput("Exactly one of clean_price, dirty_price or yield_decimal must be given.")


@dataclass(frozen=True)
class SolverInfo:
    algorithm: str
    iterations: int
    residual: float
    converged: bool = True


@dataclass(frozen=True)
class AnalyticsResult:
    clean_price: float
    dirty_price: float
    accrued_interest: float
    yield_to_maturity: float
    current_yield: float
    macaulay_duration: float
    modified_duration: float
    effective_duration: float
    convexity: float
    dollar_duration: float
    average_life: float
    total_future_cash_flows: float
    total_future_coupons: float
    outstanding_principal: float
    parity: float
    days_to_next_cash_flow: int
    next_cash_flow_date: pd.Timestamp
    next_cash_flow_amount: float
    solver_info: SolverInfo
    nominal_spread_bp: Optional[float] = None
    z_spread_bp: Optional[float] = None
    benchmark_yield: Optional[float] = None
    benchmark_lookup: Optional[CurveLookup] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        """Plain dict with ISO dates, for serialisation."""
        out = asdict(self)
        out["next_cash_flow_date"] = self.next_cash_flow_date.date().isoformat()
        if self.benchmark_lookup is not None:
            out["benchmark_lookup"] = self.benchmark_lookup._asdict()
        out["warnings"] = list(self.warnings)
        return out


def _check_price(name: str, value: Optional[float]) -> None:
    if value is None:
        return
    if not math.isfinite(value) or value <= 0:
        raise InvalidInput(f"{name} must be positive: {value!r}")


def _assemble(
    bond: BondForAnalytics,
    settle: pd.Timestamp,
    yield_decimal: float,
    clean: float,
    dirty: float,
    ai: float,
    solver_info: SolverInfo,
    curve: Optional[BenchmarkCurve],
    settings: EngineSettings,
) -> AnalyticsResult:
    future = future_cash_flows(bond, settle)
    risk = compute_risk_metrics(future, yield_decimal, settle, clean, settings)

    warn: List[str] = []
    if not solver_info.converged:
        warn.append(f"{solver_info.algorithm} did not meet tolerance (residual {solver_info.residual:.3e})")

    nominal = z = bench = bench_lookup = None
    if curve is not None:
        spreads = compute_spreads(future, settle, yield_decimal, dirty, risk.average_life, curve, settings)
        nominal, z = spreads.nominal_spread_bp, spreads.z_spread_bp
        bench, bench_lookup = spreads.benchmark_yield, spreads.benchmark_lookup
        if not spreads.z_spread_converged:
            warn.append("Z-spread bisection did not reach price tolerance")

    outstanding = outstanding_principal(bond, settle)
    return AnalyticsResult(
        clean_price=clean,
        dirty_price=dirty,
        accrued_interest=ai,
        yield_to_maturity=yield_decimal,
        current_yield=risk.current_yield,
        macaulay_duration=risk.macaulay_duration,
        modified_duration=risk.modified_duration,
        effective_duration=risk.effective_duration,
        convexity=risk.convexity,
        dollar_duration=risk.dollar_duration,
        average_life=risk.average_life,
        total_future_cash_flows=sum(cf.total_amount for cf in future),
        total_future_coupons=sum(cf.coupon_amount for cf in future),
        outstanding_principal=outstanding,
        parity=clean / outstanding if outstanding > 0 else 0.0,
        days_to_next_cash_flow=risk.days_to_next_cash_flow,
        next_cash_flow_date=risk.next_payment_date,
        next_cash_flow_amount=risk.next_payment_amount,
        solver_info=solver_info,
        nominal_spread_bp=nominal,
        z_spread_bp=z,
        benchmark_yield=bench,
        benchmark_lookup=bench_lookup,
        warnings=tuple(warn),
    )


def compute_from_price(
    bond: BondForAnalytics,
    settlement_date,
    *,
    clean_price: Optional[float] = None,
    dirty_price: Optional[float] = None,
    curve: Optional[BenchmarkCurve] = None,
    settings: Optional[EngineSettings] = None,
) -> AnalyticsResult:
    """
    Solve for yield from a clean or dirty price and derive the analytics.

    Exactly one of clean_price / dirty_price must be given. Spreads are
    computed only when a benchmark curve is supplied.
    """
    settings = settings or get_settings()
    bond.validate()
    if (clean_price is None) == (dirty_price is None):
        raise InvalidInput("Exactly one of clean_price or dirty_price must be given.")
    _check_price("clean_price", clean_price)
    _check_price("dirty_price", dirty_price)

    settle = to_timestamp(settlement_date)
    ai = accrued_interest(bond, settle)
    if dirty_price is None:
        dirty_price = clean_price + ai
    else:
        clean_price = dirty_price - ai
        if clean_price <= 0:
            raise InvalidInput(f"Clean price {clean_price:.6f} is not positive after removing accrued {ai:.6f}.")

    future = future_cash_flows(bond, settle)
    if not future:
        raise NoFutureCashFlows(f"No cash flows after settlement {settle.date()}.")

    algorithm, outcome = solve_yield(future, dirty_price, settle, settings)
    solver_info = SolverInfo(algorithm, outcome.iterations, outcome.residual, outcome.tolerance_met)

    result = _assemble(bond, settle, outcome.yield_decimal, clean_price, dirty_price, ai, solver_info, curve, settings)
    logger.info(
        "Priced %s: dirty=%.4f ytm=%.6f%% via %s (%d iterations)",
        settle.date(), dirty_price, 100.0 * result.yield_to_maturity, algorithm, outcome.iterations,
    )
    return result


def compute_from_yield(
    bond: BondForAnalytics,
    yield_decimal: float,
    settlement_date,
    settings: Optional[EngineSettings] = None,
) -> PriceResult:
    """Clean, dirty and accrued at a given yield."""
    bond.validate()
    settle = to_timestamp(settlement_date)
    if not future_cash_flows(bond, settle):
        raise NoFutureCashFlows(f"No cash flows after settlement {settle.date()}.")
    return price_from_yield(bond, yield_decimal, settle, settings)


def analyze(bond: BondForAnalytics, market: MarketInput, settings: Optional[EngineSettings] = None) -> AnalyticsResult:
    """Full analytics from whichever quantity the market input carries."""
    settings = settings or get_settings()
    if market.yield_decimal is None:
        return compute_from_price(
            bond,
            market.settlement_date,
            clean_price=market.clean_price,
            dirty_price=market.dirty_price,
            curve=market.benchmark_curve,
            settings=settings,
        )

    price = compute_from_yield(bond, market.yield_decimal, market.settlement_date, settings)
    info = SolverInfo("Direct PV", 0, 0.0)
    return _assemble(
        bond,
        market.settlement_date,
        market.yield_decimal,
        price.clean_price,
        price.dirty_price,
        price.accrued_interest,
        info,
        market.benchmark_curve,
        settings,
    )
