from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .bonds import CashFlow, flow_arrays
from .config import EngineSettings, get_settings
from .curves import BenchmarkCurve, CurveLookup, lookup
from .errors import CurveError, NoFutureCashFlows
from .utils import to_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpreadResult:
    nominal_spread_bp: float
    z_spread_bp: float
    benchmark_yield: float  # percent, at average life
    benchmark_lookup: CurveLookup
    z_spread_converged: bool


def _check_curve(curve: Optional[BenchmarkCurve]) -> BenchmarkCurve:
    if curve is None or len(curve) == 0:
        raise CurveError("Benchmark curve has no points.")
    return curve


def nominal_spread_bp(
    yield_decimal: float,
    avg_life: float,
    curve: BenchmarkCurve,
    settings: Optional[EngineSettings] = None,
) -> float:
    """(yield - benchmark yield at average life) in basis points."""
    benchmark = lookup(avg_life, _check_curve(curve), settings).yield_percent / 100.0
    return (yield_decimal - benchmark) * 10000.0


def pv_with_spread(
    times: np.ndarray,
    amounts: np.ndarray,
    curve: BenchmarkCurve,
    spread: float,
    settings: Optional[EngineSettings] = None,
) -> float:
    """PV discounting each flow at curve(t_i) + spread (decimals)."""
    rates = np.array([lookup(t, curve, settings).yield_percent for t in times], dtype=float) / 100.0
    return float(np.dot(amounts, (1.0 + rates + spread) ** (-times)))


def z_spread(
    cash_flows: Sequence[CashFlow],
    settle,
    dirty_price: float,
    curve: BenchmarkCurve,
    settings: Optional[EngineSettings] = None,
):
    """
    Constant spread over the curve that reprices the flows to dirty_price.

    Fixed-budget bisection over z_spread_bounds. Returns (spread in decimal,
    converged flag); the final midpoint is returned even if the price
    tolerance was never met.
    """
    settings = settings or get_settings()
    curve = _check_curve(curve)
    settle = to_timestamp(settle)

    future = [cf for cf in cash_flows if cf.date > settle]
    if not future:
        raise NoFutureCashFlows(f"No cash flows after settlement {settle.date()}.")
    times, amounts = flow_arrays(future, settle, settings)

    lower, upper = settings.z_spread_bounds
    mid = 0.5 * (lower + upper)
    for _ in range(settings.z_spread_iterations):
        mid = 0.5 * (lower + upper)
        pv = pv_with_spread(times, amounts, curve, mid, settings)
        if abs(pv - dirty_price) < settings.z_spread_price_tolerance:
            return mid, True
        # PV falls as spread rises
        if pv > dirty_price:
            lower = mid
        else:
            upper = mid

    logger.warning("Z-spread bisection did not reach price tolerance; using %.6f", mid)
    return mid, False


def compute_spreads(
    cash_flows: Sequence[CashFlow],
    settle,
    yield_decimal: float,
    dirty_price: float,
    avg_life: float,
    curve: BenchmarkCurve,
    settings: Optional[EngineSettings] = None,
) -> SpreadResult:
    settings = settings or get_settings()
    curve = _check_curve(curve)

    bench = lookup(avg_life, curve, settings)
    nominal = (yield_decimal - bench.yield_percent / 100.0) * 10000.0
    z, converged = z_spread(cash_flows, settle, dirty_price, curve, settings)
    return SpreadResult(
        nominal_spread_bp=nominal,
        z_spread_bp=z * 10000.0,
        benchmark_yield=bench.yield_percent,
        benchmark_lookup=bench,
        z_spread_converged=converged,
    )
