from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from typing import Callable, Iterable, List, Optional, Sequence

import pandas as pd

from .bonds import BondForAnalytics
from .config import EngineSettings, get_settings
from .curves import BenchmarkCurve, shifted_curve
from .engine import compute_from_price, compute_from_yield
from .errors import EngineError

logger = logging.getLogger(__name__)

_RESULT_COLUMNS = [
    "clean_price", "dirty_price", "accrued_interest", "yield_to_maturity",
    "modified_duration", "convexity", "dollar_duration",
]


def _price_row(bond, settle, price, price_type, curve, settings) -> dict:
    row = {"input_price": price, "price_type": price_type}
    kwargs = {"clean_price": price} if price_type == "clean" else {"dirty_price": price}
    try:
        res = compute_from_price(bond, settle, curve=curve, settings=settings, **kwargs)
    except EngineError as exc:
        row["error"] = f"{type(exc).__name__}: {exc}"
        return row

    row.update({c: getattr(res, c) for c in _RESULT_COLUMNS})
    row["algorithm"] = res.solver_info.algorithm
    row["nominal_spread_bp"] = res.nominal_spread_bp
    row["z_spread_bp"] = res.z_spread_bp
    row["error"] = None
    return row


def _yield_row(bond, settle, base_yield, shift_bp, settings) -> dict:
    y = base_yield + shift_bp / 10000.0
    row = {"shift_bp": shift_bp, "yield_decimal": y}
    try:
        px = compute_from_yield(bond, y, settle, settings)
    except EngineError as exc:
        row["error"] = f"{type(exc).__name__}: {exc}"
        return row

    row.update({"clean_price": px.clean_price, "dirty_price": px.dirty_price, "accrued_interest": px.accrued_interest})
    row["error"] = None
    return row


def _curve_row(bond, settle, dirty_price, curve, shift_bp, settings) -> dict:
    row = {"curve_shift_bp": shift_bp}
    try:
        res = compute_from_price(bond, settle, dirty_price=dirty_price, curve=shifted_curve(curve, shift_bp), settings=settings)
    except EngineError as exc:
        row["error"] = f"{type(exc).__name__}: {exc}"
        return row

    row["benchmark_yield"] = res.benchmark_yield
    row["nominal_spread_bp"] = res.nominal_spread_bp
    row["z_spread_bp"] = res.z_spread_bp
    row["error"] = None
    return row


def _fan_out(func: Callable[..., dict], arg_lists: Sequence[Iterable], settings: EngineSettings) -> List[dict]:
    """Map func over zipped args in a process pool; results keep input order."""
    n_tasks = len(arg_lists[0]) if arg_lists else 0
    workers = min(settings.worker_count(), max(n_tasks, 1))

    if workers <= 1:
        return [func(*args) for args in zip(*arg_lists)]

    logger.debug("Running %d scenarios on %d workers", n_tasks, workers)
    with ProcessPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(func, *arg_lists))


def run_price_grid(
    bond: BondForAnalytics,
    settle,
    prices: Sequence[float],
    price_type: str = "clean",
    curve: Optional[BenchmarkCurve] = None,
    settings: Optional[EngineSettings] = None,
) -> pd.DataFrame:
    """Full analytics at each price; one row per price."""
    settings = settings or get_settings()
    if price_type not in ("clean", "dirty"):
        raise ValueError("price_type must be 'clean' or 'dirty'")

    n = len(prices)
    rows = _fan_out(
        _price_row,
        [[bond] * n, [settle] * n, list(prices), [price_type] * n, [curve] * n, [settings] * n],
        settings,
    )
    return pd.DataFrame(rows)


def run_yield_shocks(
    bond: BondForAnalytics,
    settle,
    base_yield: float,
    shifts_bp: Sequence[float] = (-100, -50, -25, 0, 25, 50, 100),
    settings: Optional[EngineSettings] = None,
) -> pd.DataFrame:
    """Prices under parallel yield shocks, with P&L against the unshocked dirty price."""
    settings = settings or get_settings()
    n = len(shifts_bp)
    rows = _fan_out(
        _yield_row,
        [[bond] * n, [settle] * n, [base_yield] * n, list(shifts_bp), [settings] * n],
        settings,
    )
    out = pd.DataFrame(rows)

    base_dirty = compute_from_yield(bond, base_yield, settle, settings).dirty_price
    if "dirty_price" in out:
        out["pnl"] = out["dirty_price"] - base_dirty
    return out


def run_curve_shift_scenarios(
    bond: BondForAnalytics,
    settle,
    dirty_price: float,
    curve: BenchmarkCurve,
    shifts_bp: Sequence[float] = (-50, -25, 0, 25, 50),
    settings: Optional[EngineSettings] = None,
) -> pd.DataFrame:
    """Spreads against parallel-shifted benchmark curves at a fixed price."""
    settings = settings or get_settings()
    n = len(shifts_bp)
    rows = _fan_out(
        _curve_row,
        [[bond] * n, [settle] * n, [dirty_price] * n, [curve] * n, list(shifts_bp), [settings] * n],
        settings,
    )
    return pd.DataFrame(rows)
