from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Mapping, NamedTuple, Optional, Tuple

import numpy as np
import pandas as pd

from .config import EngineSettings, get_settings
from .errors import CurveError
from .utils import days_between, to_timestamp

logger = logging.getLogger(__name__)

_TENOR_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([DWMY]?)\s*$", re.IGNORECASE)
_UNIT_YEARS = {"D": 1.0 / 365.0, "W": 7.0 / 365.0, "M": 1.0 / 12.0, "Y": 1.0, "": 1.0}


@dataclass(frozen=True)
class BenchmarkCurve:
    """
    Benchmark yield curve snapshot.

    points: (tenor in years, yield in percent) pairs. Sorted ascending by
    tenor on construction, so callers may pass them in any order.
    """
    as_of_date: pd.Timestamp
    points: Tuple[Tuple[float, float], ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "as_of_date", to_timestamp(self.as_of_date))
        pts = tuple(sorted((float(t), float(y)) for t, y in self.points))
        object.__setattr__(self, "points", pts)

    @property
    def tenors(self) -> np.ndarray:
        return np.array([t for t, _ in self.points], dtype=float)

    @property
    def yields(self) -> np.ndarray:
        return np.array([y for _, y in self.points], dtype=float)

    def __len__(self) -> int:
        return len(self.points)


class CurveLookup(NamedTuple):
    yield_percent: float
    method: str  # "exact" | "interpolated" | "extrapolated"
    lower: Optional[Tuple[float, float]]
    upper: Optional[Tuple[float, float]]


def lookup(tenor_years: float, curve: BenchmarkCurve, settings: Optional[EngineSettings] = None) -> CurveLookup:
    """
    Curve yield (percent) at a tenor, with the points used.

    - within exact_tenor_tolerance of a quoted tenor: that point's yield
    - between two points: linear interpolation
    - outside the range: flat at the nearest endpoint
    """
    settings = settings or get_settings()
    if curve is None or len(curve) == 0:
        raise CurveError("Benchmark curve has no points.")

    tenors = curve.tenors
    yields = curve.yields
    t = float(tenor_years)

    gaps = np.abs(tenors - t)
    i = int(np.argmin(gaps))
    if gaps[i] <= settings.exact_tenor_tolerance:
        pt = curve.points[i]
        return CurveLookup(pt[1], "exact", pt, pt)

    if t < tenors[0]:
        pt = curve.points[0]
        return CurveLookup(pt[1], "extrapolated", None, pt)
    if t > tenors[-1]:
        pt = curve.points[-1]
        return CurveLookup(pt[1], "extrapolated", pt, None)

    hi = int(np.searchsorted(tenors, t, side="right"))
    lo = hi - 1
    value = float(np.interp(t, tenors[lo:hi + 1], yields[lo:hi + 1]))
    return CurveLookup(value, "interpolated", curve.points[lo], curve.points[hi])


def yield_at(tenor_years: float, curve: BenchmarkCurve, settings: Optional[EngineSettings] = None) -> float:
    """Benchmark yield in percent at ``tenor_years``."""
    return lookup(tenor_years, curve, settings).yield_percent


def parse_tenor(label) -> Optional[float]:
    """
    "1M" -> 1/12, "6M" -> 0.5, "2Y" -> 2.0, "10" -> 10.0.
    Returns None for anything unparseable or non-positive.
    """
    if isinstance(label, (int, float)) and not isinstance(label, bool):
        value = float(label)
        return value if math.isfinite(value) and value > 0 else None

    m = _TENOR_RE.match(str(label))
    if m is None:
        return None
    years = float(m.group(1)) * _UNIT_YEARS[m.group(2).upper()]
    return years if years > 0 else None


def curve_from_tenors(as_of_date, quotes: Mapping) -> BenchmarkCurve:
    """Build a curve from {tenor label: yield percent}, dropping bad entries."""
    points = []
    for label, value in quotes.items():
        tenor = parse_tenor(label)
        try:
            y = float(value)
        except (TypeError, ValueError):
            y = float("nan")
        if tenor is None or not math.isfinite(y):
            logger.debug("Dropping curve point %r=%r", label, value)
            continue
        points.append((tenor, y))
    return BenchmarkCurve(as_of_date, tuple(points))


def shifted_curve(curve: BenchmarkCurve, shift_bp: float) -> BenchmarkCurve:
    """Parallel shift of every point by shift_bp basis points."""
    shift_pct = shift_bp / 100.0
    return BenchmarkCurve(curve.as_of_date, tuple((t, y + shift_pct) for t, y in curve.points))


def curve_qc_report(curve: BenchmarkCurve, reference_date=None, stale_after_days: int = 7) -> pd.DataFrame:
    """One row per point with sanity flags; staleness is measured against reference_date (default: today)."""
    ref = to_timestamp(reference_date) if reference_date is not None else pd.Timestamp.today().normalize()
    age = days_between(curve.as_of_date, ref)

    tenors = curve.tenors
    yields = curve.yields
    return pd.DataFrame(
        {
            "tenor": tenors,
            "yield_pct": yields,
            "negative": yields < 0.0,
            "above_20pct": yields > 20.0,
            "tenor_increasing": np.r_[True, np.diff(tenors) > 0] if len(tenors) else np.array([], dtype=bool),
            "stale": np.full(len(tenors), age > stale_after_days, dtype=bool),
        }
    )
