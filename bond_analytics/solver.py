from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.optimize import brentq

from .bonds import CashFlow, flow_arrays, pv_and_duration
from .config import EngineSettings, get_settings
from .errors import InvalidInput, NoFutureCashFlows, NonConvergenceWarning, UnboundedRoot
from .utils import to_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class YieldObjective:
    """
    f(y) = PV(y) - target over a fixed set of future flows.

    Times and amounts are precomputed once so every evaluation is a single
    vectorised discount.
    """
    times: np.ndarray
    amounts: np.ndarray
    target: float

    @classmethod
    def from_cash_flows(
        cls,
        cash_flows: Sequence[CashFlow],
        settle,
        target_price: float,
        settings: Optional[EngineSettings] = None,
    ) -> "YieldObjective":
        settle = to_timestamp(settle)
        future = [cf for cf in cash_flows if cf.date > settle]
        if not future:
            raise NoFutureCashFlows(f"No cash flows after settlement {settle.date()}.")
        if not (target_price > 0) or not math.isfinite(target_price):
            raise InvalidInput(f"Target price must be positive: {target_price!r}")
        times, amounts = flow_arrays(future, settle, settings)
        return cls(times=times, amounts=amounts, target=float(target_price))

    def pv(self, y: float) -> float:
        return float(np.dot(self.amounts, (1.0 + y) ** (-self.times)))

    def __call__(self, y: float) -> float:
        return self.pv(y) - self.target


@dataclass(frozen=True)
class Converged:
    yield_decimal: float
    iterations: int
    residual: float
    tolerance_met: bool = True


@dataclass(frozen=True)
class Failed:
    reason: str


SolverOutcome = Union[Converged, Failed]


def initial_guess(objective: YieldObjective, settings: Optional[EngineSettings] = None) -> float:
    """
    (total cash / price) ** (1 / t_avg) - 1, clamped to guess_bounds, where
    t_avg is the cash-weighted average time sum(amount * t) / sum(amount).
    """
    settings = settings or get_settings()
    lo, hi = settings.guess_bounds

    total = float(np.sum(objective.amounts))
    if total <= 0:
        return 0.0
    avg_time = float(np.dot(objective.amounts, objective.times)) / total
    if avg_time <= 0:
        return 0.0

    guess = (total / objective.target) ** (1.0 / avg_time) - 1.0
    if not math.isfinite(guess):
        return 0.0
    return min(max(guess, lo), hi)


def find_bracket(objective: Callable[[float], float], settings: Optional[EngineSettings] = None) -> Optional[Tuple[float, float]]:
    """
    Default bracket first, then adjacent pairs of the candidate yields.
    Returns None when no sign change is found.
    """
    settings = settings or get_settings()

    a, b = settings.default_bracket
    if objective(a) * objective(b) <= 0:
        return a, b

    candidates = settings.bracket_candidates
    values = [objective(y) for y in candidates]
    for (y1, f1), (y2, f2) in zip(zip(candidates, values), zip(candidates[1:], values[1:])):
        if math.isfinite(f1) and math.isfinite(f2) and f1 * f2 <= 0:
            return y1, y2
    return None


def newton_raphson(objective: YieldObjective, settings: Optional[EngineSettings] = None) -> SolverOutcome:
    """
    Newton steps with the duration-based derivative dPV/dy ~ -D * PV.
    Each step is capped at newton_damping * |y| and y is clamped to newton_bounds.
    """
    settings = settings or get_settings()
    lo, hi = settings.newton_bounds

    y = initial_guess(objective, settings)
    for i in range(1, settings.max_iterations + 1):
        pv, duration = pv_and_duration(objective.times, objective.amounts, y)
        error = pv - objective.target
        if abs(error) < settings.tolerance:
            return Converged(y, i, abs(error))

        derivative = -duration * pv
        if not math.isfinite(derivative) or abs(derivative) < settings.derivative_floor:
            return Failed(f"derivative vanished at y={y:.6g}")

        step = error / derivative
        cap = abs(y) * settings.newton_damping
        if abs(step) > cap:
            step = math.copysign(cap, step)

        y = min(max(y - step, lo), hi)

    return Failed(f"no convergence in {settings.max_iterations} iterations")


def brent(objective: YieldObjective, settings: Optional[EngineSettings] = None) -> SolverOutcome:
    """scipy's Brent root finder on the first bracket found."""
    settings = settings or get_settings()

    bracket = find_bracket(objective, settings)
    if bracket is None:
        return Failed("no bracket")
    a, b = bracket
    logger.debug("Brent bracket [%g, %g]", a, b)

    try:
        root, info = brentq(
            objective, a, b,
            xtol=settings.tolerance,
            maxiter=settings.max_iterations,
            full_output=True,
            disp=False,
        )
    except (ValueError, RuntimeError) as exc:
        return Failed(f"brentq: {exc}")

    if not info.converged:
        return Failed(f"brentq: {info.flag}")

    return Converged(float(root), int(info.iterations), abs(objective(root)))


def bisection(
    objective: YieldObjective,
    settings: Optional[EngineSettings] = None,
    bracket: Optional[Tuple[float, float]] = None,
) -> SolverOutcome:
    """
    Guaranteed fallback. Halves the bracket up to max_iterations times and
    returns the last midpoint; tolerance_met is False when the residual
    never dropped below tolerance.
    """
    settings = settings or get_settings()

    if bracket is None:
        bracket = find_bracket(objective, settings)
    if bracket is None:
        return Failed("no bracket")

    a, b = bracket
    fa, fb = objective(a), objective(b)
    if abs(fa) < settings.tolerance:
        return Converged(a, 0, abs(fa))
    if abs(fb) < settings.tolerance:
        return Converged(b, 0, abs(fb))

    mid, f_mid = a, fa
    iterations = 0
    for iterations in range(1, settings.max_iterations + 1):
        new_mid = 0.5 * (a + b)
        if new_mid in (a, b):
            # bracket collapsed to adjacent floats
            break
        mid = new_mid
        f_mid = objective(mid)
        if abs(f_mid) < settings.tolerance:
            return Converged(mid, iterations, abs(f_mid))
        if fa * f_mid < 0:
            b = mid
        else:
            a, fa = mid, f_mid

    return Converged(mid, iterations, abs(f_mid), tolerance_met=False)


ALGORITHMS = (
    ("Newton-Raphson", newton_raphson),
    ("Brent", brent),
    ("Bisection", bisection),
)


def solve_yield(
    cash_flows: Sequence[CashFlow],
    target_price: float,
    settle,
    settings: Optional[EngineSettings] = None,
) -> Tuple[str, Converged]:
    """
    Yield reproducing ``target_price`` (dirty) from the future flows.

    Tries Newton-Raphson, then Brent, then bisection. Returns
    (algorithm name, Converged). Raises UnboundedRoot when no algorithm
    finds a root; warns with NonConvergenceWarning when bisection returns
    its best midpoint without meeting tolerance.
    """
    settings = settings or get_settings()
    objective = YieldObjective.from_cash_flows(cash_flows, settle, target_price, settings)

    for name, algorithm in ALGORITHMS:
        logger.debug("Trying %s for target %.6f", name, objective.target)
        outcome = algorithm(objective, settings)
        if isinstance(outcome, Failed):
            logger.warning("%s failed: %s", name, outcome.reason)
            continue

        logger.debug("%s converged: y=%.10f in %d iterations", name, outcome.yield_decimal, outcome.iterations)
        if not outcome.tolerance_met:
            msg = (
                f"{name} stopped after {outcome.iterations} iterations with residual "
                f"{outcome.residual:.3e}; returning best estimate {outcome.yield_decimal:.8f}"
            )
            logger.warning(msg)
            warnings.warn(msg, NonConvergenceWarning, stacklevel=2)
        return name, outcome

    raise UnboundedRoot(f"No yield reproduces price {objective.target:.6f}; objective has no sign change.")
