"""
Engine configuration.

Numerical constants for the solver, risk and spread routines live in a single
frozen ``EngineSettings``. ``get_settings()`` builds it once from environment
variables prefixed with ``BOND_ANALYTICS_``; anything unset or malformed keeps
its default.

Environment Variables
---------------------
BOND_ANALYTICS_TOLERANCE : float
    Absolute price residual accepted by the yield solver (default 1e-10).
BOND_ANALYTICS_MAX_ITERATIONS : int
    Iteration budget per root-finding attempt (default 100).
BOND_ANALYTICS_Z_SPREAD_ITERATIONS : int
    Fixed number of Z-spread bisection steps (default 50).
BOND_ANALYTICS_MAX_WORKERS : int
    Upper bound on scenario worker processes (default: CPU count).
BOND_ANALYTICS_LOG_LEVEL : str
    Logging level used by ``configure_logging`` (default INFO).
BOND_ANALYTICS_LOG_FORMAT : str
    Logging format used by ``configure_logging``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional, Tuple

_ENV_PREFIX = "BOND_ANALYTICS_"

BRACKET_CANDIDATES: Tuple[float, ...] = (-0.99, -0.5, -0.2, 0.0, 0.05, 0.1, 0.2, 0.5, 1.0, 2.0, 5.0, 10.0)


def _get_env(key: str, default: Any, value_type: type = str) -> Any:
    raw = os.environ.get(_ENV_PREFIX + key.upper())
    if raw is None:
        return default
    try:
        return value_type(raw)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class EngineSettings:
    # yield solver
    tolerance: float = 1e-10
    max_iterations: int = 100
    newton_bounds: Tuple[float, float] = (-0.5, 10.0)
    guess_bounds: Tuple[float, float] = (-0.5, 0.5)
    derivative_floor: float = 1e-10
    newton_damping: float = 0.5
    default_bracket: Tuple[float, float] = (-0.5, 10.0)
    bracket_candidates: Tuple[float, ...] = BRACKET_CANDIDATES

    # risk
    bp_shock: float = 0.0001
    days_per_year: float = 365.25

    # curve / spreads
    exact_tenor_tolerance: float = 0.01
    z_spread_bounds: Tuple[float, float] = (-0.05, 0.20)
    z_spread_iterations: int = 50
    z_spread_price_tolerance: float = 0.01

    # batch
    max_workers: Optional[int] = None

    # logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def from_env(cls) -> "EngineSettings":
        base = cls()
        return cls(
            tolerance=_get_env("TOLERANCE", base.tolerance, float),
            max_iterations=_get_env("MAX_ITERATIONS", base.max_iterations, int),
            z_spread_iterations=_get_env("Z_SPREAD_ITERATIONS", base.z_spread_iterations, int),
            max_workers=_get_env("MAX_WORKERS", base.max_workers, int),
            log_level=_get_env("LOG_LEVEL", base.log_level, str),
            log_format=_get_env("LOG_FORMAT", base.log_format, str),
        )

    @property
    def log_level_int(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)

    def worker_count(self) -> int:
        """Scenario pool size: ``max_workers`` if set, else the CPU count."""
        cpus = os.cpu_count() or 1
        if self.max_workers is None or self.max_workers <= 0:
            return cpus
        return min(self.max_workers, cpus)


@lru_cache()
def get_settings() -> EngineSettings:
    """Cached settings instance built from the environment."""
    return EngineSettings.from_env()


def configure_logging(settings: Optional[EngineSettings] = None) -> None:
    """Attach a root handler using the configured level and format."""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level_int, format=settings.log_format)
