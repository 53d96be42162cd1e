from __future__ import annotations


class EngineError(ValueError):
    """Base class for every terminal failure raised by the analytics engine."""


class InvalidInput(EngineError):
    """Malformed bond or market input; raised before any iteration."""


class NoFutureCashFlows(EngineError):
    """Settlement is on or after the final cash flow; nothing to discount."""


class UnboundedRoot(EngineError):
    """No sign change of the price objective across any candidate bracket."""


class CurveError(EngineError):
    """Benchmark curve cannot be used (e.g. it has no points)."""


class NonConvergenceWarning(UserWarning):
    """Bisection exhausted its budget; the returned yield is a best estimate."""
