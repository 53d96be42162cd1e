"""
Bond Analytics Engine

Modules:
- curves: benchmark yield curve + interpolation
- bonds: cash-flow schedule objects + present value / accrued interest
- solver: yield solver (Newton-Raphson -> Brent -> bisection)
- risk: durations, convexity, DV01, average life, current yield
- spreads: nominal spread and Z-spread over the benchmark curve
- engine: compute_from_price / compute_from_yield / analyze
- scenarios: price grids, yield shocks and curve-shift runs
- config: settings + logging setup
- errors: exception taxonomy
- utils: day count + date helpers
"""
