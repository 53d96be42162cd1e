import numpy as np
import pandas as pd
import pytest

from bond_analytics.bonds import BondForAnalytics, CashFlow
from bond_analytics.engine import MarketInput, analyze, compute_from_price, compute_from_yield
from bond_analytics.errors import EngineError, InvalidInput, NoFutureCashFlows

REF_SETTLE = "2025-06-09"


@pytest.fixture(scope="module")
def reference(amortizer, benchmark_curve):
    # 722.50 is read as a clean quote here, not dirty, so accrued is added on top
    return compute_from_price(amortizer, REF_SETTLE, clean_price=722.50, curve=benchmark_curve)


def test_reference_quote_read_as_clean(reference):
    assert abs(reference.accrued_interest - 25.0 * 150 / 180) < 1e-9
    assert abs(reference.dirty_price - (722.50 + 25.0 * 150 / 180)) < 1e-9
    assert reference.solver_info.converged


def test_reference_yield_and_duration(reference):
    assert abs(reference.yield_to_maturity - 0.1088) < 0.005
    assert abs(reference.modified_duration - 5.0) < 0.3
    assert reference.macaulay_duration > reference.modified_duration


def test_reference_spreads(reference):
    assert abs(reference.nominal_spread_bp - 660.0) < 100.0
    assert abs(reference.z_spread_bp - 660.0) < 100.0
    assert reference.benchmark_lookup.method == "interpolated"
    assert reference.benchmark_lookup.lower == (7.0, 4.10)


def test_reference_schedule_fields(reference):
    assert reference.days_to_next_cash_flow == 30
    assert reference.next_cash_flow_date == pd.Timestamp("2025-07-09")
    assert abs(reference.next_cash_flow_amount - 25.0) < 1e-12
    assert reference.outstanding_principal == 1000.0
    assert abs(reference.parity - 0.7225) < 1e-12
    assert abs(reference.average_life - 7.33) < 0.01
    assert abs(reference.total_future_cash_flows - 1000.0 - reference.total_future_coupons) < 1e-9


def test_reference_dirty_quote_yields_more(amortizer, reference):
    # the same number read as a dirty price is a cheaper bond
    as_dirty = compute_from_price(amortizer, REF_SETTLE, dirty_price=722.50)
    assert as_dirty.yield_to_maturity > reference.yield_to_maturity
    assert as_dirty.nominal_spread_bp is None and as_dirty.z_spread_bp is None


_rng = np.random.default_rng(7)
_ROUND_TRIP = [
    (float(_rng.uniform(-0.02, 0.30)), float(_rng.uniform(0.0, 0.12)), int(_rng.integers(2, 40)))
    for _ in range(20)
]


@pytest.mark.parametrize("y,coupon_rate,n_coupons", _ROUND_TRIP)
def test_round_trip_yield_price_yield(make_bullet, y, coupon_rate, n_coupons):
    bond = make_bullet(coupon_rate=coupon_rate, n_coupons=n_coupons)
    px = compute_from_yield(bond, y, "2025-09-30")
    res = compute_from_price(bond, "2025-09-30", dirty_price=px.dirty_price)
    assert abs(res.yield_to_maturity - y) < 1e-6
    assert abs(res.clean_price - px.clean_price) < 1e-9


def test_round_trip_amortizer(amortizer):
    px = compute_from_yield(amortizer, 0.0925, REF_SETTLE)
    res = compute_from_price(amortizer, REF_SETTLE, clean_price=px.clean_price)
    assert abs(res.yield_to_maturity - 0.0925) < 1e-6


def test_price_strictly_decreasing_in_yield(amortizer):
    ys = np.sort(np.random.default_rng(11).uniform(-0.2, 2.0, size=30))
    prices = [compute_from_yield(amortizer, y, REF_SETTLE).dirty_price for y in ys]
    assert all(np.diff(prices) < 0)


def test_par_bond_prices_at_face(make_bullet):
    bond = make_bullet(coupon_rate=0.05, freq=1, first_coupon="2026-01-15", n_coupons=5)
    px = compute_from_yield(bond, 0.05, "2025-01-15")
    assert px.accrued_interest == 0.0
    assert abs(px.clean_price - 100.0) < 0.05

    res = compute_from_price(bond, "2025-01-15", clean_price=100.0)
    assert abs(res.yield_to_maturity - 0.05) < 1e-4


def test_duration_ordering(reference, make_bullet):
    assert reference.modified_duration <= reference.macaulay_duration
    res = compute_from_price(make_bullet(n_coupons=20), "2025-09-30", clean_price=97.0)
    assert res.modified_duration <= res.macaulay_duration
    assert res.convexity >= 0

    # on a coupon date there is no accrued, so effective and modified agree
    res = compute_from_price(make_bullet(n_coupons=20), "2026-01-15", clean_price=97.0)
    assert res.accrued_interest == 0.0
    assert abs(res.effective_duration - res.modified_duration) / res.modified_duration < 1e-4


def test_analyze_from_yield_uses_direct_pv(amortizer, benchmark_curve):
    market = MarketInput(REF_SETTLE, yield_decimal=0.1117, benchmark_curve=benchmark_curve)
    res = analyze(amortizer, market)
    assert res.solver_info.algorithm == "Direct PV"
    assert res.solver_info.iterations == 0 and res.solver_info.residual == 0.0
    assert res.z_spread_bp is not None
    assert res.yield_to_maturity == 0.1117


def test_analyze_from_price_matches_compute_from_price(amortizer, reference, benchmark_curve):
    res = analyze(amortizer, MarketInput(REF_SETTLE, clean_price=722.50, benchmark_curve=benchmark_curve))
    assert abs(res.yield_to_maturity - reference.yield_to_maturity) < 1e-12


def test_to_dict_is_plain(reference):
    d = reference.to_dict()
    assert d["next_cash_flow_date"] == "2025-07-09"
    assert d["solver_info"]["algorithm"] == reference.solver_info.algorithm
    assert d["benchmark_lookup"]["method"] == "interpolated"
    assert d["warnings"] == []


@pytest.mark.parametrize(
    "kwargs",
    [
        {},
        {"clean_price": 99.0, "dirty_price": 100.0},
        {"clean_price": -5.0},
        {"dirty_price": 0.0},
        {"clean_price": float("nan")},
        {"dirty_price": 1.0},  # below accrued interest
    ],
    ids=["none", "both", "negative", "zero", "nan", "dirty_below_accrued"],
)
def test_compute_from_price_invalid_input(make_bullet, kwargs):
    with pytest.raises(InvalidInput):
        compute_from_price(make_bullet(), "2025-12-30", **kwargs)


def test_settlement_after_last_flow(make_bullet):
    bond = make_bullet()
    with pytest.raises(NoFutureCashFlows):
        compute_from_price(bond, "2030-01-15", clean_price=100.0)
    with pytest.raises(NoFutureCashFlows):
        compute_from_yield(bond, 0.05, "2031-01-01")


def test_empty_schedule_is_invalid():
    bond = BondForAnalytics(100.0, "2025-01-01", "2030-01-01", cash_flows=())
    with pytest.raises(InvalidInput):
        compute_from_yield(bond, 0.05, "2025-06-01")


def test_market_input_requires_exactly_one_quote():
    with pytest.raises(InvalidInput):
        MarketInput("2025-06-09", clean_price=99.0, yield_decimal=0.05)
    with pytest.raises(InvalidInput):
        MarketInput("2025-06-09")


def test_engine_errors_are_value_errors(make_bullet):
    with pytest.raises(ValueError):
        compute_from_price(make_bullet(), "2031-01-01", clean_price=100.0)
    assert issubclass(NoFutureCashFlows, EngineError)


def test_zero_coupon_bond():
    bond = BondForAnalytics(
        100.0, "2025-01-01", "2030-01-01", day_count_convention="ACT/365",
        cash_flows=(CashFlow("2030-01-01", 0.0, 100.0, 100.0, 0.0),),
    )
    res = compute_from_price(bond, "2025-01-01", clean_price=80.0)
    t = (pd.Timestamp("2030-01-01") - pd.Timestamp("2025-01-01")).days / 365.25
    assert abs(res.yield_to_maturity - ((100.0 / 80.0) ** (1 / t) - 1)) < 1e-9
    assert abs(res.macaulay_duration - t) < 1e-9
    assert res.current_yield == 0.0 and res.accrued_interest == 0.0
