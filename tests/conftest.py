import pandas as pd
import pytest

from bond_analytics.bonds import BondForAnalytics, CashFlow
from bond_analytics.config import EngineSettings
from bond_analytics.curves import BenchmarkCurve


def bullet_bond(
    face=100.0,
    coupon_rate=0.05,
    freq=2,
    first_coupon="2025-07-15",
    n_coupons=10,
    day_count="30/360",
    issue_date="2025-01-15",
):
    """Fixed coupon bullet: n_coupons regular coupons, principal with the last."""
    months = 12 // freq
    coupon = face * coupon_rate / freq
    start = pd.Timestamp(first_coupon)
    flows = []
    for k in range(n_coupons):
        d = start + pd.DateOffset(months=months * k)
        last = k == n_coupons - 1
        principal = face if last else 0.0
        flows.append(
            CashFlow(
                date=d,
                coupon_amount=coupon,
                principal_amount=principal,
                total_amount=coupon + principal,
                remaining_principal=0.0 if last else face,
            )
        )
    return BondForAnalytics(
        face_value=face,
        issue_date=issue_date,
        maturity_date=flows[-1].date,
        settlement_lag_days=2,
        day_count_convention=day_count,
        cash_flows=tuple(flows),
    )


def amortizing_bond():
    """
    1000 face, 5% semiannual on outstanding, 22 equal installments from
    2027-07-09 to 2038-01-09. Includes the 2025-01-09 coupon so accrual has a
    period start.
    """
    face = 1000.0
    dates = [pd.Timestamp("2025-01-09") + pd.DateOffset(months=6 * k) for k in range(27)]
    first_amort = pd.Timestamp("2027-07-09")
    installment = face / 22.0

    outstanding = face
    flows = []
    for d in dates:
        coupon = outstanding * 0.025
        principal = installment if d >= first_amort else 0.0
        outstanding = max(outstanding - principal, 0.0)
        flows.append(
            CashFlow(
                date=d,
                coupon_amount=coupon,
                principal_amount=principal,
                total_amount=coupon + principal,
                remaining_principal=outstanding,
            )
        )
    return BondForAnalytics(
        face_value=face,
        issue_date="2020-09-04",
        maturity_date="2038-01-09",
        settlement_lag_days=2,
        day_count_convention="30/360",
        cash_flows=tuple(flows),
    )


@pytest.fixture(scope="module")
def settings():
    return EngineSettings(max_workers=1)


@pytest.fixture(scope="module")
def make_bullet():
    return bullet_bond


@pytest.fixture(scope="module")
def amortizer():
    return amortizing_bond()


@pytest.fixture(scope="module")
def benchmark_curve():
    return BenchmarkCurve(
        as_of_date="2025-06-09",
        points=(
            (0.083, 4.50), (0.25, 4.55), (0.5, 4.60), (1.0, 4.50), (2.0, 4.40), (3.0, 4.30),
            (5.0, 4.20), (7.0, 4.10), (10.0, 4.28), (20.0, 4.20), (30.0, 4.30),
        ),
    )
