"""
Unit tests for subscription lifecycle arithmetic.

Covers token carryover, effective limits and billing period boundaries.
"""

from datetime import datetime, timezone

import pytest

from app.domain.subscription import (
    BillingCycle,
    EntitlementSnapshot,
    add_months,
    compute_period_end,
    compute_token_carryover,
    effective_token_limit,
    should_reset_period,
)


class TestTokenCarryover:
    """Unused budget is added on top of the new tier's limit."""

    def test_partial_usage_carries_over(self):
        assert compute_token_carryover(1000, 400, 2000) == 2600

    def test_fully_used_budget_gives_no_override(self):
        assert compute_token_carryover(1000, 1000, 2000) is None

    def test_overused_budget_never_reduces_new_limit(self):
        assert compute_token_carryover(1000, 1500, 2000) is None

    def test_no_previous_subscription(self):
        assert compute_token_carryover(None, None, 2000) is None

    def test_unlimited_old_tier(self):
        assert compute_token_carryover(None, 400, 2000) is None

    def test_unlimited_new_tier(self):
        assert compute_token_carryover(1000, 400, None) is None

    def test_missing_usage_counts_as_zero(self):
        assert compute_token_carryover(1000, None, 500) == 1500


class TestEffectiveLimit:

    def test_override_wins(self):
        assert effective_token_limit(2600, 2000) == 2600

    def test_falls_back_to_tier(self):
        assert effective_token_limit(None, 2000) == 2000

    def test_unlimited(self):
        assert effective_token_limit(None, None) is None


class TestPeriods:
    """Billing period boundaries."""

    START = datetime(2026, 1, 31, 12, 0, tzinfo=timezone.utc)

    def test_daily(self):
        assert compute_period_end(BillingCycle.DAILY, self.START) == datetime(
            2026, 2, 1, 12, 0, tzinfo=timezone.utc
        )

    def test_monthly_clamps_to_month_end(self):
        assert compute_period_end(BillingCycle.MONTHLY, self.START) == datetime(
            2026, 2, 28, 12, 0, tzinfo=timezone.utc
        )

    def test_yearly(self):
        assert compute_period_end(BillingCycle.YEARLY, self.START) == datetime(
            2027, 1, 31, 12, 0, tzinfo=timezone.utc
        )

    def test_lifetime_never_ends(self):
        assert compute_period_end(BillingCycle.LIFETIME, self.START) is None

    def test_add_months_crosses_year(self):
        assert add_months(datetime(2026, 11, 15), 3) == datetime(2027, 2, 15)

    def test_add_months_leap_year(self):
        assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)

    @pytest.mark.parametrize("cycle,recurring,expected", [
        (BillingCycle.MONTHLY, True, True),
        (BillingCycle.MONTHLY, False, False),
        (BillingCycle.YEARLY, True, True),
        (BillingCycle.DAILY, True, True),
        (BillingCycle.LIFETIME, True, False),
    ])
    def test_should_reset_period(self, cycle, recurring, expected):
        assert should_reset_period(cycle, recurring) is expected


class TestEntitlementSnapshot:

    def test_defaults_are_zero(self):
        snapshot = EntitlementSnapshot(user_id="u1")
        assert snapshot.tier is None
        assert snapshot.token_limit_effective == 0
        assert snapshot.tokens_used == 0
        assert snapshot.tokens_remaining == 0
        assert snapshot.selected_subjects == []
