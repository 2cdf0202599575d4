"""Tests for derived job financials"""
import pytest

from phoneshop.models.schemas import JobPart
from phoneshop.services.financials import (
    calc_profit,
    calc_shop_profit,
    calc_tech_commission,
    compute_derived,
    derive_total_part_cost,
    sum_part_costs,
    to_number,
)


class TestComputeDerived:
    def test_loss_gives_zero_commission(self):
        """
        Part cost $100, charged $80, 50% tech rate
        Expected: profit -20, commission 0, shop absorbs the whole loss
        """
        result = compute_derived(100, 80, 0.5)

        assert result.profit == -20
        assert result.tech_commission == 0
        assert result.shop_profit == -20

    def test_profitable_job(self):
        result = compute_derived(50, 200, 0.3)

        assert result.profit == 150
        assert result.tech_commission == pytest.approx(45)
        assert result.shop_profit == pytest.approx(105)

    def test_missing_percent_means_no_commission(self):
        result = compute_derived(10, 110)

        assert result.profit == 100
        assert result.tech_commission == 0
        assert result.shop_profit == 100

    def test_garbage_inputs_count_as_zero(self):
        result = compute_derived(None, "abc", float("nan"))

        assert result.to_record() == {"profit": 0, "tech_commission": 0, "shop_profit": 0}

    def test_string_numbers_are_coerced(self):
        result = compute_derived("25.5", "100", "0.5")

        assert result.profit == pytest.approx(74.5)
        assert result.tech_commission == pytest.approx(37.25)

    def test_shop_profit_is_profit_minus_commission(self):
        for part_cost, charged, percent in [(0, 0, 0), (30, 45.5, 0.25), (99, 10, 1), (5, 5, 0.7)]:
            result = compute_derived(part_cost, charged, percent)
            assert result.tech_commission >= 0
            assert result.shop_profit == pytest.approx(result.profit - result.tech_commission)

    def test_no_rounding(self):
        result = compute_derived(0, 10, 1 / 3)
        assert result.tech_commission == pytest.approx(10 / 3)
        assert result.tech_commission != round(result.tech_commission, 2)


class TestToNumber:
    def test_values(self):
        assert to_number(3) == 3.0
        assert to_number(" 4.5 ") == 4.5
        assert to_number("") == 0.0
        assert to_number(None) == 0.0
        assert to_number([1]) == 0.0
        assert to_number("12abc") == 0.0


class TestTotalPartCost:
    def test_parts_win_over_legacy_fields(self):
        data = {
            "parts": [{"part_cost": 20}, {"part_cost": "30"}],
            "total_part_cost": 999,
            "part_cost": 5,
        }
        assert derive_total_part_cost(data) == 50

    def test_empty_parts_fall_through_to_total(self):
        assert derive_total_part_cost({"parts": [], "total_part_cost": 12}) == 12

    def test_legacy_part_cost(self):
        assert derive_total_part_cost({"part_cost": 7.5}) == 7.5

    def test_nothing_gives_zero(self):
        assert derive_total_part_cost({}) == 0

    def test_changes_checked_before_current(self):
        current = {"parts": [{"part_cost": 40}]}
        assert derive_total_part_cost({"part_cost": 15}, current) == 15

    def test_current_used_when_changes_have_no_cost(self):
        current = {"parts": [{"part_cost": 40}, {"part_cost": 2}]}
        assert derive_total_part_cost({"amount_charged": 100}, current) == 42

    def test_sum_accepts_models(self):
        parts = [JobPart(part_name="Screen", part_cost=80), {"part_cost": 20}]
        assert sum_part_costs(parts) == 100


class TestLegacyHelpers:
    def test_calc_profit_floors_at_zero(self):
        assert calc_profit(100, 80) == 0
        assert calc_profit(33.333, 100) == 66.67

    def test_commission_and_shop_profit_round(self):
        commission = calc_tech_commission(66.67, 0.3333)
        assert commission == 22.22
        assert calc_shop_profit(66.67, commission) == 44.45
