"""
Unit tests for cost and insurance calculation.
"""
from decimal import Decimal

import pytest

from shipflow.models.shipment import ShipmentType
from shipflow.services.cost_calculator import CostBreakdown, compute_cost, compute_insurance
from shipflow.services.pricing_resolver import PricingConfig, PricingSource, default_pricing


@pytest.fixture
def forward_pricing() -> PricingConfig:
    return default_pricing(ShipmentType.FORWARD)


class TestComputeCost:

    def test_standard_forward_shipment(self, forward_pricing):
        result = compute_cost(forward_pricing, 2, 1.5, is_express=False, is_remote_area=False)

        assert result.base_cost == Decimal("100.00")
        assert result.weight_cost == Decimal("12.50")
        assert result.surcharge_cost == Decimal("0.00")
        assert result.express_cost == Decimal("0.00")
        # 15% of 112.50 = 16.875, rounded half up
        assert result.markup_cost == Decimal("16.88")
        assert result.total_cost == Decimal("129.38")
        assert result.insurance_cost is None
        assert result.min_charge_applied is False
        assert result.pricing_source == "global_config"

    def test_remote_area_adds_surcharge_per_box(self, forward_pricing):
        result = compute_cost(forward_pricing, 2, 1.5, is_express=False, is_remote_area=True)

        assert result.surcharge_cost == Decimal("50.00")
        assert result.markup_cost == Decimal("24.38")
        assert result.total_cost == Decimal("186.88")
        assert any(rule.startswith("Remote area surcharge") for rule in result.applied_rules)

    def test_express_is_an_explicit_line_item(self, forward_pricing):
        result = compute_cost(forward_pricing, 2, 1.5, is_express=True, is_remote_area=False)

        assert result.express_cost == Decimal("56.25")
        assert result.markup_cost == Decimal("25.31")
        assert result.total_cost == Decimal("194.06")

    def test_total_is_sum_of_rounded_line_items(self, forward_pricing):
        result = compute_cost(forward_pricing, 3, 2.345, is_express=True, is_remote_area=True)
        assert result.total_cost == result.line_item_total

    def test_weight_within_free_allowance(self, forward_pricing):
        result = compute_cost(forward_pricing, 4, 2.0, is_express=False, is_remote_area=False)

        assert result.weight_cost == Decimal("0.00")
        assert "No weight charges (within 2.0kg free limit)" in result.applied_rules

    def test_zero_boxes_hits_minimum_charge(self, forward_pricing):
        result = compute_cost(forward_pricing, 0, 0, is_express=False, is_remote_area=False)

        assert result.min_charge_applied is True
        assert result.total_cost == Decimal("75.00")
        assert result.applied_rules[-1].startswith("Minimum charge applied")

    def test_total_never_below_minimum_charge(self):
        pricing = PricingConfig.build(1, 0, 200, 0, 0, 1)
        result = compute_cost(pricing, 5, 0, is_express=True, is_remote_area=True)

        assert result.total_cost == Decimal("200.00")
        assert result.min_charge_applied is True

    def test_total_is_monotonic_in_boxes_and_weight(self, forward_pricing):
        previous = Decimal("0")
        for boxes in range(1, 6):
            for weight in ("0.5", "1.0", "3.25", "10"):
                total = compute_cost(forward_pricing, boxes, weight, False, False).total_cost
                assert total >= compute_cost(forward_pricing, boxes, "0", False, False).total_cost
            current = compute_cost(forward_pricing, boxes, "2", False, False).total_cost
            assert current >= previous
            previous = current

    def test_override_source_is_reported(self):
        pricing = PricingConfig.build(30, 20, 40, 5, 10, 1.25, source=PricingSource.BRAND_OVERRIDE)
        result = compute_cost(pricing, 1, 0.5, is_express=False, is_remote_area=False)

        assert result.pricing_source == "brand_override"
        assert result.total_cost == Decimal("40.00")

    def test_insurance_included_when_required_and_above_threshold(self, forward_pricing):
        result = compute_cost(
            forward_pricing, 2, 1.5, False, False,
            declared_value=10000, insurance_required=True,
        )

        assert result.insurance_cost == Decimal("236.00")
        assert result.total_cost == Decimal("365.38")

    def test_insurance_zero_when_required_but_below_threshold(self, forward_pricing):
        result = compute_cost(
            forward_pricing, 2, 1.5, False, False,
            declared_value=4999, insurance_required=True,
        )

        assert result.insurance_cost == Decimal("0.00")
        assert "Insurance not applicable (value < ₹5,000)" in result.applied_rules

    def test_insurance_absent_when_not_required(self, forward_pricing):
        result = compute_cost(
            forward_pricing, 2, 1.5, False, False,
            declared_value=10000, insurance_required=False,
        )
        assert result.insurance_cost is None

    def test_applied_rules_cover_each_step(self, forward_pricing):
        result = compute_cost(forward_pricing, 2, 1.5, is_express=False, is_remote_area=False)

        assert result.applied_rules[0] == "Base cost: ₹50.00 × 2 boxes = ₹100.00"
        assert "No location surcharge" in result.applied_rules
        assert "Standard service: no additional charges" in result.applied_rules
        assert any(rule.startswith("Platform markup") for rule in result.applied_rules)

    def test_to_dict_uses_floats(self, forward_pricing):
        data = compute_cost(forward_pricing, 2, 1.5, False, False).to_dict()

        assert data["total_cost"] == 129.38
        assert data["insurance_cost"] is None
        assert isinstance(data["applied_rules"], list)

    def test_zero_breakdown(self):
        zero = CostBreakdown.zero()
        assert zero.total_cost == Decimal("0")
        assert zero.pricing_source == "error"
        assert zero.applied_rules == ()


class TestComputeInsurance:

    def test_threshold_value_is_insured(self):
        result = compute_insurance(5000)

        assert result.required is True
        assert result.threshold_met is True
        assert result.insurance_cost == Decimal("100.00")
        assert result.gst_amount == Decimal("18.00")
        assert result.total_insurance_charge == Decimal("118.00")

    def test_below_threshold_is_zero(self):
        result = compute_insurance("4999.99")

        assert result.required is False
        assert result.insurance_cost == Decimal("0")
        assert result.gst_amount == Decimal("0")
        assert result.total_insurance_charge == Decimal("0")
        assert result.declared_value == Decimal("4999.99")

    def test_charges_are_rounded_to_paise(self):
        result = compute_insurance("12345.67")

        assert result.insurance_cost == Decimal("246.91")
        assert result.gst_amount == Decimal("44.44")
        assert result.total_insurance_charge == Decimal("291.36")
