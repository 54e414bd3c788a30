"""
Shipment cost and insurance calculation.

Pure arithmetic over a resolved PricingConfig. All money is Decimal and
every emitted field is rounded to paise independently; the total is the sum
of the rounded line items so displayed rows always add up to the displayed
total.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple, Union

from shipflow.services.pricing_resolver import PricingConfig

logger = logging.getLogger(__name__)

Number = Union[int, float, str, Decimal]

PAISE = Decimal("0.01")
ZERO = Decimal("0")

# Free weight allowance per box
FREE_WEIGHT_PER_BOX_KG = Decimal("0.5")

# Insurance for high-value consignments
INSURANCE_THRESHOLD = Decimal("5000")
INSURANCE_RATE = Decimal("0.02")
GST_RATE = Decimal("0.18")  # 18% GST on the insurance premium


def to_decimal(value: Optional[Number]) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(PAISE, rounding=ROUND_HALF_UP)


def _fmt(amount: Decimal) -> str:
    return f"{amount:.2f}"


@dataclass(frozen=True)
class CostBreakdown:
    """Itemized, rounded courier cost for one shipment."""
    base_cost: Decimal
    weight_cost: Decimal
    surcharge_cost: Decimal
    express_cost: Decimal
    markup_cost: Decimal
    total_cost: Decimal
    pricing_source: str
    insurance_cost: Optional[Decimal] = None  # None when insurance was not requested
    min_charge_applied: bool = False
    applied_rules: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def zero(cls, pricing_source: str = "error") -> "CostBreakdown":
        """Empty breakdown used when a calculation could not run."""
        return cls(
            base_cost=ZERO,
            weight_cost=ZERO,
            surcharge_cost=ZERO,
            express_cost=ZERO,
            markup_cost=ZERO,
            total_cost=ZERO,
            pricing_source=pricing_source,
        )

    @property
    def line_item_total(self) -> Decimal:
        """Sum of line items before the minimum charge clamp."""
        return (
            self.base_cost
            + self.weight_cost
            + self.surcharge_cost
            + self.express_cost
            + self.markup_cost
            + (self.insurance_cost or ZERO)
        )

    def to_dict(self) -> dict:
        return {
            "base_cost": float(self.base_cost),
            "weight_cost": float(self.weight_cost),
            "surcharge_cost": float(self.surcharge_cost),
            "express_cost": float(self.express_cost),
            "markup_cost": float(self.markup_cost),
            "insurance_cost": float(self.insurance_cost) if self.insurance_cost is not None else None,
            "total_cost": float(self.total_cost),
            "min_charge_applied": self.min_charge_applied,
            "pricing_source": self.pricing_source,
            "applied_rules": list(self.applied_rules),
        }


@dataclass(frozen=True)
class InsuranceCalculation:
    """Insurance requirement and charges for a declared value."""
    required: bool
    insurance_cost: Decimal
    gst_amount: Decimal
    total_insurance_charge: Decimal
    declared_value: Decimal
    threshold_met: bool

    def to_dict(self) -> dict:
        return {
            "required": self.required,
            "insurance_cost": float(self.insurance_cost),
            "gst_amount": float(self.gst_amount),
            "total_insurance_charge": float(self.total_insurance_charge),
            "declared_value": float(self.declared_value),
            "threshold_met": self.threshold_met,
        }


def compute_cost(
    pricing: PricingConfig,
    num_boxes: int,
    total_weight_kg: Number,
    is_express: bool,
    is_remote_area: bool,
    declared_value: Optional[Number] = None,
    insurance_required: Optional[bool] = None,
) -> CostBreakdown:
    """
    Compute the itemized courier cost.

    Steps, in order:
        base      = base_rate_per_box x boxes
        weight    = max(0, weight - 0.5kg x boxes) x weight_rate_per_kg
        surcharge = location_surcharge x boxes (remote areas only)
        express   = subtotal x (express_multiplier - 1) (express only)
        markup    = markup_percent of the post-express subtotal
        insurance = 2% of declared value + 18% GST, when requested and value >= 5000
        total     = sum of rounded line items, raised to min_charge if below it
    """
    rules = []
    boxes = Decimal(int(num_boxes))
    weight = to_decimal(total_weight_kg)

    base_cost = pricing.base_rate_per_box * boxes
    rules.append(f"Base cost: ₹{_fmt(pricing.base_rate_per_box)} × {boxes} boxes = ₹{_fmt(base_cost)}")

    free_weight = FREE_WEIGHT_PER_BOX_KG * boxes
    excess_weight = max(ZERO, weight - free_weight)
    weight_cost = excess_weight * pricing.weight_rate_per_kg
    if excess_weight > 0:
        rules.append(
            f"Weight cost: {excess_weight:.2f}kg excess × ₹{_fmt(pricing.weight_rate_per_kg)}/kg "
            f"= ₹{_fmt(weight_cost)}"
        )
    else:
        rules.append(f"No weight charges (within {free_weight:.1f}kg free limit)")

    if is_remote_area:
        surcharge_cost = pricing.location_surcharge * boxes
        rules.append(
            f"Remote area surcharge: ₹{_fmt(pricing.location_surcharge)} × {boxes} boxes "
            f"= ₹{_fmt(surcharge_cost)}"
        )
    else:
        surcharge_cost = ZERO
        rules.append("No location surcharge")

    subtotal = base_cost + weight_cost + surcharge_cost
    if is_express:
        express_cost = subtotal * (pricing.express_multiplier - 1)
        subtotal += express_cost
        rules.append(
            f"Express service: {pricing.express_multiplier}x multiplier (+₹{_fmt(express_cost)})"
        )
    else:
        express_cost = ZERO
        rules.append("Standard service: no additional charges")

    markup_cost = subtotal * pricing.markup_percent / 100
    rules.append(
        f"Platform markup: {pricing.markup_percent}% of ₹{_fmt(subtotal)} = ₹{_fmt(markup_cost)}"
    )

    insurance_cost: Optional[Decimal] = None
    if insurance_required:
        value = to_decimal(declared_value)
        if declared_value is not None and value >= INSURANCE_THRESHOLD:
            insurance_cost = value * INSURANCE_RATE * (1 + GST_RATE)
            rules.append(f"Insurance: 2% of ₹{_fmt(value)} + 18% GST = ₹{_fmt(insurance_cost)}")
        else:
            insurance_cost = ZERO
            rules.append(f"Insurance not applicable (value < ₹{INSURANCE_THRESHOLD:,.0f})")

    base_cost = round_money(base_cost)
    weight_cost = round_money(weight_cost)
    surcharge_cost = round_money(surcharge_cost)
    express_cost = round_money(express_cost)
    markup_cost = round_money(markup_cost)
    if insurance_cost is not None:
        insurance_cost = round_money(insurance_cost)

    total_cost = (
        base_cost + weight_cost + surcharge_cost + express_cost + markup_cost
        + (insurance_cost or ZERO)
    )

    min_charge = round_money(pricing.min_charge)
    min_charge_applied = total_cost < min_charge
    if min_charge_applied:
        rules.append(f"Minimum charge applied: ₹{_fmt(min_charge)} (was ₹{_fmt(total_cost)})")
        total_cost = min_charge

    return CostBreakdown(
        base_cost=base_cost,
        weight_cost=weight_cost,
        surcharge_cost=surcharge_cost,
        express_cost=express_cost,
        markup_cost=markup_cost,
        insurance_cost=insurance_cost,
        total_cost=total_cost,
        pricing_source=pricing.source.value,
        min_charge_applied=min_charge_applied,
        applied_rules=tuple(rules),
    )


def compute_insurance(declared_value: Number) -> InsuranceCalculation:
    """Insurance is required at or above ₹5,000 declared value: 2% premium plus 18% GST."""
    value = to_decimal(declared_value)

    if value < INSURANCE_THRESHOLD:
        return InsuranceCalculation(
            required=False,
            insurance_cost=ZERO,
            gst_amount=ZERO,
            total_insurance_charge=ZERO,
            declared_value=value,
            threshold_met=False,
        )

    insurance_cost = value * INSURANCE_RATE
    gst_amount = insurance_cost * GST_RATE

    return InsuranceCalculation(
        required=True,
        insurance_cost=round_money(insurance_cost),
        gst_amount=round_money(gst_amount),
        total_insurance_charge=round_money(insurance_cost + gst_amount),
        declared_value=value,
        threshold_met=True,
    )
