"""
Bulk shipment cost aggregation and CSV export.
"""
import csv
import io
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Union

from shipflow.models.shipment import PayerRole
from shipflow.services.cost_calculator import CostBreakdown, ZERO, round_money

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Shipment ID",
    "Recipient Name",
    "Base Cost",
    "Weight Cost",
    "Surcharge Cost",
    "Markup Cost",
    "Insurance Cost",
    "Total Cost",
    "Payer",
]

PAYER_TOTAL_LABELS = {
    PayerRole.BRAND: "Brand Total",
    PayerRole.SERVICE_CENTER: "Service Center Total",
    PayerRole.DISTRIBUTOR: "Distributor Total",
    PayerRole.CUSTOMER: "Customer Total",
}


@dataclass(frozen=True)
class BulkShipmentInput:
    """One shipment to fold into a bulk summary."""
    shipment_id: str
    recipient_name: str
    breakdown: CostBreakdown
    payer: Union[PayerRole, str]


@dataclass(frozen=True)
class BulkCostRow:
    """Flattened cost breakdown of one shipment."""
    shipment_id: str
    recipient_name: str
    base_cost: Decimal
    weight_cost: Decimal
    surcharge_cost: Decimal
    markup_cost: Decimal
    insurance_cost: Decimal
    total_cost: Decimal
    payer: PayerRole

    def to_dict(self) -> dict:
        return {
            "shipment_id": self.shipment_id,
            "recipient_name": self.recipient_name,
            "base_cost": float(self.base_cost),
            "weight_cost": float(self.weight_cost),
            "surcharge_cost": float(self.surcharge_cost),
            "markup_cost": float(self.markup_cost),
            "insurance_cost": float(self.insurance_cost),
            "total_cost": float(self.total_cost),
            "payer": self.payer.value,
        }


@dataclass
class BulkCostSummary:
    """Per-shipment rows plus totals by payer."""
    shipments: List[BulkCostRow] = field(default_factory=list)
    cost_by_payer: Dict[PayerRole, Decimal] = field(default_factory=dict)
    grand_total: Decimal = ZERO

    @property
    def total_shipments(self) -> int:
        return len(self.shipments)

    def to_dict(self) -> dict:
        return {
            "shipments": [row.to_dict() for row in self.shipments],
            "cost_by_payer": {payer.value: float(amount) for payer, amount in self.cost_by_payer.items()},
            "grand_total": float(self.grand_total),
            "total_shipments": self.total_shipments,
        }


def aggregate(shipments: Iterable[BulkShipmentInput]) -> BulkCostSummary:
    """Fold shipment breakdowns into rows and per-payer totals."""
    cost_by_payer: Dict[PayerRole, Decimal] = {payer: ZERO for payer in PayerRole}
    rows: List[BulkCostRow] = []

    for shipment in shipments:
        payer = PayerRole(shipment.payer)
        breakdown = shipment.breakdown
        # The express adjustment has no column of its own; it stays inside
        # the total so the payer totals match what is actually charged.
        cost_by_payer[payer] += breakdown.total_cost

        rows.append(BulkCostRow(
            shipment_id=shipment.shipment_id,
            recipient_name=shipment.recipient_name,
            base_cost=breakdown.base_cost,
            weight_cost=breakdown.weight_cost,
            surcharge_cost=breakdown.surcharge_cost,
            markup_cost=breakdown.markup_cost,
            insurance_cost=breakdown.insurance_cost or ZERO,
            total_cost=breakdown.total_cost,
            payer=payer,
        ))

    cost_by_payer = {payer: round_money(amount) for payer, amount in cost_by_payer.items()}
    grand_total = sum(cost_by_payer.values(), ZERO)

    logger.info(f"Aggregated {len(rows)} shipments, grand total ₹{grand_total}")
    return BulkCostSummary(shipments=rows, cost_by_payer=cost_by_payer, grand_total=grand_total)


def _summary_row(label: str, amount: Decimal, payer_label: str) -> List[str]:
    return [label, "", "", "", "", "", "", f"{amount:.2f}", payer_label]


def export_cost_summary_csv(summary: BulkCostSummary, stream: Optional[io.StringIO] = None) -> str:
    """
    Render a summary as CSV.

    Layout: header, one row per shipment, a blank line, the per-payer block,
    a blank line and the grand total row.
    """
    buffer = stream or io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    writer.writerow(CSV_HEADERS)
    for row in summary.shipments:
        writer.writerow([
            row.shipment_id,
            row.recipient_name,
            f"{row.base_cost:.2f}",
            f"{row.weight_cost:.2f}",
            f"{row.surcharge_cost:.2f}",
            f"{row.markup_cost:.2f}",
            f"{row.insurance_cost:.2f}",
            f"{row.total_cost:.2f}",
            row.payer.value,
        ])

    writer.writerow([])
    writer.writerow(["COST SUMMARY BY PAYER"])
    for payer in PayerRole:
        amount = summary.cost_by_payer.get(payer, ZERO)
        writer.writerow(_summary_row(PAYER_TOTAL_LABELS[payer], amount, payer.value))

    writer.writerow([])
    writer.writerow(_summary_row("GRAND TOTAL", summary.grand_total, "ALL"))

    return buffer.getvalue().rstrip("\n")
