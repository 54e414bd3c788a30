"""
Shipment weight estimation and display helpers.

Weights are stored in kilograms. Parts without a catalog weight count at
the configured default per unit.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from shipflow.services.stores import PartWeightCatalog

logger = logging.getLogger(__name__)

DEFAULT_PART_WEIGHT_KG = 0.5


@dataclass(frozen=True)
class PartQuantity:
    """A part and how many units ship."""
    part_id: str
    quantity: int = 1


def format_weight(weight_kg: Optional[Union[int, float]]) -> str:
    """Display weight as grams below 1 kg, otherwise kg with two decimals."""
    if not weight_kg:
        return "0g"
    if weight_kg >= 1:
        return f"{weight_kg:.2f}kg"
    return f"{round(weight_kg * 1000)}g"


def parse_weight_input(value: Optional[str]) -> float:
    """
    Parse a user-entered weight into kilograms.

    "500g" -> 0.5, "1.5kg" -> 1.5, "2" -> 2.0 (kg assumed). Unparseable
    input yields 0.
    """
    text = (value or "").strip().lower()
    if not text:
        return 0.0

    divisor = 1.0
    if text.endswith("kg"):
        text = text[:-2]
    elif text.endswith("g"):
        text = text[:-1]
        divisor = 1000.0

    try:
        return float(text.strip()) / divisor
    except ValueError:
        return 0.0


class WeightEstimator:
    """
    Estimates the shipped weight of a set of parts.

    Usage:
        estimator = WeightEstimator(SqlPartWeightCatalog(db))
        total_kg = await estimator.estimate(parts)
    """

    def __init__(
        self,
        catalog: Optional[PartWeightCatalog] = None,
        default_unit_weight_kg: float = DEFAULT_PART_WEIGHT_KG,
    ):
        self.catalog = catalog
        self.default_unit_weight_kg = default_unit_weight_kg

    async def estimate(self, parts: Iterable[PartQuantity]) -> float:
        parts = list(parts)
        weights = {}
        if self.catalog is not None and parts:
            try:
                weights = await self.catalog.get_weights(part.part_id for part in parts)
            except Exception as e:
                logger.warning(f"Part weight lookup failed, using default unit weight: {e}")
                weights = {}

        total = 0.0
        for part in parts:
            unit_weight = weights.get(part.part_id) or self.default_unit_weight_kg
            total += unit_weight * max(part.quantity, 0)
        return round(total, 3)
