"""
Courier pricing resolution.

Resolution order is fixed:
1. Active brand override (source=brand_override)
2. Global "unified_pricing" configuration (source=global_config)
3. Hardcoded defaults by shipment type (source=global_config)

Lookup or parse failures in tiers 1-2 are treated as "not found". The
resolver never raises; the worst case is the hardcoded default.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any, Union

from shipflow.models.shipment import ShipmentType, PayerRole
from shipflow.services.stores import (
    PricingOverrideStore,
    ConfigStore,
    PricingOverride,
    UNIFIED_PRICING_CONFIG_KEY,
    parse_config_value,
)

logger = logging.getLogger(__name__)


class PricingSource(str, Enum):
    """Where an effective rate table came from."""
    BRAND_OVERRIDE = "brand_override"
    GLOBAL_CONFIG = "global_config"


@dataclass(frozen=True)
class PricingConfig:
    """Effective rate table for one calculation."""
    base_rate_per_box: Decimal
    weight_rate_per_kg: Decimal
    min_charge: Decimal
    markup_percent: Decimal
    location_surcharge: Decimal
    express_multiplier: Decimal
    source: PricingSource = PricingSource.GLOBAL_CONFIG

    @classmethod
    def build(
        cls,
        base_rate_per_box: Union[int, float, str, Decimal],
        weight_rate_per_kg: Union[int, float, str, Decimal],
        min_charge: Union[int, float, str, Decimal],
        markup_percent: Union[int, float, str, Decimal],
        location_surcharge: Union[int, float, str, Decimal],
        express_multiplier: Union[int, float, str, Decimal],
        source: PricingSource = PricingSource.GLOBAL_CONFIG,
    ) -> "PricingConfig":
        """Build from plain numbers, converting through str to avoid float artefacts."""
        return cls(
            base_rate_per_box=Decimal(str(base_rate_per_box)),
            weight_rate_per_kg=Decimal(str(weight_rate_per_kg)),
            min_charge=Decimal(str(min_charge)),
            markup_percent=Decimal(str(markup_percent)),
            location_surcharge=Decimal(str(location_surcharge)),
            express_multiplier=Decimal(str(express_multiplier)),
            source=PricingSource(source),
        )

    def to_dict(self) -> dict:
        return {
            "base_rate_per_box": float(self.base_rate_per_box),
            "weight_rate_per_kg": float(self.weight_rate_per_kg),
            "min_charge": float(self.min_charge),
            "markup_percent": float(self.markup_percent),
            "location_surcharge": float(self.location_surcharge),
            "express_multiplier": float(self.express_multiplier),
            "source": self.source.value,
        }


# Fields a brand override may leave empty
OVERRIDE_DEFAULTS = {
    "weight_rate_per_kg": 25,
    "min_charge": 50,
    "markup_percent": 10,
    "location_surcharge": 25,
    "express_multiplier": 1.5,
}

# Global config key -> (field, default), per shipment type
FORWARD_CONFIG_FIELDS = {
    "base_rate_per_box": ("defaultRate", 50),
    "weight_rate_per_kg": ("weightRatePerKg", 25),
    "min_charge": ("minimumCharge", 75),
    "markup_percent": ("markupPercentage", 15),
    "location_surcharge": ("remoteAreaSurcharge", 25),
    "express_multiplier": ("expressMultiplier", 1.5),
}

REVERSE_CONFIG_FIELDS = {
    "base_rate_per_box": ("reverseDefaultRate", 45),
    "weight_rate_per_kg": ("reverseWeightRatePerKg", 25),
    "min_charge": ("reverseMinimumCharge", 50),
    "markup_percent": ("reverseMarkupPercentage", 10),
    "location_surcharge": ("reverseRemoteAreaSurcharge", 25),
    "express_multiplier": ("reverseExpressMultiplier", 1.5),
}


def default_pricing(shipment_type: ShipmentType) -> PricingConfig:
    """Hardcoded last-resort rates. Reverse shipments are cheaper."""
    is_reverse = shipment_type == ShipmentType.REVERSE
    return PricingConfig.build(
        base_rate_per_box=45 if is_reverse else 50,
        weight_rate_per_kg=25,
        min_charge=50 if is_reverse else 75,
        markup_percent=10 if is_reverse else 15,
        location_surcharge=25,
        express_multiplier=1.5,
        source=PricingSource.GLOBAL_CONFIG,
    )


def pricing_from_override(override: PricingOverride) -> PricingConfig:
    """Apply override defaults to the fields the brand left empty."""
    values = {
        field: getattr(override, field) if getattr(override, field) is not None else default
        for field, default in OVERRIDE_DEFAULTS.items()
    }
    return PricingConfig.build(
        base_rate_per_box=override.per_box_rate,
        source=PricingSource.BRAND_OVERRIDE,
        **values,
    )


def pricing_from_config(config: Dict[str, Any], shipment_type: ShipmentType) -> PricingConfig:
    """Pick the forward or reverse field set out of the unified pricing document."""
    fields = REVERSE_CONFIG_FIELDS if shipment_type == ShipmentType.REVERSE else FORWARD_CONFIG_FIELDS
    values = {}
    for field, (key, default) in fields.items():
        value = config.get(key)
        values[field] = value if value is not None else default
    return PricingConfig.build(source=PricingSource.GLOBAL_CONFIG, **values)


class PricingResolver:
    """
    Resolves the effective courier pricing for a brand and shipment type.

    Usage:
        resolver = PricingResolver(override_store, config_store)
        pricing = await resolver.resolve_pricing(ShipmentType.FORWARD, PayerRole.BRAND, brand_id)
    """

    def __init__(
        self,
        override_store: Optional[PricingOverrideStore],
        config_store: Optional[ConfigStore],
        config_key: str = UNIFIED_PRICING_CONFIG_KEY,
    ):
        self.override_store = override_store
        self.config_store = config_store
        self.config_key = config_key

    async def resolve_pricing(
        self,
        shipment_type: ShipmentType,
        payer: Optional[PayerRole],
        brand_id: Optional[str],
    ) -> PricingConfig:
        try:
            shipment_type = ShipmentType(shipment_type)
        except ValueError:
            logger.warning(f"Unknown shipment type {shipment_type!r}, pricing as FORWARD")
            shipment_type = ShipmentType.FORWARD
        logger.info(
            f"Resolving courier pricing: type={shipment_type.value} "
            f"payer={getattr(payer, 'value', payer)} brand={brand_id}"
        )

        override = await self._lookup_override(brand_id)
        if override is not None:
            logger.info(f"Using brand-specific pricing override for brand {brand_id}")
            return override

        configured = await self._lookup_global_config(shipment_type)
        if configured is not None:
            logger.info("Using global pricing configuration")
            return configured

        logger.warning(f"No pricing configured, using hardcoded {shipment_type.value} defaults")
        return default_pricing(shipment_type)

    async def _lookup_override(self, brand_id: Optional[str]) -> Optional[PricingConfig]:
        if not brand_id or self.override_store is None:
            return None
        try:
            override = await self.override_store.get_active_override(brand_id)
            if override is None or not override.is_active:
                return None
            return pricing_from_override(override)
        except Exception as e:
            logger.error(f"Brand pricing override lookup failed for {brand_id}: {e}")
            return None

    async def _lookup_global_config(self, shipment_type: ShipmentType) -> Optional[PricingConfig]:
        if self.config_store is None:
            return None
        try:
            raw = await self.config_store.get_config(self.config_key)
            config = parse_config_value(raw)
            if not config:
                return None
            return pricing_from_config(config, shipment_type)
        except Exception as e:
            logger.error(f"Global pricing config '{self.config_key}' unreadable: {e}")
            return None
