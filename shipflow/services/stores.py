"""
Collaborator interfaces consumed by the shipment economics core.

Each interface is a small Protocol so callers can plug in any backend; the
SQLAlchemy implementations below read and write through an AsyncSession.
The core only ever reads pricing data. Shipment records are patched with
carrier metadata after an AWB is issued.
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Dict, Any, Union, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shipflow.models.party import Party
from shipflow.models.pricing import BrandPricingOverride, SystemConfig
from shipflow.models.catalog import PartCatalogItem
from shipflow.models.shipment import ShipmentRecord

logger = logging.getLogger(__name__)

UNIFIED_PRICING_CONFIG_KEY = "unified_pricing"


@dataclass(frozen=True)
class PartyInfo:
    """Party fields needed for classification and carrier payloads."""
    id: str
    role: str
    name: str = ""
    phone: str = ""
    street: str = ""
    area: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    country: str = "India"
    is_remote_area: bool = False


@dataclass(frozen=True)
class PricingOverride:
    """Raw brand override row. Optional fields are filled with defaults on resolution."""
    brand_id: str
    per_box_rate: float
    weight_rate_per_kg: Optional[float] = None
    min_charge: Optional[float] = None
    markup_percent: Optional[float] = None
    location_surcharge: Optional[float] = None
    express_multiplier: Optional[float] = None
    is_active: bool = True


class PartyDirectory(Protocol):
    async def get_party(self, party_id: str) -> Optional[PartyInfo]:
        ...


class PricingOverrideStore(Protocol):
    async def get_active_override(self, brand_id: str) -> Optional[PricingOverride]:
        ...


class ConfigStore(Protocol):
    async def get_config(self, key: str) -> Optional[Union[str, Dict[str, Any]]]:
        ...


class ShipmentRecordStore(Protocol):
    async def update_shipment(self, shipment_id: str, patch: Dict[str, Any]) -> None:
        ...


class PartWeightCatalog(Protocol):
    async def get_weights(self, part_ids: Iterable[str]) -> Dict[str, float]:
        ...


# ==================== SQLALCHEMY IMPLEMENTATIONS ====================

class SqlPartyDirectory:
    """Party lookup backed by the parties table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_party(self, party_id: str) -> Optional[PartyInfo]:
        party = await self.db.get(Party, party_id)
        if not party:
            return None

        return PartyInfo(
            id=party.id,
            role=party.role,
            name=party.name or "",
            phone=party.phone or "",
            street=party.street or "",
            area=party.area or "",
            city=party.city or "",
            state=party.state or "",
            pincode=party.pincode or "",
            country=party.country or "India",
            is_remote_area=bool(party.is_remote_area),
        )


class SqlPricingOverrideStore:
    """Brand override lookup. Inactive rows are not returned."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_override(self, brand_id: str) -> Optional[PricingOverride]:
        stmt = select(BrandPricingOverride).where(
            BrandPricingOverride.brand_id == brand_id,
            BrandPricingOverride.is_active == True,  # noqa: E712
        )
        result = await self.db.execute(stmt)
        row = result.scalar_one_or_none()
        if not row:
            return None

        return PricingOverride(
            brand_id=row.brand_id,
            per_box_rate=row.per_box_rate,
            weight_rate_per_kg=row.weight_rate_per_kg,
            min_charge=row.min_charge,
            markup_percent=row.markup_percent,
            location_surcharge=row.location_surcharge,
            express_multiplier=row.express_multiplier,
            is_active=row.is_active,
        )


class SqlConfigStore:
    """System configuration lookup returning the raw JSON text."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_config(self, key: str = UNIFIED_PRICING_CONFIG_KEY) -> Optional[str]:
        stmt = select(SystemConfig.value).where(SystemConfig.key == key)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()


class SqlShipmentRecordStore:
    """Patches carrier metadata onto shipment records."""

    UPDATABLE_FIELDS = {"awb_number", "tracking_url", "label_urls", "courier_metadata", "fallback_mode"}

    def __init__(self, db: AsyncSession):
        self.db = db

    async def update_shipment(self, shipment_id: str, patch: Dict[str, Any]) -> None:
        unknown = set(patch) - self.UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update shipment fields: {', '.join(sorted(unknown))}")

        record = await self.db.get(ShipmentRecord, shipment_id)
        if not record:
            record = ShipmentRecord(id=shipment_id)
            self.db.add(record)

        for field, value in patch.items():
            if field == "courier_metadata":
                # Merge so label metadata does not wipe AWB metadata
                value = {**(record.courier_metadata or {}), **(value or {})}
            setattr(record, field, value)

        await self.db.flush()
        logger.info(f"Shipment {shipment_id} updated with {sorted(patch)}")


class SqlPartWeightCatalog:
    """Packed unit weights from the part catalog."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_weights(self, part_ids: Iterable[str]) -> Dict[str, float]:
        ids = list(set(part_ids))
        if not ids:
            return {}

        stmt = select(PartCatalogItem.id, PartCatalogItem.weight_kg).where(PartCatalogItem.id.in_(ids))
        result = await self.db.execute(stmt)
        return {part_id: weight for part_id, weight in result.all() if weight}


def parse_config_value(value: Union[str, Dict[str, Any], None]) -> Optional[Dict[str, Any]]:
    """Decode a config value that may already be a dict or a JSON string."""
    if value is None:
        return None
    if isinstance(value, dict):
        return value
    decoded = json.loads(value)
    if not isinstance(decoded, dict):
        raise ValueError(f"Config value must be a JSON object, got {type(decoded).__name__}")
    return decoded
