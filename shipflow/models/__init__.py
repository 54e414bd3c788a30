from shipflow.models.party import Party, PartyRole
from shipflow.models.pricing import BrandPricingOverride, SystemConfig
from shipflow.models.catalog import PartCatalogItem
from shipflow.models.shipment import (
    ShipmentRecord,
    ShipmentType,
    ShipmentDirection,
    ReturnReason,
    PayerRole,
    ShipmentPriority,
)

__all__ = [
    "Party",
    "PartyRole",
    "BrandPricingOverride",
    "SystemConfig",
    "PartCatalogItem",
    "ShipmentRecord",
    "ShipmentType",
    "ShipmentDirection",
    "ReturnReason",
    "PayerRole",
    "ShipmentPriority",
]
