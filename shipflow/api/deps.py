from typing import Annotated, AsyncGenerator
import logging

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shipflow.config import settings
from shipflow.database import get_db
from shipflow.services.courier import CourierGateway
from shipflow.services.pricing_resolver import PricingResolver
from shipflow.services.shipment_orchestrator import ShipmentOrchestrator
from shipflow.services.stores import (
    SqlConfigStore,
    SqlPartWeightCatalog,
    SqlPartyDirectory,
    SqlPricingOverrideStore,
    SqlShipmentRecordStore,
)
from shipflow.services.weight_service import WeightEstimator


logger = logging.getLogger(__name__)


DB = Annotated[AsyncSession, Depends(get_db)]


async def get_courier_gateway() -> AsyncGenerator[CourierGateway, None]:
    """Gateway with one HTTP client per request, closed afterwards."""
    async with httpx.AsyncClient() as client:
        yield CourierGateway.from_settings(settings, client=client)


Gateway = Annotated[CourierGateway, Depends(get_courier_gateway)]


def get_pricing_resolver(db: DB) -> PricingResolver:
    return PricingResolver(SqlPricingOverrideStore(db), SqlConfigStore(db))


Pricing = Annotated[PricingResolver, Depends(get_pricing_resolver)]


def get_shipment_orchestrator(db: DB, pricing: Pricing, gateway: Gateway) -> ShipmentOrchestrator:
    return ShipmentOrchestrator(
        parties=SqlPartyDirectory(db),
        pricing=pricing,
        gateway=gateway,
        records=SqlShipmentRecordStore(db),
        weights=WeightEstimator(
            SqlPartWeightCatalog(db),
            default_unit_weight_kg=settings.DEFAULT_PART_WEIGHT_KG,
        ),
    )


Orchestrator = Annotated[ShipmentOrchestrator, Depends(get_shipment_orchestrator)]
