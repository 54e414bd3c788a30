from fastapi import APIRouter

from shipflow.api.v1.endpoints import shipment_economics


api_router = APIRouter(prefix="/api/v1")

# ==================== Shipment Economics & Courier ====================
api_router.include_router(shipment_economics.router)
