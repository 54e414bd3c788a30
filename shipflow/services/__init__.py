# Services module
from shipflow.services.shipment_classifier import classify_shipment, assign_payer
from shipflow.services.pricing_resolver import PricingResolver
from shipflow.services.cost_calculator import compute_cost, compute_insurance
from shipflow.services.bulk_cost_service import aggregate, export_cost_summary_csv
from shipflow.services.courier import CourierGateway
from shipflow.services.shipment_orchestrator import ShipmentOrchestrator

__all__ = [
    "classify_shipment",
    "assign_payer",
    "PricingResolver",
    "compute_cost",
    "compute_insurance",
    "aggregate",
    "export_cost_summary_csv",
    "CourierGateway",
    "ShipmentOrchestrator",
]
