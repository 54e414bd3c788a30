"""
Courier integration.

- CourierGateway: AWB, label and tracking operations with retry and fallback
- DtdcAdapter: DTDC payload shaping
- SyntheticCourier: placeholder results used in fallback mode
"""

from shipflow.services.courier.base import (
    Address,
    AwbRequest,
    AwbResult,
    CarrierAdapter,
    CarrierAPIError,
    CarrierAuthError,
    CarrierResponseError,
    CourierCredentials,
    LabelFormat,
    LabelRequest,
    LabelResult,
    SenderDetails,
    TrackingEvent,
    TrackingResult,
    WarehouseAddress,
)
from shipflow.services.courier.dtdc import DtdcAdapter, normalize_status
from shipflow.services.courier.gateway import CourierGateway, validate_awb_request
from shipflow.services.courier.synthetic import (
    SyntheticCourier,
    generate_synthetic_awb,
    is_synthetic_awb,
)

__all__ = [
    "Address",
    "AwbRequest",
    "AwbResult",
    "CarrierAdapter",
    "CarrierAPIError",
    "CarrierAuthError",
    "CarrierResponseError",
    "CourierCredentials",
    "LabelFormat",
    "LabelRequest",
    "LabelResult",
    "SenderDetails",
    "TrackingEvent",
    "TrackingResult",
    "WarehouseAddress",
    "DtdcAdapter",
    "normalize_status",
    "CourierGateway",
    "validate_awb_request",
    "SyntheticCourier",
    "generate_synthetic_awb",
    "is_synthetic_awb",
]
