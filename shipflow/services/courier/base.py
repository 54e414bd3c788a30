"""
Carrier-agnostic courier types.

Request and result dataclasses, transport exceptions and the adapter
interface every carrier implements. The gateway only talks to carriers
through a CarrierAdapter, so retry and fallback handling never depends on
a specific carrier's payload shape.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

from shipflow.models.shipment import ShipmentType


# ==================== EXCEPTIONS ====================

class CarrierAPIError(Exception):
    """Carrier API error."""

    def __init__(self, status_code: int, message: str, errors: Dict = None):
        self.status_code = status_code
        self.message = message
        self.errors = errors or {}
        super().__init__(f"Carrier API Error ({status_code}): {message}")


class CarrierAuthError(CarrierAPIError):
    """Credentials rejected by the carrier (401/403). Never retried."""


class CarrierResponseError(CarrierAPIError):
    """Carrier answered but the body is unusable (no AWB, bad JSON, no data)."""


# ==================== CONFIGURATION ====================

@dataclass(frozen=True)
class CourierCredentials:
    """Carrier credentials and account options handed to the gateway."""
    api_key: str = ""
    customer_code: str = ""
    api_url: str = ""
    tracking_url: str = ""
    tracking_access_token: Optional[str] = None
    service_type: str = "GROUND EXPRESS"
    commodity_id: str = "Electric items"
    account_type: str = "FORWARD"
    dev_mode: bool = False

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.customer_code)

    @property
    def has_tracking_credentials(self) -> bool:
        return bool(self.tracking_access_token)

    @property
    def is_reverse_account(self) -> bool:
        return self.account_type.strip().upper() == "REVERSE"

    @property
    def api_key_preview(self) -> str:
        return f"{self.api_key[:8]}..." if self.api_key else "<missing>"


@dataclass(frozen=True)
class WarehouseAddress:
    """Default pickup / return point when a request carries no sender."""
    name: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str
    returns_email: str = ""


# ==================== REQUESTS ====================

@dataclass
class Address:
    """Postal address for carrier payloads."""
    street: str
    city: str
    state: str
    pincode: str
    area: str = ""
    country: str = "India"


@dataclass
class SenderDetails:
    """Explicit shipper. Defaults to the configured warehouse when absent."""
    name: str
    phone: str
    address: Address


@dataclass
class AwbRequest:
    """Everything needed to book one consignment."""
    recipient_name: str
    recipient_phone: str
    recipient_address: Address
    weight_kg: float
    num_boxes: int
    declared_value: float
    shipment_id: Optional[str] = None
    shipment_type: ShipmentType = ShipmentType.FORWARD
    sender_details: Optional[SenderDetails] = None


class LabelFormat(str, Enum):
    """Supported shipping label sizes."""
    PDF_4X6 = "PDF_4X6"
    PDF_A4 = "PDF_A4"


@dataclass
class LabelRequest:
    """Label generation for an issued AWB, optionally tied to one box."""
    awb_number: str
    box_id: Optional[str] = None
    label_format: LabelFormat = LabelFormat.PDF_4X6
    shipment_type: ShipmentType = ShipmentType.FORWARD


@dataclass(frozen=True)
class CarrierRequest:
    """Transport-level description of one HTTP call to a carrier."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    json: Optional[Any] = None
    params: Optional[Dict[str, str]] = None


# ==================== RESULTS ====================

@dataclass(frozen=True)
class AwbResult:
    """Outcome of an AWB request. Carrier fields are only set on success."""
    success: bool
    awb_number: Optional[str] = None
    tracking_url: Optional[str] = None
    reference_number: Optional[str] = None
    retry_count: int = 0
    processing_time_ms: int = 0
    error: Optional[str] = None
    fallback_mode: bool = False
    fallback_reason: Optional[str] = None
    shipment_type: ShipmentType = ShipmentType.FORWARD

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "awb_number": self.awb_number,
            "tracking_url": self.tracking_url,
            "reference_number": self.reference_number,
            "retry_count": self.retry_count,
            "processing_time_ms": self.processing_time_ms,
            "error": self.error,
            "fallback_mode": self.fallback_mode,
            "fallback_reason": self.fallback_reason,
            "shipment_type": self.shipment_type.value,
        }


@dataclass(frozen=True)
class LabelResult:
    """Outcome of a label request. label_url is an opaque download reference."""
    success: bool
    awb_number: Optional[str] = None
    label_url: Optional[str] = None
    label_format: LabelFormat = LabelFormat.PDF_4X6
    fallback_mode: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "awb_number": self.awb_number,
            "label_url": self.label_url,
            "label_format": self.label_format.value,
            "fallback_mode": self.fallback_mode,
            "error": self.error,
        }


@dataclass(frozen=True)
class TrackingEvent:
    """One scan in a shipment's history."""
    scan_code: str
    status: str
    location: str
    timestamp: str
    description: str

    def to_dict(self) -> dict:
        return {
            "scan_code": self.scan_code,
            "status": self.status,
            "location": self.location,
            "timestamp": self.timestamp,
            "description": self.description,
        }


@dataclass(frozen=True)
class TrackingResult:
    """Current status and history of an AWB, oldest event first."""
    success: bool
    awb_number: str
    current_status: Optional[str] = None
    scan_code: Optional[str] = None
    location: Optional[str] = None
    timestamp: Optional[str] = None
    description: Optional[str] = None
    history: List[TrackingEvent] = field(default_factory=list)
    fallback_mode: bool = False
    error: Optional[str] = None

    @classmethod
    def from_history(
        cls,
        awb_number: str,
        history: List[TrackingEvent],
        fallback_mode: bool = False,
    ) -> "TrackingResult":
        current = history[-1]
        return cls(
            success=True,
            awb_number=awb_number,
            current_status=current.status,
            scan_code=current.scan_code,
            location=current.location,
            timestamp=current.timestamp,
            description=current.description,
            history=list(history),
            fallback_mode=fallback_mode,
        )

    @classmethod
    def failure(cls, awb_number: str, error: str) -> "TrackingResult":
        return cls(success=False, awb_number=awb_number, error=error)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "awb_number": self.awb_number,
            "current_status": self.current_status,
            "scan_code": self.scan_code,
            "location": self.location,
            "timestamp": self.timestamp,
            "description": self.description,
            "history": [event.to_dict() for event in self.history],
            "fallback_mode": self.fallback_mode,
            "error": self.error,
        }


# ==================== ADAPTER ====================

class CarrierAdapter(ABC):
    """
    Per-carrier payload shaping.

    Builders return a CarrierRequest, parsers take decoded JSON and raise
    CarrierResponseError when the body carries no usable data.
    """

    name: str = "carrier"

    @abstractmethod
    def reference_number(self, request: AwbRequest) -> str:
        """Shipper reference sent with the booking."""

    @abstractmethod
    def build_awb_payload(self, request: AwbRequest) -> Dict[str, Any]:
        """Booking body for one consignment."""

    @abstractmethod
    def build_awb_request(self, request: AwbRequest) -> CarrierRequest:
        """Full HTTP call for a booking."""

    @abstractmethod
    def parse_awb_response(self, data: Any, status_code: int = 200) -> str:
        """Extract the AWB number from a booking response."""

    @abstractmethod
    def build_label_request(self, request: LabelRequest) -> CarrierRequest:
        """HTTP call that streams the label document."""

    @abstractmethod
    def build_tracking_request(self, awb_number: str) -> CarrierRequest:
        """HTTP call that fetches tracking details."""

    @abstractmethod
    def parse_tracking_response(self, data: Any, awb_number: str) -> List[TrackingEvent]:
        """Normalize the carrier's scan history, oldest first."""

    @abstractmethod
    def tracking_url(self, awb_number: str) -> str:
        """Public tracking page for an AWB."""
