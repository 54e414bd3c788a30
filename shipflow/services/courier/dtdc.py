"""
DTDC carrier adapter.

Consignment booking and label download use the customer integration API
(header `api-key`); tracking uses the separate JSON tracking API (header
`X-Access-Token`).
"""
import logging
import re
import time
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from shipflow.models.shipment import ShipmentType
from shipflow.services.courier.base import (
    Address,
    AwbRequest,
    CarrierAdapter,
    CarrierRequest,
    CarrierResponseError,
    CourierCredentials,
    LabelFormat,
    LabelRequest,
    TrackingEvent,
    WarehouseAddress,
)

logger = logging.getLogger(__name__)

CONSIGNMENT_PATH = "/api/customer/integration/consignment/softdata"
LABEL_PATH = "/api/customer/integration/consignment/shippinglabel/stream"
TRACKING_PATH = "/dtdc-api/rest/JSONCnTrk/getTrackDetails"
PUBLIC_TRACKING_URL = "https://www.dtdc.in/tracking/track.asp?strAWBNo={awb}"

USER_AGENT = "ShipFlow/1.0"

# Carrier field limits and floors
MAX_NAME_LENGTH = 50
MAX_ADDRESS_LENGTH = 100
PHONE_DIGITS = 10  # national number, country code dropped
MIN_WEIGHT_KG = 0.1
MIN_DECLARED_VALUE = 100.0

# Fixed parcel dimensions (cm)
PARCEL_LENGTH_CM = "30.0"
PARCEL_WIDTH_CM = "20.0"
PARCEL_HEIGHT_CM = "15.0"

LABEL_CODES = {
    LabelFormat.PDF_4X6: "SHIP_LABEL_4X6",
    LabelFormat.PDF_A4: "SHIP_LABEL_A4",
}

AWB_RESPONSE_KEYS = (
    "awbNumber",
    "awb_number",
    "referenceNumber",
    "reference_number",
    "consignment_number",
)

STATUS_MAP = {
    "BOOKED": "BOOKED",
    "PICKUP_SCHEDULED": "PICKUP_SCHEDULED",
    "PICKUP SCHEDULED": "PICKUP_SCHEDULED",
    "PICKED_UP": "PICKED_UP",
    "PICKED UP": "PICKED_UP",
    "PICKUP_COMPLETED": "PICKED_UP",
    "PICKUP COMPLETED": "PICKED_UP",
    "IN_TRANSIT": "IN_TRANSIT",
    "IN TRANSIT": "IN_TRANSIT",
    "HELD_UP": "HELD_UP",
    "HELD UP": "HELD_UP",
    "REACHED_DESTINATION": "REACHED_HUB",
    "REACHED DESTINATION": "REACHED_HUB",
    "OUT_FOR_DELIVERY": "OUT_FOR_DELIVERY",
    "OUT FOR DELIVERY": "OUT_FOR_DELIVERY",
    "DELIVERED": "DELIVERED",
    "DELIVERY_ATTEMPTED": "DELIVERY_ATTEMPTED",
    "DELIVERY ATTEMPTED": "DELIVERY_ATTEMPTED",
    "UNDELIVERED": "UNDELIVERED",
    "RTO": "RETURN_TO_ORIGIN",
    "RETURN TO ORIGIN": "RETURN_TO_ORIGIN",
    "CANCELLED": "CANCELLED",
    "LOST": "LOST",
    "DAMAGED": "DAMAGED",
}


def normalize_status(status: Optional[str]) -> str:
    """Map a DTDC status string onto the standard vocabulary."""
    if not status:
        return "UNKNOWN"
    return STATUS_MAP.get(status.strip().upper(), status)


def digits_only(phone: Optional[str]) -> str:
    return re.sub(r"[^0-9]", "", phone or "")


def _event_time(timestamp: str) -> Optional[datetime]:
    """Parse a scan timestamp as naive UTC, or None when it is not ISO formatted."""
    try:
        parsed = datetime.fromisoformat(timestamp)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class DtdcAdapter(CarrierAdapter):
    """
    DTDC payload shaping.

    Usage:
        adapter = DtdcAdapter(credentials, warehouse)
        request = adapter.build_awb_request(awb_request)
    """

    name = "DTDC"

    def __init__(self, credentials: CourierCredentials, warehouse: WarehouseAddress):
        self.credentials = credentials
        self.warehouse = warehouse

    def _headers(self, accept: str = "application/json") -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "api-key": self.credentials.api_key,
            "Accept": accept,
            "User-Agent": USER_AGENT,
        }

    def _party_details(self, name: str, phone: str, address: Address) -> Dict[str, str]:
        return {
            "name": name[:MAX_NAME_LENGTH],
            "phone": digits_only(phone)[-PHONE_DIGITS:],
            "alternate_phone": "",
            "address_line_1": f"{address.street}, {address.area}"[:MAX_ADDRESS_LENGTH],
            "address_line_2": "",
            "pincode": address.pincode,
            "city": address.city,
            "state": address.state,
        }

    def _warehouse_details(self) -> Dict[str, str]:
        return {
            "name": self.warehouse.name[:MAX_NAME_LENGTH],
            "phone": self.warehouse.phone,
            "alternate_phone": self.warehouse.phone,
            "address_line_1": self.warehouse.address[:MAX_ADDRESS_LENGTH],
            "address_line_2": "",
            "pincode": self.warehouse.pincode,
            "city": self.warehouse.city,
            "state": self.warehouse.state,
        }

    def _return_details(self) -> Dict[str, str]:
        return {
            "name": f"{self.warehouse.name} Returns"[:MAX_NAME_LENGTH],
            "phone": self.warehouse.phone,
            "alternate_phone": self.warehouse.phone,
            "address_line_1": self.warehouse.address[:MAX_ADDRESS_LENGTH],
            "address_line_2": "Returns Department",
            "pincode": self.warehouse.pincode,
            "city_name": self.warehouse.city,
            "state_name": self.warehouse.state,
            "email": self.warehouse.returns_email,
        }

    def reference_number(self, request: AwbRequest) -> str:
        if request.shipment_id:
            return f"SF-{request.shipment_id}"
        return f"SF-{int(time.time() * 1000)}"

    def build_awb_payload(self, request: AwbRequest) -> Dict[str, Any]:
        """
        Build the softdata booking body.

        For REVERSE shipments the recipient address is the pickup point and
        the sender (or the warehouse) receives the parcel.
        """
        shipment_type = ShipmentType(request.shipment_type)
        is_reverse = shipment_type == ShipmentType.REVERSE

        recipient = self._party_details(
            request.recipient_name,
            request.recipient_phone,
            request.recipient_address,
        )
        if request.sender_details:
            sender = self._party_details(
                request.sender_details.name,
                request.sender_details.phone,
                request.sender_details.address,
            )
        else:
            sender = self._warehouse_details()

        if is_reverse:
            origin_details, destination_details = recipient, sender
        else:
            origin_details, destination_details = sender, recipient

        consignment_type = "reverse" if (is_reverse or self.credentials.is_reverse_account) else "forward"
        reference_number = self.reference_number(request)
        weight = max(float(request.weight_kg), MIN_WEIGHT_KG)
        declared_value = max(float(request.declared_value), MIN_DECLARED_VALUE)

        return {
            "consignments": [{
                "customer_code": self.credentials.customer_code,
                "service_type_id": self.credentials.service_type,
                "load_type": "NON-DOCUMENT",
                "description": "Spare Parts Return" if is_reverse else "Spare Parts and Electronic Components",
                "dimension_unit": "cm",
                "length": PARCEL_LENGTH_CM,
                "width": PARCEL_WIDTH_CM,
                "height": PARCEL_HEIGHT_CM,
                "weight_unit": "kg",
                "weight": str(weight),
                "declared_value": str(declared_value),
                "num_pieces": str(request.num_boxes),
                "commodity_id": self.credentials.commodity_id,
                "consignment_type": consignment_type,
                "origin_details": origin_details,
                "destination_details": destination_details,
                "return_details": self._return_details(),
                "customer_reference_number": reference_number,
                "cod_collection_mode": "",
                "cod_amount": "",
                "eway_bill": "",
                "is_risk_surcharge_applicable": "false",
                "invoice_number": reference_number,
                "invoice_date": date.today().isoformat(),
                "reference_number": reference_number,
            }]
        }

    def build_awb_request(self, request: AwbRequest) -> CarrierRequest:
        return CarrierRequest(
            method="POST",
            url=f"{self.credentials.api_url.rstrip('/')}{CONSIGNMENT_PATH}",
            headers=self._headers(),
            json=self.build_awb_payload(request),
        )

    def parse_awb_response(self, data: Any, status_code: int = 200) -> str:
        if not isinstance(data, dict):
            raise CarrierResponseError(status_code, "Invalid JSON response from DTDC API")

        consignments = data.get("data")
        if data.get("success") is True and isinstance(consignments, list) and consignments:
            consignment = consignments[0] or {}
            for key in AWB_RESPONSE_KEYS:
                if consignment.get(key):
                    return str(consignment[key])
            logger.error(f"No AWB number found in DTDC response: {consignment}")
            raise CarrierResponseError(status_code, "No AWB number received from DTDC API")

        errors = data.get("errors")
        message = (
            data.get("message")
            or data.get("error")
            or (errors[0] if isinstance(errors, list) and errors else None)
            or "Failed to generate AWB - no data received"
        )
        raise CarrierResponseError(status_code, str(message))

    def build_label_request(self, request: LabelRequest) -> CarrierRequest:
        return CarrierRequest(
            method="GET",
            url=f"{self.credentials.api_url.rstrip('/')}{LABEL_PATH}",
            headers=self._headers(accept="application/pdf"),
            params={
                "reference_number": request.awb_number,
                "label_code": LABEL_CODES[LabelFormat(request.label_format)],
                "label_format": "pdf",
            },
        )

    def build_tracking_request(self, awb_number: str) -> CarrierRequest:
        return CarrierRequest(
            method="POST",
            url=f"{self.credentials.tracking_url.rstrip('/')}{TRACKING_PATH}",
            headers={
                "Content-Type": "application/json",
                "X-Access-Token": self.credentials.tracking_access_token or "",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
            json={
                "trkType": "cnno",
                "strcnno": awb_number,
                "addtnlDtl": "Y",
            },
        )

    def parse_tracking_response(self, data: Any, awb_number: str) -> List[TrackingEvent]:
        if not isinstance(data, list) or not data:
            raise CarrierResponseError(200, f"No tracking information available for {awb_number}")

        details = (data[0] or {}).get("trackingDetails") or []
        events = []
        for event in details:
            status = event.get("status")
            events.append(TrackingEvent(
                scan_code=event.get("statusCode") or "UNK",
                status=normalize_status(status),
                location=event.get("location") or "Unknown",
                timestamp=event.get("statusDateTime") or "",
                description=event.get("statusDescription") or status or "Status update",
            ))

        if not events:
            raise CarrierResponseError(200, f"No tracking events for {awb_number}")

        # Oldest first; carrier order is kept when a timestamp cannot be read
        times = [_event_time(event.timestamp) for event in events]
        if all(times):
            events = [event for _, event in sorted(zip(times, events), key=lambda pair: pair[0])]
        return events

    def tracking_url(self, awb_number: str) -> str:
        return PUBLIC_TRACKING_URL.format(awb=awb_number)
