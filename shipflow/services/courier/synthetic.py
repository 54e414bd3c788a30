"""
Synthetic courier results for fallback mode.

Synthetic AWBs embed their creation time (`FWD`/`REV` + 13-digit epoch
milliseconds + 3 random digits), so tracking can replay a plausible
progression from elapsed time alone without calling the carrier.
"""
import logging
import random
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from shipflow.models.shipment import ShipmentType
from shipflow.services.courier.base import (
    AwbRequest,
    AwbResult,
    LabelRequest,
    LabelResult,
    TrackingEvent,
    TrackingResult,
)

logger = logging.getLogger(__name__)

SYNTHETIC_AWB_PATTERN = re.compile(r"^(DTDC|MOCK|FWD|REV)(\d{13})")

HUB_LOCATIONS = [
    "Mumbai Hub",
    "Delhi Hub",
    "Bangalore Hub",
    "Chennai Hub",
    "Kolkata Hub",
    "Hyderabad Hub",
    "Pune Hub",
    "Local Facility",
]

# (hours after booking, scan code, status, location, forward text, reverse text)
PROGRESSION = [
    (2, "PU", "PICKED_UP", "Origin Hub",
     "Package picked up from sender",
     "Return package picked up from customer"),
    (6, "IT", "IN_TRANSIT", None,
     "Package in transit to destination hub",
     "Return package in transit to warehouse"),
    (24, "RH", "REACHED_HUB", None,
     "Package reached destination hub",
     "Return package reached processing hub"),
    (36, "OD", "OUT_FOR_DELIVERY", "Local Facility",
     "Package out for delivery",
     "Return package out for final delivery to warehouse"),
    (48, "DL", "DELIVERED", "Destination",
     "Package delivered successfully",
     "Return package delivered to warehouse successfully"),
]

MAX_UNKNOWN_AGE_HOURS = 7 * 24


def generate_synthetic_awb(shipment_type: ShipmentType = ShipmentType.FORWARD, now_ms: Optional[int] = None) -> str:
    prefix = "REV" if ShipmentType(shipment_type) == ShipmentType.REVERSE else "FWD"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{prefix}{now_ms:013d}{random.randint(0, 999):03d}"


def is_synthetic_awb(awb_number: str) -> bool:
    return bool(SYNTHETIC_AWB_PATTERN.match(awb_number or ""))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def awb_booked_at(awb_number: str, now: datetime) -> datetime:
    """
    Booking time of an AWB.

    Synthetic AWBs carry it. For anything else an age of up to a week is
    derived from the AWB's digits, so repeated lookups stay consistent.
    """
    match = SYNTHETIC_AWB_PATTERN.match(awb_number or "")
    if match:
        return datetime.fromtimestamp(int(match.group(2)) / 1000, tz=timezone.utc)

    digits = re.sub(r"[^0-9]", "", awb_number or "") or "0"
    age_hours = int(digits[-6:]) % MAX_UNKNOWN_AGE_HOURS
    return now - timedelta(hours=age_hours)


def _hub_for(awb_number: str, offset: int, pool: int) -> str:
    digits = re.sub(r"[^0-9]", "", awb_number or "") or "0"
    return HUB_LOCATIONS[(int(digits[-3:]) + offset) % pool]


def synthetic_tracking_history(awb_number: str, now: Optional[datetime] = None) -> List[TrackingEvent]:
    """Events reached so far given the time elapsed since booking."""
    now = now or _utc_now()
    booked_at = awb_booked_at(awb_number, now)
    age_hours = (now - booked_at).total_seconds() / 3600
    is_reverse = (awb_number or "").startswith("REV")

    events = [TrackingEvent(
        scan_code="BK",
        status="BOOKED",
        location="Origin",
        timestamp=booked_at.isoformat(),
        description=(
            "Reverse shipment booked and ready for pickup" if is_reverse
            else "Shipment booked and ready for pickup"
        ),
    )]

    for after_hours, scan_code, status, location, forward_text, reverse_text in PROGRESSION:
        if age_hours <= after_hours:
            break
        if location is None:
            # In transit picks one of the big three hubs, destination hub any city hub
            location = _hub_for(awb_number, after_hours, 3 if status == "IN_TRANSIT" else len(HUB_LOCATIONS) - 1)
        events.append(TrackingEvent(
            scan_code=scan_code,
            status=status,
            location=location,
            timestamp=(booked_at + timedelta(hours=after_hours)).isoformat(),
            description=reverse_text if is_reverse else forward_text,
        ))

    return events


class SyntheticCourier:
    """
    Fallback strategy producing placeholder AWBs, labels and tracking.

    Every result it returns is flagged with fallback_mode=True.
    """

    def __init__(
        self,
        tracking_url_builder: Callable[[str], str],
        label_download_base: str = "/api/labels/download",
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.tracking_url_builder = tracking_url_builder
        self.label_download_base = label_download_base.rstrip("/")
        self.clock = clock

    def issue_awb(
        self,
        request: AwbRequest,
        reason: str,
        retry_count: int = 0,
        started: Optional[float] = None,
    ) -> AwbResult:
        shipment_type = ShipmentType(request.shipment_type)
        now_ms = int(self.clock().timestamp() * 1000)
        awb_number = generate_synthetic_awb(shipment_type, now_ms)
        reference = f"SF-{request.shipment_id}" if request.shipment_id else f"SF-{now_ms}"

        logger.warning(f"Issuing synthetic {shipment_type.value} AWB {awb_number}: {reason}")
        return AwbResult(
            success=True,
            awb_number=awb_number,
            tracking_url=self.tracking_url_builder(awb_number),
            reference_number=reference,
            retry_count=retry_count,
            processing_time_ms=int((time.monotonic() - started) * 1000) if started else 0,
            fallback_mode=True,
            fallback_reason=reason,
            shipment_type=shipment_type,
        )

    def issue_label(self, request: LabelRequest, reason: str) -> LabelResult:
        key = request.box_id or request.awb_number
        logger.info(f"Using fallback label for {key}: {reason}")
        return LabelResult(
            success=True,
            awb_number=request.awb_number,
            label_url=f"{self.label_download_base}/fallback-{key}",
            label_format=request.label_format,
            fallback_mode=True,
        )

    def track(self, awb_number: str) -> TrackingResult:
        history = synthetic_tracking_history(awb_number, self.clock())
        return TrackingResult.from_history(awb_number, history, fallback_mode=True)
