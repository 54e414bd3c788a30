"""
Courier Gateway.

Issues AWBs, shipping labels and tracking lookups against a carrier:
- Pre-flight validation (no network call on bad input)
- Bounded retries with a fixed delay and a per-call timeout
- Fallback to synthetic results when credentials are missing or rejected
- Batched bulk tracking

No public method raises; every outcome is a result object with `success`.
"""
import asyncio
import logging
import re
import time
from dataclasses import replace
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx

from shipflow.config import Settings
from shipflow.models.shipment import ShipmentType
from shipflow.services.courier.base import (
    AwbRequest,
    AwbResult,
    CarrierAdapter,
    CarrierAPIError,
    CarrierAuthError,
    CarrierRequest,
    CarrierResponseError,
    CourierCredentials,
    LabelFormat,
    LabelRequest,
    LabelResult,
    TrackingResult,
    WarehouseAddress,
)
from shipflow.services.courier.dtdc import DtdcAdapter, digits_only
from shipflow.services.courier.synthetic import SyntheticCourier, is_synthetic_awb

logger = logging.getLogger(__name__)

PINCODE_PATTERN = re.compile(r"^\d{6}$")

Sleep = Callable[[float], Awaitable[None]]


def _parse_enum(enum_class, value):
    try:
        return enum_class(value)
    except ValueError:
        return None


def validate_awb_request(request: AwbRequest) -> Optional[str]:
    """Return the first validation problem, or None when the request can be booked."""
    address = request.recipient_address
    shipment_type = _parse_enum(ShipmentType, request.shipment_type)
    if shipment_type is None:
        return f"Unsupported shipment type: {request.shipment_type}"

    if not (request.recipient_name or "").strip():
        return "Recipient name is required"
    if len(digits_only(request.recipient_phone)) < 10:
        return "Valid recipient phone number is required"
    if not PINCODE_PATTERN.match(address.pincode or ""):
        return "Valid 6-digit pincode is required"
    if not (address.city or "").strip():
        return "Recipient city is required"
    if not (address.state or "").strip():
        return "Recipient state is required"
    if not (address.street or "").strip():
        return "Recipient address is required"
    if request.weight_kg is None or request.weight_kg <= 0:
        return "Weight must be greater than 0"
    if request.num_boxes is None or request.num_boxes <= 0:
        return "Number of boxes must be greater than 0"
    if request.declared_value is None or request.declared_value <= 0:
        return "Declared value must be greater than 0"

    sender = request.sender_details
    if shipment_type == ShipmentType.REVERSE and sender:
        if not (sender.name or "").strip():
            return "Sender name is required for reverse shipments"
        if len(digits_only(sender.phone)) < 10:
            return "Valid sender phone number is required for reverse shipments"
        if not PINCODE_PATTERN.match(sender.address.pincode or ""):
            return "Valid sender pincode is required for reverse shipments"

    return None


def _error_message(error: Exception, timeout: float) -> str:
    if isinstance(error, CarrierAPIError):
        return error.message
    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return f"Carrier request timed out after {timeout:g}s"
    return str(error) or error.__class__.__name__


class LiveCourier:
    """
    Real carrier transport.

    Sends adapter-built requests and maps HTTP failures onto the carrier
    exceptions. Every call is bounded by `timeout` via cancellation.
    """

    def __init__(
        self,
        adapter: CarrierAdapter,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.adapter = adapter
        self.client = client
        self.timeout = timeout

    async def _send(self, client: httpx.AsyncClient, request: CarrierRequest) -> httpx.Response:
        response = await asyncio.wait_for(
            client.request(
                request.method,
                request.url,
                headers=request.headers,
                json=request.json,
                params=request.params,
                timeout=self.timeout,
            ),
            timeout=self.timeout,
        )

        if response.status_code in (401, 403):
            raise CarrierAuthError(
                status_code=response.status_code,
                message=f"{self.adapter.name} API authentication failed - invalid API key or customer code",
            )

        if response.status_code >= 400:
            logger.error(f"{self.adapter.name} API error: {response.status_code} - {response.text}")
            try:
                error_data = response.json() if response.text else {}
            except ValueError:
                error_data = {"message": response.text}
            if not isinstance(error_data, dict):
                error_data = {}
            raise CarrierAPIError(
                status_code=response.status_code,
                message=error_data.get("message") or f"{self.adapter.name} API error: {response.status_code}",
                errors=error_data.get("errors", {}),
            )

        return response

    async def request(self, request: CarrierRequest) -> httpx.Response:
        if self.client is not None:
            return await self._send(self.client, request)
        async with httpx.AsyncClient() as client:
            return await self._send(client, request)

    async def request_json(self, request: CarrierRequest):
        response = await self.request(request)
        try:
            return response.json()
        except ValueError:
            raise CarrierResponseError(
                response.status_code,
                f"Invalid JSON response from {self.adapter.name} API",
            )

    async def create_consignment(self, request: AwbRequest) -> str:
        carrier_request = self.adapter.build_awb_request(request)
        data = await self.request_json(carrier_request)
        return self.adapter.parse_awb_response(data)

    async def fetch_label(self, request: LabelRequest) -> httpx.Response:
        return await self.request(self.adapter.build_label_request(request))

    async def fetch_tracking(self, awb_number: str):
        data = await self.request_json(self.adapter.build_tracking_request(awb_number))
        return self.adapter.parse_tracking_response(data, awb_number)


class CourierGateway:
    """
    Carrier gateway with retry and fallback handling.

    The live or synthetic strategy is chosen once, at construction, from the
    credentials: without credentials (or in dev mode) no network call is made.

    Usage:
        gateway = CourierGateway.from_settings(settings)

        result = await gateway.generate_awb(awb_request)
        label = await gateway.generate_label(result.awb_number)
        tracking = await gateway.track(result.awb_number)
    """

    def __init__(
        self,
        adapter: CarrierAdapter,
        credentials: CourierCredentials,
        client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        timeout: float = 30.0,
        tracking_batch_size: int = 5,
        tracking_batch_pause: float = 1.0,
        label_download_base: str = "/api/labels/download",
        sleep: Sleep = asyncio.sleep,
        synthetic: Optional[SyntheticCourier] = None,
    ):
        self.adapter = adapter
        self.credentials = credentials
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.tracking_batch_size = max(1, tracking_batch_size)
        self.tracking_batch_pause = tracking_batch_pause
        self.label_download_base = label_download_base.rstrip("/")
        self.sleep = sleep
        self.synthetic = synthetic or SyntheticCourier(adapter.tracking_url, label_download_base)

        if credentials.has_credentials and not credentials.dev_mode:
            self.live: Optional[LiveCourier] = LiveCourier(adapter, client, timeout)
            logger.info(
                f"{adapter.name} gateway in live mode "
                f"(customer={credentials.customer_code}, key={credentials.api_key_preview})"
            )
        else:
            self.live = None
            logger.info(f"{adapter.name} gateway in fallback mode: {self.fallback_reason}")

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> "CourierGateway":
        credentials = CourierCredentials(
            api_key=config.DTDC_API_KEY,
            customer_code=config.DTDC_CUSTOMER_CODE,
            api_url=config.DTDC_API_URL,
            tracking_url=config.DTDC_TRACKING_URL,
            tracking_access_token=config.DTDC_TRACKING_ACCESS_TOKEN,
            service_type=config.DTDC_SERVICE_TYPE,
            commodity_id=config.DTDC_COMMODITY_ID,
            account_type=config.DTDC_ACCOUNT_TYPE,
            dev_mode=config.COURIER_DEV_MODE,
        )
        warehouse = WarehouseAddress(
            name=config.WAREHOUSE_NAME,
            phone=config.WAREHOUSE_PHONE,
            address=config.WAREHOUSE_ADDRESS,
            city=config.WAREHOUSE_CITY,
            state=config.WAREHOUSE_STATE,
            pincode=config.WAREHOUSE_PINCODE,
            returns_email=config.RETURNS_EMAIL,
        )
        return cls(
            adapter=DtdcAdapter(credentials, warehouse),
            credentials=credentials,
            client=client,
            max_retries=config.COURIER_MAX_RETRIES,
            retry_delay=config.COURIER_RETRY_DELAY_SECONDS,
            timeout=config.COURIER_TIMEOUT_SECONDS,
            tracking_batch_size=config.TRACKING_BATCH_SIZE,
            tracking_batch_pause=config.TRACKING_BATCH_PAUSE_SECONDS,
            label_download_base=config.LABEL_DOWNLOAD_BASE,
            sleep=sleep,
        )

    @property
    def fallback_mode(self) -> bool:
        return self.live is None

    @property
    def fallback_reason(self) -> str:
        if self.credentials.dev_mode:
            return "Development mode enabled"
        return f"{self.adapter.name} credentials not configured"

    # ==================== AWB ====================

    async def generate_awb(self, request: AwbRequest) -> AwbResult:
        """
        Book a consignment and return its AWB.

        VALIDATE -> FALLBACK, or VALIDATE -> ATTEMPT x (1..max_retries+1)
        -> SUCCESS | EXHAUSTED. A 401/403 ends the loop in fallback.
        """
        started = time.monotonic()

        error = validate_awb_request(request)
        if error:
            logger.warning(f"AWB request rejected: {error}")
            return AwbResult(
                success=False,
                error=error,
                shipment_type=_parse_enum(ShipmentType, request.shipment_type) or ShipmentType.FORWARD,
            )
        shipment_type = ShipmentType(request.shipment_type)

        if self.live is None:
            return self.synthetic.issue_awb(request, reason=self.fallback_reason, started=started)

        reference_number = self.adapter.reference_number(request)
        retry_count = 0
        last_error = None

        for attempt in range(self.max_retries + 1):
            try:
                logger.info(
                    f"Requesting {shipment_type.value} AWB from {self.adapter.name} "
                    f"(attempt {attempt + 1}/{self.max_retries + 1})"
                )
                awb_number = await self.live.create_consignment(request)

                logger.info(f"{self.adapter.name} AWB issued: {awb_number} (retries={retry_count})")
                return AwbResult(
                    success=True,
                    awb_number=awb_number,
                    tracking_url=self.adapter.tracking_url(awb_number),
                    reference_number=reference_number,
                    retry_count=retry_count,
                    processing_time_ms=int((time.monotonic() - started) * 1000),
                    shipment_type=shipment_type,
                )

            except CarrierAuthError as e:
                logger.error(f"{self.adapter.name} rejected credentials, falling back: {e}")
                return self.synthetic.issue_awb(
                    request,
                    reason=e.message,
                    retry_count=retry_count,
                    started=started,
                )

            except Exception as e:
                last_error = _error_message(e, self.timeout)
                logger.error(f"{self.adapter.name} AWB attempt {attempt + 1} failed: {last_error}")

            if attempt < self.max_retries:
                retry_count += 1
                await self.sleep(self.retry_delay)

        logger.error(f"{self.adapter.name} AWB generation failed after {retry_count} retries: {last_error}")
        return AwbResult(
            success=False,
            error=last_error,
            retry_count=retry_count,
            processing_time_ms=int((time.monotonic() - started) * 1000),
            shipment_type=shipment_type,
        )

    async def generate_forward_awb(self, request: AwbRequest) -> AwbResult:
        return await self.generate_awb(replace(request, shipment_type=ShipmentType.FORWARD))

    async def generate_reverse_awb(self, request: AwbRequest) -> AwbResult:
        return await self.generate_awb(replace(request, shipment_type=ShipmentType.REVERSE))

    # ==================== LABELS ====================

    async def generate_label(
        self,
        awb_number: str,
        box_id: Optional[str] = None,
        label_format: LabelFormat = LabelFormat.PDF_4X6,
        shipment_type: ShipmentType = ShipmentType.FORWARD,
    ) -> LabelResult:
        """Generate a shipping label reference for an issued AWB."""
        requested_format = _parse_enum(LabelFormat, label_format)
        if requested_format is None:
            return LabelResult(success=False, awb_number=awb_number, error=f"Unsupported label format: {label_format}")
        label_format = requested_format
        if not awb_number:
            return LabelResult(success=False, label_format=label_format, error="AWB number is required")
        if _parse_enum(ShipmentType, shipment_type) is None:
            return LabelResult(
                success=False,
                awb_number=awb_number,
                label_format=label_format,
                error=f"Unsupported shipment type: {shipment_type}",
            )

        request = LabelRequest(
            awb_number=awb_number,
            box_id=box_id,
            label_format=label_format,
            shipment_type=ShipmentType(shipment_type),
        )

        if self.live is None:
            return self.synthetic.issue_label(request, reason=self.fallback_reason)

        try:
            await self.live.fetch_label(request)
        except CarrierAuthError as e:
            return self.synthetic.issue_label(request, reason=e.message)
        except Exception as e:
            error = _error_message(e, self.timeout)
            logger.error(f"Label generation failed for {awb_number}: {error}")
            return LabelResult(
                success=False,
                awb_number=awb_number,
                label_format=label_format,
                error=f"Label generation failed: {error}",
            )

        label_url = f"{self.label_download_base}/{box_id or awb_number}"
        logger.info(f"Label ready for {awb_number}: {label_url}")
        return LabelResult(
            success=True,
            awb_number=awb_number,
            label_url=label_url,
            label_format=label_format,
        )

    # ==================== TRACKING ====================

    async def track(self, awb_number: str) -> TrackingResult:
        """Current status and scan history of an AWB."""
        awb_number = (awb_number or "").strip()
        if not awb_number:
            return TrackingResult.failure(awb_number, "AWB number is required")

        if is_synthetic_awb(awb_number):
            return self.synthetic.track(awb_number)

        if self.live is None or not self.credentials.has_tracking_credentials:
            logger.info(f"No tracking credentials, using synthetic tracking for {awb_number}")
            return self.synthetic.track(awb_number)

        try:
            history = await self.live.fetch_tracking(awb_number)
        except Exception as e:
            error = _error_message(e, self.timeout)
            logger.error(f"Tracking failed for {awb_number}: {error}")
            return TrackingResult.failure(awb_number, error)

        return TrackingResult.from_history(awb_number, history)

    async def track_many(self, awb_numbers: Sequence[str]) -> List[TrackingResult]:
        """
        Track several AWBs in batches.

        Each batch runs concurrently and settles fully, so one failure never
        cancels its siblings. Results keep the input order.
        """
        awb_numbers = list(awb_numbers)
        results: List[TrackingResult] = []
        batch_size = self.tracking_batch_size

        for start in range(0, len(awb_numbers), batch_size):
            batch = awb_numbers[start:start + batch_size]
            outcomes = await asyncio.gather(
                *(self.track(awb) for awb in batch),
                return_exceptions=True,
            )

            for awb, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Tracking failed for {awb}: {outcome}")
                    results.append(TrackingResult.failure(awb, str(outcome) or outcome.__class__.__name__))
                else:
                    results.append(outcome)

            logger.info(f"Tracked batch {start // batch_size + 1}: {len(batch)} AWBs")
            if start + batch_size < len(awb_numbers):
                await self.sleep(self.tracking_batch_pause)

        return results
