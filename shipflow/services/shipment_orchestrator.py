"""
Shipment creation orchestration.

Composes classification, payer assignment, pricing, cost and insurance
calculation and (when a gateway is wired in) AWB and label generation into
one call. create_shipment never raises: unexpected errors come back as a
failure result with zeroed sub-objects, carrier failures keep the computed
pricing and classification.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Union

from shipflow.models.party import PartyRole
from shipflow.models.shipment import PayerRole, ReturnReason, ShipmentPriority, ShipmentType
from shipflow.services.cost_calculator import (
    CostBreakdown,
    InsuranceCalculation,
    INSURANCE_THRESHOLD,
    compute_cost,
    compute_insurance,
    to_decimal,
)
from shipflow.services.courier import (
    Address,
    AwbRequest,
    CourierGateway,
    LabelFormat,
    SenderDetails,
)
from shipflow.services.pricing_resolver import PricingResolver
from shipflow.services.shipment_classifier import (
    DEFAULT_CLASSIFICATION,
    PayerAssignment,
    ShipmentClassification,
    assign_payer,
    classify_shipment,
)
from shipflow.services.stores import PartyDirectory, PartyInfo, ShipmentRecordStore
from shipflow.services.weight_service import PartQuantity, WeightEstimator

logger = logging.getLogger(__name__)

EXPRESS_PRIORITIES = {ShipmentPriority.HIGH, ShipmentPriority.CRITICAL}

# Carrier minimum; used when the caller declares no value
MIN_CARRIER_DECLARED_VALUE = 100
# Carrier minimum; boxes listed without parts estimate to 0 kg
MIN_CARRIER_WEIGHT_KG = 0.1

RemoteAreaChecker = Callable[[PartyInfo, PartyInfo], Awaitable[bool]]


async def party_remote_area_flag(origin: PartyInfo, destination: PartyInfo) -> bool:
    """Remote when either end of the shipment is flagged out-of-delivery-area."""
    return bool(origin.is_remote_area or destination.is_remote_area)


@dataclass
class ShipmentBox:
    """One physical box. box_id keys its label."""
    box_id: Optional[str] = None
    parts: List[PartQuantity] = field(default_factory=list)


@dataclass
class ShipmentCreationRequest:
    """Input for create_shipment."""
    origin_party_id: str
    destination_party_id: str
    boxes: List[ShipmentBox]
    parts: List[PartQuantity] = field(default_factory=list)
    priority: Union[ShipmentPriority, str] = ShipmentPriority.MEDIUM
    return_reason: Optional[Union[ReturnReason, str]] = None
    insurance_required: Optional[bool] = None
    declared_value: Optional[float] = None
    shipment_id: Optional[str] = None
    label_format: LabelFormat = LabelFormat.PDF_4X6
    notes: Optional[str] = None


@dataclass
class ShipmentCreationResult:
    """Outcome of create_shipment. Always well formed, even on failure."""
    success: bool
    classification: ShipmentClassification
    payer_assignment: PayerAssignment
    cost_breakdown: CostBreakdown
    shipment_id: Optional[str] = None
    insurance_calculation: Optional[InsuranceCalculation] = None
    awb_number: Optional[str] = None
    tracking_url: Optional[str] = None
    label_urls: List[str] = field(default_factory=list)
    fallback_mode: bool = False
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, shipment_id: Optional[str] = None) -> "ShipmentCreationResult":
        return cls(
            success=False,
            shipment_id=shipment_id,
            classification=DEFAULT_CLASSIFICATION,
            payer_assignment=PayerAssignment(PayerRole.BRAND, "Error fallback"),
            cost_breakdown=CostBreakdown.zero("error"),
            error=error,
        )

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "shipment_id": self.shipment_id,
            "classification": self.classification.to_dict(),
            "payer_assignment": self.payer_assignment.to_dict(),
            "cost_breakdown": self.cost_breakdown.to_dict(),
            "insurance_calculation": (
                self.insurance_calculation.to_dict() if self.insurance_calculation else None
            ),
            "awb_number": self.awb_number,
            "tracking_url": self.tracking_url,
            "label_urls": list(self.label_urls),
            "fallback_mode": self.fallback_mode,
            "error": self.error,
            "warnings": list(self.warnings),
        }


def _role(party: PartyInfo) -> str:
    role = party.role
    return role.value if isinstance(role, PartyRole) else str(role).upper()


def _address(party: PartyInfo) -> Address:
    return Address(
        street=party.street,
        area=party.area,
        city=party.city,
        state=party.state,
        pincode=party.pincode,
        country=party.country,
    )


class ShipmentOrchestrator:
    """
    Creates shipments end to end.

    Usage:
        orchestrator = ShipmentOrchestrator(
            parties=SqlPartyDirectory(db),
            pricing=PricingResolver(SqlPricingOverrideStore(db), SqlConfigStore(db)),
            gateway=CourierGateway.from_settings(settings),
            records=SqlShipmentRecordStore(db),
        )
        result = await orchestrator.create_shipment(request)
    """

    def __init__(
        self,
        parties: PartyDirectory,
        pricing: PricingResolver,
        gateway: Optional[CourierGateway] = None,
        records: Optional[ShipmentRecordStore] = None,
        weights: Optional[WeightEstimator] = None,
        remote_area_checker: RemoteAreaChecker = party_remote_area_flag,
    ):
        self.parties = parties
        self.pricing = pricing
        self.gateway = gateway
        self.records = records
        self.weights = weights or WeightEstimator()
        self.remote_area_checker = remote_area_checker

    async def create_shipment(self, request: ShipmentCreationRequest) -> ShipmentCreationResult:
        shipment_id = request.shipment_id or str(uuid.uuid4())
        try:
            return await self._create(shipment_id, request)
        except Exception as e:
            logger.error(f"Shipment creation failed for {shipment_id}: {e}", exc_info=True)
            return ShipmentCreationResult.failure(str(e) or e.__class__.__name__, shipment_id)

    async def _create(self, shipment_id: str, request: ShipmentCreationRequest) -> ShipmentCreationResult:
        logger.info(
            f"Creating shipment {shipment_id}: "
            f"{request.origin_party_id} -> {request.destination_party_id}"
        )

        origin, destination = await asyncio.gather(
            self.parties.get_party(request.origin_party_id),
            self.parties.get_party(request.destination_party_id),
        )
        if origin is None or destination is None:
            raise ValueError("Origin or destination party not found")

        classification = classify_shipment(_role(origin), _role(destination), request.return_reason)
        payer_assignment = assign_payer(classification)

        if _role(origin) == PartyRole.BRAND.value:
            brand_id = origin.id
        elif _role(destination) == PartyRole.BRAND.value:
            brand_id = destination.id
        else:
            brand_id = None

        pricing = await self.pricing.resolve_pricing(
            classification.shipment_type,
            payer_assignment.payer,
            brand_id,
        )

        parts = request.parts or [part for box in request.boxes for part in box.parts]
        total_weight = await self.weights.estimate(parts)
        is_express = ShipmentPriority(request.priority) in EXPRESS_PRIORITIES
        is_remote_area = await self.remote_area_checker(origin, destination)

        cost_breakdown = compute_cost(
            pricing,
            len(request.boxes),
            total_weight,
            is_express,
            is_remote_area,
            request.declared_value,
            request.insurance_required,
        )

        insurance_calculation = None
        if request.declared_value is not None and to_decimal(request.declared_value) >= INSURANCE_THRESHOLD:
            insurance_calculation = compute_insurance(request.declared_value)

        result = ShipmentCreationResult(
            success=True,
            shipment_id=shipment_id,
            classification=classification,
            payer_assignment=payer_assignment,
            cost_breakdown=cost_breakdown,
            insurance_calculation=insurance_calculation,
        )

        if self.gateway is not None:
            await self._book_with_carrier(result, request, origin, destination, total_weight)

        logger.info(
            f"Shipment {shipment_id} {'created' if result.success else 'priced, carrier booking failed'}: "
            f"{classification.shipment_type.value}/{classification.direction.value}, "
            f"payer={payer_assignment.payer.value}, total=₹{cost_breakdown.total_cost}"
        )
        return result

    async def _book_with_carrier(
        self,
        result: ShipmentCreationResult,
        request: ShipmentCreationRequest,
        origin: PartyInfo,
        destination: PartyInfo,
        total_weight: float,
    ) -> None:
        shipment_type = result.classification.shipment_type
        # Reverse bookings are picked up at the origin and delivered to the destination
        if shipment_type == ShipmentType.REVERSE:
            pickup_or_recipient, counterpart = origin, destination
        else:
            pickup_or_recipient, counterpart = destination, origin

        awb_request = AwbRequest(
            shipment_id=result.shipment_id,
            recipient_name=pickup_or_recipient.name,
            recipient_phone=pickup_or_recipient.phone,
            recipient_address=_address(pickup_or_recipient),
            weight_kg=max(total_weight, MIN_CARRIER_WEIGHT_KG),
            num_boxes=len(request.boxes),
            declared_value=request.declared_value or MIN_CARRIER_DECLARED_VALUE,
            shipment_type=shipment_type,
            sender_details=SenderDetails(
                name=counterpart.name,
                phone=counterpart.phone,
                address=_address(counterpart),
            ),
        )

        awb = await self.gateway.generate_awb(awb_request)
        if not awb.success:
            result.success = False
            result.error = awb.error
            return

        result.awb_number = awb.awb_number
        result.tracking_url = awb.tracking_url
        result.fallback_mode = awb.fallback_mode

        for index, box in enumerate(request.boxes):
            box_id = box.box_id or f"{result.shipment_id}-box-{index + 1}"
            label = await self.gateway.generate_label(
                awb.awb_number,
                box_id=box_id,
                label_format=request.label_format,
                shipment_type=shipment_type,
            )
            if label.success:
                result.label_urls.append(label.label_url)
            else:
                result.warnings.append(f"Label for {box_id} not generated: {label.error}")

        if self.records is None:
            return

        try:
            await self.records.update_shipment(result.shipment_id, {
                "awb_number": awb.awb_number,
                "tracking_url": awb.tracking_url,
                "label_urls": list(result.label_urls),
                "fallback_mode": awb.fallback_mode,
                "courier_metadata": {
                    "reference_number": awb.reference_number,
                    "retry_count": awb.retry_count,
                    "processing_time_ms": awb.processing_time_ms,
                    "fallback_reason": awb.fallback_reason,
                    "label_format": LabelFormat(request.label_format).value,
                },
            })
        except Exception as e:
            logger.error(f"Failed to persist AWB {awb.awb_number} for {result.shipment_id}: {e}")
            result.warnings.append(f"AWB issued but not saved to shipment record: {e}")
