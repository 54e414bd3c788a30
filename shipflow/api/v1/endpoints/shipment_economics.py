"""
Shipment Economics API endpoints.

Covers:
1. Classification and payer assignment
2. Pricing preview, cost estimate and insurance
3. Bulk cost summary and CSV export
4. Courier AWB, labels and tracking
5. End-to-end shipment creation
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Response, status

from shipflow.api.deps import Gateway, Orchestrator, Pricing
from shipflow.services.bulk_cost_service import BulkShipmentInput, aggregate, export_cost_summary_csv
from shipflow.services.cost_calculator import CostBreakdown, compute_cost, compute_insurance
from shipflow.services.courier import Address, AwbRequest, SenderDetails
from shipflow.services.shipment_classifier import assign_payer, classify_shipment
from shipflow.services.shipment_orchestrator import ShipmentBox, ShipmentCreationRequest
from shipflow.services.weight_service import PartQuantity
from shipflow.schemas.shipment_economics import (
    # Classification
    ClassifyRequest,
    ClassifyResponse,
    # Cost & insurance
    CostEstimateRequest,
    CostEstimateResponse,
    InsuranceRequest,
    InsuranceResponse,
    # Bulk cost
    BulkCostRequest,
    BulkCostSummaryResponse,
    # Courier
    AddressSchema,
    AwbGenerateRequest,
    AwbResponse,
    LabelGenerateRequest,
    LabelBatchResponse,
    LabelResponse,
    TrackingResponse,
    BulkTrackingRequest,
    BulkTrackingResponse,
    # Shipment creation
    ShipmentCreateRequest,
    ShipmentCreateResponse,
)

router = APIRouter(prefix="/shipment-economics", tags=["Shipment Economics"])


def _money(value) -> Decimal:
    return Decimal(str(value or 0))


def _address(address: AddressSchema) -> Address:
    return Address(
        street=address.street,
        area=address.area,
        city=address.city,
        state=address.state,
        pincode=address.pincode,
        country=address.country,
    )


def _bulk_inputs(request: BulkCostRequest) -> List[BulkShipmentInput]:
    inputs = []
    for shipment in request.shipments:
        line = shipment.breakdown
        inputs.append(BulkShipmentInput(
            shipment_id=shipment.shipment_id,
            recipient_name=shipment.recipient_name,
            payer=shipment.payer,
            breakdown=CostBreakdown(
                base_cost=_money(line.base_cost),
                weight_cost=_money(line.weight_cost),
                surcharge_cost=_money(line.surcharge_cost),
                express_cost=_money(line.express_cost),
                markup_cost=_money(line.markup_cost),
                insurance_cost=_money(line.insurance_cost) if line.insurance_cost is not None else None,
                total_cost=_money(line.total_cost),
                pricing_source=line.pricing_source,
            ),
        ))
    return inputs


# ==================== Classification ====================

@router.post(
    "/classify",
    response_model=ClassifyResponse,
    summary="Classify shipment and assign courier payer",
)
async def classify(request: ClassifyRequest):
    """Classification never fails; unknown role pairs get the FORWARD/BRAND default."""
    classification = classify_shipment(request.origin_role, request.destination_role, request.return_reason)
    payer_assignment = assign_payer(classification)
    return ClassifyResponse.model_validate({
        "classification": classification.to_dict(),
        "payer_assignment": payer_assignment.to_dict(),
    })


# ==================== Cost & Insurance ====================

@router.post(
    "/cost-estimate",
    response_model=CostEstimateResponse,
    summary="Resolve pricing and compute itemized cost",
)
async def cost_estimate(request: CostEstimateRequest, pricing_resolver: Pricing):
    pricing = await pricing_resolver.resolve_pricing(
        request.shipment_type,
        request.payer,
        request.brand_id,
    )
    breakdown = compute_cost(
        pricing,
        request.num_boxes,
        request.total_weight_kg,
        request.is_express,
        request.is_remote_area,
        request.declared_value,
        request.insurance_required,
    )
    return CostEstimateResponse.model_validate({
        "pricing": pricing.to_dict(),
        "cost_breakdown": breakdown.to_dict(),
    })


@router.post(
    "/insurance",
    response_model=InsuranceResponse,
    summary="Calculate insurance for a declared value",
)
async def insurance(request: InsuranceRequest):
    return InsuranceResponse.model_validate(compute_insurance(request.declared_value).to_dict())


# ==================== Bulk Cost ====================

@router.post(
    "/bulk-cost",
    response_model=BulkCostSummaryResponse,
    summary="Aggregate shipment costs by payer",
)
async def bulk_cost(request: BulkCostRequest):
    summary = aggregate(_bulk_inputs(request))
    return BulkCostSummaryResponse.model_validate(summary.to_dict())


@router.post(
    "/bulk-cost/export",
    summary="Download bulk cost summary as CSV",
)
async def export_bulk_cost(request: BulkCostRequest):
    summary = aggregate(_bulk_inputs(request))
    content = export_cost_summary_csv(summary)
    filename = f"shipment_costs_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}.csv"

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


# ==================== Courier ====================

@router.post(
    "/awb",
    response_model=AwbResponse,
    summary="Generate AWB with the carrier",
    description="""
    Books a consignment and returns the AWB.

    Validation failures and exhausted retries return success=false. Missing
    or rejected carrier credentials return a synthetic AWB with
    fallback_mode=true.
    """
)
async def generate_awb(request: AwbGenerateRequest, gateway: Gateway):
    sender = None
    if request.sender_details:
        sender = SenderDetails(
            name=request.sender_details.name,
            phone=request.sender_details.phone,
            address=_address(request.sender_details.address),
        )

    result = await gateway.generate_awb(AwbRequest(
        shipment_id=request.shipment_id,
        recipient_name=request.recipient_name,
        recipient_phone=request.recipient_phone,
        recipient_address=_address(request.recipient_address),
        weight_kg=request.weight_kg,
        num_boxes=request.num_boxes,
        declared_value=request.declared_value,
        shipment_type=request.shipment_type,
        sender_details=sender,
    ))
    return AwbResponse.model_validate(result.to_dict())


@router.post(
    "/labels",
    response_model=LabelBatchResponse,
    summary="Generate shipping labels",
)
async def generate_labels(request: LabelGenerateRequest, gateway: Gateway):
    box_ids = request.box_ids or [None]
    labels = []
    for box_id in box_ids:
        label = await gateway.generate_label(
            request.awb_number,
            box_id=box_id,
            label_format=request.label_format,
            shipment_type=request.shipment_type,
        )
        labels.append(LabelResponse.model_validate(label.to_dict()))

    return LabelBatchResponse(
        success=all(label.success for label in labels),
        labels=labels,
    )


@router.get(
    "/tracking/{awb_number}",
    response_model=TrackingResponse,
    summary="Track a shipment by AWB",
)
async def track_shipment(awb_number: str, gateway: Gateway):
    result = await gateway.track(awb_number)
    return TrackingResponse.model_validate(result.to_dict())


@router.post(
    "/tracking/bulk",
    response_model=BulkTrackingResponse,
    summary="Track several AWBs",
)
async def track_bulk(request: BulkTrackingRequest, gateway: Gateway):
    results = await gateway.track_many(request.awb_numbers)
    return BulkTrackingResponse(
        results=[TrackingResponse.model_validate(result.to_dict()) for result in results],
        total=len(results),
        successful=sum(1 for result in results if result.success),
    )


# ==================== Shipment Creation ====================

@router.post(
    "/shipments",
    response_model=ShipmentCreateResponse,
    status_code=status.HTTP_200_OK,
    summary="Create shipment",
    description="""
    Classifies the shipment, assigns the payer, resolves pricing, computes
    cost and insurance, then books the AWB and labels.

    Always answers 200: failures are reported with success=false and error.
    """
)
async def create_shipment(request: ShipmentCreateRequest, orchestrator: Orchestrator):
    result = await orchestrator.create_shipment(ShipmentCreationRequest(
        origin_party_id=request.origin_party_id,
        destination_party_id=request.destination_party_id,
        boxes=[
            ShipmentBox(
                box_id=box.box_id,
                parts=[PartQuantity(part.part_id, part.quantity) for part in box.parts],
            )
            for box in request.boxes
        ],
        parts=[PartQuantity(part.part_id, part.quantity) for part in request.parts],
        priority=request.priority,
        return_reason=request.return_reason,
        insurance_required=request.insurance_required,
        declared_value=request.declared_value,
        shipment_id=request.shipment_id,
        label_format=request.label_format,
        notes=request.notes,
    ))
    return ShipmentCreateResponse.model_validate(result.to_dict())
