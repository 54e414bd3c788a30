"""Pydantic schemas for shipment economics and courier endpoints."""
from pydantic import Field, field_validator

from shipflow.schemas.base import BaseRequestSchema, BaseResponseSchema
from typing import Optional, List, Dict

from shipflow.models.party import PartyRole
from shipflow.models.shipment import ShipmentType, ShipmentDirection, ReturnReason, PayerRole, ShipmentPriority
from shipflow.services.courier import LabelFormat


# ============================================
# CLASSIFICATION
# ============================================

class ClassifyRequest(BaseRequestSchema):
    """Classify a shipment from the roles of its parties."""
    origin_role: PartyRole
    destination_role: PartyRole
    return_reason: Optional[str] = Field(None, description="DEFECTIVE, EXCESS, WARRANTY_RETURN, WRONG_PART")


class ClassificationResponse(BaseResponseSchema):
    shipment_type: ShipmentType
    direction: ShipmentDirection
    return_reason: Optional[ReturnReason] = None


class PayerAssignmentResponse(BaseResponseSchema):
    payer: PayerRole
    justification: str


class ClassifyResponse(BaseResponseSchema):
    classification: ClassificationResponse
    payer_assignment: PayerAssignmentResponse


# ============================================
# COST & INSURANCE
# ============================================

class CostEstimateRequest(BaseRequestSchema):
    """Resolve pricing and compute an itemized cost."""
    shipment_type: ShipmentType = ShipmentType.FORWARD
    payer: Optional[PayerRole] = None
    brand_id: Optional[str] = None
    num_boxes: int = Field(..., ge=0)
    total_weight_kg: float = Field(..., ge=0)
    is_express: bool = False
    is_remote_area: bool = False
    declared_value: Optional[float] = Field(None, ge=0)
    insurance_required: Optional[bool] = None


class PricingConfigResponse(BaseResponseSchema):
    base_rate_per_box: float
    weight_rate_per_kg: float
    min_charge: float
    markup_percent: float
    location_surcharge: float
    express_multiplier: float
    source: str


class CostBreakdownResponse(BaseResponseSchema):
    base_cost: float
    weight_cost: float
    surcharge_cost: float
    express_cost: float
    markup_cost: float
    insurance_cost: Optional[float] = None
    total_cost: float
    min_charge_applied: bool = False
    pricing_source: str
    applied_rules: List[str] = []


class CostEstimateResponse(BaseResponseSchema):
    pricing: PricingConfigResponse
    cost_breakdown: CostBreakdownResponse


class InsuranceRequest(BaseRequestSchema):
    declared_value: float = Field(..., ge=0)


class InsuranceResponse(BaseResponseSchema):
    required: bool
    insurance_cost: float
    gst_amount: float
    total_insurance_charge: float
    declared_value: float
    threshold_met: bool


# ============================================
# BULK COST
# ============================================

class BulkCostBreakdownInput(BaseRequestSchema):
    """Line items of an already computed breakdown."""
    base_cost: float = Field(0, ge=0)
    weight_cost: float = Field(0, ge=0)
    surcharge_cost: float = Field(0, ge=0)
    express_cost: float = Field(0, ge=0)
    markup_cost: float = Field(0, ge=0)
    insurance_cost: Optional[float] = Field(None, ge=0)
    total_cost: float = Field(..., ge=0)
    pricing_source: str = "global_config"


class BulkCostShipment(BaseRequestSchema):
    shipment_id: str = Field(..., min_length=1)
    recipient_name: str = ""
    payer: PayerRole
    breakdown: BulkCostBreakdownInput


class BulkCostRequest(BaseRequestSchema):
    shipments: List[BulkCostShipment] = Field(default_factory=list)


class BulkCostRowResponse(BaseResponseSchema):
    shipment_id: str
    recipient_name: str
    base_cost: float
    weight_cost: float
    surcharge_cost: float
    markup_cost: float
    insurance_cost: float
    total_cost: float
    payer: PayerRole


class BulkCostSummaryResponse(BaseResponseSchema):
    shipments: List[BulkCostRowResponse]
    cost_by_payer: Dict[str, float]
    grand_total: float
    total_shipments: int


# ============================================
# COURIER
# ============================================

class AddressSchema(BaseRequestSchema):
    street: str = ""
    area: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    country: str = "India"


class SenderDetailsSchema(BaseRequestSchema):
    name: str
    phone: str
    address: AddressSchema


class AwbGenerateRequest(BaseRequestSchema):
    """Book a consignment with the carrier."""
    shipment_id: Optional[str] = None
    recipient_name: str = ""
    recipient_phone: str = ""
    recipient_address: AddressSchema
    weight_kg: float
    num_boxes: int
    declared_value: float
    shipment_type: ShipmentType = ShipmentType.FORWARD
    sender_details: Optional[SenderDetailsSchema] = None


class AwbResponse(BaseResponseSchema):
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


class LabelGenerateRequest(BaseRequestSchema):
    awb_number: str = Field(..., min_length=1)
    box_ids: List[str] = Field(default_factory=list, description="One label per box; AWB label when empty")
    label_format: LabelFormat = LabelFormat.PDF_4X6
    shipment_type: ShipmentType = ShipmentType.FORWARD


class LabelResponse(BaseResponseSchema):
    success: bool
    awb_number: Optional[str] = None
    label_url: Optional[str] = None
    label_format: LabelFormat = LabelFormat.PDF_4X6
    fallback_mode: bool = False
    error: Optional[str] = None


class LabelBatchResponse(BaseResponseSchema):
    success: bool
    labels: List[LabelResponse]


class TrackingEventResponse(BaseResponseSchema):
    scan_code: str
    status: str
    location: str
    timestamp: str
    description: str


class TrackingResponse(BaseResponseSchema):
    success: bool
    awb_number: str
    current_status: Optional[str] = None
    scan_code: Optional[str] = None
    location: Optional[str] = None
    timestamp: Optional[str] = None
    description: Optional[str] = None
    history: List[TrackingEventResponse] = []
    fallback_mode: bool = False
    error: Optional[str] = None


class BulkTrackingRequest(BaseRequestSchema):
    awb_numbers: List[str] = Field(..., min_length=1, max_length=100)

    @field_validator('awb_numbers')
    @classmethod
    def strip_awb_numbers(cls, v):
        return [awb.strip() for awb in v if awb and awb.strip()]


class BulkTrackingResponse(BaseResponseSchema):
    results: List[TrackingResponse]
    total: int
    successful: int


# ============================================
# SHIPMENT CREATION
# ============================================

class PartQuantitySchema(BaseRequestSchema):
    part_id: str
    quantity: int = Field(1, ge=0)


class ShipmentBoxSchema(BaseRequestSchema):
    box_id: Optional[str] = None
    parts: List[PartQuantitySchema] = Field(default_factory=list)


class ShipmentCreateRequest(BaseRequestSchema):
    """Create a shipment: classify, price and book with the carrier."""
    origin_party_id: str
    destination_party_id: str
    boxes: List[ShipmentBoxSchema] = Field(..., min_length=1)
    parts: List[PartQuantitySchema] = Field(default_factory=list)
    priority: ShipmentPriority = ShipmentPriority.MEDIUM
    return_reason: Optional[str] = None
    insurance_required: Optional[bool] = None
    declared_value: Optional[float] = Field(None, ge=0)
    shipment_id: Optional[str] = None
    label_format: LabelFormat = LabelFormat.PDF_4X6
    notes: Optional[str] = None


class ShipmentCreateResponse(BaseResponseSchema):
    success: bool
    shipment_id: Optional[str] = None
    classification: ClassificationResponse
    payer_assignment: PayerAssignmentResponse
    cost_breakdown: CostBreakdownResponse
    insurance_calculation: Optional[InsuranceResponse] = None
    awb_number: Optional[str] = None
    tracking_url: Optional[str] = None
    label_urls: List[str] = []
    fallback_mode: bool = False
    error: Optional[str] = None
    warnings: List[str] = []
