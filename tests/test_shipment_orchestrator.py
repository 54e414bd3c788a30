"""
End-to-end shipment creation tests with in-memory stores and a stubbed carrier.
"""
import json
from decimal import Decimal

import httpx
import pytest

from shipflow.models.shipment import PayerRole, ReturnReason, ShipmentDirection, ShipmentType
from shipflow.services.courier import CourierCredentials
from shipflow.services.courier.dtdc import CONSIGNMENT_PATH, LABEL_PATH
from shipflow.services.courier.synthetic import is_synthetic_awb
from shipflow.services.pricing_resolver import PricingResolver
from shipflow.services.shipment_orchestrator import (
    ShipmentBox,
    ShipmentCreationRequest,
    ShipmentCreationResult,
    ShipmentOrchestrator,
    party_remote_area_flag,
)
from shipflow.services.stores import PricingOverride
from shipflow.services.weight_service import PartQuantity, WeightEstimator

from conftest import (
    CarrierStub,
    FakeConfigStore,
    FakeOverrideStore,
    FakePartyDirectory,
    FakeRecordStore,
    FakeWeightCatalog,
    awb_response,
)


def _boxes():
    return [
        ShipmentBox(parts=[PartQuantity("compressor-relay", 2)]),
        ShipmentBox(parts=[PartQuantity("door-gasket", 1)]),
    ]


@pytest.fixture
def overrides():
    return FakeOverrideStore()


@pytest.fixture
def records():
    return FakeRecordStore()


@pytest.fixture
def make_orchestrator(brand, service_center, customer, overrides, records):
    def factory(gateway=None, **kwargs) -> ShipmentOrchestrator:
        values = dict(
            parties=FakePartyDirectory([brand, service_center, customer]),
            pricing=PricingResolver(overrides, FakeConfigStore()),
            gateway=gateway,
            records=records,
            weights=WeightEstimator(FakeWeightCatalog({"compressor-relay": 0.5, "door-gasket": 0.5})),
        )
        values.update(kwargs)
        return ShipmentOrchestrator(**values)

    return factory


class TestCreateShipment:

    @pytest.mark.asyncio
    async def test_brand_to_service_center_in_fallback_mode(self, make_orchestrator, make_gateway, overrides, records):
        gateway = make_gateway(credentials=CourierCredentials())
        orchestrator = make_orchestrator(gateway)

        result = await orchestrator.create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="sc-1",
            boxes=_boxes(),
            shipment_id="SHP-100",
        ))

        assert result.success is True
        assert result.error is None
        assert result.classification.shipment_type == ShipmentType.FORWARD
        assert result.classification.direction == ShipmentDirection.BRAND
        assert result.payer_assignment.payer == PayerRole.BRAND
        assert result.cost_breakdown.total_cost == Decimal("129.38")
        assert result.insurance_calculation is None
        assert overrides.calls == ["brand-1"]

        assert result.fallback_mode is True
        assert is_synthetic_awb(result.awb_number)
        assert result.awb_number.startswith("FWD")
        assert result.label_urls == [
            "/api/labels/download/fallback-SHP-100-box-1",
            "/api/labels/download/fallback-SHP-100-box-2",
        ]

        patch = records.updates["SHP-100"][0]
        assert patch["awb_number"] == result.awb_number
        assert patch["fallback_mode"] is True
        assert patch["label_urls"] == result.label_urls
        assert patch["courier_metadata"]["reference_number"] == "SF-SHP-100"
        assert patch["courier_metadata"]["fallback_reason"] == "DTDC credentials not configured"
        assert patch["courier_metadata"]["label_format"] == "PDF_4X6"

    @pytest.mark.asyncio
    async def test_boxes_without_parts_are_booked_at_minimum_weight(self, make_orchestrator, make_gateway):
        stub = CarrierStub(lambda request: awb_response("D7000000002"))
        orchestrator = make_orchestrator(make_gateway(stub))

        result = await orchestrator.create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="sc-1",
            boxes=[ShipmentBox(box_id="B1")],
            shipment_id="SHP-101",
        ))

        assert result.success is True
        assert result.awb_number == "D7000000002"
        assert result.cost_breakdown.weight_cost == Decimal("0.00")
        consignment = json.loads(stub.requests[0].content)["consignments"][0]
        assert consignment["weight"] == "0.1"

    @pytest.mark.asyncio
    async def test_boxes_without_parts_are_booked_in_fallback_mode(self, make_orchestrator, make_gateway):
        orchestrator = make_orchestrator(make_gateway(credentials=CourierCredentials()))

        result = await orchestrator.create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="sc-1",
            boxes=[ShipmentBox(box_id="B1")],
        ))

        assert result.success is True
        assert result.fallback_mode is True
        assert result.label_urls == ["/api/labels/download/fallback-B1"]

    @pytest.mark.asyncio
    async def test_brand_override_pricing_is_used(self, make_orchestrator):
        overrides = FakeOverrideStore([PricingOverride(brand_id="brand-1", per_box_rate=100)])
        orchestrator = make_orchestrator(pricing=PricingResolver(overrides, FakeConfigStore()))

        result = await orchestrator.create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="sc-1",
            boxes=_boxes(),
        ))

        assert result.cost_breakdown.pricing_source == "brand_override"
        assert result.cost_breakdown.base_cost == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_service_center_defective_return_is_booked_reverse(
        self, make_orchestrator, make_gateway, overrides,
    ):
        def responder(request):
            if request.url.path == CONSIGNMENT_PATH:
                return awb_response("D7000000001")
            return httpx.Response(200, content=b"%PDF")

        stub = CarrierStub(responder)
        orchestrator = make_orchestrator(make_gateway(stub))

        result = await orchestrator.create_shipment(ShipmentCreationRequest(
            origin_party_id="sc-1",
            destination_party_id="brand-1",
            boxes=[ShipmentBox(box_id="BOX-A", parts=[PartQuantity("door-gasket", 3)])],
            return_reason="DEFECTIVE",
            declared_value=1500,
            shipment_id="SHP-200",
        ))

        assert result.success is True
        assert result.classification.shipment_type == ShipmentType.REVERSE
        assert result.classification.return_reason == ReturnReason.DEFECTIVE
        assert result.payer_assignment.payer == PayerRole.BRAND
        assert result.cost_breakdown.base_cost == Decimal("45.00")
        assert overrides.calls == ["brand-1"]

        assert result.awb_number == "D7000000001"
        assert result.fallback_mode is False
        assert result.label_urls == ["/api/labels/download/BOX-A"]

        consignment = json.loads(stub.requests[0].content)["consignments"][0]
        # Pickup at the service center, delivery to the brand
        assert consignment["origin_details"]["pincode"] == "560038"
        assert consignment["destination_details"]["pincode"] == "201301"
        assert consignment["consignment_type"] == "reverse"
        assert consignment["declared_value"] == "1500.0"
        assert stub.requests[1].url.path == LABEL_PATH

    @pytest.mark.asyncio
    async def test_customer_return_express_and_remote(self, make_orchestrator, overrides):
        orchestrator = make_orchestrator()

        result = await orchestrator.create_shipment(ShipmentCreationRequest(
            origin_party_id="cust-1",
            destination_party_id="sc-1",
            boxes=[ShipmentBox(parts=[PartQuantity("compressor-relay")])],
            priority="CRITICAL",
        ))

        assert result.success is True
        assert result.classification.return_reason == ReturnReason.WARRANTY_RETURN
        assert result.payer_assignment.payer == PayerRole.CUSTOMER
        assert result.cost_breakdown.surcharge_cost == Decimal("25.00")
        assert result.cost_breakdown.express_cost > 0
        assert result.awb_number is None
        # No brand on either end
        assert overrides.calls == []

    @pytest.mark.asyncio
    async def test_standard_priority_is_not_express(self, make_orchestrator):
        result = await make_orchestrator().create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="sc-1",
            boxes=_boxes(),
            priority="LOW",
        ))
        assert result.cost_breakdown.express_cost == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_remote_area_checker_is_pluggable(self, make_orchestrator):
        async def always_remote(origin, destination):
            return True

        result = await make_orchestrator(remote_area_checker=always_remote).create_shipment(
            ShipmentCreationRequest(origin_party_id="brand-1", destination_party_id="sc-1", boxes=_boxes())
        )
        assert result.cost_breakdown.surcharge_cost == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_high_value_shipment_is_insured(self, make_orchestrator):
        result = await make_orchestrator().create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="sc-1",
            boxes=_boxes(),
            declared_value=10000,
            insurance_required=True,
        ))

        assert result.insurance_calculation.total_insurance_charge == Decimal("236.00")
        assert result.cost_breakdown.insurance_cost == Decimal("236.00")
        assert result.cost_breakdown.total_cost == Decimal("365.38")

    @pytest.mark.asyncio
    async def test_missing_party_returns_zeroed_failure(self, make_orchestrator):
        result = await make_orchestrator().create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="nobody",
            boxes=_boxes(),
            shipment_id="SHP-404",
        ))

        assert result.success is False
        assert result.error == "Origin or destination party not found"
        assert result.shipment_id == "SHP-404"
        assert result.classification.shipment_type == ShipmentType.FORWARD
        assert result.classification.direction == ShipmentDirection.BRAND
        assert result.payer_assignment.payer == PayerRole.BRAND
        assert result.payer_assignment.justification == "Error fallback"
        assert result.cost_breakdown.total_cost == Decimal("0")
        assert result.cost_breakdown.pricing_source == "error"

    @pytest.mark.asyncio
    async def test_directory_errors_never_raise(self, make_orchestrator):
        class BrokenDirectory:
            async def get_party(self, party_id):
                raise ConnectionError("directory unavailable")

        result = await make_orchestrator(parties=BrokenDirectory()).create_shipment(
            ShipmentCreationRequest(origin_party_id="a", destination_party_id="b", boxes=_boxes())
        )

        assert result.success is False
        assert result.error == "directory unavailable"
        assert result.shipment_id

    @pytest.mark.asyncio
    async def test_carrier_failure_keeps_pricing(self, make_orchestrator, make_gateway, records):
        stub = CarrierStub(lambda request: httpx.Response(500, json={"message": "Internal error"}))
        orchestrator = make_orchestrator(make_gateway(stub, max_retries=0))

        result = await orchestrator.create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="sc-1",
            boxes=_boxes(),
            shipment_id="SHP-500",
        ))

        assert result.success is False
        assert result.error == "Internal error"
        assert result.cost_breakdown.total_cost == Decimal("129.38")
        assert result.payer_assignment.payer == PayerRole.BRAND
        assert result.awb_number is None
        assert records.updates == {}

    @pytest.mark.asyncio
    async def test_label_failures_become_warnings(self, make_orchestrator, make_gateway):
        def responder(request):
            if request.url.path == CONSIGNMENT_PATH:
                return awb_response("D7000000002")
            return httpx.Response(500, json={"message": "Label service down"})

        orchestrator = make_orchestrator(make_gateway(CarrierStub(responder)))

        result = await orchestrator.create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="sc-1",
            boxes=_boxes(),
            shipment_id="SHP-600",
        ))

        assert result.success is True
        assert result.label_urls == []
        assert result.warnings == [
            "Label for SHP-600-box-1 not generated: Label generation failed: Label service down",
            "Label for SHP-600-box-2 not generated: Label generation failed: Label service down",
        ]

    @pytest.mark.asyncio
    async def test_persistence_failure_becomes_warning(self, make_orchestrator, make_gateway):
        orchestrator = make_orchestrator(
            make_gateway(credentials=CourierCredentials()),
            records=FakeRecordStore(error=RuntimeError("database is locked")),
        )

        result = await orchestrator.create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="sc-1",
            boxes=_boxes(),
        ))

        assert result.success is True
        assert result.awb_number
        assert result.warnings == ["AWB issued but not saved to shipment record: database is locked"]

    @pytest.mark.asyncio
    async def test_top_level_parts_take_precedence(self, make_orchestrator):
        result = await make_orchestrator().create_shipment(ShipmentCreationRequest(
            origin_party_id="brand-1",
            destination_party_id="sc-1",
            boxes=_boxes(),
            parts=[PartQuantity("unknown-part", 6)],
        ))

        # 6 x 0.5kg default, 2kg over the free allowance
        assert result.cost_breakdown.weight_cost == Decimal("50.00")

    def test_to_dict_is_json_ready(self):
        data = ShipmentCreationResult.failure("boom", "SHP-1").to_dict()

        assert json.dumps(data)
        assert data["classification"]["shipment_type"] == "FORWARD"
        assert data["cost_breakdown"]["total_cost"] == 0.0


class TestRemoteAreaFlag:

    @pytest.mark.asyncio
    async def test_either_end_remote(self, brand, customer, service_center):
        assert await party_remote_area_flag(service_center, customer) is True
        assert await party_remote_area_flag(customer, service_center) is True
        assert await party_remote_area_flag(brand, service_center) is False
