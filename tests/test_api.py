"""
HTTP API tests.

Database-backed dependencies are overridden with in-memory fakes, and the
client is used without entering the lifespan so no tables are created.
"""
import csv
import io

import pytest
from fastapi.testclient import TestClient

from shipflow.api.deps import get_courier_gateway, get_pricing_resolver, get_shipment_orchestrator
from shipflow.main import app
from shipflow.services.courier import CourierCredentials, CourierGateway, DtdcAdapter
from shipflow.services.pricing_resolver import PricingResolver
from shipflow.services.shipment_orchestrator import ShipmentOrchestrator
from shipflow.services.weight_service import WeightEstimator

from conftest import FakeConfigStore, FakeOverrideStore, FakePartyDirectory, FakeRecordStore

PREFIX = "/api/v1/shipment-economics"


@pytest.fixture
def client(warehouse, brand, service_center, customer):
    credentials = CourierCredentials()
    gateway = CourierGateway(DtdcAdapter(credentials, warehouse), credentials)
    pricing = PricingResolver(FakeOverrideStore(), FakeConfigStore())
    orchestrator = ShipmentOrchestrator(
        parties=FakePartyDirectory([brand, service_center, customer]),
        pricing=pricing,
        gateway=gateway,
        records=FakeRecordStore(),
        weights=WeightEstimator(),
    )

    app.dependency_overrides[get_courier_gateway] = lambda: gateway
    app.dependency_overrides[get_pricing_resolver] = lambda: pricing
    app.dependency_overrides[get_shipment_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


def _bulk_payload():
    return {
        "shipments": [
            {
                "shipment_id": "S1",
                "recipient_name": "Sharma Service Center",
                "payer": "BRAND",
                "breakdown": {"base_cost": 100, "weight_cost": 12.5, "markup_cost": 16.88, "total_cost": 129.38},
            },
            {
                "shipment_id": "S2",
                "recipient_name": "Priya Nair",
                "payer": "CUSTOMER",
                "breakdown": {"base_cost": 45, "markup_cost": 4.5, "total_cost": 50},
            },
        ]
    }


class TestClassificationApi:

    def test_classify(self, client):
        response = client.post(f"{PREFIX}/classify", json={
            "origin_role": "SERVICE_CENTER",
            "destination_role": "BRAND",
            "return_reason": "DEFECTIVE",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["classification"] == {
            "shipment_type": "REVERSE",
            "direction": "SERVICE_CENTER",
            "return_reason": "DEFECTIVE",
        }
        assert data["payer_assignment"]["payer"] == "BRAND"

    def test_unknown_role_is_rejected(self, client):
        response = client.post(f"{PREFIX}/classify", json={"origin_role": "ADMIN", "destination_role": "BRAND"})
        assert response.status_code == 422


class TestCostApi:

    def test_cost_estimate(self, client):
        response = client.post(f"{PREFIX}/cost-estimate", json={
            "shipment_type": "FORWARD",
            "payer": "BRAND",
            "brand_id": "brand-1",
            "num_boxes": 2,
            "total_weight_kg": 1.5,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["pricing"]["source"] == "global_config"
        assert data["pricing"]["base_rate_per_box"] == 50.0
        assert data["cost_breakdown"]["total_cost"] == 129.38
        assert data["cost_breakdown"]["insurance_cost"] is None

    def test_negative_boxes_rejected(self, client):
        response = client.post(f"{PREFIX}/cost-estimate", json={"num_boxes": -1, "total_weight_kg": 1})
        assert response.status_code == 422

    def test_insurance(self, client):
        response = client.post(f"{PREFIX}/insurance", json={"declared_value": 5000})

        assert response.json() == {
            "required": True,
            "insurance_cost": 100.0,
            "gst_amount": 18.0,
            "total_insurance_charge": 118.0,
            "declared_value": 5000.0,
            "threshold_met": True,
        }


class TestBulkCostApi:

    def test_bulk_cost(self, client):
        response = client.post(f"{PREFIX}/bulk-cost", json=_bulk_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["cost_by_payer"] == {
            "BRAND": 129.38,
            "SERVICE_CENTER": 0.0,
            "DISTRIBUTOR": 0.0,
            "CUSTOMER": 50.0,
        }
        assert data["grand_total"] == 179.38
        assert data["total_shipments"] == 2

    def test_export_csv(self, client):
        response = client.post(f"{PREFIX}/bulk-cost/export", json=_bulk_payload())

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "filename=shipment_costs_" in response.headers["content-disposition"]

        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][0] == "Shipment ID"
        assert rows[-1] == ["GRAND TOTAL", "", "", "", "", "", "", "179.38", "ALL"]


class TestCourierApi:

    def _awb_payload(self, **overrides):
        payload = {
            "shipment_id": "SHP-9",
            "recipient_name": "Sharma Service Center",
            "recipient_phone": "9876543210",
            "recipient_address": {
                "street": "12 MG Road",
                "city": "Bengaluru",
                "state": "Karnataka",
                "pincode": "560038",
            },
            "weight_kg": 1.5,
            "num_boxes": 2,
            "declared_value": 2500,
        }
        payload.update(overrides)
        return payload

    def test_awb_in_fallback_mode(self, client):
        response = client.post(f"{PREFIX}/awb", json=self._awb_payload(shipment_type="REVERSE"))

        data = response.json()
        assert data["success"] is True
        assert data["fallback_mode"] is True
        assert data["awb_number"].startswith("REV")
        assert data["shipment_type"] == "REVERSE"

    def test_awb_validation_failure_is_not_an_http_error(self, client):
        payload = self._awb_payload()
        payload["recipient_address"]["pincode"] = "12"

        response = client.post(f"{PREFIX}/awb", json=payload)

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error"] == "Valid 6-digit pincode is required"

    def test_labels_default_to_awb(self, client):
        response = client.post(f"{PREFIX}/labels", json={"awb_number": "FWD1760000000000123"})

        data = response.json()
        assert data["success"] is True
        assert [label["label_url"] for label in data["labels"]] == [
            "/api/labels/download/fallback-FWD1760000000000123",
        ]

    def test_labels_per_box(self, client):
        response = client.post(f"{PREFIX}/labels", json={
            "awb_number": "FWD1760000000000123",
            "box_ids": ["B1", "B2"],
            "label_format": "PDF_A4",
        })

        labels = response.json()["labels"]
        assert len(labels) == 2
        assert labels[1]["label_url"].endswith("fallback-B2")
        assert labels[0]["label_format"] == "PDF_A4"

    def test_tracking(self, client):
        response = client.get(f"{PREFIX}/tracking/FWD1760000000000123")

        data = response.json()
        assert data["success"] is True
        assert data["fallback_mode"] is True
        assert data["history"][0]["status"] == "BOOKED"

    def test_bulk_tracking(self, client):
        response = client.post(f"{PREFIX}/tracking/bulk", json={
            "awb_numbers": [" FWD1760000000000123 ", "REV1760000000000456", ""],
        })

        data = response.json()
        assert data["total"] == 2
        assert data["successful"] == 2
        assert data["results"][0]["awb_number"] == "FWD1760000000000123"

    def test_bulk_tracking_limit(self, client):
        response = client.post(f"{PREFIX}/tracking/bulk", json={"awb_numbers": ["D1"] * 101})
        assert response.status_code == 422


class TestShipmentApi:

    def test_create_shipment(self, client):
        response = client.post(f"{PREFIX}/shipments", json={
            "origin_party_id": "brand-1",
            "destination_party_id": "sc-1",
            "boxes": [{"parts": [{"part_id": "relay", "quantity": 2}]}, {"box_id": "B2", "parts": []}],
            "priority": "HIGH",
            "shipment_id": "SHP-API",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["payer_assignment"]["payer"] == "BRAND"
        assert data["cost_breakdown"]["express_cost"] > 0
        assert data["fallback_mode"] is True
        assert data["label_urls"] == [
            "/api/labels/download/fallback-SHP-API-box-1",
            "/api/labels/download/fallback-B2",
        ]

    def test_missing_party_is_reported_in_body(self, client):
        response = client.post(f"{PREFIX}/shipments", json={
            "origin_party_id": "ghost",
            "destination_party_id": "sc-1",
            "boxes": [{"parts": [{"part_id": "relay"}]}],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Origin or destination party not found"
        assert data["cost_breakdown"]["total_cost"] == 0.0

    def test_at_least_one_box_required(self, client):
        response = client.post(f"{PREFIX}/shipments", json={
            "origin_party_id": "brand-1",
            "destination_party_id": "sc-1",
            "boxes": [],
        })
        assert response.status_code == 422
