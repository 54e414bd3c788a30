"""
Pytest configuration and fixtures
"""
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx
import pytest
import pytest_asyncio

from shipflow.models.shipment import ShipmentType
from shipflow.services.courier import (
    Address,
    AwbRequest,
    CourierCredentials,
    CourierGateway,
    DtdcAdapter,
    WarehouseAddress,
)
from shipflow.services.stores import PartyInfo, PricingOverride


# ==================== STORE FAKES ====================

class FakePartyDirectory:
    def __init__(self, parties: Iterable[PartyInfo] = ()):
        self.parties = {party.id: party for party in parties}

    async def get_party(self, party_id: str) -> Optional[PartyInfo]:
        return self.parties.get(party_id)


class FakeOverrideStore:
    def __init__(self, overrides: Iterable[PricingOverride] = (), error: Optional[Exception] = None):
        self.overrides = {override.brand_id: override for override in overrides}
        self.error = error
        self.calls: List[str] = []

    async def get_active_override(self, brand_id: str) -> Optional[PricingOverride]:
        self.calls.append(brand_id)
        if self.error:
            raise self.error
        return self.overrides.get(brand_id)


class FakeConfigStore:
    def __init__(self, value: Any = None, error: Optional[Exception] = None):
        self.value = value
        self.error = error
        self.keys: List[str] = []

    async def get_config(self, key: str):
        self.keys.append(key)
        if self.error:
            raise self.error
        return self.value


class FakeRecordStore:
    def __init__(self, error: Optional[Exception] = None):
        self.updates: Dict[str, List[Dict[str, Any]]] = {}
        self.error = error

    async def update_shipment(self, shipment_id: str, patch: Dict[str, Any]) -> None:
        if self.error:
            raise self.error
        self.updates.setdefault(shipment_id, []).append(patch)


class FakeWeightCatalog:
    def __init__(self, weights: Optional[Dict[str, float]] = None):
        self.weights = weights or {}

    async def get_weights(self, part_ids: Iterable[str]) -> Dict[str, float]:
        return {part_id: self.weights[part_id] for part_id in part_ids if part_id in self.weights}


# ==================== CARRIER STUBS ====================

class CarrierStub:
    """Call-counting httpx transport handler."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: List[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


class SleepRecorder:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def awb_response(awb: str = "D1234567890") -> httpx.Response:
    return httpx.Response(200, json={
        "success": True,
        "data": [{"awbNumber": awb, "status": "BOOKED"}],
    })


@pytest.fixture
def warehouse() -> WarehouseAddress:
    return WarehouseAddress(
        name="SpareFlow Logistics Pvt Ltd",
        phone="9876543200",
        address="Tech Park, Andheri East",
        city="Mumbai",
        state="Maharashtra",
        pincode="400069",
        returns_email="returns@spareflow.com",
    )


@pytest.fixture
def live_credentials() -> CourierCredentials:
    return CourierCredentials(
        api_key="test-api-key-123456",
        customer_code="GL001",
        api_url="https://pxapi.test",
        tracking_url="https://track.test",
        tracking_access_token="track-token",
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture
async def make_gateway(live_credentials, warehouse, sleep_recorder):
    """Build a gateway whose HTTP calls go to a stub handler."""
    clients: List[httpx.AsyncClient] = []

    def factory(
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
        credentials: Optional[CourierCredentials] = None,
        **kwargs,
    ) -> CourierGateway:
        credentials = credentials or live_credentials
        client = None
        if handler is not None:
            client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
            clients.append(client)
        return CourierGateway(
            adapter=DtdcAdapter(credentials, warehouse),
            credentials=credentials,
            client=client,
            sleep=sleep_recorder,
            **kwargs,
        )

    yield factory

    for client in clients:
        await client.aclose()


@pytest.fixture
def make_awb_request() -> Callable[..., AwbRequest]:
    def factory(**overrides) -> AwbRequest:
        address = overrides.pop("recipient_address", None) or Address(
            street="12 MG Road",
            area="Indiranagar",
            city="Bengaluru",
            state="Karnataka",
            pincode="560038",
        )
        values = dict(
            shipment_id="SHP-1",
            recipient_name="Sharma Service Center",
            recipient_phone="+91 98765-43210",
            recipient_address=address,
            weight_kg=1.5,
            num_boxes=2,
            declared_value=2500,
            shipment_type=ShipmentType.FORWARD,
        )
        values.update(overrides)
        return AwbRequest(**values)

    return factory


# ==================== PARTIES ====================

@pytest.fixture
def brand() -> PartyInfo:
    return PartyInfo(
        id="brand-1",
        role="BRAND",
        name="Acme Appliances",
        phone="9811122233",
        street="Plot 7, Sector 62",
        area="Industrial Area",
        city="Noida",
        state="Uttar Pradesh",
        pincode="201301",
    )


@pytest.fixture
def service_center() -> PartyInfo:
    return PartyInfo(
        id="sc-1",
        role="SERVICE_CENTER",
        name="Sharma Service Center",
        phone="9876543210",
        street="12 MG Road",
        area="Indiranagar",
        city="Bengaluru",
        state="Karnataka",
        pincode="560038",
    )


@pytest.fixture
def customer() -> PartyInfo:
    return PartyInfo(
        id="cust-1",
        role="CUSTOMER",
        name="Priya Nair",
        phone="9900011122",
        street="4 Beach Road",
        area="Fort Kochi",
        city="Kochi",
        state="Kerala",
        pincode="682001",
        is_remote_area=True,
    )
