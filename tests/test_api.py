"""
API tests: routes, auth gates and the error envelope, driven through the
ASGI app with every service bound to the in-memory Redis mock.
"""

import httpx
import pytest
from httpx import ASGITransport

from dispatch.auth_middleware import create_access_token
from dispatch.main import app
from dispatch.middleware.idempotency import IdempotencyMiddleware
from dispatch.routers import dependencies as deps
from dispatch.services.ingestion import IngestionService
from dispatch.services.integration_settings import GoogleSheetsSettings, IntegrationSettingsStore
from dispatch.services.locations import LocationService

from conftest import TEST_DATE, make_settings


SHEET_VALUES = [
    ["Order No", "Receipt", "Customer", "Phone", "Amount", "Receipt Amount", "Area"],
    ["1001", "R-1", "Jane Doe", "555-0100", "42.50", "42.50", "Downtown"],
]


class SheetsStub:
    """MockTransport handler whose reply each test can swap."""

    def __init__(self):
        self.response = httpx.Response(200, json={"values": SHEET_VALUES})
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(
            self.response.status_code,
            content=self.response.content,
            headers={"content-type": "application/json"},
        )


@pytest.fixture
def app_settings():
    return make_settings(RIDER_STATUS_USE_ORDER_DATE=True)


@pytest.fixture
def settings_store(mock_redis):
    return IntegrationSettingsStore(redis_client=mock_redis)


@pytest.fixture
def sheets():
    return SheetsStub()


@pytest.fixture
def overrides(store, identity, settings_store, mock_redis, app_settings, sheets):
    transport = httpx.MockTransport(sheets)
    app.dependency_overrides.update({
        deps.get_order_store: lambda: store,
        deps.get_identity: lambda: identity,
        deps.get_settings_store: lambda: settings_store,
        deps.get_location_service: lambda: LocationService(redis_client=mock_redis),
        deps.get_idempotency: lambda: IdempotencyMiddleware(redis_client=mock_redis),
        deps.get_app_settings: lambda: app_settings,
        deps.get_ingestion_service: lambda: IngestionService(
            store, settings_store, client=httpx.AsyncClient(transport=transport)
        ),
    })
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client(overrides):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


async def _create(client, admin, **order):
    fields = {"customerName": "Jane Doe", "amount": "42.50", **order}
    response = await client.post("/orders", json={"date": TEST_DATE, "order": fields}, headers=auth(admin))
    assert response.status_code == 200
    return response.json()["order"]


# --- Basics ---

async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "message": "Server is running"}


async def test_missing_token_is_401_with_error_body(client):
    response = await client.get(f"/orders/{TEST_DATE}")

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


async def test_rider_cannot_create_orders(client, rider):
    response = await client.post(
        "/orders", json={"date": TEST_DATE, "order": {"customerName": "x", "amount": "1"}}, headers=auth(rider)
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


async def test_malformed_body_is_400(client, admin):
    response = await client.post("/orders/abc/assign", json={}, headers=auth(admin))

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request")


async def test_unhandled_error_is_500(overrides, admin):
    class Broken:
        def list_orders(self, date):
            raise RuntimeError("redis down")

    app.dependency_overrides[deps.get_order_store] = lambda: Broken()
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get(f"/orders/{TEST_DATE}", headers=auth(admin))

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


# --- Orders ---

async def test_create_and_list(client, admin, rider):
    order = await _create(client, admin, address="Downtown")

    assert order["id"].startswith("order_")
    assert order["source"] == "manual"
    assert order["deliveryStatus"] == "pending"

    response = await client.get(f"/orders/{TEST_DATE}", headers=auth(rider))
    assert [o["id"] for o in response.json()["orders"]] == [order["id"]]


async def test_create_requires_amount(client, admin, store):
    response = await client.post(
        "/orders", json={"date": TEST_DATE, "order": {"customerName": "Jane"}}, headers=auth(admin)
    )

    assert response.status_code == 400
    assert "amount" in response.json()["error"]
    assert store.list_orders(TEST_DATE) == []


async def test_idempotency_key_replays_first_response(client, admin, store):
    body = {"date": TEST_DATE, "order": {"customerName": "Jane", "amount": "5"}}
    headers = {**auth(admin), "Idempotency-Key": "submit-1"}

    first = await client.post("/orders", json=body, headers=headers)
    second = await client.post("/orders", json=body, headers=headers)

    assert first.json() == second.json()
    assert len(store.list_orders(TEST_DATE)) == 1


async def test_create_with_sheets_mirror(client, admin, settings_store, sheets):
    settings_store.save_google_sheets(GoogleSheetsSettings(spreadsheet_id="sheet123", api_key="key123"))

    response = await client.post(
        "/orders",
        json={"date": TEST_DATE, "order": {"customerName": "Jane", "amount": "5"}, "syncToSheets": True},
        headers=auth(admin),
    )

    assert response.status_code == 200
    assert "sheetsError" not in response.json()
    assert sheets.requests[0].url.path.endswith(":append")


async def test_mirror_failure_keeps_order(client, admin, store):
    # No Google Sheets settings saved
    response = await client.post(
        "/orders",
        json={"date": TEST_DATE, "order": {"customerName": "Jane", "amount": "5"}, "syncToSheets": True},
        headers=auth(admin),
    )

    assert response.status_code == 200
    assert response.json()["sheetsError"] == "Google Sheets settings not found"
    assert len(store.list_orders(TEST_DATE)) == 1


async def test_assign_missing_order_is_404(client, admin, rider):
    response = await client.post(
        "/orders/nope/assign", json={"date": TEST_DATE, "riderId": rider.id}, headers=auth(admin)
    )

    assert response.status_code == 404
    assert response.json() == {"error": "Order not found"}


async def test_full_delivery_flow_frees_rider(client, admin, rider, identity):
    order = await _create(client, admin)

    response = await client.post(
        f"/orders/{order['id']}/assign", json={"date": TEST_DATE, "riderId": rider.id}, headers=auth(admin)
    )
    assert response.json()["order"]["assignedTo"] == rider.id
    assert identity.get_rider(rider.id).status == "busy"

    for status in ("accepted", "en route", "delivered"):
        response = await client.post(
            f"/orders/{order['id']}/delivery-status", json={"date": TEST_DATE, "status": status}, headers=auth(rider)
        )
        assert response.status_code == 200
    assert response.json()["order"]["deliveredAt"]

    response = await client.post(
        f"/orders/{order['id']}/payment", json={"date": TEST_DATE, "paymentMethod": "cash"}, headers=auth(rider)
    )
    paid = response.json()["order"]
    assert paid["paymentStatus"] == "collected"
    assert paid["paymentCollectedBy"] == rider.id
    assert identity.get_rider(rider.id).status == "available"

    response = await client.get(f"/riders/{rider.id}/orders?date={TEST_DATE}", headers=auth(rider))
    assert [o["id"] for o in response.json()["orders"]] == [order["id"]]


async def test_amount_update_is_admin_only(client, admin, rider):
    order = await _create(client, admin)

    denied = await client.post(
        f"/orders/{order['id']}/amount", json={"date": TEST_DATE, "amount": "50"}, headers=auth(rider)
    )
    allowed = await client.post(
        f"/orders/{order['id']}/amount", json={"date": TEST_DATE, "amount": "50"}, headers=auth(admin)
    )

    assert denied.status_code == 401
    assert allowed.json()["order"]["amount"] == "50"


async def test_strict_transitions_answer_400(client, admin, rider, app_settings):
    app_settings.STRICT_DELIVERY_TRANSITIONS = True
    order = await _create(client, admin)

    response = await client.post(
        f"/orders/{order['id']}/delivery-status", json={"date": TEST_DATE, "status": "delivered"}, headers=auth(rider)
    )

    assert response.status_code == 400
    assert "error" in response.json()


# --- Summary ---

async def test_summary(client, admin, rider):
    order = await _create(client, admin, amount="20")
    await _create(client, admin, amount="7.5")
    await client.post(
        f"/orders/{order['id']}/assign", json={"date": TEST_DATE, "riderId": rider.id}, headers=auth(admin)
    )
    await client.post(
        f"/orders/{order['id']}/payment", json={"date": TEST_DATE, "paymentMethod": "card"}, headers=auth(admin)
    )

    response = await client.get(f"/summary/{TEST_DATE}", headers=auth(admin))

    body = response.json()
    assert body["summary"]["totalOrders"] == 2
    assert body["summary"]["assignedOrders"] == 1
    assert body["summary"]["cardPayments"] == 20
    assert body["summary"]["cashPayments"] == 0
    assert body["riderSummaries"][0]["riderId"] == rider.id
    assert body["riderSummaries"][0]["cardCollected"] == 20


# --- Setup & auth ---

async def test_setup_flow(client, identity):
    status = await client.get("/setup/status")
    assert status.json() == {"setupComplete": False}

    payload = {
        "admin": {"email": "boss@example.com", "password": "secret1", "name": "Boss"},
        "riders": [{"username": "rita", "password": "secret1", "name": "Rita"}],
    }
    response = await client.post("/setup/complete", json=payload)
    assert response.json()["success"] is True

    status = await client.get("/setup/status")
    assert status.json() == {"setupComplete": True}
    assert [r.username for r in identity.list_riders()] == ["rita"]

    again = await client.post("/setup/complete", json=payload)
    assert again.status_code == 400


async def test_signin(client, rider):
    response = await client.post("/auth/signin", json={"email": "rita@delivery.local", "password": "secret1"})

    assert response.status_code == 200
    body = response.json()
    assert body["accessToken"]
    assert body["user"]["id"] == rider.id
    assert "passwordHash" not in body["user"]


async def test_signin_bad_password(client, rider):
    response = await client.post("/auth/signin", json={"email": "rita@delivery.local", "password": "wrong!"})

    assert response.status_code == 401
    assert "error" in response.json()


@pytest.mark.parametrize("payload", [
    {"email": "a@b.c", "password": "123", "name": "A", "role": "dispatcher"},
    {"email": "a@b.c", "password": "secret1", "role": "dispatcher"},
    {"email": "a@b.c", "password": "secret1", "name": "A"},
    {"email": "a@b.c", "password": "secret1", "name": "A", "role": "chef"},
])
async def test_signup_validation(client, payload):
    response = await client.post("/auth/signup", json=payload)

    assert response.status_code == 400


async def test_signup_rider(client):
    response = await client.post(
        "/auth/signup", json={"username": "otto", "password": "secret1", "name": "Otto", "role": "rider"}
    )

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "otto@delivery.local"


async def test_admin_signup_blocked_after_setup(client, identity):
    identity.mark_setup_complete()

    response = await client.post(
        "/auth/signup", json={"email": "x@example.com", "password": "secret1", "name": "X", "role": "admin"}
    )

    assert response.status_code == 400


# --- Riders ---

async def test_rider_directory(client, admin, rider):
    created = await client.post(
        "/riders", json={"username": "otto", "password": "secret1", "name": "Otto"}, headers=auth(admin)
    )
    assert created.json()["rider"]["status"] == "available"

    listing = await client.get("/riders", headers=auth(admin))
    assert {r["username"] for r in listing.json()["riders"]} == {"rita", "otto"}

    denied = await client.get("/riders", headers=auth(rider))
    assert denied.status_code == 401


async def test_manual_rider_status(client, admin, rider, identity):
    ok = await client.post(f"/riders/{rider.id}/status", json={"status": "busy"}, headers=auth(admin))
    bad = await client.post(f"/riders/{rider.id}/status", json={"status": "napping"}, headers=auth(admin))

    assert ok.json() == {"success": True}
    assert identity.get_rider(rider.id).status == "busy"
    assert bad.status_code == 400


async def test_locations(client, admin, rider):
    await client.post(
        f"/riders/{rider.id}/location", json={"latitude": 52.52, "longitude": 13.40}, headers=auth(rider)
    )

    own = await client.get(f"/riders/{rider.id}/location", headers=auth(rider))
    assert own.json()["location"]["latitude"] == 52.52

    everyone = await client.get("/riders/locations", headers=auth(admin))
    row = everyone.json()["locations"][0]
    assert row["riderId"] == rider.id
    assert row["riderName"] == "Rita Rider"
    assert row["location"]["longitude"] == 13.40


# --- Integrations ---

async def test_sync_without_settings_is_404(client, admin):
    response = await client.post("/google-sheets/sync-orders", json={"date": TEST_DATE}, headers=auth(admin))

    assert response.status_code == 404
    assert response.json() == {"error": "Google Sheets settings not found"}


async def test_sheets_sync(client, admin, settings_store):
    await client.post(
        "/settings/google-sheets", json={"spreadsheetId": "sheet123", "apiKey": "key123"}, headers=auth(admin)
    )

    first = await client.post("/google-sheets/sync-orders", json={"date": TEST_DATE}, headers=auth(admin))
    second = await client.post("/google-sheets/sync-orders", json={"date": TEST_DATE}, headers=auth(admin))

    assert first.json() == {
        "success": True,
        "message": "Synced 1 rows, added 1 new orders",
        "newOrdersCount": 1,
    }
    assert second.json()["newOrdersCount"] == 0


async def test_sheets_upstream_failure(client, admin, settings_store, sheets, store):
    settings_store.save_google_sheets(GoogleSheetsSettings(spreadsheet_id="sheet123", api_key="key123"))
    sheets.response = httpx.Response(403, json={"error": {"message": "The caller does not have permission"}})

    response = await client.post("/google-sheets/sync-orders", json={"date": TEST_DATE}, headers=auth(admin))

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "The caller does not have permission"}
    assert store.list_orders(TEST_DATE) == []


async def test_settings_round_trip(client, admin):
    await client.post(
        "/settings/shopify",
        json={"storeUrl": "demo.myshopify.com", "accessToken": "shpat_test"},
        headers=auth(admin),
    )

    response = await client.get("/settings/shopify", headers=auth(admin))

    assert response.json()["settings"] == {"storeUrl": "demo.myshopify.com", "accessToken": "shpat_test"}


# --- Non-string inputs ---

async def test_numeric_phone_accepted_on_create(client, admin):
    response = await client.post(
        "/orders",
        json={"date": TEST_DATE, "order": {"customerName": "Jane", "amount": 42.5, "customerPhone": 5551234}},
        headers=auth(admin),
    )

    assert response.status_code == 200
    assert response.json()["order"]["customerPhone"] == "5551234"
    assert response.json()["order"]["amount"] == 42.5


async def test_structured_name_is_400(client, admin):
    response = await client.post(
        "/orders",
        json={"date": TEST_DATE, "order": {"customerName": {"first": "Jane"}, "amount": "5"}},
        headers=auth(admin),
    )

    assert response.status_code == 400
    assert "customerName" in response.json()["error"]


async def test_numeric_status_and_method_keep_day_readable(client, admin, rider):
    order = await _create(client, admin)

    status = await client.post(
        f"/orders/{order['id']}/delivery-status", json={"date": TEST_DATE, "status": 3}, headers=auth(rider)
    )
    payment = await client.post(
        f"/orders/{order['id']}/payment", json={"date": TEST_DATE, "paymentMethod": 1}, headers=auth(rider)
    )

    assert status.json()["order"]["deliveryStatus"] == "3"
    assert payment.json()["order"]["paymentMethod"] == "1"

    listing = await client.get(f"/orders/{TEST_DATE}", headers=auth(admin))
    assert listing.status_code == 200
    summary = await client.get(f"/summary/{TEST_DATE}", headers=auth(admin))
    assert summary.status_code == 200


async def test_null_status_and_method_rejected(client, admin, rider):
    order = await _create(client, admin)
    await client.post(
        f"/orders/{order['id']}/delivery-status", json={"date": TEST_DATE, "status": "accepted"}, headers=auth(rider)
    )

    status = await client.post(
        f"/orders/{order['id']}/delivery-status", json={"date": TEST_DATE, "status": None}, headers=auth(rider)
    )
    payment = await client.post(
        f"/orders/{order['id']}/payment", json={"date": TEST_DATE, "paymentMethod": None}, headers=auth(rider)
    )

    assert status.status_code == 400
    assert payment.status_code == 400

    listing = await client.get(f"/orders/{TEST_DATE}", headers=auth(admin))
    assert listing.status_code == 200
    stored = listing.json()["orders"][0]
    assert stored["deliveryStatus"] == "accepted"
    assert stored["paymentStatus"] == "pending"


async def test_sheets_add_order_with_structured_field_is_400(client, admin, settings_store, sheets):
    settings_store.save_google_sheets(GoogleSheetsSettings(spreadsheet_id="sheet123", api_key="key123"))

    response = await client.post(
        "/google-sheets/add-order",
        json={"date": TEST_DATE, "order": {"customerName": ["Jane"], "customerPhone": 5551234}},
        headers=auth(admin),
    )

    assert response.status_code == 400
    assert sheets.requests == []
