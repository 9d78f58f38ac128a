# Stripe client unit tests
from unittest.mock import AsyncMock
from urllib.parse import parse_qs

import httpx
import pytest

from app.core.config import Settings
from app.core.enums import RemoteErrorKind
from app.core.exceptions import RemoteApiError
from app.services.stripe.client import StripeClient, classify_status, encode_form


def make_client(handler, **kwargs):
    return StripeClient(
        secret_key=kwargs.pop("secret_key", "sk_test_123"),
        api_version="2024-06-20",
        max_retries=kwargs.pop("max_retries", 2),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def product_json(**overrides):
    data = {
        "id": "prod_1",
        "object": "product",
        "name": "45 LB Plate",
        "description": "Hi-Temp 45lb Bumper Plate - Factory Second",
        "active": True,
        "metadata": {"weight": "45"},
        "tax_code": "txcd_99999999",
        "updated": 1760000000,
    }
    data.update(overrides)
    return data


def stripe_error(status, error_type, code, message):
    return httpx.Response(status, json={"error": {"type": error_type, "code": code, "message": message}})


@pytest.fixture(autouse=True)
def no_backoff(mocker):
    return mocker.patch("app.services.stripe.client.asyncio.sleep", new=AsyncMock())


"""
1. Encoding and classification
"""

def test_encode_form_brackets_nested_values():
    pairs = encode_form({
        "name": "45 LB Plate",
        "metadata": {"weight": "45", "regular_price": ""},
        "images": ["https://example.com/45.jpg"],
        "active": True,
    })

    assert pairs == [
        ("name", "45 LB Plate"),
        ("metadata[weight]", "45"),
        ("metadata[regular_price]", ""),
        ("images[0]", "https://example.com/45.jpg"),
        ("active", "true"),
    ]


@pytest.mark.parametrize("status,error_type,kind", [
    (404, "invalid_request_error", RemoteErrorKind.NOT_FOUND),
    (429, "rate_limit_error", RemoteErrorKind.RATE_LIMITED),
    (401, "authentication_error", RemoteErrorKind.UNAUTHORIZED),
    (403, None, RemoteErrorKind.UNAUTHORIZED),
    (500, "api_error", RemoteErrorKind.TRANSIENT),
    (503, None, RemoteErrorKind.TRANSIENT),
    (400, "invalid_request_error", RemoteErrorKind.UNKNOWN),
    (402, "card_error", RemoteErrorKind.UNKNOWN),
])
def test_classify_status(status, error_type, kind):
    assert classify_status(status, error_type) == kind


def test_from_settings_uses_mode_key():
    live = Settings(STRIPE_MODE="live", STRIPE_LIVE_SECRET_KEY="", STRIPE_SECRET_KEY="sk_live_legacy")
    sandbox = Settings(STRIPE_MODE="sandbox", STRIPE_TEST_SECRET_KEY="sk_test_abc")

    assert StripeClient.from_settings(live).secret_key == "sk_live_legacy"
    assert StripeClient.from_settings(sandbox).secret_key == "sk_test_abc"


"""
2. Requests
"""

@pytest.mark.asyncio
async def test_create_product_sends_form_with_headers():
    seen = {}

    def handler(request: httpx.Request):
        seen["request"] = request
        return httpx.Response(200, json=product_json())

    client = make_client(handler)
    product = await client.create_product({"name": "45 LB Plate", "metadata": {"weight": "45", "product_id": "7"}})

    request = seen["request"]
    assert request.method == "POST"
    assert request.url.path == "/v1/products"
    assert request.headers["Authorization"] == "Bearer sk_test_123"
    assert request.headers["Stripe-Version"] == "2024-06-20"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert request.headers["Idempotency-Key"]
    body = parse_qs(request.content.decode())
    assert body["metadata[weight]"] == ["45"]
    assert body["metadata[product_id]"] == ["7"]
    assert product.id == "prod_1"
    assert product.metadata == {"weight": "45"}
    assert product.updated_at is not None


@pytest.mark.asyncio
async def test_update_product_has_no_idempotency_key():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json=product_json(name="New"))

    product = await make_client(handler).update_product("prod_1", {"name": "New"})

    assert seen["request"].url.path == "/v1/products/prod_1"
    assert "Idempotency-Key" not in seen["request"].headers
    assert product.name == "New"


@pytest.mark.asyncio
async def test_search_by_metadata_builds_query():
    seen = {}

    def handler(request):
        seen["query"] = request.url.params["query"]
        return httpx.Response(200, json={"object": "search_result", "data": [product_json()], "has_more": False})

    results = await make_client(handler).search_products_by_metadata("product_id", "7")

    assert seen["query"] == "metadata['product_id']:'7'"
    assert [p.id for p in results] == ["prod_1"]


@pytest.mark.asyncio
async def test_list_prices_follows_pagination():
    pages = {
        None: {"data": [{"id": "price_1", "product": "prod_1", "unit_amount": 11000}], "has_more": True},
        "price_1": {"data": [{"id": "price_2", "product": "prod_1", "unit_amount": 12500}], "has_more": False},
    }

    def handler(request):
        assert request.url.params["product"] == "prod_1"
        return httpx.Response(200, json=pages[request.url.params.get("starting_after")])

    prices = await make_client(handler).list_prices("prod_1")

    assert [(p.id, p.unit_amount) for p in prices] == [("price_1", 11000), ("price_2", 12500)]


@pytest.mark.asyncio
async def test_verify_credentials_returns_account_identity():
    def handler(request):
        assert request.url.path == "/v1/account"
        return httpx.Response(200, json={"id": "acct_1", "livemode": False, "email": "ops@example.com"})

    assert await make_client(handler).verify_credentials() == {"id": "acct_1", "livemode": False}


"""
3. Errors and retries
"""

@pytest.mark.asyncio
async def test_not_found_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return stripe_error(404, "invalid_request_error", "resource_missing", "No such product: 'prod_x'")

    with pytest.raises(RemoteApiError) as exc_info:
        await make_client(handler).get_product("prod_x")

    assert exc_info.value.kind == RemoteErrorKind.NOT_FOUND
    assert exc_info.value.code == "resource_missing"
    assert exc_info.value.status == 404
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_rate_limit_is_retried_with_same_idempotency_key(no_backoff):
    keys = []

    def handler(request):
        keys.append(request.headers["Idempotency-Key"])
        if len(keys) == 1:
            return httpx.Response(429, headers={"Retry-After": "2"},
                                  json={"error": {"type": "rate_limit_error", "message": "Too many requests"}})
        return httpx.Response(200, json={"id": "price_1", "product": "prod_1", "unit_amount": 12500})

    price = await make_client(handler).create_price({"product": "prod_1", "unit_amount": 12500, "currency": "usd"})

    assert price.id == "price_1"
    assert len(keys) == 2
    assert keys[0] == keys[1]
    no_backoff.assert_awaited_once_with(2.0)


@pytest.mark.asyncio
async def test_transient_errors_give_up_after_max_retries():
    calls = []

    def handler(request):
        calls.append(request)
        return stripe_error(500, "api_error", None, "Something went wrong")

    with pytest.raises(RemoteApiError) as exc_info:
        await make_client(handler, max_retries=2).get_product("prod_1")

    assert exc_info.value.kind == RemoteErrorKind.TRANSIENT
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_network_error_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteApiError) as exc_info:
        await make_client(handler, max_retries=0).list_tax_codes()

    assert exc_info.value.kind == RemoteErrorKind.TRANSIENT
    assert exc_info.value.code == "network_error"


@pytest.mark.asyncio
async def test_unauthorized_maps_from_error_body():
    def handler(request):
        return stripe_error(401, "authentication_error", None, "Invalid API Key provided: sk_test_***")

    with pytest.raises(RemoteApiError) as exc_info:
        await make_client(handler).verify_credentials()

    assert exc_info.value.kind == RemoteErrorKind.UNAUTHORIZED
    assert "Invalid API Key" in exc_info.value.message


@pytest.mark.asyncio
async def test_missing_key_fails_without_a_request():
    def handler(request):
        raise AssertionError("no request expected")

    client = make_client(handler, secret_key="")

    assert not client.configured
    with pytest.raises(RemoteApiError) as exc_info:
        await client.get_product("prod_1")
    assert exc_info.value.kind == RemoteErrorKind.UNAUTHORIZED


@pytest.mark.asyncio
async def test_non_json_error_body():
    def handler(request):
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    with pytest.raises(RemoteApiError) as exc_info:
        await make_client(handler, max_retries=0).get_product("prod_1")

    assert exc_info.value.kind == RemoteErrorKind.TRANSIENT
    assert exc_info.value.code == "http_502"
