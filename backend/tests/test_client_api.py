"""
Operator HTTP client tests (httpx.MockTransport).

Verifies:
- Bearer token is attached after login
- Status codes map onto the client error taxonomy
- 401 drops the session and calls the auth hook
- Transport failures and malformed payloads are retryable errors
"""

import json

import httpx
import pytest

from salesops.client import (
    AuthError,
    ConflictOrServerError,
    PermissionDenied,
    SalesOpsClient,
    ValidationError,
)

from conftest import run


def _client(handler, **kwargs):
    return SalesOpsClient("http://salesops.test", transport=httpx.MockTransport(handler), **kwargs)


def _error(status, code, message="nope"):
    return lambda request: httpx.Response(status, json={"error": message, "code": code})


async def _call(client, coro_factory):
    async with client:
        return await coro_factory(client)


class TestRequests:

    def test_login_then_bearer_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            if request.url.path == "/api/auth/login":
                return httpx.Response(200, json={"token": "tok-1", "user": {"id": 1, "role": "clerk"}})
            return httpx.Response(200, json={"products": [{"id": 1}]})

        async def scenario(client):
            await client.login("office", "Password123!")
            return await client.list_products()

        client = _client(handler)
        assert run(_call(client, scenario)) == [{"id": 1}]
        assert client.current_user == {"id": 1, "role": "clerk"}
        assert "authorization" not in seen[0].headers
        assert seen[1].headers["authorization"] == "Bearer tok-1"

    def test_batch_payload_shape(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"summary": {"id": 5}, "processed_sales": 1, "sales": []})

        rows = [{"customer_id": 3, "payment_type": "Cash", "items": [{"product_id": 1, "quantity_sold": 2}]}]
        result = run(_call(_client(handler, token="t"), lambda c: c.commit_batch(5, rows)))

        assert result["processed_sales"] == 1
        assert bodies == [{"driver_daily_summary_id": 5, "sales_data": rows}]

    def test_customer_price_requests(self):
        seen = []

        def handler(request):
            seen.append(request)
            if request.method == "PUT":
                return httpx.Response(200, json={"price": json.loads(request.content)})
            return httpx.Response(200, json={"customer_id": 7, "prices": [{"product_id": 2, "unit_price_cents": 450}]})

        async def scenario(client):
            prices = await client.get_customer_prices(7, as_of="2026-10-19")
            price = await client.set_customer_price(7, 2, 450)
            return prices, price

        prices, price = run(_call(_client(handler, token="t"), scenario))
        assert prices == [{"product_id": 2, "unit_price_cents": 450}]
        assert price == {"unit_price_cents": 450}
        assert seen[0].url.path == "/api/sales-ops/customers/7/prices"
        assert seen[0].url.params["as_of"] == "2026-10-19"
        assert seen[1].url.path == "/api/sales-ops/customers/7/prices/2"

    def test_load_route_reports_debounce_window(self):
        def handler(request):
            return httpx.Response(200, json={"route_id": 4, "customers": [], "debounce_seconds": 0.5})

        route = run(_call(_client(handler, token="t"), lambda c: c.load_route(4)))
        assert route["debounce_seconds"] == 0.5

    def test_none_params_are_dropped(self):
        urls = []

        def handler(request):
            urls.append(request.url)
            return httpx.Response(200, json={"summaries": []})

        run(_call(_client(handler, token="t"), lambda c: c.list_summaries(driver_id=3)))
        assert dict(urls[0].params) == {"driver_id": "3"}

    def test_finalize_sends_version(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"summary": {"id": 7, "reconciliation_status": "Cash Short"}})

        summary = run(_call(_client(handler, token="t"), lambda c: c.finalize(7, 950, "Cash Short", None, version_id=3)))
        assert summary["reconciliation_status"] == "Cash Short"
        assert bodies[0] == {
            "cash_collected_cents": 950,
            "reconciliation_status": "Cash Short",
            "reconciliation_notes": None,
            "version_id": 3,
        }


class TestErrorMapping:

    @pytest.mark.parametrize(
        "status,code,expected",
        [
            (400, "validation_error", ValidationError),
            (404, "not_found", ValidationError),
            (403, "permission_denied", PermissionDenied),
            (409, "conflict", ConflictOrServerError),
            (500, "server_error", ConflictOrServerError),
            (503, None, ConflictOrServerError),
        ],
    )
    def test_status_mapping(self, status, code, expected):
        with pytest.raises(expected) as excinfo:
            run(_call(_client(_error(status, code), token="t"), lambda c: c.list_products()))
        assert excinfo.value.status == status
        assert excinfo.value.code == code

    def test_401_clears_session_and_calls_hook(self):
        hooked = []
        client = _client(_error(401, "auth_error", "Invalid or expired token"), token="t", on_auth_error=hooked.append)
        client.current_user = {"id": 1}

        with pytest.raises(AuthError):
            run(_call(client, lambda c: c.me()))
        assert client.token is None
        assert client.current_user is None
        assert len(hooked) == 1
        assert hooked[0].message == "Invalid or expired token"

    def test_network_failure_is_retryable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ConflictOrServerError) as excinfo:
            run(_call(_client(handler, token="t"), lambda c: c.list_products()))
        assert excinfo.value.retryable is True

    def test_non_json_body(self):
        handler = lambda request: httpx.Response(200, text="<html>proxy page</html>")
        with pytest.raises(ConflictOrServerError):
            run(_call(_client(handler, token="t"), lambda c: c.list_products()))

    def test_missing_field(self):
        handler = lambda request: httpx.Response(200, json={"unexpected": True})
        with pytest.raises(ConflictOrServerError):
            run(_call(_client(handler, token="t"), lambda c: c.list_products()))

    def test_reconciliation_view_must_be_complete(self):
        handler = lambda request: httpx.Response(200, json={"summary": {"id": 1}})
        with pytest.raises(ConflictOrServerError):
            run(_call(_client(handler, token="t"), lambda c: c.get_reconciliation(1, "2026-10-19")))
