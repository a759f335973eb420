# Overview: Async HTTP client for the sales operations API.

"""
SalesOpsClient wraps httpx.AsyncClient with bearer auth and the error
mapping every operator screen relies on:

    401            -> AuthError (token dropped, on_auth_error called)
    403            -> PermissionDenied
    400 / 404      -> ValidationError
    anything else  -> ConflictOrServerError (409, 5xx, network, bad payload)
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import httpx

from .errors import AuthError, ConflictOrServerError, PermissionDenied, ValidationError, ClientError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/sales-ops"


class SalesOpsClient:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        on_auth_error: Callable[[AuthError], None] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.current_user: dict | None = None
        self.on_auth_error = on_auth_error
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "SalesOpsClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _error_for(self, response: httpx.Response) -> ClientError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("error") or f"Request failed with HTTP {response.status_code}"
        code = body.get("code")
        status = response.status_code

        if status == 401:
            self.token = None
            self.current_user = None
            error = AuthError(message, status=status, code=code)
            if self.on_auth_error is not None:
                self.on_auth_error(error)
            return error
        if status == 403:
            return PermissionDenied(message, status=status, code=code)
        if status in (400, 404):
            return ValidationError(message, status=status, code=code)
        return ConflictOrServerError(message, status=status, code=code)

    async def _request(self, method: str, path: str, *, params: dict | None = None, json: Any = None) -> dict:
        try:
            response = await self._client.request(
                method,
                path,
                params={k: v for k, v in (params or {}).items() if v is not None} or None,
                json=json,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ConflictOrServerError(f"Could not reach the server: {exc}") from exc

        if response.status_code >= 400:
            raise self._error_for(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise ConflictOrServerError("Server returned a response that is not JSON", status=response.status_code) from exc
        if not isinstance(data, dict):
            raise ConflictOrServerError("Server returned an unexpected payload", status=response.status_code)
        return data

    @staticmethod
    def _field(data: dict, key: str):
        if key not in data:
            raise ConflictOrServerError(f"Response is missing '{key}'")
        return data[key]

    # =========================================================================
    # AUTH
    # =========================================================================

    async def login(self, username: str, password: str) -> dict:
        data = await self._request("POST", "/api/auth/login", json={"username": username, "password": password})
        self.token = self._field(data, "token")
        self.current_user = data.get("user")
        return data

    async def logout(self) -> None:
        if not self.token:
            return
        await self._request("POST", "/api/auth/logout")
        self.token = None
        self.current_user = None

    async def me(self) -> dict:
        data = await self._request("GET", "/api/auth/me")
        self.current_user = self._field(data, "user")
        return self.current_user

    # =========================================================================
    # SUMMARIES AND LOADING
    # =========================================================================

    async def get_or_create_summary(self, driver_id: int, sale_date: str, route_id: int | None = None) -> dict:
        payload = {"driver_id": driver_id, "sale_date": sale_date}
        if route_id is not None:
            payload["route_id"] = route_id
        data = await self._request("POST", f"{API_PREFIX}/summaries", json=payload)
        return self._field(data, "summary")

    async def list_summaries(self, *, driver_id: int | None = None, sale_date: str | None = None,
                             status: str | None = None) -> list[dict]:
        data = await self._request(
            "GET", f"{API_PREFIX}/summaries",
            params={"driver_id": driver_id, "sale_date": sale_date, "status": status},
        )
        return self._field(data, "summaries")

    async def get_loading(self, driver_id: int, sale_date: str, route_id: int | None = None) -> dict:
        return await self._request(
            "GET", f"{API_PREFIX}/loading",
            params={"driver_id": driver_id, "date": sale_date, "route_id": route_id},
        )

    async def declare_loading(self, summary_id: int, items: list[dict], notes: str | None = None) -> dict:
        data = await self._request(
            "PUT", f"{API_PREFIX}/summaries/{summary_id}/loading",
            json={"items": items, "notes": notes},
        )
        return self._field(data, "loading_batch")

    # =========================================================================
    # ROUTE CUSTOMERS
    # =========================================================================

    async def load_route(self, route_id: int) -> dict:
        """Customer list plus the server's debounce window for route reorders."""
        data = await self._request("GET", f"{API_PREFIX}/routes/{route_id}/customers")
        self._field(data, "customers")
        return data

    async def list_route_customers(self, route_id: int) -> list[dict]:
        return (await self.load_route(route_id))["customers"]

    async def add_route_customer(self, route_id: int, customer_id: int) -> list[dict]:
        data = await self._request(
            "POST", f"{API_PREFIX}/routes/{route_id}/customers", json={"customer_id": customer_id}
        )
        return self._field(data, "customers")

    async def remove_route_customer(self, route_id: int, customer_id: int) -> list[dict]:
        data = await self._request("DELETE", f"{API_PREFIX}/routes/{route_id}/customers/{customer_id}")
        return self._field(data, "customers")

    async def save_customer_order(self, route_id: int, customer_ids: list[int]) -> list[dict]:
        data = await self._request(
            "PUT", f"{API_PREFIX}/routes/{route_id}/customer-order", json={"customer_ids": list(customer_ids)}
        )
        return self._field(data, "customers")

    # =========================================================================
    # CATALOG
    # =========================================================================

    async def search_customers(self, search: str | None = None) -> list[dict]:
        data = await self._request("GET", f"{API_PREFIX}/customers", params={"search": search or None})
        return self._field(data, "customers")

    async def list_products(self) -> list[dict]:
        data = await self._request("GET", f"{API_PREFIX}/products")
        return self._field(data, "products")

    async def get_customer_prices(self, customer_id: int, as_of: str | None = None) -> list[dict]:
        data = await self._request(
            "GET", f"{API_PREFIX}/customers/{customer_id}/prices", params={"as_of": as_of}
        )
        return self._field(data, "prices")

    async def set_customer_price(
        self,
        customer_id: int,
        product_id: int,
        unit_price_cents: int,
        *,
        effective_date: str | None = None,
        reason: str | None = None,
    ) -> dict:
        body = {"unit_price_cents": unit_price_cents, "effective_date": effective_date, "reason": reason}
        data = await self._request(
            "PUT",
            f"{API_PREFIX}/customers/{customer_id}/prices/{product_id}",
            json={k: v for k, v in body.items() if v is not None},
        )
        return self._field(data, "price")

    # =========================================================================
    # SALES
    # =========================================================================

    async def list_sales(self, summary_id: int) -> list[dict]:
        data = await self._request("GET", f"{API_PREFIX}/summaries/{summary_id}/sales")
        return self._field(data, "sales")

    async def commit_batch(self, summary_id: int, sales_data: list[dict]) -> dict:
        return await self._request(
            "POST", f"{API_PREFIX}/sales/batch",
            json={"driver_daily_summary_id": summary_id, "sales_data": sales_data},
        )

    async def create_sale(self, summary_id: int, sale: dict) -> dict:
        return await self._request(
            "POST", f"{API_PREFIX}/sales", json={**sale, "driver_daily_summary_id": summary_id}
        )

    async def update_sale(self, sale_id: int, sale: dict) -> dict:
        return await self._request("PUT", f"{API_PREFIX}/sales/{sale_id}", json=sale)

    async def delete_sale(self, sale_id: int) -> dict:
        return await self._request("DELETE", f"{API_PREFIX}/sales/{sale_id}")

    # =========================================================================
    # RETURNS
    # =========================================================================

    async def list_returns(self, summary_id: int) -> list[dict]:
        data = await self._request("GET", f"{API_PREFIX}/summaries/{summary_id}/returns")
        return self._field(data, "returns")

    async def save_returns(self, summary_id: int, returns: list[dict]) -> list[dict]:
        data = await self._request(
            "PUT", f"{API_PREFIX}/summaries/{summary_id}/returns", json={"returns": returns}
        )
        return self._field(data, "returns")

    async def list_loss_reasons(self) -> list[dict]:
        data = await self._request("GET", f"{API_PREFIX}/loss-reasons")
        return self._field(data, "loss_reasons")

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    async def get_reconciliation(self, driver_id: int, sale_date: str) -> dict:
        data = await self._request(
            "GET", f"{API_PREFIX}/reconciliation", params={"driver_id": driver_id, "date": sale_date}
        )
        self._field(data, "summary")
        self._field(data, "product_reconciliation")
        return data

    async def finalize(
        self,
        summary_id: int,
        cash_collected_cents: int,
        status: str,
        notes: str | None = None,
        version_id: int | None = None,
    ) -> dict:
        payload = {
            "cash_collected_cents": cash_collected_cents,
            "reconciliation_status": status,
            "reconciliation_notes": notes,
        }
        if version_id is not None:
            payload["version_id"] = version_id
        data = await self._request("PUT", f"{API_PREFIX}/summaries/{summary_id}/reconcile", json=payload)
        return self._field(data, "summary")

    async def unlock(self, summary_id: int, note: str | None = None) -> dict:
        data = await self._request("POST", f"{API_PREFIX}/summaries/{summary_id}/unlock", json={"note": note})
        return self._field(data, "summary")
