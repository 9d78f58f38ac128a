# app.services.stripe.client

import json
import uuid
import asyncio
import logging
import httpx
from urllib.parse import urlencode
from typing import Any, Dict, List, Optional, Tuple

from app.core.config import Settings, get_settings
from app.core.enums import RemoteErrorKind
from app.core.exceptions import RemoteApiError
from app.integrations.base import RemoteCatalogClient
from app.schemas.platform.stripe import RemoteProduct, RemotePrice, TaxCode

logger = logging.getLogger(__name__)


def encode_form(data: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """
    Flatten a payload into Stripe's bracketed form encoding.

    ``{"metadata": {"weight": "45"}}`` becomes ``[("metadata[weight]", "45")]``.
    Booleans are sent as ``true``/``false``; ``None`` values are sent empty,
    which Stripe treats as "unset".
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, dict):
            pairs.extend(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                if isinstance(item, dict):
                    pairs.extend(encode_form(item, f"{name}[{index}]"))
                else:
                    pairs.append((f"{name}[{index}]", str(item)))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        elif value is None:
            pairs.append((name, ""))
        else:
            pairs.append((name, str(value)))
    return pairs


def classify_status(status_code: int, error_type: Optional[str] = None) -> RemoteErrorKind:
    """Map an HTTP status (and Stripe error type) onto a RemoteErrorKind."""
    if status_code == 404:
        return RemoteErrorKind.NOT_FOUND
    if status_code == 429 or error_type == "rate_limit_error":
        return RemoteErrorKind.RATE_LIMITED
    if status_code in (401, 403) or error_type == "authentication_error":
        return RemoteErrorKind.UNAUTHORIZED
    if status_code == 409 or status_code >= 500 or error_type == "api_error":
        return RemoteErrorKind.TRANSIENT
    return RemoteErrorKind.UNKNOWN


class StripeClient(RemoteCatalogClient):
    """
    Purpose: Async client for the parts of the Stripe REST API (v1) the catalog sync uses.

    Functionality: products (retrieve, create, update, search by metadata), prices (list, create),
                tax codes (list) and an account identity call for health checks.
                Requests are form-encoded (Stripe does not accept JSON bodies). Rate-limit and transient
                failures are retried with exponential back-off; creates carry one Idempotency-Key
                across all retries of the same POST.

    Documentation: https://docs.stripe.com/api
    """

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com/v1",
        api_version: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self._transport = transport
        self._backoff_base = 0.5
        logger.info(f"Initializing StripeClient for {self.api_base} (API version: {api_version or 'account default'})")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "StripeClient":
        settings = settings or get_settings()
        return cls(
            secret_key=settings.stripe_secret_key,
            api_base=settings.STRIPE_API_BASE,
            api_version=settings.STRIPE_API_VERSION,
            timeout=settings.STRIPE_TIMEOUT_SECONDS,
            max_retries=settings.STRIPE_MAX_RETRIES,
            **kwargs,
        )

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def _get_headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        """Get headers for API requests"""
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Accept": "application/json",
        }
        if self.api_version:
            headers["Stripe-Version"] = self.api_version
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    def _translate_error(self, response: httpx.Response) -> RemoteApiError:
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            body = {}
        error = body.get("error") or {}
        error_type = error.get("type")
        kind = classify_status(response.status_code, error_type)
        code = error.get("code") or error_type or f"http_{response.status_code}"
        message = error.get("message") or response.text or response.reason_phrase
        return RemoteApiError(code=code, message=message, kind=kind, status=response.status_code)

    def _retry_delay(self, attempt: int, response: Optional[httpx.Response] = None) -> float:
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    return min(float(retry_after), 30.0)
                except ValueError:
                    pass
        return min(self._backoff_base * (2 ** attempt), 8.0)

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        idempotent_create: bool = False,
    ) -> Dict[str, Any]:
        """
        Make a request to the Stripe API

        Args:
            method: HTTP method (GET or POST; Stripe uses POST for updates)
            endpoint: API endpoint (without base URL)
            data: Form payload for POST requests
            params: Query parameters
            idempotent_create: Attach an Idempotency-Key reused across retries

        Returns:
            Dict: Response data

        Raises:
            RemoteApiError: If the API request fails after retries
        """
        if not self.secret_key:
            raise RemoteApiError(
                code="missing_secret_key",
                message="Stripe secret key not configured",
                kind=RemoteErrorKind.UNAUTHORIZED,
            )

        url = f"{self.api_base}/{endpoint.lstrip('/')}"
        idempotency_key = str(uuid.uuid4()) if idempotent_create else None
        headers = self._get_headers(idempotency_key)
        form = encode_form(data) if data else None
        if form is not None:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        query = encode_form(params) if params else None

        logger.debug(f"Making {method} request to {url}")
        if query:
            logger.debug(f"Params: {query}")
        if form:
            logger.debug(f"Data: {json.dumps(form)[:500]}...")

        attempt = 0
        while True:
            response: Optional[httpx.Response] = None
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=headers,
                        content=urlencode(form) if form is not None else None,
                        params=query,
                    )
                if response.status_code in (200, 201):
                    return response.json()
                error = self._translate_error(response)
            except httpx.TimeoutException as e:
                error = RemoteApiError(code="timeout", message=f"Request timed out: {e}", kind=RemoteErrorKind.TRANSIENT)
            except httpx.RequestError as e:
                error = RemoteApiError(code="network_error", message=f"Network error: {e}", kind=RemoteErrorKind.TRANSIENT)

            if error.retryable and attempt < self.max_retries:
                delay = self._retry_delay(attempt, response)
                attempt += 1
                logger.warning(
                    f"Stripe {method} {endpoint} failed ({error.kind.value}: {error.code}), "
                    f"retry {attempt}/{self.max_retries} in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
                continue

            if error.kind == RemoteErrorKind.NOT_FOUND:
                logger.debug(f"Stripe {method} {endpoint}: not found")
            else:
                logger.error(f"Stripe API error on {method} {endpoint}: {error}")
            raise error

    async def _list_all(self, endpoint: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Follow Stripe's cursor pagination (has_more / starting_after)."""
        items: List[Dict[str, Any]] = []
        params = dict(params)
        while True:
            page = await self._make_request("GET", endpoint, params=params)
            data = page.get("data") or []
            items.extend(data)
            if not page.get("has_more") or not data:
                return items
            params["starting_after"] = data[-1]["id"]

    # Account

    async def verify_credentials(self) -> Dict[str, Any]:
        account = await self._make_request("GET", "/account")
        return {"id": account.get("id"), "livemode": account.get("livemode")}

    # Product operations

    async def get_product(self, product_id: str) -> RemoteProduct:
        return RemoteProduct.from_api(await self._make_request("GET", f"/products/{product_id}"))

    async def create_product(self, fields: Dict[str, Any]) -> RemoteProduct:
        data = await self._make_request("POST", "/products", data=fields, idempotent_create=True)
        logger.info(f"Created Stripe product {data.get('id')} ({fields.get('name')})")
        return RemoteProduct.from_api(data)

    async def update_product(self, product_id: str, fields: Dict[str, Any]) -> RemoteProduct:
        data = await self._make_request("POST", f"/products/{product_id}", data=fields)
        logger.info(f"Updated Stripe product {product_id}: {sorted(fields)}")
        return RemoteProduct.from_api(data)

    async def search_products_by_metadata(self, key: str, value: str) -> List[RemoteProduct]:
        query = f"metadata['{key}']:'{value}'"
        page = await self._make_request("GET", "/products/search", params={"query": query, "limit": 10})
        return [RemoteProduct.from_api(item) for item in page.get("data") or []]

    # Price operations

    async def list_prices(self, product_id: str, active: Optional[bool] = None) -> List[RemotePrice]:
        params: Dict[str, Any] = {"product": product_id, "limit": 100}
        if active is not None:
            params["active"] = active
        return [RemotePrice.from_api(item) for item in await self._list_all("/prices", params)]

    async def create_price(self, fields: Dict[str, Any]) -> RemotePrice:
        data = await self._make_request("POST", "/prices", data=fields, idempotent_create=True)
        logger.info(f"Created Stripe price {data.get('id')} ({fields.get('unit_amount')} {fields.get('currency')})")
        return RemotePrice.from_api(data)

    # Tax codes

    async def list_tax_codes(self, limit: int = 100) -> List[TaxCode]:
        page = await self._make_request("GET", "/tax_codes", params={"limit": limit})
        return [TaxCode.from_api(item) for item in page.get("data") or []]
