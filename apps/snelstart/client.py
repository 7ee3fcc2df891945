from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional

import requests
from django.conf import settings
from django.core.cache import cache

from .dto import RemoteSalesOrder, SalesOrderRequest
from .error_codes import extract_error_message, map_status
from .exceptions import SnelStartAPIError, SnelStartConfigurationError
from .models import SnelStartConnection

logger = logging.getLogger(__name__)


class SnelStartClient:
    """HTTP client for the SnelStart B2B API with rate-limit aware retries."""

    TOKEN_CACHE_KEY = "snelstart:token:{}"
    TOKEN_EXPIRY_MARGIN_S = 60
    RETRY_BASE_DELAY_S = 1.0

    def __init__(
        self,
        *,
        base_url: str,
        auth_url: str,
        subscription_key: str,
        integration_key: str,
        timeout_s: int = 30,
        max_retries: int = 3,
        connection_id: str = "default",
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url
        self.auth_url = auth_url
        self.subscription_key = subscription_key
        self.integration_key = integration_key
        self.timeout = timeout_s
        self.max_retries = max(1, max_retries)
        self.connection_id = connection_id
        self.session = session or requests.Session()
        self._sleep = sleep

    @classmethod
    def from_connection(cls, connection: SnelStartConnection, **kwargs) -> "SnelStartClient":
        return cls(
            base_url=connection.base_url,
            auth_url=connection.auth_url,
            subscription_key=connection.get_subscription_key(),
            integration_key=connection.get_integration_key(),
            timeout_s=connection.timeout_s,
            max_retries=connection.max_retries,
            connection_id=str(connection.id),
            **kwargs,
        )

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def create_sales_order(self, order: SalesOrderRequest) -> RemoteSalesOrder:
        body = self.request("POST", "/v2/verkooporders", json=order.to_payload())
        if not isinstance(body, dict) or not body.get("id"):
            raise SnelStartAPIError(
                "SnelStart did not return an id for the created sales order.",
                error_code="invalid_response",
                retryable=True,
                payload=body if isinstance(body, dict) else {"raw": body},
            )
        return RemoteSalesOrder.from_payload(body)

    def get_orders_for_customer(self, customer_id: str) -> List[RemoteSalesOrder]:
        params = {"relatie": customer_id} if customer_id else None
        body = self.request("GET", "/v2/verkooporders", params=params)
        if not isinstance(body, list):
            return []
        return [RemoteSalesOrder.from_payload(entry) for entry in body if isinstance(entry, dict)]

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        last_error: Optional[SnelStartAPIError] = None
        for attempt in range(self.max_retries):
            try:
                return self._send(method, path, params=params, json=json)
            except SnelStartAPIError as exc:
                last_error = exc
                if not exc.retryable or attempt + 1 >= self.max_retries:
                    raise
                delay = self.RETRY_BASE_DELAY_S * (2 ** attempt) + random.uniform(0, 1)
                logger.warning(
                    "[SNELSTART] %s %s failed (%s), retrying in %.2fs (attempt %s/%s)",
                    method.upper(),
                    path,
                    exc.error_code,
                    delay,
                    attempt + 1,
                    self.max_retries,
                )
                self._sleep(delay)
        raise last_error  # pragma: no cover - loop always returns or raises

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]],
        json: Optional[Dict[str, Any]],
    ) -> Any:
        url = self._build_url(path)
        try:
            response = self.session.request(
                method=method.upper(),
                url=url,
                params=params,
                json=json,
                headers=self._build_headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("[SNELSTART] Network error calling %s %s: %s", method.upper(), url, exc)
            raise SnelStartAPIError(
                "Network error while contacting SnelStart",
                status_code=None,
                error_code="network_error",
                retryable=True,
            ) from exc

        body = self._parse_response_body(response)
        if response.ok:
            logger.debug("[SNELSTART] %s %s - %s", method.upper(), url, response.status_code)
            return body

        if response.status_code == 401:
            cache.delete(self._token_cache_key())

        error_code, retryable = map_status(response.status_code)
        error_message = extract_error_message(body)
        logger.error(
            "[SNELSTART] %s %s - %s %s",
            method.upper(),
            url,
            response.status_code,
            error_message,
        )
        raise SnelStartAPIError(
            f"SnelStart responded {response.status_code}: {error_message}",
            status_code=response.status_code,
            error_code=error_code,
            retryable=retryable,
            payload=body if isinstance(body, dict) else {"raw": body},
        )

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Ocp-Apim-Subscription-Key": self.subscription_key,
            "Authorization": f"Bearer {self._access_token()}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _build_url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _token_cache_key(self) -> str:
        return self.TOKEN_CACHE_KEY.format(self.connection_id)

    def _access_token(self) -> str:
        cache_key = self._token_cache_key()
        token = cache.get(cache_key)
        if token:
            return token

        try:
            response = self.session.post(
                self.auth_url,
                data={"grant_type": "clientkey", "clientkey": self.integration_key},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise SnelStartAPIError(
                "Network error while requesting a SnelStart token",
                error_code="network_error",
                retryable=True,
            ) from exc

        body = self._parse_response_body(response)
        if not response.ok or not isinstance(body, dict) or not body.get("access_token"):
            retryable = False if response.ok else map_status(response.status_code)[1]
            raise SnelStartAPIError(
                f"Could not obtain SnelStart token: {extract_error_message(body)}",
                status_code=response.status_code,
                error_code="authentication_error",
                retryable=retryable,
            )

        token = body["access_token"]
        expires_in = int(body.get("expires_in") or 3600)
        cache.set(cache_key, token, timeout=max(expires_in - self.TOKEN_EXPIRY_MARGIN_S, 1))
        return token

    def _parse_response_body(self, response: requests.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}


class MockSnelStartClient:
    """Offline stand-in used when SNELSTART_MOCK is enabled."""

    def create_sales_order(self, order: SalesOrderRequest) -> RemoteSalesOrder:
        order_id = f"mock-order-{int(time.time() * 1000)}"
        logger.info("[SNELSTART][MOCK] Created sales order %s for %s", order_id, order.customer_ref)
        return RemoteSalesOrder(id=order_id, customer_ref=order.customer_ref)

    def get_orders_for_customer(self, customer_id: str) -> List[RemoteSalesOrder]:
        return []


def get_gateway():
    """Build the gateway for the active connection, falling back to env credentials."""
    if getattr(settings, "SNELSTART_MOCK", False):
        return MockSnelStartClient()

    connection = SnelStartConnection.objects.current()
    if connection:
        return SnelStartClient.from_connection(connection)

    subscription_key = getattr(settings, "SNELSTART_SUBSCRIPTION_KEY", "")
    integration_key = getattr(settings, "SNELSTART_INTEGRATION_KEY", "")
    if not subscription_key or not integration_key:
        raise SnelStartConfigurationError("No active SnelStart connection settings found")
    return SnelStartClient(
        base_url=settings.SNELSTART_API_BASE_URL,
        auth_url=settings.SNELSTART_API_AUTH_URL,
        subscription_key=subscription_key,
        integration_key=integration_key,
        timeout_s=settings.SNELSTART_TIMEOUT_S,
    )
