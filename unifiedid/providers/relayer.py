"""
Relayer HTTP client.

The relayer accepts signed payloads and submits the corresponding
transactions. Three outcomes are kept apart:

- no response at all: ``RelayerNetworkError`` is raised;
- a non-2xx response: a ``RelayerResponse`` with ``success=False`` and the
  relayer's error body untouched;
- a 2xx response: a ``RelayerResponse`` with ``success=True``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .base import Provider
from ..core.errors import NetworkError
from ..core.models import RelayerResponse, SignedOperation

logger = logging.getLogger(__name__)


class RelayerNetworkError(NetworkError):
    """The relayer could not be reached or the connection dropped."""
    pass


@dataclass
class RelayerConfig:
    """Relayer provider configuration."""
    base_url: str
    auth_token: str = ""
    timeout_s: float = 30.0


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class RelayerProvider(Provider):
    """
    Client for the Unified ID relayer API.

    Usage:
        relayer = RelayerProvider(RelayerConfig(base_url="https://relayer.example", auth_token="..."))
        response = await relayer.submit(signed_operation)
        if not response.success:
            print(response.error)
    """

    name = "relayer"

    def __init__(
        self,
        config: RelayerConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self.timeout_s = config.timeout_s
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            if self._config.auth_token:
                headers["Authorization"] = f"Bearer {self._config.auth_token}"

            self._client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/"),
                headers=headers,
                timeout=self._config.timeout_s,
                transport=self._transport,
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
    ) -> RelayerResponse:
        try:
            response = await self._get_client().request(method, path, json=json)
        except httpx.RequestError as e:
            logger.error(f"Relayer {method} {path} failed: {e}")
            raise RelayerNetworkError(
                f"Relayer request failed: {e}",
                operation=path,
                url=f"{self._config.base_url.rstrip('/')}{path}",
            ) from e

        body = _body(response)

        if not 200 <= response.status_code < 300:
            logger.warning(f"Relayer {method} {path} returned {response.status_code}")
            return RelayerResponse(
                success=False,
                error=body,
                details={"status": response.status_code, "path": path},
                status_code=response.status_code,
            )

        if isinstance(body, dict) and body.get("success") is False:
            return RelayerResponse(
                success=False,
                error=body.get("error", body),
                details={"status": response.status_code, "path": path},
                status_code=response.status_code,
            )

        data = body.get("data", body) if isinstance(body, dict) else body
        return RelayerResponse(success=True, data=data, status_code=response.status_code)

    async def post(self, path: str, payload: Dict[str, Any]) -> RelayerResponse:
        return await self._request("POST", path, json=payload)

    async def submit(self, operation: SignedOperation) -> RelayerResponse:
        """POST a built operation to its endpoint."""

        logger.info(f"Submitting {operation.action} (nonce={operation.nonce})")
        return await self.post(operation.endpoint, operation.to_dict())

    async def health(self) -> RelayerResponse:
        return await self._request("GET", "/health")

    async def ping(self) -> RelayerResponse:
        return await self._request("GET", "/ping")

    async def ready(self) -> bool:
        return bool(self._config.base_url)

    async def health_check(self) -> Dict[str, Any]:
        """Check relayer API health."""
        if not await self.ready():
            return {"status": "disabled", "reason": "No relayer URL configured"}

        try:
            response = await self.health()
            if response.success:
                return {"status": "healthy"}
            return {"status": "degraded", "code": response.status_code}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
