"""
Minimal async JSON-RPC client for read-only contract calls.

Only ``eth_call`` and ``eth_chainId`` are needed; everything goes through
one pooled ``httpx.AsyncClient``.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .base import Provider
from ..core.errors import ContractCallError, NetworkError

logger = logging.getLogger(__name__)


@dataclass
class RpcConfig:
    """JSON-RPC endpoint configuration."""
    rpc_url: str
    timeout_s: float = 30.0


class JsonRpcProvider(Provider):
    """
    JSON-RPC transport used by the chain reader.

    Transport failures and non-2xx HTTP statuses raise ``NetworkError``;
    a JSON-RPC ``error`` object raises ``ContractCallError`` with
    ``reverted`` set when the node reports an execution revert.
    """

    name = "jsonrpc"

    def __init__(
        self,
        config: RpcConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self.timeout_s = config.timeout_s
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)

    @property
    def rpc_url(self) -> str:
        return self._config.rpc_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=self._config.timeout_s,
                transport=self._transport,
            )
        return self._client

    async def request(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

        try:
            response = await self._get_client().post(self._config.rpc_url, json=payload)
        except httpx.RequestError as e:
            logger.warning("RPC %s request failed: %s", method, e)
            raise NetworkError(
                f"RPC request failed: {e}", operation=method, url=self._config.rpc_url
            ) from e

        if response.status_code >= 400:
            raise NetworkError(
                f"RPC endpoint returned HTTP {response.status_code}",
                operation=method,
                url=self._config.rpc_url,
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise NetworkError(
                "RPC endpoint returned a non-JSON body", operation=method, url=self._config.rpc_url
            ) from e

        if not isinstance(result, dict):
            raise ContractCallError(
                f"RPC endpoint returned {type(result).__name__}, expected a JSON object",
                operation=method,
            )

        if "error" in result and result["error"]:
            error = result["error"]
            message = str(error.get("message", error)) if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            raise ContractCallError(
                message,
                operation=method,
                reverted=code == 3 or "revert" in message.lower(),
                error_data=error.get("data") if isinstance(error, dict) else None,
            )

        return result.get("result")

    async def eth_call(self, to: str, data: str, block: str = "latest") -> bytes:
        """Execute a read-only call and return the raw return data."""

        result = await self.request("eth_call", [{"to": to, "data": data}, block])
        if not result or result == "0x":
            return b""
        try:
            return bytes.fromhex(result[2:] if result.startswith("0x") else result)
        except (ValueError, TypeError, AttributeError) as e:
            raise ContractCallError(
                f"malformed eth_call result {result!r}", operation="eth_call", error_data=result
            ) from e

    async def chain_id(self) -> int:
        result = await self.request("eth_chainId", [])
        try:
            return int(result, 16)
        except (ValueError, TypeError) as e:
            raise ContractCallError(
                f"malformed eth_chainId result {result!r}", operation="eth_chainId"
            ) from e

    async def ready(self) -> bool:
        return bool(self._config.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        """Check RPC endpoint health."""
        if not await self.ready():
            return {"status": "disabled", "reason": "No RPC URL configured"}

        try:
            chain_id = await self.chain_id()
            return {"status": "healthy", "chain_id": chain_id}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
