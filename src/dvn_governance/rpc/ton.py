"""Read-only TON HTTP API (toncenter v2 JSON-RPC) client."""
from __future__ import annotations

import base64
import logging
from typing import Any, List, Optional

import httpx
from pytoniq_core import Address, Cell

from ..exceptions import ChainRPCError

logger = logging.getLogger(__name__)

STORAGE_GET_METHOD = "getContractStorage"


def jsonrpc_endpoint(provider_uri: str) -> str:
    """Provider URIs may carry a ``v3-endpoint`` hint; the v2 API lives at ``/jsonRPC``."""
    url = httpx.URL(provider_uri)
    params = url.params.remove("v3-endpoint")
    return str(url.copy_with(path=url.path.rstrip("/") + "/jsonRPC", params=params))


def parse_ton_address(address: str | Address) -> Address:
    """Accept raw/friendly TON addresses or a 0x-prefixed 256-bit basechain hash."""
    if isinstance(address, Address):
        return address
    if address.startswith("0x"):
        account = int(address, 16).to_bytes(66, "big")[-32:]
        return Address(f"0:{account.hex()}")
    return Address(address)


class TonRPCClient:
    def __init__(
        self,
        endpoint: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

    @classmethod
    def from_provider_uri(cls, provider_uri: str, timeout: float = 30.0) -> "TonRPCClient":
        return cls(jsonrpc_endpoint(provider_uri), timeout=timeout)

    async def _rpc(self, method: str, params: dict[str, Any]) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        try:
            resp = await self._client.post(self.endpoint, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ChainRPCError(f"TON RPC {method} failed: {e}", chain="ton") from e
        if data.get("error") or data.get("ok") is False:
            error = data.get("error")
            raise ChainRPCError(
                f"TON RPC {method} failed: {error}",
                chain="ton",
                rpc_error=error if isinstance(error, dict) else {"message": str(error)},
            )
        return data.get("result")

    async def run_get_method(self, address: Address, method: str, stack: Optional[List] = None) -> List:
        result = await self._rpc(
            "runGetMethod",
            {
                "address": address.to_str(is_user_friendly=False),
                "method": method,
                "stack": stack or [],
            },
        )
        exit_code = (result or {}).get("exit_code", 0)
        if exit_code != 0:
            raise ChainRPCError(
                f"{method} on {address.to_str(is_user_friendly=False)} exited with code {exit_code}",
                chain="ton",
            )
        return result.get("stack", [])

    async def get_storage_cell(self, address: Address) -> Cell:
        stack = await self.run_get_method(address, STORAGE_GET_METHOD)
        if not stack or stack[0][0] != "cell":
            raise ChainRPCError(
                f"{STORAGE_GET_METHOD} on {address.to_str(is_user_friendly=False)} returned no cell",
                chain="ton",
            )
        boc = stack[0][1]["bytes"]
        return Cell.one_from_boc(base64.b64decode(boc))

    async def close(self) -> None:
        await self._client.aclose()
