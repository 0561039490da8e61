"""Read-only Solana JSON-RPC client."""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..exceptions import ChainRPCError

logger = logging.getLogger(__name__)


@dataclass
class SolanaAccountInfo:
    owner: str  # base58 program id
    data: bytes
    lamports: int = 0
    executable: bool = False


class SolanaRPCClient:
    """Async Solana JSON-RPC client.

    Uses raw httpx; only the account reads needed for governance payloads
    are implemented.
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.commitment = commitment
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

    async def _rpc(self, method: str, params: list[Any] | None = None) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        try:
            resp = await self._client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ChainRPCError(f"Solana RPC {method} failed: {e}", chain="solana") from e
        if "error" in data:
            error = data["error"]
            raise ChainRPCError(
                f"Solana RPC {method} failed: {error.get('message', 'Unknown RPC error')}",
                chain="solana",
                rpc_error=error,
            )
        return data.get("result")

    async def get_account_info(self, pubkey: str) -> SolanaAccountInfo:
        result = await self._rpc(
            "getAccountInfo",
            [pubkey, {"encoding": "base64", "commitment": self.commitment}],
        )
        value = (result or {}).get("value")
        if value is None:
            raise ChainRPCError(f"Solana account {pubkey} not found", chain="solana")
        raw, _encoding = value["data"]
        logger.debug("Fetched Solana account %s owned by %s", pubkey, value["owner"])
        return SolanaAccountInfo(
            owner=value["owner"],
            data=base64.b64decode(raw),
            lamports=value.get("lamports", 0),
            executable=value.get("executable", False),
        )

    async def close(self) -> None:
        await self._client.aclose()
