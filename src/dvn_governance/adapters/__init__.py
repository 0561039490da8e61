"""Chain adapter registry, one adapter per chain family."""
from __future__ import annotations

from typing import Dict, Iterable, Optional

from ..exceptions import ConfigurationError
from ..models import ChainFamily
from ..registry import ProviderRegistry
from ..rpc.solana import SolanaRPCClient
from ..rpc.ton import TonRPCClient
from .base import ChainAdapter, evm_address_from_public_key
from .evm import EvmAdapter
from .move import MoveAdapter
from .solana import SolanaAdapter
from .starknet import StarknetAdapter
from .ton import TonAdapter


def build_adapters(
    providers: Optional[ProviderRegistry] = None,
    rpc_timeout: float = 30.0,
    edwards_chains: Iterable[str] = (),
) -> Dict[ChainFamily, ChainAdapter]:
    """Instantiate every adapter.

    RPC clients are created lazily, so a run that never touches Solana or
    TON does not need provider entries for them.
    """
    edwards_chains = tuple(edwards_chains)

    def solana_client() -> SolanaRPCClient:
        return SolanaRPCClient(_require(providers).primary_uri("solana"), timeout=rpc_timeout)

    def ton_client() -> TonRPCClient:
        return TonRPCClient.from_provider_uri(_require(providers).primary_uri("ton"), timeout=rpc_timeout)

    return {
        ChainFamily.EVM: EvmAdapter(edwards_chains),
        ChainFamily.MOVE: MoveAdapter(edwards_chains),
        ChainFamily.STARKNET: StarknetAdapter(edwards_chains),
        ChainFamily.SOLANA: SolanaAdapter(solana_client, edwards_chains),
        ChainFamily.TON: TonAdapter(ton_client, edwards_chains),
    }


def _require(providers: Optional[ProviderRegistry]) -> ProviderRegistry:
    if providers is None:
        raise ConfigurationError("An RPC provider config is required for this chain")
    return providers


async def close_adapters(adapters: Dict[ChainFamily, ChainAdapter]) -> None:
    for adapter in adapters.values():
        close = getattr(adapter, "close", None)
        if close is not None:
            await close()


__all__ = [
    "ChainAdapter",
    "EvmAdapter",
    "MoveAdapter",
    "SolanaAdapter",
    "StarknetAdapter",
    "TonAdapter",
    "build_adapters",
    "close_adapters",
    "evm_address_from_public_key",
]
