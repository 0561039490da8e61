"""Read-only chain clients used to fetch current DVN state."""

from .solana import SolanaAccountInfo, SolanaRPCClient
from .ton import TonRPCClient

__all__ = ["SolanaAccountInfo", "SolanaRPCClient", "TonRPCClient"]
