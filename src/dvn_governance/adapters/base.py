"""Chain adapter interface."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable

from eth_utils import keccak, to_checksum_address

from ..exceptions import UnsupportedOperationError
from ..models import (
    CallData,
    ChainFamily,
    ChainTarget,
    GovernanceOperation,
    SignatureScheme,
    SignerMode,
)

logger = logging.getLogger(__name__)


def evm_address_from_public_key(public_key: bytes) -> str:
    """Checksummed address for a 64-byte (or 65-byte 0x04-prefixed) secp256k1 key."""
    if len(public_key) == 65:
        public_key = public_key[1:]
    if len(public_key) != 64:
        raise ValueError(f"expected an uncompressed secp256k1 public key, got {len(public_key)} bytes")
    return to_checksum_address(keccak(public_key)[-20:])


class ChainAdapter(ABC):
    """Encodes governance calls and computes the signed digest for one chain family.

    Subclasses implement ``build_call_data`` and ``hash_call_data``. The
    remaining hooks have defaults that fit most families.
    """

    family: ChainFamily
    # Added to the recovery id in serialized ECDSA signatures
    recovery_offset: int = 0

    def __init__(self, edwards_chains: Iterable[str] = ()) -> None:
        self._edwards_chains = frozenset(edwards_chains)

    @abstractmethod
    async def build_call_data(
        self,
        operation: GovernanceOperation,
        target: ChainTarget,
    ) -> CallData:
        """Encode ``operation`` in the chain's native call format."""

    @abstractmethod
    async def hash_call_data(
        self,
        target: ChainTarget,
        expiration: int,
        call_data: CallData,
    ) -> bytes:
        """Canonical 32-byte digest over the call and its replay-protection fields."""

    def signing_digest(self, digest: bytes) -> bytes:
        """The 32 bytes a signer backend actually signs."""
        return digest

    def output_call_data(self, operation: GovernanceOperation, call_data: CallData) -> Any:
        """Call-data representation written to the output artifact."""
        return call_data.to_hex()

    # ============ Identity hooks ============

    def signature_scheme(self, target: ChainTarget, signer_mode: SignerMode) -> SignatureScheme:
        """Edwards keys are only used for raw-mnemonic signing on configured chains."""
        if signer_mode is SignerMode.LOCAL and target.chain_name in self._edwards_chains:
            return SignatureScheme.ED25519
        return SignatureScheme.SECP256K1

    def identity_address(self, public_key: bytes) -> str:
        """Signer identity used for ordering and de-duplication."""
        return evm_address_from_public_key(public_key)

    def _unsupported(self, operation: GovernanceOperation, target: ChainTarget) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            f"{operation.name} is not supported on {target.chain_name} ({self.family.value})",
            details={"chain": target.chain_name, "operation": operation.name},
        )
