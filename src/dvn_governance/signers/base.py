"""Signer backend interface.

A backend hides custody (remote KMS, secret-store mnemonic, raw mnemonic)
and returns the signer's raw output; turning that output into the chain's
signature format is left to the recoverable-signature builder.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union

from ..models import SignatureScheme, SignerDescriptor


@dataclass(frozen=True)
class DerSignature:
    """DER (r, s) from a custodial signer; recovery id unknown."""
    der: bytes
    public_key: bytes  # 64-byte uncompressed secp256k1


@dataclass(frozen=True)
class EcdsaSignature:
    """Locally produced (r, s) with its recovery id."""
    r: int
    s: int
    recovery_id: int
    public_key: bytes


@dataclass(frozen=True)
class EdwardsSignature:
    """Ed25519 signature; identity comes from the companion ECDSA key."""
    signature: bytes
    identity_public_key: bytes


RawSignature = Union[DerSignature, EcdsaSignature, EdwardsSignature]


class SignerBackend(ABC):
    """Produce a raw signature over a 32-byte digest."""

    @abstractmethod
    async def sign(
        self,
        descriptor: SignerDescriptor,
        digest: bytes,
        scheme: SignatureScheme = SignatureScheme.SECP256K1,
    ) -> RawSignature:
        """Sign ``digest`` with the key named by ``descriptor``."""

    async def close(self) -> None:
        """Release any clients held by the backend."""
