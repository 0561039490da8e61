"""Recoverable ECDSA signature building.

Custodial signers return DER-encoded (r, s) with no recovery id. The
builder canonicalizes s into the lower half of the curve order and finds
the recovery id by recovering a public key for each of the four
candidates and matching it against the signer's known key.

Serialized layout: r (32 bytes) || s (32 bytes) || recovery byte.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from eth_keys.backends.native.jacobian import from_jacobian, inv, jacobian_add, jacobian_multiply
from eth_keys.constants import SECPK1_A, SECPK1_B, SECPK1_Gx, SECPK1_Gy, SECPK1_N, SECPK1_P

from .exceptions import RecoveryIdNotFoundError, SignatureParseError

logger = logging.getLogger(__name__)

HALF_N = SECPK1_N // 2


@dataclass(frozen=True)
class RecoverableSignature:
    r: int
    s: int
    recovery_id: int  # 0-3

    def to_bytes(self, recovery_offset: int = 0) -> bytes:
        return (
            self.r.to_bytes(32, "big")
            + self.s.to_bytes(32, "big")
            + bytes([self.recovery_id + recovery_offset])
        )

    def to_hex(self, recovery_offset: int = 0) -> str:
        return "0x" + self.to_bytes(recovery_offset).hex()


def parse_der_signature(der: bytes) -> tuple[int, int]:
    try:
        r, s = decode_dss_signature(der)
    except ValueError as e:
        raise SignatureParseError(f"Invalid DER signature: {e}") from e
    if not (0 < r < SECPK1_N and 0 < s < SECPK1_N):
        raise SignatureParseError("DER signature components are outside the curve order")
    return r, s


def canonicalize_s(s: int) -> tuple[int, bool]:
    """Return (low_s, flipped)."""
    if s > HALF_N:
        return SECPK1_N - s, True
    return s, False


def recover_public_key(digest: bytes, r: int, s: int, recovery_id: int) -> Optional[bytes]:
    """64-byte public key for one recovery candidate, or None if the candidate is invalid.

    Candidates 2 and 3 use x = r + N, which only exists when r + N < P.
    """
    x = r + (recovery_id >> 1) * SECPK1_N
    if x >= SECPK1_P:
        return None
    alpha = (x * x * x + SECPK1_A * x + SECPK1_B) % SECPK1_P
    beta = pow(alpha, (SECPK1_P + 1) // 4, SECPK1_P)
    if (beta * beta - alpha) % SECPK1_P != 0:
        return None
    y = beta if beta % 2 == recovery_id % 2 else SECPK1_P - beta

    z = int.from_bytes(digest, "big")
    gz = jacobian_multiply((SECPK1_Gx, SECPK1_Gy, 1), (SECPK1_N - z) % SECPK1_N)
    xy = jacobian_multiply((x, y, 1), s)
    qr = jacobian_add(gz, xy)
    q = jacobian_multiply(qr, inv(r, SECPK1_N))
    qx, qy = from_jacobian(q)
    if qx == 0 and qy == 0:
        return None
    return qx.to_bytes(32, "big") + qy.to_bytes(32, "big")


def _normalize_public_key(public_key: bytes) -> bytes:
    if len(public_key) == 65 and public_key[0] == 4:
        return public_key[1:]
    if len(public_key) != 64:
        raise SignatureParseError(
            f"Expected an uncompressed secp256k1 public key, got {len(public_key)} bytes"
        )
    return public_key


class RecoverableSignatureBuilder:
    """Turns raw signer output into canonical, recoverable signatures."""

    def from_der(self, der: bytes, digest: bytes, public_key: bytes) -> RecoverableSignature:
        r, s = parse_der_signature(der)
        s, _ = canonicalize_s(s)
        return RecoverableSignature(r, s, self.find_recovery_id(digest, r, s, public_key))

    def from_raw(self, r: int, s: int, recovery_id: int) -> RecoverableSignature:
        """Canonicalize a signature whose recovery id is already known."""
        s, flipped = canonicalize_s(s)
        if flipped:
            # Negating s mirrors R, flipping the y parity
            recovery_id ^= 1
        return RecoverableSignature(r, s, recovery_id)

    def find_recovery_id(self, digest: bytes, r: int, s: int, public_key: bytes) -> int:
        expected = _normalize_public_key(public_key)
        for candidate in range(4):
            if recover_public_key(digest, r, s, candidate) == expected:
                return candidate
        raise RecoveryIdNotFoundError(
            "No recovery id in 0-3 recovers the signer's public key",
            details={"r": hex(r), "s": hex(s)},
        )
