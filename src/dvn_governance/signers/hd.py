"""Key derivation from BIP-39 mnemonics.

secp256k1 keys use BIP-32 through eth-account. Ed25519 keys use SLIP-0010,
which only defines hardened derivation, so every path component is
hardened for that curve.
"""
from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import List

from eth_account import Account
from eth_account.hdaccount import seed_from_mnemonic
from eth_keys import keys
from eth_utils import ValidationError
from nacl import signing

from ..exceptions import ConfigurationError

HARDENED_OFFSET = 0x80000000
ED25519_SEED_KEY = b"ed25519 seed"

Account.enable_unaudited_hdwallet_features()


@dataclass(frozen=True)
class PathComponent:
    index: int
    hardened: bool = False

    @classmethod
    def from_string(cls, s: str) -> "PathComponent":
        s = s.strip()
        hardened = s.endswith("'") or s.endswith("h") or s.endswith("H")
        index_str = s.rstrip("'hH")
        if not index_str.isdigit():
            raise ConfigurationError(f"Invalid derivation path component: {s!r}")
        return cls(index=int(index_str), hardened=hardened)


def parse_path(path: str) -> List[PathComponent]:
    parts = path.strip().split("/")
    if not parts or parts[0] != "m":
        raise ConfigurationError(f"Derivation path must start with 'm/': {path!r}")
    return [PathComponent.from_string(p) for p in parts[1:] if p]


def derive_secp256k1_key(mnemonic: str, path: str) -> keys.PrivateKey:
    try:
        account = Account.from_mnemonic(mnemonic, account_path=path)
    except (ValueError, ValidationError) as e:
        raise ConfigurationError(f"Cannot derive key from mnemonic: {e}") from e
    return keys.PrivateKey(bytes(account.key))


def ed25519_key_from_seed(seed: bytes, path: str) -> bytes:
    """SLIP-0010 ed25519 private key for ``path`` under ``seed``."""
    digest = hmac.new(ED25519_SEED_KEY, seed, hashlib.sha512).digest()
    key, chain_code = digest[:32], digest[32:]
    for component in parse_path(path):
        index = component.index | HARDENED_OFFSET
        data = b"\x00" + key + index.to_bytes(4, "big")
        digest = hmac.new(chain_code, data, hashlib.sha512).digest()
        key, chain_code = digest[:32], digest[32:]
    return key


def derive_ed25519_key(mnemonic: str, path: str) -> signing.SigningKey:
    try:
        seed = seed_from_mnemonic(mnemonic, passphrase="")
    except (ValueError, ValidationError) as e:
        raise ConfigurationError(f"Invalid mnemonic: {e}") from e
    return signing.SigningKey(ed25519_key_from_seed(seed, path))
