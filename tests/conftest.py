"""
Pytest configuration for dvn-governance tests.
"""
from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Dict, List

import pytest
from eth_keys import keys

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

# Keep a developer's .env or shell settings out of the tests
for _name in list(os.environ):
    if _name.startswith("DVN_GOV_"):
        del os.environ[_name]

from dvn_governance.config import GovernanceSettings
from dvn_governance.models import CustodialKey, SignatureScheme
from dvn_governance.signers import EcdsaSignature, SignerBackend

TEST_MNEMONIC = "test test test test test test test test test test test junk"
# First account of TEST_MNEMONIC on m/44'/60'/0'/0/0
TEST_MNEMONIC_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class FakeKeySigner(SignerBackend):
    """In-memory secp256k1 signer keyed by CustodialKey.key_id."""

    def __init__(self, private_keys: Dict[str, keys.PrivateKey]):
        self.private_keys = private_keys
        self.signed: List[bytes] = []

    async def sign(self, descriptor, digest, scheme=SignatureScheme.SECP256K1):
        key = self.private_keys[descriptor.key_id]
        self.signed.append(digest)
        signature = key.sign_msg_hash(digest)
        return EcdsaSignature(
            r=signature.r,
            s=signature.s,
            recovery_id=signature.v,
            public_key=key.public_key.to_bytes(),
        )


@pytest.fixture
def private_keys() -> List[keys.PrivateKey]:
    """Five deterministic secp256k1 keys."""
    return [keys.PrivateKey(bytes([i + 1]) * 32) for i in range(5)]


@pytest.fixture
def key_descriptors(private_keys) -> tuple:
    return tuple(CustodialKey(key_id=f"key-{i}", region="us-east-1") for i in range(len(private_keys)))


@pytest.fixture
def fake_signer(private_keys, key_descriptors) -> FakeKeySigner:
    return FakeKeySigner({d.key_id: k for d, k in zip(key_descriptors, private_keys)})


@pytest.fixture
def sample_eth_address():
    """Valid Ethereum address for testing."""
    return "0x1234567890123456789012345678901234567890"


@pytest.fixture
def settings(tmp_path) -> GovernanceSettings:
    """Settings rooted in a temporary directory."""
    return GovernanceSettings(
        _env_file=None,
        data_dir=tmp_path / "data",
        providers_dir=tmp_path / "providers",
        output_dir=tmp_path / "out",
    )


@pytest.fixture
def write_registry(settings):
    """Write a JSON registry file under the settings' data directory."""

    def _write(path: Path, content) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(content))
        return path

    return _write
