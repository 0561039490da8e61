"""
Tests for dvn_governance.adapters.evm.

Tests cover:
- Function selectors and ABI-encoded arguments
- Packed keccak256 digest over (vid, target, expiration, callData)
- EIP-191 signing digest
"""
from __future__ import annotations

import pytest
from eth_abi import decode
from eth_utils import keccak, to_checksum_address

from dvn_governance.adapters.evm import EvmAdapter, hash_evm_call_data
from dvn_governance.models import (
    MESSAGE_LIB_ROLE,
    AddOrRemoveSigner,
    BytesCallData,
    ChainFamily,
    ChainTarget,
    GrantRevokeRole,
    SetQuorum,
    SignatureScheme,
    SignerMode,
)

DVN = "0x" + "11" * 20


@pytest.fixture
def target():
    return ChainTarget("ethereum", ChainFamily.EVM, DVN, 101)


@pytest.fixture
def adapter():
    return EvmAdapter()


class TestHashEvmCallData:
    """Tests for the packed digest."""

    def test_fixed_vector(self):
        """Digest for a literal input is a pinned keccak256 value."""
        digest = hash_evm_call_data(30101, DVN, 1700000000, bytes.fromhex("1234"))
        assert digest.hex() == "097fb0709066ac2dc47215a7cc97cbcce13bae729d5c6be289df0165a94b73ca"

    def test_packed_layout(self):
        """Digest equals keccak over the tightly packed fields."""
        vid = 30101
        expiration = 1700000000
        call_data = bytes.fromhex("1234")

        packed = (
            vid.to_bytes(4, "big")
            + bytes.fromhex("11" * 20)
            + expiration.to_bytes(32, "big")
            + call_data
        )
        assert len(packed) == 58
        assert hash_evm_call_data(vid, DVN, expiration, call_data) == keccak(packed)

    def test_each_field_changes_digest(self):
        base = hash_evm_call_data(1, DVN, 100, b"\x01")
        assert hash_evm_call_data(2, DVN, 100, b"\x01") != base
        assert hash_evm_call_data(1, "0x" + "22" * 20, 100, b"\x01") != base
        assert hash_evm_call_data(1, DVN, 101, b"\x01") != base
        assert hash_evm_call_data(1, DVN, 100, b"\x02") != base

    def test_digest_is_32_bytes(self):
        assert len(hash_evm_call_data(101, DVN, 0, b"")) == 32


class TestEvmCallData:
    """Tests for EvmAdapter.build_call_data."""

    @pytest.mark.asyncio
    async def test_set_signer(self, adapter, target, sample_eth_address):
        call_data = await adapter.build_call_data(AddOrRemoveSigner(sample_eth_address, True), target)

        assert call_data.data[:4] == keccak(text="setSigner(address,bool)")[:4]
        address, active = decode(["address", "bool"], call_data.data[4:])
        assert to_checksum_address(address) == to_checksum_address(sample_eth_address)
        assert active is True

    @pytest.mark.asyncio
    async def test_remove_signer_encodes_false(self, adapter, target, sample_eth_address):
        call_data = await adapter.build_call_data(AddOrRemoveSigner(sample_eth_address, False), target)
        _, active = decode(["address", "bool"], call_data.data[4:])
        assert active is False

    @pytest.mark.asyncio
    async def test_set_quorum(self, adapter, target):
        call_data = await adapter.build_call_data(SetQuorum(3), target)

        assert call_data.data[:4] == keccak(text="setQuorum(uint64)")[:4]
        assert decode(["uint64"], call_data.data[4:]) == (3,)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("grant,fn", [(True, "grantRole"), (False, "revokeRole")])
    async def test_role_change(self, adapter, target, sample_eth_address, grant, fn):
        call_data = await adapter.build_call_data(GrantRevokeRole(sample_eth_address, grant), target)

        assert call_data.data[:4] == keccak(text=f"{fn}(bytes32,address)")[:4]
        role, account = decode(["bytes32", "address"], call_data.data[4:])
        assert role == MESSAGE_LIB_ROLE
        assert to_checksum_address(account) == to_checksum_address(sample_eth_address)

    @pytest.mark.asyncio
    async def test_hash_uses_target_fields(self, adapter, target):
        call_data = BytesCallData(b"\x12\x34")
        digest = await adapter.hash_call_data(target, 1700000000, call_data)
        assert digest == hash_evm_call_data(101, DVN, 1700000000, b"\x12\x34")


class TestEvmSigning:
    """Tests for signing hooks."""

    def test_signing_digest_is_eip191(self, adapter):
        digest = keccak(b"payload")
        expected = keccak(b"\x19Ethereum Signed Message:\n32" + digest)
        assert adapter.signing_digest(digest) == expected

    def test_recovery_offset(self, adapter):
        assert adapter.recovery_offset == 27

    def test_output_call_data_is_hex(self, adapter):
        assert adapter.output_call_data(SetQuorum(2), BytesCallData(b"\xab")) == "0xab"

    def test_edwards_only_for_local_mode(self, target):
        adapter = EvmAdapter(edwards_chains=["ethereum"])
        assert adapter.signature_scheme(target, SignerMode.LOCAL) is SignatureScheme.ED25519
        assert adapter.signature_scheme(target, SignerMode.KMS) is SignatureScheme.SECP256K1
        assert EvmAdapter().signature_scheme(target, SignerMode.LOCAL) is SignatureScheme.SECP256K1
