"""
Tests for the Solana adapter and JSON-RPC client.

Tests cover:
- DVN config account parsing
- Full signer-set re-serialization on add / remove
- set_config quorum encoding
- Digest layout
- RPC error handling
"""
from __future__ import annotations

import base64
import hashlib
import struct
from unittest.mock import AsyncMock, Mock

import base58
import httpx
import pytest
from eth_utils import keccak

from dvn_governance.adapters.solana import (
    SET_CONFIG_DISCRIMINATOR,
    SolanaAdapter,
    apply_signer_change,
    encode_set_quorum,
    encode_set_signers,
    hash_solana_call_data,
    parse_dvn_config,
)
from dvn_governance.exceptions import ChainRPCError, ConfigurationError, UnsupportedOperationError
from dvn_governance.models import (
    AddOrRemoveSigner,
    BytesCallData,
    ChainFamily,
    ChainTarget,
    GrantRevokeRole,
    SetQuorum,
)
from dvn_governance.rpc.solana import SolanaAccountInfo, SolanaRPCClient

PROGRAM_ID = bytes(range(32))
SIGNER_A = b"\xaa" * 64
SIGNER_B = b"\xbb" * 64
SIGNER_C = b"\xcc" * 64

TARGET = ChainTarget("solana", ChainFamily.SOLANA, "DvnConfig1111111111111111111111111111111111", 168)


def config_account(vid: int, signers, quorum: int) -> bytes:
    return (
        b"\x00" * 8
        + struct.pack("<I", vid)
        + b"\xff"  # bump
        + struct.pack("<H", 12000)
        + b"\x01" * 32
        + struct.pack("<I", len(signers))
        + b"".join(signers)
        + struct.pack("<B", quorum)
        + b"\x00" * 16
    )


@pytest.fixture
def rpc_client():
    client = Mock(spec=SolanaRPCClient)
    client.get_account_info = AsyncMock(
        return_value=SolanaAccountInfo(
            owner=base58.b58encode(PROGRAM_ID).decode(),
            data=config_account(168, [SIGNER_A, SIGNER_B], 2),
        )
    )
    client.close = AsyncMock()
    return client


@pytest.fixture
def adapter(rpc_client):
    return SolanaAdapter(lambda: rpc_client)


class TestParseDvnConfig:
    """Tests for parse_dvn_config."""

    def test_parses_signers_and_quorum(self):
        state = parse_dvn_config(config_account(168, [SIGNER_A, SIGNER_B], 2))
        assert state.vid == 168
        assert state.signers == [SIGNER_A, SIGNER_B]
        assert state.quorum == 2

    def test_truncated_account_raises(self):
        data = config_account(168, [SIGNER_A], 1)[:60]
        with pytest.raises(ChainRPCError):
            parse_dvn_config(data)


class TestSignerSetChanges:
    """Tests for apply_signer_change."""

    def test_add_appends(self):
        assert apply_signer_change([SIGNER_A], SIGNER_B, True) == [SIGNER_A, SIGNER_B]

    def test_remove_drops(self):
        assert apply_signer_change([SIGNER_A, SIGNER_B], SIGNER_A, False) == [SIGNER_B]

    def test_duplicate_add_and_absent_remove_pass_through(self):
        assert apply_signer_change([SIGNER_A], SIGNER_A, True) == [SIGNER_A, SIGNER_A]
        assert apply_signer_change([SIGNER_A], SIGNER_C, False) == [SIGNER_A]


class TestSolanaCallData:
    """Tests for SolanaAdapter.build_call_data."""

    def test_discriminator(self):
        assert SET_CONFIG_DISCRIMINATOR == hashlib.sha256(b"global:set_config").digest()[:8]

    @pytest.mark.asyncio
    async def test_set_quorum(self, adapter, rpc_client):
        call_data = await adapter.build_call_data(SetQuorum(3), TARGET)

        assert call_data.data == SET_CONFIG_DISCRIMINATOR + bytes([4, 3])
        rpc_client.get_account_info.assert_not_called()

    def test_quorum_must_fit_u8(self):
        with pytest.raises(ConfigurationError):
            encode_set_quorum(256)

    @pytest.mark.asyncio
    async def test_add_signer_serializes_full_set(self, adapter, rpc_client):
        op = AddOrRemoveSigner("0x" + SIGNER_C.hex(), True)
        call_data = await adapter.build_call_data(op, TARGET)

        assert call_data.data == encode_set_signers([SIGNER_A, SIGNER_B, SIGNER_C])
        assert call_data.data[8] == 5
        rpc_client.get_account_info.assert_awaited_once_with(TARGET.contract_address)

    @pytest.mark.asyncio
    async def test_remove_signer(self, adapter):
        op = AddOrRemoveSigner("0x" + SIGNER_A.hex(), False)
        call_data = await adapter.build_call_data(op, TARGET)
        assert call_data.data == encode_set_signers([SIGNER_B])

    @pytest.mark.asyncio
    async def test_signer_must_be_64_bytes(self, adapter):
        with pytest.raises(ConfigurationError):
            await adapter.build_call_data(AddOrRemoveSigner("0x" + "ab" * 20, True), TARGET)

    @pytest.mark.asyncio
    async def test_role_change_unsupported(self, adapter):
        with pytest.raises(UnsupportedOperationError):
            await adapter.build_call_data(GrantRevokeRole("0x" + "11" * 20, True), TARGET)


class TestSolanaDigest:
    """Tests for SolanaAdapter.hash_call_data."""

    def test_layout(self):
        data = b"\x01\x02\x03"
        expected = keccak(
            (168).to_bytes(4, "little")
            + PROGRAM_ID
            + b"\x00\x00\x00\x00"
            + (3).to_bytes(4, "little")
            + data
            + (1700000000).to_bytes(8, "little", signed=True)
        )
        assert hash_solana_call_data(168, PROGRAM_ID, data, 1700000000) == expected

    @pytest.mark.asyncio
    async def test_program_id_is_config_owner(self, adapter):
        call_data = BytesCallData(b"\x01")
        digest = await adapter.hash_call_data(TARGET, 1700000000, call_data)
        assert digest == hash_solana_call_data(168, PROGRAM_ID, b"\x01", 1700000000)

    def test_output_is_bare_hex(self, adapter):
        assert adapter.output_call_data(SetQuorum(2), BytesCallData(b"\xab\xcd")) == "abcd"

    @pytest.mark.asyncio
    async def test_close_releases_client(self, adapter, rpc_client):
        await adapter.get_program_id(TARGET)
        await adapter.close()
        rpc_client.close.assert_awaited_once()


class TestSolanaRPCClient:
    """Tests for SolanaRPCClient over a mocked transport."""

    @staticmethod
    def make_client(handler) -> SolanaRPCClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return SolanaRPCClient("https://rpc.example", client=http)

    @pytest.mark.asyncio
    async def test_get_account_info(self):
        owner = base58.b58encode(PROGRAM_ID).decode()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "jsonrpc": "2.0",
                    "id": 1,
                    "result": {
                        "value": {
                            "owner": owner,
                            "data": [base64.b64encode(b"\x01\x02").decode(), "base64"],
                            "lamports": 5,
                            "executable": False,
                        }
                    },
                },
            )

        client = self.make_client(handler)
        info = await client.get_account_info("Acct")
        await client.close()

        assert info.owner == owner
        assert info.data == b"\x01\x02"
        assert info.lamports == 5

    @pytest.mark.asyncio
    async def test_missing_account(self):
        client = self.make_client(
            lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"value": None}})
        )
        with pytest.raises(ChainRPCError, match="not found"):
            await client.get_account_info("Acct")
        await client.close()

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        client = self.make_client(
            lambda request: httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "Invalid param"}},
            )
        )
        with pytest.raises(ChainRPCError) as exc_info:
            await client.get_account_info("Acct")
        await client.close()
        assert exc_info.value.details["rpc_error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_http_error_is_chained(self):
        client = self.make_client(lambda request: httpx.Response(503))
        with pytest.raises(ChainRPCError) as exc_info:
            await client.get_account_info("Acct")
        await client.close()
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
