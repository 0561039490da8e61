"""Solana DVN adapter.

The DVN program takes the complete signer set, so add/remove is built by
reading the current multisig from the DVN config account, applying the
change and re-serializing the whole list. The address registry names the
config account; its owner is the DVN program id.
"""
from __future__ import annotations

import hashlib
import logging
import struct
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import base58
from eth_utils import keccak

from ..encoding import hex_to_bytes
from ..exceptions import ChainRPCError, ConfigurationError
from ..models import (
    AddOrRemoveSigner,
    BytesCallData,
    CallData,
    ChainFamily,
    ChainTarget,
    GovernanceOperation,
    SetQuorum,
)
from ..rpc.solana import SolanaRPCClient
from .base import ChainAdapter

logger = logging.getLogger(__name__)

SIGNER_LEN = 64  # uncompressed secp256k1 public key without the 0x04 prefix
ANCHOR_DISCRIMINATOR_LEN = 8
SET_CONFIG_DISCRIMINATOR = hashlib.sha256(b"global:set_config").digest()[:8]

# set_config parameter variants
CONFIG_PARAM_QUORUM = 4
CONFIG_PARAM_SIGNERS = 5


@dataclass
class DvnConfigState:
    vid: int
    signers: List[bytes] = field(default_factory=list)
    quorum: int = 0


def parse_dvn_config(data: bytes) -> DvnConfigState:
    """Decode the fields we need from a DVN config account.

    Layout after the Anchor discriminator: vid u32, bump u8,
    default_multiplier_bps u16, price_feed Pubkey, multisig { signers:
    Vec<[u8; 64]>, quorum: u8 }, ...
    """
    try:
        offset = ANCHOR_DISCRIMINATOR_LEN
        (vid,) = struct.unpack_from("<I", data, offset)
        offset += 4 + 1 + 2 + 32
        (count,) = struct.unpack_from("<I", data, offset)
        offset += 4
        signers = []
        for _ in range(count):
            signer = data[offset:offset + SIGNER_LEN]
            if len(signer) != SIGNER_LEN:
                raise ValueError("truncated signer list")
            signers.append(bytes(signer))
            offset += SIGNER_LEN
        (quorum,) = struct.unpack_from("<B", data, offset)
    except (struct.error, ValueError) as e:
        raise ChainRPCError(f"Malformed DVN config account: {e}", chain="solana") from e
    return DvnConfigState(vid=vid, signers=signers, quorum=quorum)


def encode_set_signers(signers: List[bytes]) -> bytes:
    return (
        SET_CONFIG_DISCRIMINATOR
        + struct.pack("<B", CONFIG_PARAM_SIGNERS)
        + struct.pack("<I", len(signers))
        + b"".join(signers)
    )


def encode_set_quorum(quorum: int) -> bytes:
    if not 0 < quorum < 256:
        raise ConfigurationError(f"Solana quorum must fit in a u8, got {quorum}")
    return SET_CONFIG_DISCRIMINATOR + struct.pack("<BB", CONFIG_PARAM_QUORUM, quorum)


def apply_signer_change(current: List[bytes], signer: bytes, active: bool) -> List[bytes]:
    """Append on add, drop byte-identical entries on remove.

    Duplicate adds and removal of an absent signer pass through unchanged.
    """
    if active:
        return [*current, signer]
    return [s for s in current if s != signer]


def hash_solana_call_data(vid: int, program_id: bytes, call_data: bytes, expiration: int) -> bytes:
    """keccak256 of the serialized ExecuteTransactionDigest with no accounts."""
    encoded = (
        struct.pack("<I", vid)
        + program_id
        + struct.pack("<I", 0)
        + struct.pack("<I", len(call_data))
        + call_data
        + struct.pack("<q", expiration)
    )
    return keccak(encoded)


class SolanaAdapter(ChainAdapter):
    family = ChainFamily.SOLANA

    def __init__(
        self,
        client_factory: Callable[[], SolanaRPCClient],
        edwards_chains=(),
    ) -> None:
        super().__init__(edwards_chains)
        self._client_factory = client_factory
        self._client: Optional[SolanaRPCClient] = None

    def _rpc(self) -> SolanaRPCClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def get_program_id(self, target: ChainTarget) -> bytes:
        info = await self._rpc().get_account_info(target.contract_address)
        return base58.b58decode(info.owner)

    async def get_config_state(self, target: ChainTarget) -> DvnConfigState:
        info = await self._rpc().get_account_info(target.contract_address)
        return parse_dvn_config(info.data)

    async def build_call_data(
        self,
        operation: GovernanceOperation,
        target: ChainTarget,
    ) -> CallData:
        if isinstance(operation, SetQuorum):
            return BytesCallData(encode_set_quorum(operation.new_quorum))
        if isinstance(operation, AddOrRemoveSigner):
            signer = hex_to_bytes(operation.signer_address)
            if len(signer) != SIGNER_LEN:
                raise ConfigurationError(
                    f"Solana DVN signers are {SIGNER_LEN}-byte public keys, got {len(signer)} bytes",
                    details={"signer": operation.signer_address},
                )
            state = await self.get_config_state(target)
            if operation.active and signer in state.signers:
                logger.warning("Signer %s is already in the Solana signer set", operation.signer_address)
            new_signers = apply_signer_change(state.signers, signer, operation.active)
            logger.info(
                "Solana signer set %d -> %d entries", len(state.signers), len(new_signers)
            )
            return BytesCallData(encode_set_signers(new_signers))
        raise self._unsupported(operation, target)

    async def hash_call_data(
        self,
        target: ChainTarget,
        expiration: int,
        call_data: CallData,
    ) -> bytes:
        program_id = await self.get_program_id(target)
        return hash_solana_call_data(target.vid, program_id, call_data.data, expiration)

    def output_call_data(self, operation: GovernanceOperation, call_data: CallData) -> Any:
        return call_data.data.hex()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
