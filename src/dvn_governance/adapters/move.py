"""Move-family adapter (Aptos, Initia, Movement, Sui).

Call data is a 4-byte function-signature hash followed by the raw
arguments; the DVN module dispatches on the hash.
"""
from __future__ import annotations

from typing import Any

from eth_utils import keccak

from ..encoding import bcs_bytes, hex_to_bytes, uint_be
from ..models import (
    AddOrRemoveSigner,
    BytesCallData,
    CallData,
    ChainFamily,
    ChainTarget,
    GovernanceOperation,
    SetQuorum,
)
from .base import ChainAdapter


def function_signature_hash(function_name: str) -> bytes:
    """First 4 bytes of keccak256 over the BCS-serialized function name."""
    return keccak(bcs_bytes(function_name.encode("utf-8")))[:4]


def hash_move_call_data(call_data: bytes, vid: int, expiration: int) -> bytes:
    return keccak(call_data + uint_be(vid, 4) + uint_be(expiration, 8))


class MoveAdapter(ChainAdapter):
    family = ChainFamily.MOVE

    async def build_call_data(
        self,
        operation: GovernanceOperation,
        target: ChainTarget,
    ) -> CallData:
        if isinstance(operation, AddOrRemoveSigner):
            data = (
                function_signature_hash("set_dvn_signer")
                + hex_to_bytes(operation.signer_address)
                + (b"\x01" if operation.active else b"\x00")
            )
        elif isinstance(operation, SetQuorum):
            data = function_signature_hash("set_quorum") + uint_be(operation.new_quorum, 8)
        else:
            raise self._unsupported(operation, target)
        return BytesCallData(data)

    async def hash_call_data(
        self,
        target: ChainTarget,
        expiration: int,
        call_data: CallData,
    ) -> bytes:
        return hash_move_call_data(call_data.data, target.vid, expiration)

    def output_call_data(self, operation: GovernanceOperation, call_data: CallData) -> Any:
        # Move entry functions take typed arguments, not the packed bytes
        return operation.output_params()
