"""Starknet DVN adapter.

Call data stays structured until hashing so each argument keeps its Cairo
type. The digest layout is

    keccak256(vid:u32 || to:felt252 || expiration:u256 || selector:felt252 || calldata:felt252[])

with u32 packed into 4 bytes and every other field into 32 bytes.
"""
from __future__ import annotations

from typing import Any

from eth_utils import keccak

from ..encoding import hex_to_bytes, uint_be
from ..exceptions import ConfigurationError
from ..models import (
    AddOrRemoveSigner,
    CallData,
    ChainFamily,
    ChainTarget,
    GovernanceOperation,
    SetQuorum,
    StructuredCallData,
    TypedField,
)
from .base import ChainAdapter

FELT252_MAX = 2**251
_MASK_250 = 2**250 - 1


def starknet_selector(function_name: str) -> int:
    """sn_keccak: keccak256 of the name truncated to 250 bits."""
    return int.from_bytes(keccak(text=function_name), "big") & _MASK_250


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    return int.from_bytes(hex_to_bytes(str(value)), "big")


def encode_felt252(value: Any) -> bytes:
    number = _to_int(value)
    if not 0 <= number < FELT252_MAX:
        raise ConfigurationError(f"{value} does not fit in a felt252")
    return uint_be(number, 32)


def encode_typed(field: TypedField) -> bytes:
    if field.type == "u32":
        return uint_be(_to_int(field.value), 4)
    if field.type == "u256":
        return uint_be(_to_int(field.value), 32)
    # felt252, bool and u32 calldata entries are all felts on the wire
    return encode_felt252(field.value)


def hash_starknet_call_data(
    target: str,
    vid: int,
    expiration: int,
    call_data: StructuredCallData,
) -> bytes:
    encoded = bytearray()
    encoded += encode_typed(TypedField("vid", "u32", vid))
    encoded += encode_felt252(target)
    encoded += encode_typed(TypedField("expiration", "u256", expiration))
    encoded += encode_felt252(starknet_selector(call_data.function_name))
    for field in call_data.fields:
        encoded += encode_felt252(field.value)
    return keccak(bytes(encoded))


class StarknetAdapter(ChainAdapter):
    family = ChainFamily.STARKNET

    async def build_call_data(
        self,
        operation: GovernanceOperation,
        target: ChainTarget,
    ) -> CallData:
        if isinstance(operation, AddOrRemoveSigner):
            return StructuredCallData(
                "set_signer",
                (
                    # EthAddress stored as a felt
                    TypedField("signerAddress", "felt252", operation.signer_address),
                    TypedField("active", "bool", operation.active),
                ),
            )
        if isinstance(operation, SetQuorum):
            return StructuredCallData(
                "set_threshold",
                (TypedField("threshold", "u32", operation.new_quorum),),
            )
        raise self._unsupported(operation, target)

    async def hash_call_data(
        self,
        target: ChainTarget,
        expiration: int,
        call_data: CallData,
    ) -> bytes:
        if not isinstance(call_data, StructuredCallData):
            raise ConfigurationError(
                f"Starknet call data for {target.chain_name} must be structured",
            )
        return hash_starknet_call_data(target.contract_address, target.vid, expiration, call_data)

    def output_call_data(self, operation: GovernanceOperation, call_data: CallData) -> Any:
        return call_data.to_dict()
