"""EVM DVN adapter: ABI call data and packed keccak256 digests."""
from __future__ import annotations

from eth_abi import encode
from eth_account.messages import defunct_hash_message
from web3 import Web3

from ..models import (
    AddOrRemoveSigner,
    BytesCallData,
    CallData,
    ChainFamily,
    ChainTarget,
    GovernanceOperation,
    GrantRevokeRole,
    SetQuorum,
)
from .base import ChainAdapter


def encode_function_call(signature: str, types: list[str], values: list) -> bytes:
    """4-byte selector followed by ABI-encoded arguments."""
    return Web3.keccak(text=signature)[:4] + encode(types, values)


def hash_evm_call_data(vid: int, target: str, expiration: int, call_data: bytes) -> bytes:
    """keccak256(abi.encodePacked(uint32 vid, address target, uint256 expiration, bytes callData))."""
    return bytes(
        Web3.solidity_keccak(
            ["uint32", "address", "uint256", "bytes"],
            [vid, Web3.to_checksum_address(target), expiration, call_data],
        )
    )


class EvmAdapter(ChainAdapter):
    family = ChainFamily.EVM
    recovery_offset = 27

    async def build_call_data(
        self,
        operation: GovernanceOperation,
        target: ChainTarget,
    ) -> CallData:
        if isinstance(operation, AddOrRemoveSigner):
            data = encode_function_call(
                "setSigner(address,bool)",
                ["address", "bool"],
                [Web3.to_checksum_address(operation.signer_address), operation.active],
            )
        elif isinstance(operation, SetQuorum):
            data = encode_function_call("setQuorum(uint64)", ["uint64"], [operation.new_quorum])
        elif isinstance(operation, GrantRevokeRole):
            fn = "grantRole" if operation.grant else "revokeRole"
            data = encode_function_call(
                f"{fn}(bytes32,address)",
                ["bytes32", "address"],
                [operation.role_id, Web3.to_checksum_address(operation.target_address)],
            )
        else:
            raise self._unsupported(operation, target)
        return BytesCallData(data)

    async def hash_call_data(
        self,
        target: ChainTarget,
        expiration: int,
        call_data: CallData,
    ) -> bytes:
        return hash_evm_call_data(target.vid, target.contract_address, expiration, call_data.data)

    def signing_digest(self, digest: bytes) -> bytes:
        # DVN admins verify EIP-191 personal-message signatures over the digest
        return bytes(defunct_hash_message(primitive=digest))
