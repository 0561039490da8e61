"""TON DVN adapter.

Call data is an admin message cell built against the DVN's current
storage (nonces, verifier dictionary). The cell's representation hash is
both the call data and the digest that gets signed.
"""
from __future__ import annotations

import logging
import zlib
from typing import Any, Callable, List, Optional, Tuple

from pytoniq_core import Address, Cell

from .. import ton_classlib as classlib
from ..exceptions import ChainRPCError, StateInvariantError
from ..models import (
    AddOrRemoveSigner,
    BytesCallData,
    CallData,
    ChainFamily,
    ChainTarget,
    GovernanceOperation,
    SetQuorum,
)
from ..rpc.ton import TonRPCClient, parse_ton_address
from .base import ChainAdapter

logger = logging.getLogger(__name__)

# FunC "..."c opcodes are the CRC32 of the name
DVN_OP_SET_VERIFIERS = zlib.crc32(b"Dvn::OP::SET_VERIFIERS")
DVN_OP_SET_QUORUM = zlib.crc32(b"Dvn::OP::SET_QUORUM")


def signer_to_int(signer: str) -> int:
    """Verifier dictionary key for a signer address."""
    if signer.startswith("0x"):
        return int(signer, 16)
    return int.from_bytes(parse_ton_address(signer).hash_part, "big")


def signer_to_hex(key: int) -> str:
    return "0x" + key.to_bytes(32, "big").hex()


class TonAdapter(ChainAdapter):
    family = ChainFamily.TON

    def __init__(
        self,
        client_factory: Callable[[], TonRPCClient],
        edwards_chains=(),
    ) -> None:
        super().__init__(edwards_chains)
        self._client_factory = client_factory
        self._client: Optional[TonRPCClient] = None

    def _rpc(self) -> TonRPCClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def resolve_implementation(self, target: ChainTarget) -> Tuple[Address, Cell]:
        """Follow a proxy to its first admin; anything else is the implementation itself."""
        address = parse_ton_address(target.contract_address)
        storage = await self._rpc().get_storage_cell(address)
        try:
            name = classlib.class_name(storage)
        except classlib.ClassLibError as e:
            raise ChainRPCError(f"Unreadable storage at {target.contract_address}: {e}", chain="ton") from e
        if name != classlib.schema_for("Proxy").header:
            return address, storage

        try:
            proxy = classlib.decode_class("Proxy", storage)
            core = classlib.decode_class("WorkerCoreStorage", proxy["workerCoreStorage"])
        except classlib.ClassLibError as e:
            raise ChainRPCError(f"Unexpected proxy storage at {target.contract_address}: {e}", chain="ton") from e
        if not core["admins"]:
            raise StateInvariantError(
                f"Proxy {target.contract_address} has no admins",
                details={"chain": target.chain_name},
            )
        implementation = core["admins"][0]
        logger.info(
            "Resolved TON proxy %s to %s",
            target.contract_address,
            implementation.to_str(is_user_friendly=False),
        )
        return implementation, await self._rpc().get_storage_cell(implementation)

    async def build_call_data(
        self,
        operation: GovernanceOperation,
        target: ChainTarget,
    ) -> CallData:
        if not isinstance(operation, (AddOrRemoveSigner, SetQuorum)):
            raise self._unsupported(operation, target)

        dvn_address, storage_cell = await self.resolve_implementation(target)
        try:
            storage = classlib.decode_class("Dvn", storage_cell)
        except classlib.ClassLibError as e:
            raise ChainRPCError(f"Unexpected DVN storage at {target.contract_address}: {e}", chain="ton") from e

        if isinstance(operation, SetQuorum):
            cell = classlib.build_class(
                "md::SetQuorum",
                {
                    "nonce": storage["setQuorumNonce"],
                    "opcode": DVN_OP_SET_QUORUM,
                    "quorum": operation.new_quorum,
                    "target": dvn_address,
                },
            )
            return BytesCallData(cell.hash)

        new_signers = self.apply_signer_change(
            storage["verifiers"], operation, target.contract_address
        )
        cell = classlib.build_class(
            "md::SetDict",
            {
                "nonce": storage["setVerifiersNonce"],
                "opcode": DVN_OP_SET_VERIFIERS,
                "dict": classlib.serialize_uint256_dict(new_signers),
                "target": dvn_address,
            },
        )
        return BytesCallData(cell.hash)

    @staticmethod
    def apply_signer_change(
        current: List[int],
        operation: AddOrRemoveSigner,
        dvn: str,
    ) -> List[int]:
        key = signer_to_int(operation.signer_address)
        signer_hex = signer_to_hex(key)
        if operation.active:
            if key in current:
                raise StateInvariantError(
                    f"{signer_hex} is already a signer of {dvn}",
                    details={"signer": signer_hex, "dvn": dvn},
                )
            return [*current, key]

        remaining = [k for k in current if k != key]
        if not remaining:
            raise StateInvariantError(
                f"Cannot remove last signer of {dvn}",
                details={"signer": signer_hex, "dvn": dvn},
            )
        if len(remaining) == len(current):
            raise StateInvariantError(
                f"{signer_hex} is not a signer of {dvn}",
                details={"signer": signer_hex, "dvn": dvn},
            )
        return remaining

    async def hash_call_data(
        self,
        target: ChainTarget,
        expiration: int,
        call_data: CallData,
    ) -> bytes:
        # The message cell hash computed while building is the digest
        return call_data.data

    def output_call_data(self, operation: GovernanceOperation, call_data: CallData) -> Any:
        return operation.output_params()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
