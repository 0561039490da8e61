"""Quorum payload assembly.

Destination contracts rebuild the canonical order of the signatures they
receive, so each family's ordering rule is part of the wire contract:

- EVM / Move: ascending by address (case-insensitive hex), first ``quorum``,
  concatenated into one byte string
- Solana: submission order, first ``quorum``, list of signatures
- Starknet: ascending by address as an integer, first ``quorum``, list
- TON: every signature paired with its address; the contract checks quorum
"""
from __future__ import annotations

from typing import List, Sequence

from .exceptions import ConfigurationError, QuorumNotMetError
from .models import ChainFamily, QuorumPayload, Signature


def _take(signatures: Sequence[Signature], quorum: int) -> List[Signature]:
    if quorum > len(signatures):
        raise QuorumNotMetError(quorum, len(signatures))
    return list(signatures[:quorum])


def sort_by_hex_address(signatures: Sequence[Signature]) -> List[Signature]:
    return sorted(signatures, key=lambda s: s.address.lower())


def sort_by_numeric_address(signatures: Sequence[Signature]) -> List[Signature]:
    return sorted(signatures, key=lambda s: int(s.address, 16))


def assemble_quorum_payload(
    signatures: Sequence[Signature],
    quorum: int,
    family: ChainFamily,
) -> QuorumPayload:
    if quorum < 1:
        raise ConfigurationError("quorum must be at least 1")

    if family is ChainFamily.SOLANA:
        return [s.signature for s in _take(signatures, quorum)]

    if family is ChainFamily.STARKNET:
        return [s.signature for s in _take(sort_by_numeric_address(signatures), quorum)]

    if family is ChainFamily.TON:
        if quorum > len(signatures):
            raise QuorumNotMetError(quorum, len(signatures))
        return [s.to_dict() for s in signatures]

    selected = _take(sort_by_hex_address(signatures), quorum)
    return "0x" + b"".join(s.raw_bytes for s in selected).hex()

