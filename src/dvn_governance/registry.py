"""Static registries: endpoint ids, chain families, DVN addresses and RPC providers.

By convention the vid of a DVN is the chain's endpoint-v1 id. Chains that
never had a v1 endpoint use their v2 id reduced modulo 30000.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import (
    ConfigurationError,
    GovernanceError,
    RegistryEntryMissingError,
    UnknownChainError,
)
from .models import ChainFamily, ChainTarget

logger = logging.getLogger(__name__)

V2_EID_NAMESPACE = 30000

CHAIN_FAMILIES: Dict[str, ChainFamily] = {
    "solana": ChainFamily.SOLANA,
    "ton": ChainFamily.TON,
    "aptos": ChainFamily.MOVE,
    "initia": ChainFamily.MOVE,
    "movement": ChainFamily.MOVE,
    "sui": ChainFamily.MOVE,
    "starknet": ChainFamily.STARKNET,
}

# Chains whose vid is the v2 endpoint id modulo 30000
V2_VID_CHAINS = frozenset({"solana", "ton", "initia", "movement", "sui", "starknet"})

# {environment: {chain: {"v1": eid, "v2": eid}}}
ENDPOINT_IDS: Dict[str, Dict[str, Dict[str, int]]] = {
    "mainnet": {
        "ethereum": {"v1": 101, "v2": 30101},
        "bsc": {"v1": 102, "v2": 30102},
        "avalanche": {"v1": 106, "v2": 30106},
        "aptos": {"v1": 108, "v2": 30108},
        "polygon": {"v1": 109, "v2": 30109},
        "arbitrum": {"v1": 110, "v2": 30110},
        "optimism": {"v1": 111, "v2": 30111},
        "fantom": {"v1": 112, "v2": 30112},
        "celo": {"v1": 125, "v2": 30125},
        "gnosis": {"v1": 145, "v2": 30145},
        "zksync": {"v1": 165, "v2": 30165},
        "mantle": {"v1": 181, "v2": 30181},
        "linea": {"v1": 183, "v2": 30183},
        "base": {"v1": 184, "v2": 30184},
        "scroll": {"v1": 214, "v2": 30214},
        "blast": {"v1": 243, "v2": 30243},
        "solana": {"v2": 30168},
        "movement": {"v2": 30325},
        "initia": {"v2": 30326},
        "ton": {"v2": 30343},
        "sui": {"v2": 30378},
        "starknet": {"v2": 30500},
    },
    "testnet": {
        "bsc": {"v1": 10102, "v2": 40102},
        "avalanche": {"v1": 10106, "v2": 40106},
        "aptos": {"v1": 10108, "v2": 40108},
        "sepolia": {"v1": 10161, "v2": 40161},
        "arbsep": {"v1": 10231, "v2": 40231},
        "optsep": {"v1": 10232, "v2": 40232},
        "basesep": {"v1": 10245, "v2": 40245},
        "amoy": {"v1": 10267, "v2": 40267},
        "solana": {"v2": 40168},
        "movement": {"v2": 40325},
        "initia": {"v2": 40326},
        "ton": {"v2": 40343},
        "sui": {"v2": 40378},
        "starknet": {"v2": 40500},
    },
    "sandbox": {},
}


def chain_family(chain_name: str) -> ChainFamily:
    """Family for a chain name; anything not listed is EVM."""
    return CHAIN_FAMILIES.get(chain_name, ChainFamily.EVM)


def _endpoint_ids(
    chain_name: str,
    environment: str,
    overrides: Optional[Mapping[str, Mapping[str, Mapping[str, int]]]] = None,
) -> Mapping[str, int]:
    if overrides:
        entry = overrides.get(environment, {}).get(chain_name)
        if entry:
            return entry
    entry = ENDPOINT_IDS.get(environment, {}).get(chain_name)
    if entry is None:
        raise UnknownChainError(chain_name, environment)
    return entry


def get_vid(
    chain_name: str,
    environment: str,
    overrides: Optional[Mapping[str, Mapping[str, Mapping[str, int]]]] = None,
) -> int:
    """Validator id used as replay-domain separator in signed digests."""
    eids = _endpoint_ids(chain_name, environment, overrides)
    if chain_name in V2_VID_CHAINS:
        if "v2" not in eids:
            raise RegistryEntryMissingError("endpoint v2 id", chain_name, environment)
        return eids["v2"] % V2_EID_NAMESPACE
    if "v1" not in eids:
        raise RegistryEntryMissingError("endpoint v1 id", chain_name, environment)
    return eids["v1"]


# ============ JSON registries ============

def load_json_registry(path: Path, description: str):
    """Load one of the static JSON registries shipped next to the tool."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"{description} not found at {path}",
            details={"path": str(path)},
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"{description} at {path} is not valid JSON: {e}",
            details={"path": str(path)},
        ) from e


class ProviderRegistry:
    """Per-environment RPC provider URLs, ``{chain: {"uris": [...]}}``."""

    def __init__(self, providers: Mapping[str, Mapping], environment: str):
        self._providers = providers
        self._environment = environment

    @classmethod
    def from_file(cls, path: Path, environment: str) -> "ProviderRegistry":
        return cls(load_json_registry(path, "provider config"), environment)

    def primary_uri(self, chain_name: str) -> str:
        entry = self._providers.get(chain_name) or {}
        uris = entry.get("uris") or []
        if not uris:
            raise RegistryEntryMissingError("provider", chain_name, self._environment)
        return uris[0]


def resolve_target(
    chain_name: str,
    environment: str,
    dvn_addresses: Mapping[str, str],
    overrides: Optional[Mapping[str, Mapping[str, Mapping[str, int]]]] = None,
) -> ChainTarget:
    vid = get_vid(chain_name, environment, overrides)
    address = dvn_addresses.get(chain_name)
    if not address:
        raise RegistryEntryMissingError("DVN address", chain_name, environment)
    return ChainTarget(
        chain_name=chain_name,
        family=chain_family(chain_name),
        contract_address=address,
        vid=vid,
    )


def resolve_targets(
    chain_names: Iterable[str],
    environment: str,
    dvn_addresses: Mapping[str, str],
    overrides: Optional[Mapping[str, Mapping[str, Mapping[str, int]]]] = None,
    strict: bool = True,
) -> Tuple[List[ChainTarget], Dict[str, GovernanceError]]:
    """Resolve chain names into targets.

    With ``strict`` the first configuration error is raised. Otherwise the
    failures are returned keyed by chain name next to the resolved targets.
    """
    targets: List[ChainTarget] = []
    failures: Dict[str, GovernanceError] = {}
    for name in chain_names:
        try:
            targets.append(resolve_target(name, environment, dvn_addresses, overrides))
        except GovernanceError as e:
            if strict:
                raise
            logger.warning("Skipping chain %s: %s", name, e.message)
            failures[name] = e
    return targets, failures


def parse_chain_names(value: str) -> List[str]:
    """Split a comma-separated chain list, dropping blanks and duplicates."""
    names: List[str] = []
    for raw in value.split(","):
        name = raw.strip()
        if name and name not in names:
            names.append(name)
    if not names:
        raise ConfigurationError("No chain names given")
    return names
