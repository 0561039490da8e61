"""
Tests for dvn_governance.registry.

Tests cover:
- Chain family resolution
- vid derivation from v1 / v2 endpoint ids
- Target resolution against the DVN address registry
- Provider registry lookups
"""
from __future__ import annotations

import pytest

from dvn_governance.exceptions import (
    ConfigurationError,
    RegistryEntryMissingError,
    UnknownChainError,
)
from dvn_governance.models import ChainFamily, ChainTarget
from dvn_governance.registry import (
    ProviderRegistry,
    chain_family,
    get_vid,
    load_json_registry,
    parse_chain_names,
    resolve_target,
    resolve_targets,
)


class TestChainFamily:
    """Tests for chain_family."""

    @pytest.mark.parametrize(
        "chain,family",
        [
            ("solana", ChainFamily.SOLANA),
            ("ton", ChainFamily.TON),
            ("aptos", ChainFamily.MOVE),
            ("sui", ChainFamily.MOVE),
            ("starknet", ChainFamily.STARKNET),
            ("ethereum", ChainFamily.EVM),
        ],
    )
    def test_known_families(self, chain, family):
        assert chain_family(chain) is family

    def test_unlisted_chain_is_evm(self):
        """Anything not in the family table is treated as EVM."""
        assert chain_family("some-new-l2") is ChainFamily.EVM


class TestGetVid:
    """Tests for vid derivation."""

    def test_evm_uses_v1_id(self):
        assert get_vid("ethereum", "mainnet") == 101
        assert get_vid("arbitrum", "mainnet") == 110

    def test_aptos_uses_v1_id(self):
        assert get_vid("aptos", "mainnet") == 108

    @pytest.mark.parametrize(
        "chain,vid",
        [("solana", 168), ("ton", 343), ("sui", 378), ("starknet", 500), ("initia", 326)],
    )
    def test_v2_only_chains_reduce_modulo_30000(self, chain, vid):
        assert get_vid(chain, "mainnet") == vid

    def test_testnet_v2_ids(self):
        assert get_vid("solana", "testnet") == 40168 % 30000

    def test_unknown_chain_raises(self):
        with pytest.raises(UnknownChainError) as exc_info:
            get_vid("not-a-chain", "mainnet")
        assert exc_info.value.details == {"chain": "not-a-chain", "environment": "mainnet"}

    def test_sandbox_has_no_builtin_ids(self):
        with pytest.raises(UnknownChainError):
            get_vid("ethereum", "sandbox")

    def test_overrides_take_precedence(self):
        overrides = {"sandbox": {"ethereum": {"v1": 9101, "v2": 39101}}}
        assert get_vid("ethereum", "sandbox", overrides) == 9101

    def test_missing_v1_id_raises(self):
        overrides = {"mainnet": {"newchain": {"v2": 30999}}}
        with pytest.raises(RegistryEntryMissingError):
            get_vid("newchain", "mainnet", overrides)


class TestResolveTargets:
    """Tests for target resolution."""

    def test_resolve_target(self, sample_eth_address):
        target = resolve_target("ethereum", "mainnet", {"ethereum": sample_eth_address})
        assert target == ChainTarget("ethereum", ChainFamily.EVM, sample_eth_address, 101)

    def test_missing_address_raises(self):
        with pytest.raises(RegistryEntryMissingError) as exc_info:
            resolve_target("ethereum", "mainnet", {})
        assert exc_info.value.details["registry"] == "DVN address"

    def test_strict_raises_first_error(self, sample_eth_address):
        with pytest.raises(UnknownChainError):
            resolve_targets(["ethereum", "nope"], "mainnet", {"ethereum": sample_eth_address})

    def test_lenient_collects_failures(self, sample_eth_address):
        targets, failures = resolve_targets(
            ["ethereum", "nope", "bsc"],
            "mainnet",
            {"ethereum": sample_eth_address},
            strict=False,
        )
        assert [t.chain_name for t in targets] == ["ethereum"]
        assert isinstance(failures["nope"], UnknownChainError)
        assert isinstance(failures["bsc"], RegistryEntryMissingError)


class TestParseChainNames:
    def test_splits_and_dedupes(self):
        assert parse_chain_names(" ethereum,bsc,,ethereum ") == ["ethereum", "bsc"]

    def test_empty_raises(self):
        with pytest.raises(ConfigurationError):
            parse_chain_names(" , ")


class TestJsonRegistries:
    """Tests for registry file loading."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_json_registry(tmp_path / "missing.json", "DVN address registry")
        assert "not found" in exc_info.value.message

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_json_registry(path, "DVN address registry")

    def test_provider_primary_uri(self, tmp_path, write_registry):
        path = write_registry(
            tmp_path / "providers.json",
            {"solana": {"uris": ["https://a.example", "https://b.example"]}},
        )
        providers = ProviderRegistry.from_file(path, "mainnet")
        assert providers.primary_uri("solana") == "https://a.example"

    def test_provider_missing_chain(self):
        providers = ProviderRegistry({"solana": {"uris": []}}, "mainnet")
        with pytest.raises(RegistryEntryMissingError):
            providers.primary_uri("solana")
        with pytest.raises(RegistryEntryMissingError):
            providers.primary_uri("ton")
