"""
Tests for settings, the exception taxonomy and logging helpers.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from dvn_governance.config import ONE_WEEK_SECONDS, GovernanceSettings
from dvn_governance.exceptions import (
    ChainPipelineError,
    ChainRPCError,
    ConfigurationError,
    GovernanceError,
    QuorumNotMetError,
    StateInvariantError,
)
from dvn_governance.logging_config import (
    ChainContextFilter,
    StructuredFormatter,
    mask_address,
    set_chain_context,
)
from dvn_governance.models import ChainFamily, ChainTarget, GovernanceRequest, SetQuorum, SignerMode


class TestGovernanceSettings:
    """Tests for GovernanceSettings."""

    def test_defaults(self):
        settings = GovernanceSettings(_env_file=None)
        assert settings.environment == "mainnet"
        assert settings.expiration_ttl_seconds == ONE_WEEK_SECONDS
        assert settings.failure_mode == "all_or_nothing"
        assert settings.edwards_chains == []

    def test_registry_paths(self):
        settings = GovernanceSettings(_env_file=None, environment="testnet", data_dir=Path("d"))
        assert settings.dvn_addresses_path() == Path("d/dvn-addresses-testnet.json")
        assert settings.kms_keys_path() == Path("d/kms-keyids-testnet.json")
        assert settings.mnemonic_secrets_path() == Path("d/mnemonic-secret-infos-testnet.json")
        assert settings.providers_path() == Path("config/providers/testnet/providers.json")

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("DVN_GOV_ENVIRONMENT", "testnet")
        monkeypatch.setenv("DVN_GOV_FAILURE_MODE", "partial")
        monkeypatch.setenv("DVN_GOV_EDWARDS_CHAINS", '["ton"]')
        settings = GovernanceSettings(_env_file=None)
        assert settings.environment == "testnet"
        assert settings.failure_mode == "partial"
        assert settings.edwards_chains == ["ton"]

    def test_rejects_non_positive_ttl(self):
        with pytest.raises(ValidationError):
            GovernanceSettings(_env_file=None, expiration_ttl_seconds=0)

    def test_rejects_unknown_environment(self):
        with pytest.raises(ValidationError):
            GovernanceSettings(_env_file=None, environment="devnet")


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_to_dict(self):
        error = QuorumNotMetError(3, 2)
        assert isinstance(error, ConfigurationError)
        assert error.to_dict() == {
            "error": "QUORUM_NOT_MET",
            "message": "Quorum 3 exceeds the 2 available signatures",
            "details": {"quorum": 3, "available": 2},
        }

    def test_base_without_details(self):
        assert GovernanceError("boom").to_dict() == {"error": "GOVERNANCE_ERROR", "message": "boom"}

    def test_pipeline_error_keeps_cause_code(self):
        cause = StateInvariantError("Cannot remove last signer of dvn", details={"dvn": "dvn"})
        error = ChainPipelineError("ton", cause)
        assert error.error_code == "STATE_INVARIANT_ERROR"
        assert error.details == {"chain": "ton", "dvn": "dvn"}
        assert error.cause is cause

    def test_rpc_error_details(self):
        error = ChainRPCError("failed", chain="solana", rpc_error={"code": -1})
        assert error.details == {"chain": "solana", "rpc_error": {"code": -1}}


class TestModels:
    def test_vid_must_fit_u32(self):
        with pytest.raises(ConfigurationError):
            ChainTarget("x", ChainFamily.EVM, "0x", 2**32)

    def test_request_validation(self):
        target = ChainTarget("ethereum", ChainFamily.EVM, "0x" + "11" * 20, 101)
        with pytest.raises(ConfigurationError):
            GovernanceRequest(SetQuorum(2), (target,), 0, 1, SignerMode.KMS, ())
        with pytest.raises(ConfigurationError):
            GovernanceRequest(SetQuorum(2), (), 1, 1, SignerMode.KMS, ())
        with pytest.raises(ConfigurationError):
            SetQuorum(0)


class TestLogging:
    """Tests for logging helpers."""

    def test_mask_address(self):
        assert mask_address("0x1234567890abcdef1234") == "0x1234...1234"
        assert mask_address("0xabc") == "0xabc"

    def test_structured_formatter_includes_chain(self):
        set_chain_context("solana")
        record = logging.LogRecord("dvn", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        ChainContextFilter().filter(record)

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "hello world"
        assert data["chain"] == "solana"
        assert data["level"] == "INFO"
