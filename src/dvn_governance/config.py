"""Configuration surface for DVN governance payload generation."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

ONE_WEEK_SECONDS = 7 * 24 * 60 * 60


class GovernanceSettings(BaseSettings):
    """Settings for a governance payload run.

    Values come from ``DVN_GOV_*`` environment variables or a ``.env`` file.
    """

    # Deployment stage used for registry and endpoint-id lookups
    environment: Literal["mainnet", "testnet", "sandbox"] = "mainnet"

    # Static registries: dvn-addresses-<env>.json, kms-keyids-<env>.json, ...
    data_dir: Path = Path("data")

    # Provider config: <providers_dir>/<env>/providers.json
    providers_dir: Path = Path("config/providers")

    output_dir: Path = Path(".")

    expiration_ttl_seconds: int = ONE_WEEK_SECONDS

    # all_or_nothing: any failing chain aborts the run and nothing is written.
    # partial: every chain gets a status entry in the output.
    failure_mode: Literal["all_or_nothing", "partial"] = "all_or_nothing"

    rpc_timeout_seconds: float = 30.0

    # JSON fields inside the mnemonic secret
    secret_mnemonic_field: str = "LAYERZERO_WALLET_MNEMONIC"
    secret_path_field: str = "LAYERZERO_WALLET_PATH"

    # Chains whose raw-mnemonic signatures are produced with an Ed25519 key
    edwards_chains: List[str] = Field(default_factory=list)

    # {env: {chain: {"v1": eid, "v2": eid}}}, merged over the built-in table
    endpoint_id_overrides: Dict[str, Dict[str, Dict[str, int]]] = Field(default_factory=dict)

    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("expiration_ttl_seconds")
    @classmethod
    def _positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("expiration_ttl_seconds must be positive")
        return value

    def dvn_addresses_path(self) -> Path:
        return self.data_dir / f"dvn-addresses-{self.environment}.json"

    def kms_keys_path(self) -> Path:
        return self.data_dir / f"kms-keyids-{self.environment}.json"

    def mnemonic_secrets_path(self) -> Path:
        return self.data_dir / f"mnemonic-secret-infos-{self.environment}.json"

    def local_mnemonics_path(self) -> Path:
        return self.data_dir / "mnemonics.json"

    def providers_path(self) -> Path:
        return self.providers_dir / self.environment / "providers.json"

    class Config:
        env_prefix = "DVN_GOV_"
        env_nested_delimiter = "__"
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> GovernanceSettings:
    """Return the process-wide settings instance."""
    return GovernanceSettings()
