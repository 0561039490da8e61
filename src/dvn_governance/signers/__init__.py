"""Signer backends and descriptor loading."""
from __future__ import annotations

from typing import List, Tuple

from ..config import GovernanceSettings
from ..exceptions import ConfigurationError
from ..models import (
    DEFAULT_DERIVATION_PATH,
    CustodialKey,
    DerivedMnemonic,
    RawMnemonic,
    SignerDescriptor,
    SignerMode,
)
from ..registry import load_json_registry
from .base import DerSignature, EcdsaSignature, EdwardsSignature, RawSignature, SignerBackend
from .kms import KmsSigner
from .mnemonic import LocalMnemonicSigner, SecretMnemonicSigner


def parse_signer_mode(value: str) -> SignerMode:
    try:
        return SignerMode(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Signer mode must be one of {', '.join(m.value for m in SignerMode)}, got {value!r}",
            details={"signer_mode": value},
        ) from e


def get_signer_backend(mode: SignerMode, settings: GovernanceSettings) -> SignerBackend:
    if mode is SignerMode.KMS:
        return KmsSigner()
    if mode is SignerMode.MNEMONIC:
        return SecretMnemonicSigner(
            mnemonic_field=settings.secret_mnemonic_field,
            path_field=settings.secret_path_field,
        )
    return LocalMnemonicSigner()


def load_signer_descriptors(mode: SignerMode, settings: GovernanceSettings) -> Tuple[SignerDescriptor, ...]:
    """Read the per-environment signer registry for ``mode``."""
    descriptors: List[SignerDescriptor] = []
    try:
        if mode is SignerMode.KMS:
            for entry in load_json_registry(settings.kms_keys_path(), "KMS key registry"):
                descriptors.append(CustodialKey(key_id=entry["keyId"], region=entry["region"]))
        elif mode is SignerMode.MNEMONIC:
            for entry in load_json_registry(settings.mnemonic_secrets_path(), "mnemonic secret registry"):
                descriptors.append(DerivedMnemonic(secret_name=entry["secretName"], region=entry["region"]))
        else:
            for entry in load_json_registry(settings.local_mnemonics_path(), "local mnemonic file"):
                descriptors.append(
                    RawMnemonic(
                        phrase=entry["mnemonic"],
                        derivation_path=entry.get("path", DEFAULT_DERIVATION_PATH),
                    )
                )
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f"Malformed {mode.value} signer registry: {e}") from e
    if not descriptors:
        raise ConfigurationError(f"No signers configured for mode {mode.value}")
    return tuple(descriptors)


__all__ = [
    "DerSignature",
    "EcdsaSignature",
    "EdwardsSignature",
    "KmsSigner",
    "LocalMnemonicSigner",
    "RawSignature",
    "SecretMnemonicSigner",
    "SignerBackend",
    "get_signer_backend",
    "load_signer_descriptors",
    "parse_signer_mode",
]
