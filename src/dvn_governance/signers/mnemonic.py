"""Mnemonic-backed signers.

SecretMnemonicSigner reads the mnemonic and derivation path from AWS
Secrets Manager; LocalMnemonicSigner takes the phrase directly and can
also sign with an Ed25519 key for chains configured for it.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import ConfigurationError, SecretStoreError
from ..models import DerivedMnemonic, RawMnemonic, SignatureScheme, SignerDescriptor
from .base import EcdsaSignature, EdwardsSignature, RawSignature, SignerBackend
from .hd import derive_ed25519_key, derive_secp256k1_key

logger = logging.getLogger(__name__)


def sign_with_mnemonic(mnemonic: str, path: str, digest: bytes) -> EcdsaSignature:
    private_key = derive_secp256k1_key(mnemonic, path)
    signature = private_key.sign_msg_hash(digest)
    return EcdsaSignature(
        r=signature.r,
        s=signature.s,
        recovery_id=signature.v,
        public_key=private_key.public_key.to_bytes(),
    )


def _default_client_factory(region: str) -> Any:
    import boto3

    return boto3.client("secretsmanager", region_name=region)


class SecretMnemonicSigner(SignerBackend):
    """Signs with a key derived from a mnemonic held in Secrets Manager."""

    def __init__(
        self,
        mnemonic_field: str = "LAYERZERO_WALLET_MNEMONIC",
        path_field: str = "LAYERZERO_WALLET_PATH",
        client_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self._mnemonic_field = mnemonic_field
        self._path_field = path_field
        self._client_factory = client_factory or _default_client_factory
        self._clients: Dict[str, Any] = {}

    def _client(self, region: str) -> Any:
        if region not in self._clients:
            self._clients[region] = self._client_factory(region)
        return self._clients[region]

    async def fetch_secret(self, descriptor: DerivedMnemonic) -> Tuple[str, str]:
        try:
            response = await asyncio.to_thread(
                self._client(descriptor.region).get_secret_value,
                SecretId=descriptor.secret_name,
            )
        except (BotoCoreError, ClientError) as e:
            raise SecretStoreError(
                f"Could not read secret {descriptor.secret_name}: {e}",
                details={"secret": descriptor.secret_name, "region": descriptor.region},
            ) from e
        try:
            secret = json.loads(response["SecretString"])
            return secret[self._mnemonic_field], secret[self._path_field]
        except (KeyError, TypeError, json.JSONDecodeError) as e:
            raise SecretStoreError(
                f"Secret {descriptor.secret_name} is missing {self._mnemonic_field}/{self._path_field}",
                details={"secret": descriptor.secret_name},
            ) from e

    async def sign(
        self,
        descriptor: SignerDescriptor,
        digest: bytes,
        scheme: SignatureScheme = SignatureScheme.SECP256K1,
    ) -> RawSignature:
        if not isinstance(descriptor, DerivedMnemonic):
            raise ConfigurationError(f"Secret mnemonic signer cannot use {type(descriptor).__name__}")
        if scheme is not SignatureScheme.SECP256K1:
            raise ConfigurationError("Secret-store mnemonics only sign with secp256k1 keys")
        mnemonic, path = await self.fetch_secret(descriptor)
        return sign_with_mnemonic(mnemonic, path, digest)


class LocalMnemonicSigner(SignerBackend):
    """Signs with a mnemonic supplied directly on the invocation."""

    async def sign(
        self,
        descriptor: SignerDescriptor,
        digest: bytes,
        scheme: SignatureScheme = SignatureScheme.SECP256K1,
    ) -> RawSignature:
        if not isinstance(descriptor, RawMnemonic):
            raise ConfigurationError(f"Local mnemonic signer cannot use {type(descriptor).__name__}")
        if scheme is SignatureScheme.SECP256K1:
            return sign_with_mnemonic(descriptor.phrase, descriptor.derivation_path, digest)

        # The ECDSA key only provides the signer's identity address
        identity = derive_secp256k1_key(descriptor.phrase, descriptor.derivation_path)
        signing_key = derive_ed25519_key(descriptor.phrase, descriptor.derivation_path)
        signed = signing_key.sign(digest)
        return EdwardsSignature(
            signature=signed.signature,
            identity_public_key=identity.public_key.to_bytes(),
        )
