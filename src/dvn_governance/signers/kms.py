"""AWS KMS custodial signer.

Keys are ECC_SECG_P256K1 KMS keys. KMS returns DER signatures over the
digest we pass in; public keys come back as DER SubjectPublicKeyInfo.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_der_public_key,
)

from ..exceptions import ConfigurationError, CustodialSignerError
from ..models import CustodialKey, SignatureScheme, SignerDescriptor
from .base import DerSignature, SignerBackend

logger = logging.getLogger(__name__)

SIGNING_ALGORITHM = "ECDSA_SHA_256"


def public_key_from_spki(spki_der: bytes) -> bytes:
    """64-byte uncompressed point from a DER SubjectPublicKeyInfo."""
    key = load_der_public_key(spki_der)
    point = key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
    return point[1:]


def _default_client_factory(region: str) -> Any:
    import boto3

    return boto3.client("kms", region_name=region)


class KmsSigner(SignerBackend):
    """Sign digests with AWS KMS keys.

    boto3 is synchronous, so calls run in worker threads to keep the
    per-signer fan-out concurrent.
    """

    def __init__(self, client_factory: Optional[Callable[[str], Any]] = None) -> None:
        self._client_factory = client_factory or _default_client_factory
        self._clients: Dict[str, Any] = {}

    def _client(self, region: str) -> Any:
        if region not in self._clients:
            self._clients[region] = self._client_factory(region)
        return self._clients[region]

    async def get_public_key(self, key: CustodialKey) -> bytes:
        try:
            response = await asyncio.to_thread(
                self._client(key.region).get_public_key, KeyId=key.key_id
            )
        except (BotoCoreError, ClientError) as e:
            raise CustodialSignerError(
                f"KMS get_public_key failed for {key.key_id}: {e}",
                details={"key_id": key.key_id, "region": key.region},
            ) from e
        return public_key_from_spki(response["PublicKey"])

    async def sign(
        self,
        descriptor: SignerDescriptor,
        digest: bytes,
        scheme: SignatureScheme = SignatureScheme.SECP256K1,
    ) -> DerSignature:
        if not isinstance(descriptor, CustodialKey):
            raise ConfigurationError(f"KMS signer cannot use {type(descriptor).__name__}")
        if scheme is not SignatureScheme.SECP256K1:
            raise ConfigurationError("KMS keys only produce secp256k1 signatures")

        public_key = await self.get_public_key(descriptor)
        try:
            response = await asyncio.to_thread(
                self._client(descriptor.region).sign,
                KeyId=descriptor.key_id,
                Message=digest,
                MessageType="DIGEST",
                SigningAlgorithm=SIGNING_ALGORITHM,
            )
        except (BotoCoreError, ClientError) as e:
            raise CustodialSignerError(
                f"KMS sign failed for {descriptor.key_id}: {e}",
                details={"key_id": descriptor.key_id, "region": descriptor.region},
            ) from e
        logger.debug("KMS key %s signed digest", descriptor.key_id)
        return DerSignature(der=response["Signature"], public_key=public_key)
