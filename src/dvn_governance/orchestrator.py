"""Fan-out over target chains and signers.

Each chain runs as an independent pipeline:

    build call data -> digest -> sign (all signers in parallel)
    -> normalize signatures -> assemble quorum payload

Pipelines share nothing but the read-only request. In ``all_or_nothing``
mode the first failing chain aborts the run and no output is written; in
``partial`` mode every chain is reported with an explicit status.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Awaitable, Dict, Iterable, List, Mapping, Optional, TypeVar

from .adapters import ChainAdapter
from .exceptions import ChainPipelineError, ConfigurationError, CryptographicError, GovernanceError
from .logging_config import mask_address, set_chain_context, set_operation_context
from .models import ChainFamily, ChainResult, ChainTarget, GovernanceRequest, Signature, SignatureScheme
from .quorum import assemble_quorum_payload
from .recovery import RecoverableSignatureBuilder
from .registry import chain_family
from .signers import DerSignature, EcdsaSignature, EdwardsSignature, SignerBackend

logger = logging.getLogger(__name__)

DIGEST_SIZE = 32
FAILURE_MODES = ("all_or_nothing", "partial")

T = TypeVar("T")


def default_expiration(ttl_seconds: int, now: Optional[float] = None) -> int:
    """Absolute expiration timestamp ``ttl_seconds`` from now."""
    return int(now if now is not None else time.time()) + ttl_seconds


def failed_result(chain_name: str, error: GovernanceError) -> ChainResult:
    """Result for a chain that never got as far as a pipeline."""
    return ChainResult(
        target=ChainTarget(chain_name, chain_family(chain_name), "", 0),
        error=ChainPipelineError(chain_name, error).to_dict(),
    )


async def gather_or_cancel(aws: Iterable[Awaitable[T]]) -> List[T]:
    """Await all of ``aws``; on the first failure cancel and drain the rest before re-raising."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class GovernanceOrchestrator:
    def __init__(
        self,
        adapters: Mapping[ChainFamily, ChainAdapter],
        signer: SignerBackend,
        failure_mode: str = "all_or_nothing",
        builder: Optional[RecoverableSignatureBuilder] = None,
    ) -> None:
        if failure_mode not in FAILURE_MODES:
            raise ConfigurationError(f"Unknown failure mode {failure_mode!r}")
        self._adapters = adapters
        self._signer = signer
        self._failure_mode = failure_mode
        self._builder = builder or RecoverableSignatureBuilder()

    @property
    def partial(self) -> bool:
        return self._failure_mode == "partial"

    def adapter_for(self, target: ChainTarget) -> ChainAdapter:
        adapter = self._adapters.get(target.family)
        if adapter is None:
            raise ConfigurationError(
                f"No adapter registered for chain family {target.family.value}",
                details={"chain": target.chain_name},
            )
        return adapter

    async def run(
        self,
        request: GovernanceRequest,
        preflight_failures: Optional[Mapping[str, GovernanceError]] = None,
    ) -> Dict[str, ChainResult]:
        """Run every target pipeline and return results keyed by chain name.

        ``preflight_failures`` carries chains that could not be resolved into
        targets; they are reported as failed (partial) or abort the run.
        """
        preflight_failures = preflight_failures or {}
        set_operation_context(request.operation.name)
        if preflight_failures and not self.partial:
            chain, error = next(iter(preflight_failures.items()))
            raise ChainPipelineError(chain, error) from error

        logger.info(
            "Running %s on %d chain(s) with %d signer(s), quorum %d",
            request.operation.name,
            len(request.targets),
            len(request.signers),
            request.quorum,
        )

        if self.partial:
            outcomes = await asyncio.gather(
                *(self._run_chain_reporting(request, t) for t in request.targets)
            )
        else:
            outcomes = await gather_or_cancel(self.run_chain(request, t) for t in request.targets)

        results: Dict[str, ChainResult] = {r.target.chain_name: r for r in outcomes}
        for chain, error in preflight_failures.items():
            results[chain] = failed_result(chain, error)
        return results

    async def _run_chain_reporting(self, request: GovernanceRequest, target: ChainTarget) -> ChainResult:
        try:
            return await self.run_chain(request, target)
        except ChainPipelineError as e:
            logger.error("Chain %s failed: %s", target.chain_name, e.message)
            return ChainResult(target=target, error=e.to_dict())

    async def run_chain(self, request: GovernanceRequest, target: ChainTarget) -> ChainResult:
        set_chain_context(target.chain_name)
        try:
            return await self._pipeline(request, target)
        except ChainPipelineError:
            raise
        except Exception as e:
            raise ChainPipelineError(target.chain_name, e) from e

    async def _pipeline(self, request: GovernanceRequest, target: ChainTarget) -> ChainResult:
        adapter = self.adapter_for(target)
        operation = request.operation

        call_data = await adapter.build_call_data(operation, target)
        digest = await adapter.hash_call_data(target, request.expiration, call_data)
        if len(digest) != DIGEST_SIZE:
            raise CryptographicError(
                f"Digest for {target.chain_name} is {len(digest)} bytes, expected {DIGEST_SIZE}"
            )
        logger.info("Digest 0x%s for %s (vid %d)", digest.hex(), target.chain_name, target.vid)

        scheme = adapter.signature_scheme(target, request.signer_mode)
        signing_digest = adapter.signing_digest(digest)
        signatures = await gather_or_cancel(
            self.collect_signature(adapter, descriptor, signing_digest, scheme)
            for descriptor in request.signers
        )
        payload = assemble_quorum_payload(signatures, request.quorum, target.family)

        info = operation.info_params(request.quorum)
        info["vId"] = str(target.vid)
        return ChainResult(
            target=target,
            call_data=adapter.output_call_data(operation, call_data),
            digest=digest,
            payload=payload,
            signatures=signatures,
            info=info,
            expiration=request.expiration,
        )

    async def collect_signature(
        self,
        adapter: ChainAdapter,
        descriptor,
        signing_digest: bytes,
        scheme: SignatureScheme,
    ) -> Signature:
        raw = await self._signer.sign(descriptor, signing_digest, scheme)
        if isinstance(raw, DerSignature):
            recoverable = self._builder.from_der(raw.der, signing_digest, raw.public_key)
            signature, public_key = recoverable.to_hex(adapter.recovery_offset), raw.public_key
        elif isinstance(raw, EcdsaSignature):
            recoverable = self._builder.from_raw(raw.r, raw.s, raw.recovery_id)
            signature, public_key = recoverable.to_hex(adapter.recovery_offset), raw.public_key
        elif isinstance(raw, EdwardsSignature):
            signature, public_key = "0x" + raw.signature.hex(), raw.identity_public_key
        else:
            raise CryptographicError(f"Unexpected signer output {type(raw).__name__}")

        address = adapter.identity_address(public_key)
        logger.debug("Collected signature from %s", mask_address(address))
        return Signature(signature=signature, address=address)


def results_to_json(results: Mapping[str, ChainResult], include_status: bool = False) -> Dict[str, dict]:
    return {chain: result.to_dict(include_status) for chain, result in results.items()}


def write_results(
    results: Mapping[str, ChainResult],
    path: Path,
    include_status: bool = False,
) -> Path:
    """Persist the run's results as a single JSON document."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(results_to_json(results, include_status), f, indent=4)
    logger.info("Results written to: %s", path)
    return path
