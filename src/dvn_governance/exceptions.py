"""Exception hierarchy for DVN governance payload generation.

Every error raised by this package inherits from GovernanceError, so a
caller (the CLI, or the orchestrator in partial mode) can report it in a
uniform shape:

    try:
        result = await orchestrator.run(request)
    except GovernanceError as e:
        print(e.to_dict())

Categories:
- ConfigurationError: unknown chain, missing registry entry, bad signer mode,
  unsupported operation, quorum larger than the collected signatures
- StateInvariantError: the requested change would violate on-chain invariants
- ExternalDependencyError: secret store, custodial signer or RPC failures
- CryptographicError: DER parsing or recovery-id resolution failures

None of these are retried.
"""
from __future__ import annotations

from typing import Any, Optional


class GovernanceError(Exception):
    """Base exception for all governance payload errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "CONFIGURATION_ERROR")
        details: Optional additional context
    """

    error_code: str = "GOVERNANCE_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to the output-artifact error format."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(GovernanceError):
    """Invalid invocation parameters or static configuration."""

    error_code = "CONFIGURATION_ERROR"


class UnknownChainError(ConfigurationError):
    """Chain name has no endpoint-id mapping."""

    error_code = "UNKNOWN_CHAIN"

    def __init__(self, chain_name: str, environment: str) -> None:
        super().__init__(
            f"Unknown chain '{chain_name}' for environment '{environment}'",
            details={"chain": chain_name, "environment": environment},
        )


class RegistryEntryMissingError(ConfigurationError):
    """A static registry has no entry for a chain/environment pair."""

    error_code = "REGISTRY_ENTRY_MISSING"

    def __init__(self, registry: str, key: str, environment: str) -> None:
        super().__init__(
            f"No {registry} entry for '{key}' in environment '{environment}'",
            details={"registry": registry, "key": key, "environment": environment},
        )


class UnsupportedOperationError(ConfigurationError):
    """Operation is not available for a chain family."""

    error_code = "UNSUPPORTED_OPERATION"


class QuorumNotMetError(ConfigurationError):
    """More signatures were requested than were collected."""

    error_code = "QUORUM_NOT_MET"

    def __init__(self, quorum: int, available: int) -> None:
        super().__init__(
            f"Quorum {quorum} exceeds the {available} available signatures",
            details={"quorum": quorum, "available": available},
        )


# =============================================================================
# State Invariant Errors
# =============================================================================

class StateInvariantError(GovernanceError):
    """The requested change conflicts with current on-chain state."""

    error_code = "STATE_INVARIANT_ERROR"


# =============================================================================
# External Dependency Errors
# =============================================================================

class ExternalDependencyError(GovernanceError):
    """A remote collaborator failed. Always raised with the underlying cause chained."""

    error_code = "EXTERNAL_DEPENDENCY_ERROR"


class SecretStoreError(ExternalDependencyError):
    error_code = "SECRET_STORE_ERROR"


class CustodialSignerError(ExternalDependencyError):
    error_code = "CUSTODIAL_SIGNER_ERROR"


class ChainRPCError(ExternalDependencyError):
    """Read-only chain query failed."""

    error_code = "CHAIN_RPC_ERROR"

    def __init__(
        self,
        message: str,
        chain: str,
        rpc_error: Optional[dict[str, Any]] = None,
    ) -> None:
        details: dict[str, Any] = {"chain": chain}
        if rpc_error:
            details["rpc_error"] = rpc_error
        super().__init__(message, details=details)
        self.chain = chain


# =============================================================================
# Cryptographic Errors
# =============================================================================

class CryptographicError(GovernanceError):
    """Signature handling failed. Indicates a bug or key mismatch, never transient."""

    error_code = "CRYPTOGRAPHIC_ERROR"


class SignatureParseError(CryptographicError):
    error_code = "SIGNATURE_PARSE_ERROR"


class RecoveryIdNotFoundError(CryptographicError):
    error_code = "RECOVERY_ID_NOT_FOUND"


# =============================================================================
# Orchestration
# =============================================================================

class ChainPipelineError(GovernanceError):
    """Wraps the first fatal error raised inside one chain's pipeline."""

    error_code = "CHAIN_PIPELINE_ERROR"

    def __init__(self, chain: str, cause: Exception) -> None:
        if isinstance(cause, GovernanceError):
            error_code = cause.error_code
            details = {"chain": chain, **cause.details}
            message = cause.message
        else:
            error_code = self.error_code
            details = {"chain": chain}
            message = str(cause) or type(cause).__name__
        super().__init__(f"[{chain}] {message}", error_code=error_code, details=details)
        self.chain = chain
        self.cause = cause


__all__ = [
    "GovernanceError",
    "ConfigurationError",
    "UnknownChainError",
    "RegistryEntryMissingError",
    "UnsupportedOperationError",
    "QuorumNotMetError",
    "StateInvariantError",
    "ExternalDependencyError",
    "SecretStoreError",
    "CustodialSignerError",
    "ChainRPCError",
    "CryptographicError",
    "SignatureParseError",
    "RecoveryIdNotFoundError",
    "ChainPipelineError",
]
