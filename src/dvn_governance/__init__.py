"""Quorum-signed governance payloads for multi-chain DVN contracts."""

from .config import GovernanceSettings, get_settings
from .exceptions import ChainPipelineError, GovernanceError
from .models import (
    AddOrRemoveSigner,
    ChainFamily,
    ChainResult,
    ChainTarget,
    GovernanceRequest,
    GrantRevokeRole,
    SetQuorum,
    Signature,
    SignerMode,
)
from .orchestrator import GovernanceOrchestrator, write_results

__version__ = "0.1.0"

__all__ = [
    "AddOrRemoveSigner",
    "ChainFamily",
    "ChainPipelineError",
    "ChainResult",
    "ChainTarget",
    "GovernanceError",
    "GovernanceOrchestrator",
    "GovernanceRequest",
    "GovernanceSettings",
    "GrantRevokeRole",
    "SetQuorum",
    "Signature",
    "SignerMode",
    "get_settings",
    "write_results",
]
