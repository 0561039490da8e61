"""
DVN governance CLI entry point.

Usage:
    dvn-governance [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .adapters import build_adapters, close_adapters
from .config import GovernanceSettings, get_settings
from .exceptions import GovernanceError
from .logging_config import configure_logging, new_run_id
from .models import (
    AddOrRemoveSigner,
    ChainResult,
    GovernanceOperation,
    GovernanceRequest,
    GrantRevokeRole,
    SetQuorum,
    SignerMode,
)
from .orchestrator import GovernanceOrchestrator, default_expiration, failed_result, write_results
from .registry import ProviderRegistry, load_json_registry, parse_chain_names, resolve_targets
from .signers import get_signer_backend, load_signer_descriptors, parse_signer_mode

logger = logging.getLogger(__name__)

console = Console()

SIGNER_MODES = [m.value for m in SignerMode]


_COMMON_OPTIONS = [
    click.option(
        "-e",
        "--environment",
        type=click.Choice(["mainnet", "testnet", "sandbox"]),
        default=None,
        help="Deployment environment (defaults to DVN_GOV_ENVIRONMENT or mainnet)",
    ),
    click.option("-c", "--chain-names", required=True, help="Comma separated list of chain names"),
    click.option("--expiration", type=int, default=None, help="Absolute expiration timestamp in seconds"),
    click.option(
        "--partial",
        is_flag=True,
        default=False,
        help="Report failing chains in the output instead of aborting",
    ),
]


def common_options(fn):
    """Options shared by every payload command."""
    for option in reversed(_COMMON_OPTIONS):
        fn = option(fn)
    return fn


@click.group()
@click.version_option(package_name="dvn-governance", message="%(prog)s %(version)s")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit structured JSON logs")
@click.pass_context
def cli(ctx, verbose: bool, json_logs: bool):
    """DVN governance CLI - signed admin payloads for multi-chain DVN contracts."""
    ctx.ensure_object(dict)
    settings = get_settings()
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_output=json_logs or settings.log_json,
    )
    new_run_id()
    ctx.obj["settings"] = settings


def _settings_for(ctx, environment: Optional[str], partial: bool) -> GovernanceSettings:
    settings: GovernanceSettings = ctx.obj["settings"]
    updates = {}
    if environment:
        updates["environment"] = environment
    if partial:
        updates["failure_mode"] = "partial"
    return settings.model_copy(update=updates) if updates else settings


async def _execute(
    settings: GovernanceSettings,
    operation: GovernanceOperation,
    chain_names: str,
    quorum: int,
    signer_mode: SignerMode,
    expiration: Optional[int],
) -> Dict[str, ChainResult]:
    partial = settings.failure_mode == "partial"
    dvn_addresses = load_json_registry(settings.dvn_addresses_path(), "DVN address registry")
    targets, failures = resolve_targets(
        parse_chain_names(chain_names),
        settings.environment,
        dvn_addresses,
        overrides=settings.endpoint_id_overrides,
        strict=not partial,
    )
    signers = load_signer_descriptors(signer_mode, settings)

    providers = None
    if settings.providers_path().exists():
        providers = ProviderRegistry.from_file(settings.providers_path(), settings.environment)

    if not targets:
        return {chain: failed_result(chain, error) for chain, error in failures.items()}

    request = GovernanceRequest(
        operation=operation,
        targets=tuple(targets),
        quorum=quorum,
        expiration=expiration if expiration is not None else default_expiration(settings.expiration_ttl_seconds),
        signer_mode=signer_mode,
        signers=signers,
        environment=settings.environment,
    )

    adapters = build_adapters(
        providers,
        rpc_timeout=settings.rpc_timeout_seconds,
        edwards_chains=settings.edwards_chains,
    )
    backend = get_signer_backend(signer_mode, settings)
    orchestrator = GovernanceOrchestrator(adapters, backend, settings.failure_mode)
    try:
        return await orchestrator.run(request, preflight_failures=failures)
    finally:
        await close_adapters(adapters)
        await backend.close()


def _run_command(
    ctx,
    operation: GovernanceOperation,
    environment: Optional[str],
    chain_names: str,
    quorum: int,
    signer_mode: str,
    expiration: Optional[int],
    partial: bool,
    file_name: str,
) -> None:
    settings = _settings_for(ctx, environment, partial)
    try:
        mode = parse_signer_mode(signer_mode)
        results = asyncio.run(_execute(settings, operation, chain_names, quorum, mode, expiration))
    except GovernanceError as e:
        logger.error("Run failed: %s", e.message)
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        ctx.exit(1)

    path = write_results(results, Path(settings.output_dir) / file_name, include_status=settings.failure_mode == "partial")
    _print_summary(results)
    console.print(f"\nResults written to: [cyan]{path}[/cyan]")
    if any(not r.ok for r in results.values()):
        ctx.exit(2)


def _print_summary(results: Dict[str, ChainResult]) -> None:
    table = Table(title="Governance payloads")
    table.add_column("Chain", style="cyan")
    table.add_column("vid")
    table.add_column("Signatures")
    table.add_column("Digest / Error")

    for chain, result in results.items():
        if result.ok:
            table.add_row(
                chain,
                str(result.target.vid),
                str(len(result.signatures)),
                "0x" + result.digest.hex() if result.digest is not None else "",
            )
        else:
            table.add_row(chain, "-", "-", f"[red]{escape(result.error.get('message', 'failed'))}[/red]")

    console.print(table)


@cli.command("add-remove-signer")
@common_options
@click.option("-q", "--quorum", type=click.IntRange(min=1), required=True, help="Number of signatures required for quorum")
@click.option("--signer-address", required=True, help="Public address of the signer")
@click.option(
    "--should-revoke",
    type=click.IntRange(0, 1),
    required=True,
    help="1 to remove the signer, 0 to add it",
)
@click.option("--signer-mode", type=click.Choice(SIGNER_MODES), required=True, help="Signer custody mode")
@click.pass_context
def add_remove_signer(
    ctx,
    environment: Optional[str],
    chain_names: str,
    expiration: Optional[int],
    partial: bool,
    quorum: int,
    signer_address: str,
    should_revoke: int,
    signer_mode: str,
):
    """Create payloads that add or remove a DVN signer."""
    operation = AddOrRemoveSigner(signer_address=signer_address, active=should_revoke == 0)
    _run_command(
        ctx, operation, environment, chain_names, quorum, signer_mode, expiration, partial,
        "signer-change-payloads.json",
    )


@cli.command("set-quorum")
@common_options
@click.option("--old-quorum", type=click.IntRange(min=1), required=True, help="Signatures required for the change")
@click.option("--new-quorum", type=click.IntRange(min=1), required=True, help="New quorum")
@click.option("--signer-mode", type=click.Choice(SIGNER_MODES), required=True, help="Signer custody mode")
@click.pass_context
def set_quorum(
    ctx,
    environment: Optional[str],
    chain_names: str,
    expiration: Optional[int],
    partial: bool,
    old_quorum: int,
    new_quorum: int,
    signer_mode: str,
):
    """Create payloads that change the DVN quorum."""
    _run_command(
        ctx, SetQuorum(new_quorum=new_quorum), environment, chain_names, old_quorum, signer_mode,
        expiration, partial, "quorum-change-payloads.json",
    )


@cli.command("change-role")
@common_options
@click.option("-m", "--message-lib-address", required=True, help="Address of the message library")
@click.option("-q", "--quorum", type=click.IntRange(min=1), required=True, help="Number of signatures required for quorum")
@click.option(
    "-a",
    "--access",
    type=click.IntRange(0, 1),
    required=True,
    help="0 to grant MESSAGE_LIB_ROLE, 1 to revoke it",
)
@click.option("--signer-mode", type=click.Choice(SIGNER_MODES), default=SignerMode.KMS.value, help="Signer custody mode")
@click.pass_context
def change_role(
    ctx,
    environment: Optional[str],
    chain_names: str,
    expiration: Optional[int],
    partial: bool,
    message_lib_address: str,
    quorum: int,
    access: int,
    signer_mode: str,
):
    """Create payloads that grant or revoke MESSAGE_LIB_ROLE."""
    grant = access == 0
    _run_command(
        ctx, GrantRevokeRole(target_address=message_lib_address, grant=grant), environment, chain_names,
        quorum, signer_mode, expiration, partial,
        "grant-role-payloads.json" if grant else "revoke-role-payloads.json",
    )


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
