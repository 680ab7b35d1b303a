"""
CLI command for deploying a tenant.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from tenantctl.cli.ux import console, error, header, is_interactive, print_key_value, warning
from tenantctl.config.resolver import Prompter
from tenantctl.core.errors import format_error_message, main_with_error_handling
from tenantctl.orchestration.handlers import skipped_key
from tenantctl.orchestration.phases import PHASE_ORDER, PHASE_TITLES, Phase
from tenantctl.orchestration.results import DeployResult
from tenantctl.orchestrator import TenantOrchestrator

# Outputs shown in the summary, in display order
SUMMARY_OUTPUTS = {
    "load_balancer_dns": "Load balancer",
    "cdn_domain": "CDN domain",
    "cdn_distribution_id": "CDN distribution",
    "assets_bucket_name": "Assets bucket",
    "frontend_bucket": "Frontend bucket",
    "synced_files": "Files synced",
    "invalidation_id": "Invalidation",
}


def print_deploy_summary(result: DeployResult) -> None:
    """Print deploy summary with rich formatting."""
    console.print()

    recorded = {r.phase: r for r in result.phases}
    for phase in PHASE_ORDER:
        title = PHASE_TITLES[phase]
        phase_result = recorded.get(phase)
        if phase_result is None:
            console.print(f"  [muted]- {title:<28} not run[/muted]")
        elif not phase_result.success:
            console.print(f"  [red]✗ {title:<28}[/red] {phase_result.error}")
        elif phase_result.warnings:
            console.print(
                f"  [yellow]⚠ {title:<28}[/yellow] {phase_result.duration_seconds:.1f}s"
            )
        else:
            console.print(f"  [green]✓ {title:<28}[/green] {phase_result.duration_seconds:.1f}s")

    shown = {
        label: result.outputs[key] for key, label in SUMMARY_OUTPUTS.items() if key in result.outputs
    }
    if shown:
        print_key_value(shown, title="Outputs")

    console.print()
    duration = f" in {result.duration_seconds:.1f}s" if result.duration_seconds > 0 else ""
    if result.success:
        console.print(
            f"[bold green]Deployed tenant {result.tenant}{duration}[/bold green] "
            f"→ [cyan]{result.var_file}[/cyan]"
        )
    else:
        console.print(
            f"[bold red]Deployment of {result.tenant} stopped in "
            f"{result.failed_phase or result.final_phase}{duration}[/bold red]"
        )

    skipped = sorted(
        key.split(":", 1)[1] for key in result.outputs if key.startswith(skipped_key(""))
    )
    if skipped:
        console.print()
        console.print(
            "[bold yellow]⚠ Not deployed (source missing): " + ", ".join(skipped) + "[/bold yellow]"
        )
        if "frontend" in skipped:
            console.print("[bold yellow]⚠ Frontend assets were NOT published[/bold yellow]")

    if result.warnings:
        console.print()
        console.print("[yellow]Warnings:[/yellow]")
        for message in result.warnings:
            console.print(f"  [dim]•[/dim] {message}")

    if result.error is not None and result.error.raw:
        console.print()
        console.print("[bold]Tool output:[/bold]")
        console.print(result.error.raw, markup=False, highlight=False)

    console.print()


def print_deploy_json(result: DeployResult) -> None:
    """Print deploy result in JSON format."""
    print(json.dumps(result.to_dict(), indent=2))


def build_overrides(
    tenant: Optional[str] = None,
    credential_profile: Optional[str] = None,
) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if tenant:
        overrides["slug"] = tenant
    if credential_profile:
        overrides["credential_mode"] = "profile"
        overrides["credential_profile"] = credential_profile
    return overrides


@main_with_error_handling()
def deploy_command(
    tenant: Optional[str] = None,
    credential_profile: Optional[str] = None,
    vars_file: Optional[str] = None,
    non_interactive: bool = False,
    skip_build: bool = False,
    skip_assets: bool = False,
    output_format: str = "text",
    orchestrator: Optional[TenantOrchestrator] = None,
    prompter: Optional[Prompter] = None,
) -> int:
    """
    Deploy one tenant end to end.

    Args:
        tenant: Tenant name (overrides the variables file)
        credential_profile: Named cloud profile to deploy with
        vars_file: YAML file with tenant settings
        non_interactive: Never prompt; missing fields are errors
        skip_build: Reuse already-published image tags
        skip_assets: Stop after infrastructure convergence
        output_format: Output format (text, json)

    Returns:
        Exit code (0 on success, the failing error's exit code otherwise)
    """
    orchestrator = orchestrator or TenantOrchestrator()
    interactive = not non_interactive and (prompter is not None or is_interactive())

    config = orchestrator.resolve(
        Path(vars_file) if vars_file else None,
        interactive=interactive,
        overrides=build_overrides(tenant, credential_profile),
        prompter=prompter,
    )

    if output_format != "json":
        header(f"Deploying tenant {config.slug} ({config.environment}, {config.region})")
        if skip_build:
            warning("Skipping image builds; published tags will only be verified")

    result = orchestrator.deploy(config, skip_build=skip_build, skip_assets=skip_assets)

    if output_format == "json":
        print_deploy_json(result)
    else:
        print_deploy_summary(result)

    if result.success:
        return 0
    if result.error is None:
        error(f"Deployment ended in {result.final_phase}")
        return 1
    if result.final_phase == Phase.FAILED and output_format != "json":
        error(format_error_message(result.error))
    return int(result.error.exit_code)
