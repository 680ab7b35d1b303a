"""
CLI command for checking cloud credentials.

Runs the same reachability and identity check that precedes every deploy
and destroy, without touching any tenant.
"""

from __future__ import annotations

from typing import Optional

from tenantctl.cli.ux import console, spinner, success
from tenantctl.core.errors import main_with_error_handling
from tenantctl.orchestrator import TenantOrchestrator


@main_with_error_handling()
def verify_command(
    region: Optional[str] = None,
    credential_profile: Optional[str] = None,
    orchestrator: Optional[TenantOrchestrator] = None,
) -> int:
    """
    Verify credentials against the cloud control plane.

    Exit codes:
        0 = Credentials valid
        20 = Control plane unreachable
        21 = Credentials invalid, expired or denied
        22 = Unclassified cloud error
    """
    orchestrator = orchestrator or TenantOrchestrator()
    region = region or orchestrator.settings.default_region

    with spinner(f"Checking credentials in {region}..."):
        account_id = orchestrator.verify_credentials(region, profile=credential_profile)
    success(f"Credentials valid for account {account_id}")
    console.print(f"  [muted]region: {region}[/muted]")
    return 0
