"""
CLI command for tearing down a tenant.
"""

from typing import Optional

from tenantctl.cli.ux import header, success, warning
from tenantctl.core.errors import main_with_error_handling
from tenantctl.orchestration.teardown import Confirmer, console_confirmer
from tenantctl.orchestrator import TenantOrchestrator


@main_with_error_handling()
def destroy_command(
    tenant: str,
    force: bool = False,
    region: Optional[str] = None,
    credential_profile: Optional[str] = None,
    orchestrator: Optional[TenantOrchestrator] = None,
    confirm: Confirmer = console_confirmer,
) -> int:
    """
    Destroy every resource of a tenant.

    Exit codes:
        0 = Destroyed, or the operator declined the confirmation
        11 = Infrastructure provider failed to destroy
        20/21/22 = Credential verification failed
    """
    orchestrator = orchestrator or TenantOrchestrator()

    header(f"Destroying tenant {tenant}")
    if force:
        warning("--force given: skipping the confirmation prompt")

    var_file = orchestrator.destroy(
        tenant,
        force=force,
        region=region,
        profile=credential_profile,
        confirm=confirm,
    )
    success(f"Tenant {tenant} destroyed (variables: {var_file})")
    return 0
