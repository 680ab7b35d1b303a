"""
CLI command for listing tenants with a persisted variable set.
"""

import json
from typing import Optional

from tenantctl.cli.ux import console, info, print_table
from tenantctl.core.errors import main_with_error_handling
from tenantctl.orchestrator import TenantOrchestrator


@main_with_error_handling()
def list_tenants_command(
    output_format: str = "text",
    orchestrator: Optional[TenantOrchestrator] = None,
) -> int:
    orchestrator = orchestrator or TenantOrchestrator()
    tenants = orchestrator.tenants()

    if output_format == "json":
        print(json.dumps({"tenants": tenants}, indent=2))
        return 0

    if not tenants:
        info(f"No tenants found in {orchestrator.store.vars_dir}")
        return 0

    rows = [[slug, str(orchestrator.store.path_for(slug))] for slug in tenants]
    print_table("Tenants", ["Tenant", "Variables file"], rows)
    console.print(f"\n[muted]{len(tenants)} tenant(s)[/muted]")
    return 0
