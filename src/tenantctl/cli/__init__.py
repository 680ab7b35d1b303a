"""
CLI commands for tenantctl.
"""

from tenantctl.cli.deploy import deploy_command
from tenantctl.cli.destroy import destroy_command
from tenantctl.cli.tenants import list_tenants_command
from tenantctl.cli.verify import verify_command

__all__ = [
    "deploy_command",
    "destroy_command",
    "list_tenants_command",
    "verify_command",
]
