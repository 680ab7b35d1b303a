"""
tenantctl command line.

Usage:
    tenantctl <command> [args]

Commands deploy, destroy and list tenants, and check cloud credentials.
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from tenantctl.config.settings import get_settings
from tenantctl.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tenantctl", description="Multi-tenant deployment CLI")
    parser.add_argument("--log-level", help="Log level (defaults to TENANTCTL_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    deploy_parser = subparsers.add_parser("deploy", help="Deploy a tenant through every phase")
    deploy_parser.add_argument("--tenant", help="Tenant name (normalized to a slug)")
    deploy_parser.add_argument("--credential-profile", help="Named cloud credential profile")
    deploy_parser.add_argument("--vars-file", help="YAML file with tenant settings")
    deploy_parser.add_argument("--non-interactive", action="store_true",
                               help="Never prompt; missing fields are errors")
    deploy_parser.add_argument("--skip-build", action="store_true",
                               help="Reuse published image tags, only verify them")
    deploy_parser.add_argument("--skip-assets", action="store_true",
                               help="Stop after infrastructure convergence")
    deploy_parser.add_argument("--output", choices=["text", "json"], default="text",
                               help="Output format")

    destroy_parser = subparsers.add_parser("destroy", help="Destroy every resource of a tenant")
    destroy_parser.add_argument("--tenant", required=True, help="Tenant slug")
    destroy_parser.add_argument("--force", action="store_true",
                                help="Skip the typed confirmation")
    destroy_parser.add_argument("--region", help="Override the region from the variable set")
    destroy_parser.add_argument("--credential-profile", help="Named cloud credential profile")

    verify_parser = subparsers.add_parser("verify", help="Check cloud credentials")
    verify_parser.add_argument("--region", help="Region whose control plane to check")
    verify_parser.add_argument("--credential-profile", help="Named cloud credential profile")

    tenants_parser = subparsers.add_parser("tenants", help="List tenants with a variable set")
    tenants_parser.add_argument("--output", choices=["text", "json"], default="text",
                                help="Output format")

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging((args.log_level or get_settings().log_level).upper())

    if args.command == "deploy":
        from tenantctl.cli.deploy import deploy_command
        sys.exit(deploy_command(
            tenant=args.tenant,
            credential_profile=args.credential_profile,
            vars_file=args.vars_file,
            non_interactive=args.non_interactive,
            skip_build=args.skip_build,
            skip_assets=args.skip_assets,
            output_format=args.output,
        ))

    if args.command == "destroy":
        from tenantctl.cli.destroy import destroy_command
        sys.exit(destroy_command(
            args.tenant,
            force=args.force,
            region=args.region,
            credential_profile=args.credential_profile,
        ))

    if args.command == "verify":
        from tenantctl.cli.verify import verify_command
        sys.exit(verify_command(
            region=args.region,
            credential_profile=args.credential_profile,
        ))

    if args.command == "tenants":
        from tenantctl.cli.tenants import list_tenants_command
        sys.exit(list_tenants_command(output_format=args.output))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
