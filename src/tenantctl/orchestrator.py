"""
Tenant orchestrator for the deploy and destroy workflows.

Wires the configuration resolver, the variable set store, the credential
context and the phase executor together for a single tenant.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

import structlog

from tenantctl.catalog import build_catalog
from tenantctl.config.materializer import VariableSetStore
from tenantctl.config.resolver import Prompter, resolve_config
from tenantctl.config.settings import Settings, get_settings
from tenantctl.config.tenant import FUNCTION_NAMES, TenantConfig
from tenantctl.credentials import CredentialContext, credential_context
from tenantctl.orchestration.engine import PhaseExecutor
from tenantctl.orchestration.handlers import register_default_handlers
from tenantctl.orchestration.phases import Phase
from tenantctl.orchestration.registry import (
    DeploymentContext,
    PhaseRegistry,
    Toolchain,
    ToolchainFactory,
)
from tenantctl.orchestration.results import DeployResult
from tenantctl.orchestration.teardown import Confirmer, TeardownController, console_confirmer
from tenantctl.providers.aws import EcrRegistry, S3AssetPublisher, StsIdentityChecker
from tenantctl.providers.docker import DockerBuilder
from tenantctl.providers.npm import NpmSiteBuilder
from tenantctl.providers.terraform import TerraformProvider
from tenantctl.verification.credentials import CredentialVerifier

logger = structlog.get_logger()


def production_toolchain(settings: Settings, credentials: CredentialContext, slug: str) -> Toolchain:
    """Adapters for Terraform, Docker, npm and the AWS APIs, sharing one credential context."""
    timeout = settings.command_timeout
    return Toolchain(
        infrastructure=TerraformProvider(
            settings.resolve(settings.infra_dir),
            workspace=slug,
            env=credentials.subprocess_env,
            binary=settings.terraform_bin,
            timeout=timeout,
        ),
        builder=DockerBuilder(
            env=credentials.subprocess_env, binary=settings.docker_bin, timeout=timeout
        ),
        registry=EcrRegistry(credentials),
        site_builder=NpmSiteBuilder(
            output_dir_name=settings.frontend_build_dir,
            binary=settings.npm_bin,
            timeout=timeout,
        ),
        publisher=S3AssetPublisher(credentials),
        identity=StsIdentityChecker(credentials),
    )


class TenantOrchestrator:
    """Deploys and destroys tenants."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        toolchain_factory: ToolchainFactory = production_toolchain,
        verifier_factory: Callable[..., Any] = CredentialVerifier,
        registry: Optional[PhaseRegistry] = None,
        function_names: Sequence[str] = FUNCTION_NAMES,
    ):
        self.settings = settings or get_settings()
        self.toolchain_factory = toolchain_factory
        self.verifier_factory = verifier_factory
        self.registry = registry or register_default_handlers(PhaseRegistry())
        self.function_names = tuple(function_names)
        self.store = VariableSetStore(self.settings.resolve(self.settings.vars_dir))

    def resolve(
        self,
        vars_file: Optional[Path] = None,
        interactive: bool = True,
        overrides: Optional[Mapping[str, Any]] = None,
        prompter: Optional[Prompter] = None,
    ) -> TenantConfig:
        """Resolve a tenant configuration; nothing external is touched."""
        return resolve_config(
            vars_file, interactive=interactive, overrides=overrides, prompter=prompter
        )

    def deploy(
        self,
        config: TenantConfig,
        skip_build: bool = False,
        skip_assets: bool = False,
    ) -> DeployResult:
        """Materialize the tenant's variable set and run every phase.

        Credential and precondition failures before the first phase raise;
        failures inside a phase are reported on the returned result.
        """
        start_time = time.time()
        var_file = self.store.materialize(config)
        units = build_catalog(config, self.settings, self.function_names)

        with credential_context(config) as credentials:
            toolchain = self.toolchain_factory(self.settings, credentials, config.slug)
            account_id = self.verifier_factory(toolchain.identity).verify(config.region)

            ctx = DeploymentContext(
                config=config,
                settings=self.settings,
                var_file=var_file,
                units=units,
                toolchain=toolchain,
                skip_build=skip_build,
            )
            executor = PhaseExecutor(self.registry)
            stop_after = Phase.INFRASTRUCTURE_CONVERGENCE if skip_assets else None
            result = executor.execute(ctx, stop_after=stop_after)

        result.account_id = account_id
        result.duration_seconds = time.time() - start_time
        return result

    def destroy(
        self,
        tenant_slug: str,
        force: bool = False,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        confirm: Confirmer = console_confirmer,
    ) -> Path:
        controller = TeardownController(
            self.settings,
            self.toolchain_factory,
            store=self.store,
            confirm=confirm,
            verifier_factory=self.verifier_factory,
        )
        return controller.destroy(tenant_slug, force=force, region=region, profile=profile)

    def verify_credentials(self, region: str, profile: Optional[str] = None) -> str:
        """Check reachability and identity without touching any tenant."""
        credentials = CredentialContext(region=region, profile=profile)
        try:
            toolchain = self.toolchain_factory(self.settings, credentials, "default")
            return self.verifier_factory(toolchain.identity).verify(region)
        finally:
            credentials.release()

    def tenants(self) -> list[str]:
        return self.store.list_tenants()
