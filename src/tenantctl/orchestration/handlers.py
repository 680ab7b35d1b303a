"""
Handlers for the four deployment phases.

Each handler checks that the outputs it depends on exist before it touches
anything, then performs its external calls one at a time.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

import structlog

from tenantctl.catalog import DeployableUnit
from tenantctl.core.errors import PhasePreconditionError, ProviderError
from tenantctl.orchestration.phases import Phase, PhaseResult
from tenantctl.orchestration.registry import DeploymentContext, PhaseRegistry

logger = structlog.get_logger()

# Infrastructure outputs read after convergence
OUTPUT_LOAD_BALANCER = "load_balancer_dns"
OUTPUT_CDN_DOMAIN = "cdn_domain"
OUTPUT_CDN_ID = "cdn_distribution_id"
OUTPUT_ASSETS_BUCKET = "assets_bucket_name"

INVALIDATION_PATHS = ["/*"]


def registry_key(unit_name: str) -> str:
    return f"registry_url:{unit_name}"


def image_key(unit_name: str) -> str:
    return f"image:{unit_name}"


def skipped_key(unit_name: str) -> str:
    return f"skipped:{unit_name}"


def repository_from_url(url: str) -> str:
    """``<host>/<repository>`` -> ``<repository>``."""
    return url.split("/", 1)[1] if "/" in url else url


class RegistryBootstrapHandler:
    """Converges only the registry resources and reads back their addresses."""

    @property
    def phase(self) -> Phase:
        return Phase.REGISTRY_BOOTSTRAP

    @property
    def display_name(self) -> str:
        return "registry bootstrap"

    def check_preconditions(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> None:
        if not ctx.var_file.is_file():
            raise PhasePreconditionError(
                "Variable set has not been materialized",
                {"var_file": str(ctx.var_file)},
            )

    def run(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> PhaseResult:
        infrastructure = ctx.toolchain.infrastructure
        infrastructure.apply(ctx.var_file, targets=ctx.settings.registry_targets)
        urls = infrastructure.output(ctx.settings.registry_output)
        if not isinstance(urls, Mapping):
            raise ProviderError(
                f"Output '{ctx.settings.registry_output}' is not a map of repository URLs",
                {"raw": repr(urls)},
            )

        result = PhaseResult(phase=self.phase, success=True)
        for unit in ctx.units:
            url = urls.get(unit.name)
            if url:
                result.outputs[registry_key(unit.name)] = str(url)
            else:
                result.warnings.append(f"No registry repository reported for {unit.name}")
        logger.info(
            "registry_bootstrapped",
            tenant=ctx.config.slug,
            repositories=len(result.outputs),
        )
        return result


class BuildPublishHandler:
    """Builds, pushes and verifies every unit that has source code."""

    @property
    def phase(self) -> Phase:
        return Phase.BUILD_AND_PUBLISH

    @property
    def display_name(self) -> str:
        return "build & publish"

    def check_preconditions(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> None:
        missing = [
            unit.name
            for unit in ctx.units
            if unit.has_source() and registry_key(unit.name) not in prior
        ]
        if missing:
            raise PhasePreconditionError(
                "No registry address for unit(s): " + ", ".join(missing),
                {"units": missing},
            )

    def run(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> PhaseResult:
        result = PhaseResult(phase=self.phase, success=True)
        publishable = [unit for unit in ctx.units if unit.has_source()]

        for unit in ctx.units:
            if unit not in publishable:
                message = f"Skipping {unit.name}: source directory {unit.source_dir} not found"
                result.warnings.append(message)
                result.outputs[skipped_key(unit.name)] = "missing-source"
                logger.warning("unit_skipped", unit=unit.name, source_dir=str(unit.source_dir))

        if publishable and not ctx.skip_build:
            ctx.toolchain.builder.login(ctx.toolchain.registry.authorization())

        for unit in publishable:
            result.outputs[image_key(unit.name)] = self._publish(ctx, unit, prior)

        return result

    def _publish(
        self, ctx: DeploymentContext, unit: DeployableUnit, prior: Mapping[str, str]
    ) -> str:
        url = prior[registry_key(unit.name)]
        remote_ref = f"{url}:{unit.image_tag}"

        if not ctx.skip_build:
            builder = ctx.toolchain.builder
            local_image = builder.build(
                unit.source_dir,
                unit.local_image(),
                build_file=unit.build_file if unit.build_file.is_file() else None,
                platform=ctx.settings.target_platform,
            )
            builder.push(local_image, remote_ref)

        ctx.verifier.verify_published(repository_from_url(url), unit.image_tag)
        logger.info("unit_published", unit=unit.name, image=remote_ref)
        return remote_ref


class ConvergenceHandler:
    """Converges the full resource graph once every image is published."""

    @property
    def phase(self) -> Phase:
        return Phase.INFRASTRUCTURE_CONVERGENCE

    @property
    def display_name(self) -> str:
        return "infrastructure convergence"

    def check_preconditions(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> None:
        unverified = [
            unit.name
            for unit in ctx.units
            if image_key(unit.name) not in prior and skipped_key(unit.name) not in prior
        ]
        if unverified:
            raise PhasePreconditionError(
                "Image(s) not verified in registry: " + ", ".join(unverified),
                {"units": unverified},
            )

    def run(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> PhaseResult:
        infrastructure = ctx.toolchain.infrastructure
        infrastructure.apply(ctx.var_file)
        outputs: Dict[str, Any] = infrastructure.outputs()

        missing = [k for k in (OUTPUT_LOAD_BALANCER, OUTPUT_CDN_DOMAIN) if not outputs.get(k)]
        if missing:
            raise ProviderError(
                "Convergence finished without required output(s): " + ", ".join(missing),
                {"available": sorted(outputs)},
            )

        result = PhaseResult(phase=self.phase, success=True)
        for key in (OUTPUT_LOAD_BALANCER, OUTPUT_CDN_DOMAIN, OUTPUT_CDN_ID, OUTPUT_ASSETS_BUCKET):
            if outputs.get(key):
                result.outputs[key] = str(outputs[key])
        logger.info(
            "infrastructure_converged",
            tenant=ctx.config.slug,
            load_balancer=result.outputs[OUTPUT_LOAD_BALANCER],
            cdn_domain=result.outputs[OUTPUT_CDN_DOMAIN],
        )
        return result


class AssetPublishHandler:
    """Builds the frontend, mirrors it into the public bucket, invalidates the CDN."""

    @property
    def phase(self) -> Phase:
        return Phase.ASSET_PUBLISH

    @property
    def display_name(self) -> str:
        return "asset publish"

    def check_preconditions(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> None:
        missing = [k for k in (OUTPUT_LOAD_BALANCER, OUTPUT_CDN_DOMAIN) if k not in prior]
        if missing:
            raise PhasePreconditionError(
                "Convergence output(s) unavailable: " + ", ".join(missing),
                {"outputs": missing},
            )

    def site_environment(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> Dict[str, str]:
        public_host = ctx.config.domain_name or prior[OUTPUT_CDN_DOMAIN]
        return {
            "VITE_API_BASE_URL": f"https://{public_host}/api",
            "VITE_TENANT": ctx.config.slug,
            "VITE_ENVIRONMENT": ctx.config.environment,
        }

    def run(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> PhaseResult:
        result = PhaseResult(phase=self.phase, success=True)
        frontend_dir = ctx.settings.resolve(ctx.settings.frontend_dir)
        if not frontend_dir.is_dir():
            result.warnings.append(f"Skipping asset publish: {frontend_dir} not found")
            result.outputs[skipped_key("frontend")] = "missing-source"
            logger.warning("frontend_missing", path=str(frontend_dir))
            return result

        output_dir = ctx.toolchain.site_builder.build(
            frontend_dir,
            mode=ctx.config.environment,
            env=self.site_environment(ctx, prior),
        )
        uploaded = ctx.toolchain.publisher.sync(output_dir, ctx.config.frontend_bucket, delete=True)
        result.outputs["synced_files"] = str(uploaded)
        result.outputs["frontend_bucket"] = ctx.config.frontend_bucket

        distribution_id = prior.get(OUTPUT_CDN_ID)
        if distribution_id:
            result.outputs["invalidation_id"] = ctx.toolchain.publisher.invalidate(
                distribution_id, INVALIDATION_PATHS
            )
        else:
            result.warnings.append("No CDN distribution id; cache not invalidated")
        return result


def default_handlers() -> List[Any]:
    return [
        RegistryBootstrapHandler(),
        BuildPublishHandler(),
        ConvergenceHandler(),
        AssetPublishHandler(),
    ]


def register_default_handlers(registry: PhaseRegistry) -> PhaseRegistry:
    """Register the four built-in phase handlers."""
    for handler in default_handlers():
        registry.register(handler)
    return registry
