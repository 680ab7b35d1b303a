"""Tests for the orchestration package.

Covers the phase transition table, each phase handler against the in-memory
providers, and the executor's ordering and short-circuit guarantees.
"""

from types import MappingProxyType

import pytest
from conftest import CONVERGED_OUTPUTS, REGISTRY_HOST, TEST_FUNCTIONS
from tenantctl.catalog import build_catalog
from tenantctl.core.errors import (
    PhasePreconditionError,
    ProviderError,
    PublishVerificationError,
    TenantCtlError,
)
from tenantctl.orchestration import (
    PHASE_ORDER,
    DeploymentContext,
    DeploymentRun,
    Phase,
    PhaseExecutor,
    PhaseRegistry,
    PhaseResult,
    next_phase,
    register_default_handlers,
)
from tenantctl.orchestration.handlers import (
    AssetPublishHandler,
    BuildPublishHandler,
    ConvergenceHandler,
    RegistryBootstrapHandler,
    image_key,
    registry_key,
    skipped_key,
)
from tenantctl.orchestration.phases import InvalidTransition


@pytest.fixture
def var_file(tmp_path):
    path = tmp_path / "acme.tfvars"
    path.write_text('tenant_slug = "acme"\n')
    return path


@pytest.fixture
def ctx(settings, tenant_config, toolchain, var_file):
    return DeploymentContext(
        config=tenant_config,
        settings=settings,
        var_file=var_file,
        units=build_catalog(tenant_config, settings, TEST_FUNCTIONS),
        toolchain=toolchain,
    )


@pytest.fixture
def executor():
    return PhaseExecutor(register_default_handlers(PhaseRegistry()))


def bootstrapped():
    return {registry_key(u): f"{REGISTRY_HOST}/acme-{u}" for u in ("backend",) + TEST_FUNCTIONS}


def published():
    return {image_key(u): f"{REGISTRY_HOST}/acme-{u}:v1" for u in ("backend",) + TEST_FUNCTIONS}


class TestTransitions:
    """Tests for the phase transition table."""

    def test_success_path(self):
        phase = Phase.PENDING
        visited = []
        while not phase.is_terminal:
            phase = next_phase(phase, True)
            visited.append(phase)

        assert visited == [*PHASE_ORDER, Phase.COMPLETED]

    @pytest.mark.parametrize("phase", PHASE_ORDER)
    def test_failure_goes_to_failed(self, phase):
        assert next_phase(phase, False) is Phase.FAILED

    @pytest.mark.parametrize("phase", [Phase.COMPLETED, Phase.FAILED])
    def test_terminal_states_have_no_exit(self, phase):
        with pytest.raises(InvalidTransition):
            next_phase(phase, True)


class TestRegistryBootstrapHandler:
    """Tests for RegistryBootstrapHandler."""

    def test_produces_address_per_unit(self, ctx, toolchain):
        result = RegistryBootstrapHandler().run(ctx, MappingProxyType({}))

        assert result.outputs == bootstrapped()
        assert toolchain.infrastructure.calls[0] == ("apply", ["module.registry"])

    def test_requires_materialized_vars(self, ctx, var_file):
        var_file.unlink()

        with pytest.raises(PhasePreconditionError):
            RegistryBootstrapHandler().check_preconditions(ctx, {})

    def test_unit_without_repository_warns(self, ctx, toolchain):
        urls = toolchain.infrastructure._registry_outputs["ecr_repository_urls"]
        del urls["f2"]

        result = RegistryBootstrapHandler().run(ctx, {})

        assert registry_key("f2") not in result.outputs
        assert any("f2" in w for w in result.warnings)

    def test_non_map_output(self, ctx, toolchain):
        toolchain.infrastructure._registry_outputs["ecr_repository_urls"] = "not-a-map"

        with pytest.raises(ProviderError):
            RegistryBootstrapHandler().run(ctx, {})


class TestBuildPublishHandler:
    """Tests for BuildPublishHandler."""

    def test_builds_pushes_and_verifies_every_unit(self, ctx, toolchain):
        result = BuildPublishHandler().run(ctx, bootstrapped())

        assert result.outputs == published()
        assert toolchain.builder.logins == [REGISTRY_HOST]
        assert toolchain.builder.pushes == list(published().values())
        assert toolchain.registry.queries == [
            ("acme-backend", "v1"),
            ("acme-f1", "v1"),
            ("acme-f2", "v1"),
        ]

    def test_never_starts_without_registry_address(self, ctx, toolchain):
        prior = bootstrapped()
        del prior[registry_key("f1")]

        with pytest.raises(PhasePreconditionError) as exc_info:
            BuildPublishHandler().check_preconditions(ctx, prior)

        assert exc_info.value.details["units"] == ["f1"]
        assert toolchain.builder.builds == []

    def test_push_ok_but_missing_in_registry_fails(self, ctx, toolchain):
        toolchain.builder.drop_pushes = True

        with pytest.raises(PublishVerificationError):
            BuildPublishHandler().run(ctx, bootstrapped())

        assert len(toolchain.builder.pushes) == 1

    def test_missing_source_is_skipped(self, ctx, toolchain, project):
        (project / "functions" / "f2" / "Dockerfile").unlink()
        (project / "functions" / "f2").rmdir()
        prior = bootstrapped()
        del prior[registry_key("f2")]

        handler = BuildPublishHandler()
        handler.check_preconditions(ctx, prior)
        result = handler.run(ctx, prior)

        assert result.outputs[skipped_key("f2")] == "missing-source"
        assert image_key("f2") not in result.outputs
        assert any("f2" in w for w in result.warnings)

    def test_skip_build_only_verifies(self, ctx, toolchain):
        for url in published().values():
            repository, tag = url.split("/", 1)[1].rsplit(":", 1)
            toolchain.registry.images.add((repository, tag))
        ctx.skip_build = True

        result = BuildPublishHandler().run(ctx, bootstrapped())

        assert result.outputs == published()
        assert toolchain.builder.builds == []
        assert toolchain.builder.logins == []

    def test_build_failure_stops_remaining_units(self, ctx, toolchain):
        toolchain.builder.fail_build.add("acme-f1:v1")

        with pytest.raises(ProviderError):
            BuildPublishHandler().run(ctx, bootstrapped())

        assert [tag for _, tag in toolchain.builder.builds] == ["acme-backend:v1"]


class TestConvergenceHandler:
    """Tests for ConvergenceHandler."""

    def test_requires_every_image_verified(self, ctx, toolchain):
        prior = published()
        del prior[image_key("f2")]

        with pytest.raises(PhasePreconditionError):
            ConvergenceHandler().check_preconditions(ctx, prior)

        assert toolchain.infrastructure.calls == []

    def test_skipped_units_do_not_block(self, ctx):
        prior = published()
        del prior[image_key("f2")]
        prior[skipped_key("f2")] = "missing-source"

        ConvergenceHandler().check_preconditions(ctx, prior)

    def test_full_apply_outputs(self, ctx, toolchain):
        result = ConvergenceHandler().run(ctx, published())

        assert toolchain.infrastructure.calls == [("apply", None)]
        assert result.outputs == CONVERGED_OUTPUTS

    def test_missing_required_output(self, ctx, toolchain):
        toolchain.infrastructure._full_outputs.pop("cdn_domain")

        with pytest.raises(ProviderError):
            ConvergenceHandler().run(ctx, published())


class TestAssetPublishHandler:
    """Tests for AssetPublishHandler."""

    def test_builds_syncs_and_invalidates(self, ctx, toolchain, project):
        result = AssetPublishHandler().run(ctx, CONVERGED_OUTPUTS)

        (source_dir, mode, env) = toolchain.site_builder.builds[0]
        assert source_dir == project / "frontend"
        assert mode == "production"
        assert env["VITE_API_BASE_URL"] == "https://d111abcdef8.cloudfront.net/api"
        assert toolchain.publisher.syncs == [(project / "frontend" / "dist", "acme-frontend", True)]
        assert toolchain.publisher.invalidations == [("E2CDNEXAMPLE", ["/*"])]
        assert result.outputs["synced_files"] == "3"
        assert result.outputs["invalidation_id"] == "I0001"

    def test_custom_domain_used_for_api_url(self, ctx):
        ctx.config.domain_name = "acme.example.com"
        env = AssetPublishHandler().site_environment(ctx, CONVERGED_OUTPUTS)
        assert env["VITE_API_BASE_URL"] == "https://acme.example.com/api"

    def test_no_distribution_id(self, ctx, toolchain):
        prior = {k: v for k, v in CONVERGED_OUTPUTS.items() if k != "cdn_distribution_id"}

        result = AssetPublishHandler().run(ctx, prior)

        assert toolchain.publisher.invalidations == []
        assert "invalidation_id" not in result.outputs
        assert result.warnings

    def test_missing_frontend_skips(self, ctx, toolchain, project):
        (project / "frontend").rmdir()

        result = AssetPublishHandler().run(ctx, CONVERGED_OUTPUTS)

        assert toolchain.site_builder.builds == []
        assert toolchain.publisher.syncs == []
        assert result.warnings
        assert result.outputs[skipped_key("frontend")] == "missing-source"

    def test_requires_convergence_outputs(self, ctx):
        with pytest.raises(PhasePreconditionError):
            AssetPublishHandler().check_preconditions(ctx, {"cdn_domain": "x"})


class TestPhaseExecutor:
    """Tests for PhaseExecutor."""

    def test_runs_all_phases_in_order(self, ctx, executor, toolchain):
        result = executor.execute(ctx)

        assert result.success
        assert result.final_phase is Phase.COMPLETED
        assert [r.phase for r in result.phases] == list(PHASE_ORDER)
        assert toolchain.infrastructure.operations() == ["apply", "apply"]
        assert result.outputs["load_balancer_dns"] == CONVERGED_OUTPUTS["load_balancer_dns"]

    def test_verification_failure_blocks_convergence(self, ctx, executor, toolchain):
        toolchain.builder.drop_pushes = True

        result = executor.execute(ctx)

        assert result.final_phase is Phase.FAILED
        assert result.failed_phase is Phase.BUILD_AND_PUBLISH
        assert isinstance(result.error, PublishVerificationError)
        assert toolchain.infrastructure.calls == [("apply", ["module.registry"])]
        assert toolchain.publisher.syncs == []

    def test_bootstrap_failure_short_circuits(self, ctx, executor, toolchain):
        toolchain.infrastructure.fail_on.add("apply_targets")

        result = executor.execute(ctx)

        assert result.failed_phase is Phase.REGISTRY_BOOTSTRAP
        assert [r.phase for r in result.phases] == [Phase.REGISTRY_BOOTSTRAP]
        assert toolchain.builder.builds == []
        assert result.error.raw == "Error: simulated apply_targets failure"

    def test_convergence_failure_skips_assets(self, ctx, executor, toolchain):
        toolchain.infrastructure.fail_on.add("apply")

        result = executor.execute(ctx)

        assert result.failed_phase is Phase.INFRASTRUCTURE_CONVERGENCE
        assert toolchain.site_builder.builds == []
        assert result.phases[-1].details["raw"] == "Error: simulated apply failure"

    def test_unexpected_exception_is_wrapped(self, ctx, toolchain):
        class Exploding:
            phase = Phase.REGISTRY_BOOTSTRAP
            display_name = "exploding"

            def check_preconditions(self, ctx, prior):
                pass

            def run(self, ctx, prior):
                raise KeyError("ecr_repository_urls")

        registry = PhaseRegistry()
        registry.register(Exploding())

        result = PhaseExecutor(registry).execute(ctx)

        assert result.final_phase is Phase.FAILED
        assert type(result.error) is TenantCtlError
        assert "KeyError" in result.error.details["traceback"]

    def test_missing_handler_fails(self, ctx):
        result = PhaseExecutor(PhaseRegistry()).execute(ctx)

        assert result.final_phase is Phase.FAILED
        assert isinstance(result.error, PhasePreconditionError)

    def test_stop_after_convergence(self, ctx, executor, toolchain):
        result = executor.execute(ctx, stop_after=Phase.INFRASTRUCTURE_CONVERGENCE)

        assert result.success
        assert Phase.ASSET_PUBLISH not in [r.phase for r in result.phases]
        assert toolchain.publisher.syncs == []

    def test_resume_after_failure(self, ctx, executor, toolchain):
        toolchain.infrastructure.fail_on.add("apply")
        run = DeploymentRun(tenant="acme")

        first = executor.execute(ctx, run=run)
        assert first.failed_phase is Phase.INFRASTRUCTURE_CONVERGENCE
        assert run.current_phase is Phase.FAILED
        assert image_key("backend") in run.outputs

        toolchain.infrastructure.fail_on.clear()
        second = executor.execute(ctx, run=run)

        assert second.success
        assert len(toolchain.builder.pushes) == 3
        assert run.completed_phases == list(PHASE_ORDER)

    def test_phases_see_read_only_outputs(self, ctx, toolchain):
        seen = {}

        class Recorder:
            phase = Phase.REGISTRY_BOOTSTRAP
            display_name = "recorder"

            def check_preconditions(self, ctx, prior):
                pass

            def run(self, ctx, prior):
                seen["prior"] = prior
                return PhaseResult(phase=self.phase, success=True, outputs={"k": "v"})

        registry = PhaseRegistry()
        registry.register(Recorder())
        PhaseExecutor(registry).execute(ctx)

        with pytest.raises(TypeError):
            seen["prior"]["k"] = "mutated"
