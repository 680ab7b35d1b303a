"""Execution engine driving a deployment through its phases."""

from __future__ import annotations

import time
import traceback
from types import MappingProxyType
from typing import Callable, Optional, Tuple

from tenantctl.core.errors import PhasePreconditionError, TenantCtlError
from tenantctl.logging import bind_context
from tenantctl.orchestration.phases import Phase, PhaseResult, next_phase
from tenantctl.orchestration.registry import DeploymentContext, PhaseHandler, PhaseRegistry
from tenantctl.orchestration.results import DeploymentRun, DeployResult


class PhaseExecutor:
    """Runs registered handlers in transition-table order, stopping at the first failure.

    Every phase sees only the outputs of phases that already succeeded. A
    failing phase moves the run to FAILED; nothing after it is started.
    """

    def __init__(
        self,
        registry: PhaseRegistry,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._registry = registry
        self._clock = clock

    def execute(
        self,
        ctx: DeploymentContext,
        run: Optional[DeploymentRun] = None,
        stop_after: Optional[Phase] = None,
    ) -> DeployResult:
        """Execute from the run's current phase until it reaches a terminal state.

        Args:
            ctx: Shared deployment context.
            run: Existing run state to resume; a fresh run starts at PENDING.
            stop_after: Finish the run successfully once this phase completes.
        """
        run = run or DeploymentRun(tenant=ctx.config.slug)
        run.resume()
        log = bind_context(tenant=ctx.config.slug)
        started = self._clock()
        error: Optional[TenantCtlError] = None

        if run.current_phase == Phase.PENDING:
            run.current_phase = next_phase(Phase.PENDING, True)

        while not run.current_phase.is_terminal:
            phase = run.current_phase
            result, error = self._run_phase(phase, ctx, run)
            run.record(result)

            if not result.success:
                run.failed_at = phase
                run.current_phase = next_phase(phase, False)
                log.error(
                    "phase_failed",
                    phase=str(phase),
                    error=result.error,
                    error_type=type(error).__name__,
                )
                break

            run.current_phase = next_phase(phase, True)
            if stop_after is not None and phase == stop_after and not run.current_phase.is_terminal:
                log.info("phases_skipped", after=str(phase))
                run.current_phase = Phase.COMPLETED

        log.info("deployment_finished", final_phase=str(run.current_phase))
        return DeployResult(
            tenant=ctx.config.slug,
            final_phase=run.current_phase,
            phases=list(run.results),
            outputs=dict(run.outputs),
            duration_seconds=self._clock() - started,
            var_file=ctx.var_file,
            error=error,
        )

    def _run_phase(
        self, phase: Phase, ctx: DeploymentContext, run: DeploymentRun
    ) -> Tuple[PhaseResult, Optional[TenantCtlError]]:
        handler: Optional[PhaseHandler] = self._registry.get(phase)
        log = bind_context(tenant=ctx.config.slug, phase=str(phase))
        started = self._clock()
        prior = MappingProxyType(dict(run.outputs))

        try:
            if handler is None:
                raise PhasePreconditionError(f"No handler registered for phase {phase}")
            log.info("phase_started", handler=handler.display_name)
            handler.check_preconditions(ctx, prior)
            result = handler.run(ctx, prior)
        except TenantCtlError as e:
            e.scrub_secrets()
            return self._failure(phase, e, started), e
        except Exception as e:
            wrapped = TenantCtlError(
                f"{phase} failed unexpectedly: {e}",
                {"raw": str(e), "traceback": traceback.format_exc()},
            ).scrub_secrets()
            return self._failure(phase, wrapped, started), wrapped

        result.duration_seconds = self._clock() - started
        for warning in result.warnings:
            log.warning("phase_warning", message=warning)
        log.info("phase_completed", duration_seconds=round(result.duration_seconds, 2))
        return result, None

    def _failure(self, phase: Phase, error: TenantCtlError, started: float) -> PhaseResult:
        return PhaseResult(
            phase=phase,
            success=False,
            error=error.message,
            details=dict(error.details),
            duration_seconds=self._clock() - started,
        )
