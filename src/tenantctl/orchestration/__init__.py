"""Orchestration package: phased tenant deployment and teardown."""

from tenantctl.orchestration.engine import PhaseExecutor
from tenantctl.orchestration.handlers import register_default_handlers
from tenantctl.orchestration.phases import PHASE_ORDER, TRANSITIONS, Phase, PhaseResult, next_phase
from tenantctl.orchestration.registry import (
    DeploymentContext,
    PhaseHandler,
    PhaseRegistry,
    Toolchain,
    ToolchainFactory,
)
from tenantctl.orchestration.results import DeploymentRun, DeployResult
from tenantctl.orchestration.teardown import TeardownController

__all__ = [
    "DeployResult",
    "DeploymentContext",
    "DeploymentRun",
    "PHASE_ORDER",
    "Phase",
    "PhaseExecutor",
    "PhaseHandler",
    "PhaseRegistry",
    "PhaseResult",
    "TRANSITIONS",
    "TeardownController",
    "Toolchain",
    "ToolchainFactory",
    "next_phase",
    "register_default_handlers",
]
