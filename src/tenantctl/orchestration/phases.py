"""Deployment phases and the transition table between them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Phase(StrEnum):
    """States of a deployment run."""

    PENDING = "pending"
    REGISTRY_BOOTSTRAP = "registry_bootstrap"
    BUILD_AND_PUBLISH = "build_and_publish"
    INFRASTRUCTURE_CONVERGENCE = "infrastructure_convergence"
    ASSET_PUBLISH = "asset_publish"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETED, Phase.FAILED)


# Working phases in execution order.
PHASE_ORDER: tuple[Phase, ...] = (
    Phase.REGISTRY_BOOTSTRAP,
    Phase.BUILD_AND_PUBLISH,
    Phase.INFRASTRUCTURE_CONVERGENCE,
    Phase.ASSET_PUBLISH,
)

# state -> {succeeded: next state}
TRANSITIONS: dict[Phase, dict[bool, Phase]] = {
    Phase.PENDING: {True: Phase.REGISTRY_BOOTSTRAP, False: Phase.FAILED},
    Phase.REGISTRY_BOOTSTRAP: {True: Phase.BUILD_AND_PUBLISH, False: Phase.FAILED},
    Phase.BUILD_AND_PUBLISH: {True: Phase.INFRASTRUCTURE_CONVERGENCE, False: Phase.FAILED},
    Phase.INFRASTRUCTURE_CONVERGENCE: {True: Phase.ASSET_PUBLISH, False: Phase.FAILED},
    Phase.ASSET_PUBLISH: {True: Phase.COMPLETED, False: Phase.FAILED},
}

PHASE_TITLES: dict[Phase, str] = {
    Phase.REGISTRY_BOOTSTRAP: "Registry bootstrap",
    Phase.BUILD_AND_PUBLISH: "Build & publish",
    Phase.INFRASTRUCTURE_CONVERGENCE: "Infrastructure convergence",
    Phase.ASSET_PUBLISH: "Asset publish",
}


class InvalidTransition(RuntimeError):
    """Raised when the state machine is asked to leave a terminal state."""


def next_phase(current: Phase, succeeded: bool) -> Phase:
    """Look up the state that follows ``current``."""
    try:
        return TRANSITIONS[current][succeeded]
    except KeyError as e:
        raise InvalidTransition(f"No transition from {current} (succeeded={succeeded})") from e


@dataclass
class PhaseResult:
    """Outcome of one phase."""

    phase: Phase
    success: bool
    outputs: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    duration_seconds: float = 0.0
