"""Phase handler protocol, handler registry and the shared run context."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from tenantctl.catalog import DeployableUnit
from tenantctl.config.settings import Settings
from tenantctl.config.tenant import TenantConfig
from tenantctl.credentials import CredentialContext
from tenantctl.orchestration.phases import Phase, PhaseResult
from tenantctl.providers.base import (
    AssetPublisher,
    IdentityChecker,
    ImageBuilder,
    ImageRegistry,
    InfrastructureProvider,
    SiteBuilder,
)
from tenantctl.verification.publish import StepVerifier


@dataclass
class Toolchain:
    """The set of external systems one run talks to."""

    infrastructure: InfrastructureProvider
    builder: ImageBuilder
    registry: ImageRegistry
    site_builder: SiteBuilder
    publisher: AssetPublisher
    identity: IdentityChecker


# (settings, credentials, tenant slug) -> toolchain
ToolchainFactory = Callable[[Settings, CredentialContext, str], Toolchain]


@dataclass
class DeploymentContext:
    """Shared context passed to all phase handlers."""

    config: TenantConfig
    settings: Settings
    var_file: Path
    units: List[DeployableUnit]
    toolchain: Toolchain
    skip_build: bool = False
    verifier: StepVerifier = field(init=False)

    def __post_init__(self) -> None:
        self.verifier = StepVerifier(self.toolchain.registry)


@runtime_checkable
class PhaseHandler(Protocol):
    """Protocol for one deployment phase."""

    @property
    def phase(self) -> Phase:
        ...

    @property
    def display_name(self) -> str:
        """Human-readable name for log messages."""
        ...

    def check_preconditions(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> None:
        """Raise PhasePreconditionError unless earlier outputs allow this phase to start."""
        ...

    def run(self, ctx: DeploymentContext, prior: Mapping[str, str]) -> PhaseResult:
        """Execute the phase. ``prior`` is a read-only view of earlier outputs."""
        ...


class PhaseRegistry:
    """In-memory registry mapping phases to handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[Phase, PhaseHandler] = {}

    def register(self, handler: PhaseHandler) -> None:
        self._handlers[handler.phase] = handler

    def get(self, phase: Phase) -> Optional[PhaseHandler]:
        return self._handlers.get(phase)

    def list(self) -> List[Phase]:
        return list(self._handlers.keys())
