"""Result types for deployment runs."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from tenantctl.core.errors import TenantCtlError
from tenantctl.orchestration.phases import Phase, PhaseResult


@dataclass
class DeploymentRun:
    """Mutable state of one run; enough to resume after a failed phase."""

    tenant: str
    current_phase: Phase = Phase.PENDING
    outputs: Dict[str, str] = field(default_factory=dict)
    results: List[PhaseResult] = field(default_factory=list)
    failed_at: Optional[Phase] = None

    @property
    def completed_phases(self) -> List[Phase]:
        return [r.phase for r in self.results if r.success]

    def resume(self) -> None:
        """Re-arm a failed run so the failed phase is attempted again."""
        if self.current_phase == Phase.FAILED and self.failed_at is not None:
            self.current_phase = self.failed_at
            self.failed_at = None

    def record(self, result: PhaseResult) -> None:
        """Record a phase outcome; only successful phases publish outputs."""
        self.results.append(result)
        if result.success:
            self.outputs.update(result.outputs)


@dataclass
class DeployResult:
    """Result of deploying one tenant."""

    tenant: str
    final_phase: Phase
    phases: List[PhaseResult] = field(default_factory=list)
    outputs: Dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0
    account_id: Optional[str] = None
    var_file: Optional[Path] = None
    error: Optional[TenantCtlError] = None

    @property
    def success(self) -> bool:
        """Whether every phase ran to completion."""
        return self.final_phase == Phase.COMPLETED and self.error is None

    @property
    def warnings(self) -> List[str]:
        return [w for result in self.phases for w in result.warnings]

    @property
    def failed_phase(self) -> Optional[Phase]:
        if self.phases and not self.phases[-1].success:
            return self.phases[-1].phase
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serializable summary, secrets excluded."""
        data: Dict[str, Any] = {
            "tenant": self.tenant,
            "success": self.success,
            "final_phase": str(self.final_phase),
            "account_id": self.account_id,
            "var_file": str(self.var_file) if self.var_file else None,
            "duration_seconds": round(self.duration_seconds, 2),
            "outputs": dict(self.outputs),
            "warnings": self.warnings,
            "phases": [
                {
                    "phase": str(r.phase),
                    "success": r.success,
                    "duration_seconds": round(r.duration_seconds, 2),
                    "error": r.error,
                }
                for r in self.phases
            ],
        }
        if self.error is not None:
            data["error"] = {
                "type": type(self.error).__name__,
                "message": self.error.message,
                "exit_code": int(self.error.exit_code),
                "raw": self.error.raw,
            }
        return data
