"""
Terraform adapter for the infrastructure provider interface.

Every tenant converges in its own Terraform workspace, named after the
slug, so one tenant's state can never reference another tenant's resources.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import structlog

from tenantctl.core.errors import DestroyError, ProviderError
from tenantctl.providers.command import run_command

logger = structlog.get_logger()

EnvFactory = Callable[[], Mapping[str, str]]


class TerraformProvider:
    """Drives the ``terraform`` CLI inside one tenant workspace."""

    def __init__(
        self,
        working_dir: Path,
        workspace: str,
        env: EnvFactory,
        binary: str = "terraform",
        timeout: int | None = None,
    ) -> None:
        self.working_dir = working_dir
        self.workspace = workspace
        self._env = env
        self._binary = binary
        self._timeout = timeout
        self._initialized = False

    def _run(self, *args: str, check: bool = True):
        return run_command(
            [self._binary, *args],
            cwd=self.working_dir,
            env=self._env(),
            timeout=self._timeout,
            check=check,
        )

    def init(self) -> None:
        if self._initialized:
            return
        self._run("init", "-input=false", "-no-color")
        self._run("workspace", "select", "-or-create=true", self.workspace)
        self._initialized = True
        logger.info("terraform_initialized", workspace=self.workspace)

    def apply(self, var_file: Path, targets: Sequence[str] | None = None) -> None:
        self.init()
        args = [
            "apply",
            "-input=false",
            "-auto-approve",
            "-no-color",
            f"-var-file={var_file.resolve()}",
        ]
        args.extend(f"-target={target}" for target in targets or ())
        self._run(*args)
        logger.info("terraform_applied", workspace=self.workspace, targets=list(targets or ()))

    def destroy(self, var_file: Path) -> None:
        try:
            self.init()
            self._run(
                "destroy",
                "-input=false",
                "-auto-approve",
                "-no-color",
                f"-var-file={var_file.resolve()}",
            )
        except ProviderError as e:
            raise DestroyError(e.message, e.details) from e
        logger.info("terraform_destroyed", workspace=self.workspace)

    def outputs(self) -> dict[str, Any]:
        self.init()
        result = self._run("output", "-json", "-no-color")
        try:
            raw = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise ProviderError(
                "terraform output returned invalid JSON",
                {"raw": result.stdout[-4000:]},
            ) from e
        return {name: entry.get("value") for name, entry in raw.items()}

    def output(self, name: str) -> Any:
        outputs = self.outputs()
        if name not in outputs:
            raise ProviderError(
                f"terraform output '{name}' not found",
                {"workspace": self.workspace, "available": sorted(outputs)},
            )
        return outputs[name]
