"""npm adapter for building the frontend."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

import structlog

from tenantctl.core.errors import ProviderError
from tenantctl.providers.command import run_command

logger = structlog.get_logger()


class NpmSiteBuilder:
    """Installs dependencies and runs the frontend build script."""

    def __init__(self, output_dir_name: str = "dist", binary: str = "npm", timeout: int | None = None):
        self._output_dir_name = output_dir_name
        self._binary = binary
        self._timeout = timeout

    def build(self, source_dir: Path, mode: str, env: Mapping[str, str]) -> Path:
        child_env = {**os.environ, **env}
        run_command([self._binary, "ci"], cwd=source_dir, env=child_env, timeout=self._timeout)
        run_command(
            [self._binary, "run", "build", "--", "--mode", mode],
            cwd=source_dir,
            env=child_env,
            timeout=self._timeout,
        )

        output_dir = source_dir / self._output_dir_name
        if not output_dir.is_dir():
            raise ProviderError(
                f"Frontend build produced no output directory: {output_dir}",
                {"source_dir": str(source_dir), "mode": mode},
            )
        logger.info("site_built", output_dir=str(output_dir), mode=mode)
        return output_dir
