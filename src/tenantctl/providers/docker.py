"""Docker CLI adapter for building and pushing container images."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Mapping

import structlog

from tenantctl.providers.base import RegistryAuthorization
from tenantctl.providers.command import run_command

logger = structlog.get_logger()


class DockerBuilder:
    """Builds images locally and pushes them with ``docker``."""

    def __init__(
        self,
        env: Callable[[], Mapping[str, str]],
        binary: str = "docker",
        timeout: int | None = None,
    ) -> None:
        self._env = env
        self._binary = binary
        self._timeout = timeout
        self._logged_in: set[str] = set()

    def _run(self, *args: str, input_text: str | None = None) -> None:
        run_command(
            [self._binary, *args],
            env=self._env(),
            timeout=self._timeout,
            input_text=input_text,
        )

    def login(self, authorization: RegistryAuthorization) -> None:
        if authorization.host in self._logged_in:
            return
        self._run(
            "login",
            "--username",
            authorization.username,
            "--password-stdin",
            authorization.host,
            input_text=authorization.password,
        )
        self._logged_in.add(authorization.host)
        logger.info("registry_login", host=authorization.host)

    def build(
        self,
        source_dir: Path,
        tag: str,
        build_file: Path | None = None,
        platform: str | None = None,
    ) -> str:
        args = ["build", "--tag", tag]
        if platform:
            args.extend(["--platform", platform])
        if build_file is not None:
            args.extend(["--file", str(build_file)])
        args.append(str(source_dir))
        self._run(*args)
        logger.info("image_built", image=tag, source=str(source_dir))
        return tag

    def push(self, local_image: str, remote_ref: str) -> None:
        self._run("tag", local_image, remote_ref)
        self._run("push", remote_ref)
        logger.info("image_pushed", image=remote_ref)
