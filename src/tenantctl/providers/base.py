"""Capability interfaces for every external system a deployment run touches."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence


@dataclass(frozen=True)
class RegistryAuthorization:
    """Short-lived login for a container registry."""

    host: str
    username: str
    password: str

    def __repr__(self) -> str:
        return f"RegistryAuthorization(host={self.host!r}, username={self.username!r})"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external tool invocation."""

    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, limit: int = 4000) -> str:
        """Last part of the tool's output, stderr first."""
        text = (self.stderr.strip() or self.stdout.strip())
        return text[-limit:]


class InfrastructureProvider(Protocol):
    """Declarative resource graph converged from a variable file."""

    def init(self) -> None:
        ...

    def apply(self, var_file: Path, targets: Sequence[str] | None = None) -> None:
        ...

    def destroy(self, var_file: Path) -> None:
        ...

    def output(self, name: str) -> Any:
        ...

    def outputs(self) -> dict[str, Any]:
        ...


class ImageBuilder(Protocol):
    """Container build and push tool."""

    def login(self, authorization: RegistryAuthorization) -> None:
        ...

    def build(
        self,
        source_dir: Path,
        tag: str,
        build_file: Path | None = None,
        platform: str | None = None,
    ) -> str:
        ...

    def push(self, local_image: str, remote_ref: str) -> None:
        ...


class ImageRegistry(Protocol):
    """Container registry queried independently of the push tool."""

    def authorization(self) -> RegistryAuthorization:
        ...

    def image_exists(self, repository: str, tag: str) -> bool:
        ...


class SiteBuilder(Protocol):
    """Frontend build tool producing static assets."""

    def build(self, source_dir: Path, mode: str, env: Mapping[str, str]) -> Path:
        ...


class AssetPublisher(Protocol):
    """Object store sync plus CDN cache invalidation."""

    def sync(self, local_dir: Path, bucket: str, delete: bool = True) -> int:
        ...

    def invalidate(self, distribution_id: str, paths: Sequence[str]) -> str:
        ...


class IdentityChecker(Protocol):
    """Returns the caller identity for the active credentials."""

    def caller_identity(self) -> dict[str, Any]:
        ...
