"""
In-memory implementations of every capability interface.

They record each call so a deployment run can be exercised end to end
without a cloud account, a Docker daemon or Terraform.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Sequence

from botocore.exceptions import ClientError

from tenantctl.core.errors import DestroyError, ProviderError
from tenantctl.providers.base import RegistryAuthorization


def split_image_ref(remote_ref: str) -> tuple[str, str]:
    """Split ``host/repository:tag`` into (repository, tag)."""
    without_host = remote_ref.split("/", 1)[1] if "/" in remote_ref else remote_ref
    repository, _, tag = without_host.rpartition(":")
    return repository, tag


class InMemoryInfrastructure:
    """Infrastructure provider whose outputs are supplied up front."""

    def __init__(
        self,
        outputs: Mapping[str, Any] | None = None,
        registry_outputs: Mapping[str, Any] | None = None,
        fail_on: Sequence[str] = (),
    ) -> None:
        self._full_outputs = dict(outputs or {})
        self._registry_outputs = dict(registry_outputs or {})
        self._state: dict[str, Any] = {}
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, Any]] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            error = DestroyError if operation == "destroy" else ProviderError
            raise error(f"{operation} failed", {"raw": f"Error: simulated {operation} failure"})

    def init(self) -> None:
        self.calls.append(("init", None))

    def apply(self, var_file: Path, targets: Sequence[str] | None = None) -> None:
        self.calls.append(("apply", list(targets) if targets else None))
        if targets:
            self._maybe_fail("apply_targets")
            self._state.update(self._registry_outputs)
        else:
            self._maybe_fail("apply")
            self._state.update(self._registry_outputs)
            self._state.update(self._full_outputs)

    def destroy(self, var_file: Path) -> None:
        self.calls.append(("destroy", var_file))
        self._maybe_fail("destroy")
        self._state.clear()

    def outputs(self) -> dict[str, Any]:
        self._maybe_fail("output")
        return dict(self._state)

    def output(self, name: str) -> Any:
        outputs = self.outputs()
        if name not in outputs:
            raise ProviderError(f"output '{name}' not found", {"available": sorted(outputs)})
        return outputs[name]

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]


class InMemoryRegistry:
    """Registry holding a set of (repository, tag) pairs."""

    def __init__(self, host: str = "123456789012.dkr.ecr.us-east-1.amazonaws.com") -> None:
        self.host = host
        self.images: set[tuple[str, str]] = set()
        self.queries: list[tuple[str, str]] = []

    def authorization(self) -> RegistryAuthorization:
        return RegistryAuthorization(host=self.host, username="AWS", password="fake-token")

    def image_exists(self, repository: str, tag: str) -> bool:
        self.queries.append((repository, tag))
        return (repository, tag) in self.images


class InMemoryBuilder:
    """Image builder; pushes land in the linked registry unless dropped."""

    def __init__(self, registry: InMemoryRegistry | None = None, drop_pushes: bool = False):
        self._registry = registry
        self.drop_pushes = drop_pushes
        self.fail_build: set[str] = set()
        self.logins: list[str] = []
        self.builds: list[tuple[Path, str]] = []
        self.pushes: list[str] = []

    def login(self, authorization: RegistryAuthorization) -> None:
        self.logins.append(authorization.host)

    def build(
        self,
        source_dir: Path,
        tag: str,
        build_file: Path | None = None,
        platform: str | None = None,
    ) -> str:
        if tag in self.fail_build:
            raise ProviderError(f"build failed for {tag}", {"raw": "ERROR: failed to solve"})
        self.builds.append((source_dir, tag))
        return tag

    def push(self, local_image: str, remote_ref: str) -> None:
        self.pushes.append(remote_ref)
        if self._registry is not None and not self.drop_pushes:
            self._registry.images.add(split_image_ref(remote_ref))


class InMemorySiteBuilder:
    """Site builder returning ``<source>/dist`` without running anything."""

    def __init__(self) -> None:
        self.builds: list[tuple[Path, str, dict[str, str]]] = []

    def build(self, source_dir: Path, mode: str, env: Mapping[str, str]) -> Path:
        self.builds.append((source_dir, mode, dict(env)))
        return source_dir / "dist"


class InMemoryAssetPublisher:
    """Records syncs and invalidations."""

    def __init__(self, files_per_sync: int = 1) -> None:
        self.files_per_sync = files_per_sync
        self.syncs: list[tuple[Path, str, bool]] = []
        self.invalidations: list[tuple[str, list[str]]] = []

    def sync(self, local_dir: Path, bucket: str, delete: bool = True) -> int:
        self.syncs.append((local_dir, bucket, delete))
        return self.files_per_sync

    def invalidate(self, distribution_id: str, paths: Sequence[str]) -> str:
        self.invalidations.append((distribution_id, list(paths)))
        return f"I{len(self.invalidations):04d}"


class InMemoryIdentity:
    """Identity checker returning a fixed account, or failing with an error code."""

    def __init__(self, account_id: str = "123456789012", error_code: str | None = None):
        self.account_id = account_id
        self.error_code = error_code
        self.calls = 0

    def caller_identity(self) -> dict[str, Any]:
        self.calls += 1
        if self.error_code:
            raise ClientError(
                {"Error": {"Code": self.error_code, "Message": f"simulated {self.error_code}"}},
                "GetCallerIdentity",
            )
        return {
            "Account": self.account_id,
            "Arn": f"arn:aws:iam::{self.account_id}:user/deployer",
            "UserId": "AIDAEXAMPLE",
        }
