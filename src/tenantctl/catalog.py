"""Catalog of deployable units: the backend plus the serverless functions."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from tenantctl.config.settings import Settings
from tenantctl.config.tenant import BACKEND_UNIT, FUNCTION_NAMES, TenantConfig


@dataclass(frozen=True)
class DeployableUnit:
    """One independently buildable and publishable container image."""

    name: str
    source_dir: Path
    build_file: Path
    repository: str
    image_tag: str

    @property
    def is_function(self) -> bool:
        return self.name != BACKEND_UNIT

    def has_source(self) -> bool:
        return self.source_dir.is_dir()

    def local_image(self) -> str:
        return f"{self.repository}:{self.image_tag}"


def repository_name(slug: str, unit_name: str) -> str:
    """Registry repository for a tenant's unit."""
    return f"{slug}-{unit_name}"


def build_catalog(
    config: TenantConfig,
    settings: Settings,
    function_names: Iterable[str] = FUNCTION_NAMES,
) -> list[DeployableUnit]:
    """Backend first, then functions in catalog order."""
    backend_dir = settings.resolve(settings.backend_dir)
    units = [
        DeployableUnit(
            name=BACKEND_UNIT,
            source_dir=backend_dir,
            build_file=backend_dir / settings.backend_build_file,
            repository=repository_name(config.slug, BACKEND_UNIT),
            image_tag=config.backend_image_tag,
        )
    ]

    functions_dir = settings.resolve(settings.functions_dir)
    for name in function_names:
        source_dir = functions_dir / name
        units.append(
            DeployableUnit(
                name=name,
                source_dir=source_dir,
                build_file=source_dir / settings.function_build_file,
                repository=repository_name(config.slug, name),
                image_tag=config.image_tag_for(name),
            )
        )
    return units
