"""
Application settings using Pydantic.

Provides environment-based configuration loading with TENANTCTL_ prefix.
Paths are resolved relative to ``project_root`` unless given absolute.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Repository layout
    project_root: Path = Path(".")
    vars_dir: Path = Path("tenants")
    infra_dir: Path = Path("infra")
    backend_dir: Path = Path("backend")
    backend_build_file: str = "Dockerfile"
    functions_dir: Path = Path("functions")
    function_build_file: str = "Dockerfile"
    frontend_dir: Path = Path("frontend")
    frontend_build_dir: str = "dist"

    # External tools
    terraform_bin: str = "terraform"
    docker_bin: str = "docker"
    npm_bin: str = "npm"
    command_timeout: int = 3600

    # Build
    target_platform: str = "linux/amd64"

    # Region used when tearing down a tenant with no persisted variable set
    default_region: str = "us-east-1"

    # Terraform addresses converged before any image is pushed
    registry_targets: list[str] = ["module.registry"]
    registry_output: str = "ecr_repository_urls"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "TENANTCTL_"

    def resolve(self, path: Path) -> Path:
        """Resolve a configured path against the project root."""
        return path if path.is_absolute() else self.project_root / path


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
