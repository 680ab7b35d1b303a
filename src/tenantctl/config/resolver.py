"""
Tenant configuration resolution.

A TenantConfig is assembled from one of three sources:

- ``FileSource``: a YAML mapping on disk, nothing is prompted
- ``InteractiveSource``: every field is asked for on the terminal
- ``HybridSource``: the YAML file first, blank or absent fields prompted

Validation happens here, before any external call is made.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol

import structlog
import yaml
from pydantic import ValidationError

from tenantctl.config.tenant import (
    DEFAULT_DB_ENGINE_VERSION,
    DEFAULT_DB_NAME,
    REQUIRED_FIELDS,
    SECRET_FIELDS,
    CredentialMode,
    TenantConfig,
    config_error,
)
from tenantctl.core.errors import ConfigError, ConfigErrorKind

logger = structlog.get_logger()

# Values offered as prompt defaults; required fields stay required in file mode.
PROMPT_DEFAULTS: dict[str, str] = {
    "environment": "production",
    "region": "us-east-1",
    "backend_image_tag": "latest",
    "function_image_tag": "latest",
}

PROMPT_LABELS: dict[str, str] = {
    "slug": "Tenant name",
    "environment": "Environment",
    "region": "Cloud region",
    "frontend_bucket": "Frontend bucket name",
    "assets_bucket": "Assets bucket name",
    "db_username": "Database username",
    "backend_image_tag": "Backend image tag",
    "function_image_tag": "Function image tag",
    "db_password": "Database password",
    "jwt_secret": "JWT signing secret",
    "session_secret": "Session secret",
    "db_name": "Database name",
    "db_engine_version": "Database engine version",
    "domain_name": "Custom domain (leave blank for none)",
    "certificate_arn": "Certificate ARN for the custom domain",
    "third_party_api_key": "Third-party API key (leave blank for none)",
}

OPTIONAL_DEFAULTS: dict[str, str] = {
    "db_name": DEFAULT_DB_NAME,
    "db_engine_version": DEFAULT_DB_ENGINE_VERSION,
    "domain_name": "",
    "certificate_arn": "",
}

_SLUG_ALIASES = ("slug", "tenant", "tenant_name")


class Prompter(Protocol):
    """Where answers for missing fields come from."""

    def text(self, message: str, default: str = "") -> str:
        ...

    def secret(self, message: str) -> str:
        ...


class ConsolePrompter:
    """Prompter backed by the questionary terminal prompts."""

    def text(self, message: str, default: str = "") -> str:
        from tenantctl.cli.ux import text_input

        return text_input(message, default=default)

    def secret(self, message: str) -> str:
        from tenantctl.cli.ux import password_input

        return password_input(message)


@dataclass
class FileSource:
    """YAML file of tenant settings; fields missing from it are errors."""

    path: Path

    prompter: Prompter | None = None
    prompt_optional: bool = False

    def load(self) -> dict[str, Any]:
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise ConfigError(
                f"Variables file not found: {self.path}",
                kind=ConfigErrorKind.UNREADABLE_SOURCE,
            ) from e
        except yaml.YAMLError as e:
            raise ConfigError(
                f"Variables file is not valid YAML: {self.path}",
                kind=ConfigErrorKind.UNREADABLE_SOURCE,
                details={"raw": str(e)},
            ) from e

        if not isinstance(data, dict):
            raise ConfigError(
                f"Variables file must contain a mapping: {self.path}",
                kind=ConfigErrorKind.UNREADABLE_SOURCE,
            )
        logger.debug("loaded_vars_file", path=str(self.path), keys=sorted(data))
        return data


@dataclass
class HybridSource(FileSource):
    """YAML file whose blank or absent fields are prompted for."""

    def __post_init__(self) -> None:
        if self.prompter is None:
            self.prompter = ConsolePrompter()


@dataclass
class InteractiveSource:
    """Every field is asked for on the terminal."""

    prompter: Prompter | None = None
    prompt_optional: bool = True

    def __post_init__(self) -> None:
        if self.prompter is None:
            self.prompter = ConsolePrompter()

    def load(self) -> dict[str, Any]:
        return {}


ConfigSource = FileSource | InteractiveSource


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ConfigResolver:
    """Builds a validated TenantConfig from a configuration source.

    The resolver decides what to ask for; TenantConfig decides what is valid.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def resolve(
        self,
        source: ConfigSource,
        overrides: Mapping[str, Any] | None = None,
    ) -> TenantConfig:
        """Resolve a TenantConfig, raising ConfigError on missing or invalid input."""
        raw = source.load()
        values = self._collect(raw, overrides or {})
        prompter = source.prompter

        for name in REQUIRED_FIELDS:
            if _blank(values.get(name)):
                values[name] = self._ask(prompter, name)

        if source.prompt_optional and prompter is not None:
            for name, default in OPTIONAL_DEFAULTS.items():
                if name == "certificate_arn" and _blank(values.get("domain_name")):
                    continue
                if _blank(values.get(name)):
                    values[name] = prompter.text(PROMPT_LABELS[name], default=default)
            if _blank(values.get("third_party_api_key")):
                values["third_party_api_key"] = prompter.secret(
                    PROMPT_LABELS["third_party_api_key"]
                )

        for name in SECRET_FIELDS:
            if _blank(values.get(name)):
                values[name] = self._ask_secret(prompter, name)

        if str(values.get("credential_mode") or "").strip().lower() == CredentialMode.KEYS:
            self._resolve_keys(values, prompter)

        try:
            config = TenantConfig.model_validate(values)
        except ValidationError as e:
            raise config_error(e) from None

        logger.info(
            "tenant_config_resolved",
            tenant=config.slug,
            environment=config.environment,
            region=config.region,
            credential_mode=str(config.credential_mode),
            custom_domain=config.has_custom_domain,
        )
        return config

    def _collect(self, raw: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {k: v for k, v in raw.items() if k not in _SLUG_ALIASES}
        for alias in _SLUG_ALIASES:
            if not _blank(raw.get(alias)):
                values["slug"] = raw[alias]
                break

        for key, value in overrides.items():
            if not _blank(value):
                values[key] = value
        return values

    def _ask(self, prompter: Prompter | None, name: str) -> str:
        if prompter is None:
            raise ConfigError(
                f"Missing required field: {name}",
                kind=ConfigErrorKind.MISSING_FIELD,
                field=name,
            )
        answer = prompter.text(PROMPT_LABELS[name], default=PROMPT_DEFAULTS.get(name, ""))
        if _blank(answer):
            raise ConfigError(
                f"Missing required field: {name}",
                kind=ConfigErrorKind.MISSING_FIELD,
                field=name,
            )
        return answer.strip()

    def _ask_secret(self, prompter: Prompter | None, name: str) -> str:
        if prompter is None:
            raise ConfigError(
                f"Missing secret field: {name} (no interactive input available)",
                kind=ConfigErrorKind.MISSING_FIELD,
                field=name,
            )
        answer = prompter.secret(PROMPT_LABELS.get(name, name))
        if _blank(answer):
            raise ConfigError(
                f"Missing secret field: {name}",
                kind=ConfigErrorKind.MISSING_FIELD,
                field=name,
            )
        return answer

    def _resolve_keys(self, values: dict[str, Any], prompter: Prompter | None) -> None:
        """Fill access keys from the environment, then from the prompter when there is one."""
        env_names = {
            "aws_access_key_id": "AWS_ACCESS_KEY_ID",
            "aws_secret_access_key": "AWS_SECRET_ACCESS_KEY",
            "aws_session_token": "AWS_SESSION_TOKEN",
        }
        for name, env_name in env_names.items():
            if _blank(values.get(name)) and self._environ.get(env_name):
                values[name] = self._environ[env_name]

        if prompter is None:
            return
        for name in ("aws_access_key_id", "aws_secret_access_key"):
            if _blank(values.get(name)):
                values[name] = self._ask_secret(prompter, name)


def resolve_config(
    vars_file: str | Path | None = None,
    interactive: bool = True,
    overrides: Mapping[str, Any] | None = None,
    prompter: Prompter | None = None,
) -> TenantConfig:
    """
    Convenience function to resolve a tenant configuration.

    Args:
        vars_file: Optional YAML variables file
        interactive: Whether missing fields may be prompted for
        overrides: CLI-supplied values taking precedence over the file
        prompter: Prompt implementation (defaults to the terminal)

    Returns:
        Validated TenantConfig
    """
    source: ConfigSource
    if vars_file and interactive:
        source = HybridSource(Path(vars_file), prompter=prompter)
    elif vars_file:
        source = FileSource(Path(vars_file))
    elif interactive:
        source = InteractiveSource(prompter=prompter)
    else:
        raise ConfigError(
            "No variables file given and interactive input is disabled",
            kind=ConfigErrorKind.UNREADABLE_SOURCE,
        )
    return ConfigResolver().resolve(source, overrides=overrides)
