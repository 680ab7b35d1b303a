"""Tenant configuration model and slug normalization."""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Any, Dict, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError

from tenantctl.core.errors import ConfigError, ConfigErrorKind

# Fixed serverless function catalog, in build order.
FUNCTION_NAMES: tuple[str, ...] = (
    "auth",
    "notifications",
    "reports",
    "billing",
    "scheduler",
    "webhooks",
)

BACKEND_UNIT = "backend"

REQUIRED_FIELDS: tuple[str, ...] = (
    "slug",
    "environment",
    "region",
    "frontend_bucket",
    "assets_bucket",
    "db_username",
    "backend_image_tag",
    "function_image_tag",
)

SECRET_FIELDS: tuple[str, ...] = ("db_password", "jwt_secret", "session_secret")

DEFAULT_DB_NAME = "appdb"
DEFAULT_DB_ENGINE_VERSION = "15.4"

_WHITESPACE = re.compile(r"\s+")
SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")


class CredentialMode(StrEnum):
    """How the run authenticates against the cloud."""

    PROFILE = "profile"
    KEYS = "keys"


def normalize_slug(name: str) -> str:
    """Turn a human-supplied tenant name into a resource-safe slug.

    Lowercases and collapses every whitespace run into a single hyphen.
    Applying it to its own output returns the same string.
    """
    return _WHITESPACE.sub("-", name.strip().lower())


def _check_slug(slug: str) -> None:
    if not slug:
        raise PydanticCustomError("missing_field", "Tenant name is empty after normalization")
    if not SLUG_PATTERN.match(slug):
        raise PydanticCustomError(
            "invalid_value",
            "Tenant slug '{slug}' may only contain lowercase letters, digits and hyphens",
            {"slug": slug},
        )


def validate_slug(name: str) -> str:
    """Normalize a tenant name and reject slugs unusable as a file or resource name."""
    slug = normalize_slug(name)
    try:
        _check_slug(slug)
    except PydanticCustomError as e:
        kind = (
            ConfigErrorKind.MISSING_FIELD
            if e.type == "missing_field"
            else ConfigErrorKind.INVALID_VALUE
        )
        raise ConfigError(e.message(), kind=kind, field="slug") from e
    return slug


def config_error(exc: ValidationError) -> ConfigError:
    """Translate a TenantConfig validation failure into a ConfigError.

    Input values are left out of the error so secrets never reach a log.
    """
    errors = exc.errors(include_input=False, include_url=False)
    first = errors[0]
    ctx = first.get("ctx") or {}
    field = ctx.get("field") or (str(first["loc"][0]) if first["loc"] else None)
    kind = (
        ConfigErrorKind.MISSING_FIELD
        if first["type"] in ("missing", "missing_field")
        else ConfigErrorKind.INVALID_VALUE
    )
    message = f"{field}: {first['msg']}" if field else first["msg"]
    return ConfigError(
        message,
        kind=kind,
        field=field,
        details={"errors": [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in errors]},
    )


def _string_map(value: Any) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise PydanticCustomError("invalid_value", "Must be a mapping")
    return {
        str(k): str(v).strip() for k, v in value.items() if v is not None and str(v).strip()
    }


class TenantConfig(BaseModel):
    """Fully resolved configuration for one tenant deployment."""

    model_config = ConfigDict(extra="ignore")

    slug: str
    environment: str
    region: str
    frontend_bucket: str
    assets_bucket: str
    db_username: str
    backend_image_tag: str
    function_image_tag: str

    credential_mode: CredentialMode = CredentialMode.PROFILE
    credential_profile: Optional[str] = None
    aws_access_key_id: Optional[str] = Field(None, repr=False)
    aws_secret_access_key: Optional[str] = Field(None, repr=False)
    aws_session_token: Optional[str] = Field(None, repr=False)

    db_password: str = Field("", repr=False)
    jwt_secret: str = Field("", repr=False)
    session_secret: str = Field("", repr=False)
    third_party_api_key: str = Field("", repr=False)

    db_name: str = DEFAULT_DB_NAME
    db_engine_version: str = DEFAULT_DB_ENGINE_VERSION
    domain_name: str = ""
    certificate_arn: str = ""

    function_image_tags: Dict[str, str] = Field(default_factory=dict)
    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("slug", mode="before")
    @classmethod
    def _normalize_slug(cls, value: Any) -> str:
        slug = normalize_slug("" if value is None else str(value))
        _check_slug(slug)
        return slug

    @field_validator(
        "environment",
        "region",
        "frontend_bucket",
        "assets_bucket",
        "db_username",
        "backend_image_tag",
        "function_image_tag",
        "db_name",
        "db_engine_version",
        "domain_name",
        "certificate_arn",
        "third_party_api_key",
        mode="before",
    )
    @classmethod
    def _strip(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator(*SECRET_FIELDS, mode="before")
    @classmethod
    def _secret_as_str(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator(
        "credential_profile",
        "aws_access_key_id",
        "aws_secret_access_key",
        "aws_session_token",
        mode="before",
    )
    @classmethod
    def _blank_is_none(cls, value: Any) -> Optional[str]:
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    @field_validator(
        "environment",
        "region",
        "frontend_bucket",
        "assets_bucket",
        "db_username",
        "backend_image_tag",
        "function_image_tag",
    )
    @classmethod
    def _required(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("missing_field", "Missing required field")
        return value

    @field_validator("db_name", "db_engine_version")
    @classmethod
    def _default_when_blank(cls, value: str, info: ValidationInfo) -> str:
        if value:
            return value
        return DEFAULT_DB_NAME if info.field_name == "db_name" else DEFAULT_DB_ENGINE_VERSION

    @field_validator("credential_mode", mode="before")
    @classmethod
    def _credential_mode(cls, value: Any) -> Any:
        if value is None or not str(value).strip():
            return CredentialMode.PROFILE
        return str(value).strip().lower()

    @field_validator("function_image_tags", mode="before")
    @classmethod
    def _function_tags(cls, value: Any) -> Dict[str, str]:
        tags = _string_map(value)
        unknown = sorted(set(tags) - set(FUNCTION_NAMES))
        if unknown:
            raise PydanticCustomError(
                "invalid_value",
                "Unknown function(s): {names}",
                {"names": ", ".join(unknown)},
            )
        return tags

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value: Any) -> Dict[str, str]:
        return _string_map(value)

    @model_validator(mode="after")
    def _cross_field(self) -> "TenantConfig":
        if self.domain_name and not self.certificate_arn:
            raise PydanticCustomError(
                "invalid_value",
                "A custom domain requires a certificate reference",
                {"field": "certificate_arn"},
            )
        if self.frontend_bucket == self.assets_bucket:
            raise PydanticCustomError(
                "invalid_value",
                "Frontend and assets buckets must be different",
                {"field": "assets_bucket"},
            )
        if self.credential_mode is CredentialMode.KEYS:
            for name in ("aws_access_key_id", "aws_secret_access_key"):
                if not getattr(self, name):
                    raise PydanticCustomError(
                        "missing_field",
                        "Credential mode 'keys' requires {field}",
                        {"field": name},
                    )
        return self

    @property
    def has_custom_domain(self) -> bool:
        return bool(self.domain_name)

    def image_tag_for(self, function_name: str) -> str:
        """Image tag for a function, falling back to the global function tag."""
        return self.function_image_tags.get(function_name) or self.function_image_tag

    def effective_function_tags(self) -> dict[str, str]:
        """Tag for every catalog function, defaults filled in."""
        return {name: self.image_tag_for(name) for name in FUNCTION_NAMES}

    def secret_values(self) -> list[str]:
        """Every non-empty secret carried by this config."""
        values = [getattr(self, name) for name in SECRET_FIELDS]
        values.extend(
            [self.third_party_api_key, self.aws_secret_access_key, self.aws_session_token]
        )
        return [v for v in values if v]

    def resource_tags(self) -> dict[str, str]:
        """Labels applied to every resource of the tenant."""
        merged = {
            "Tenant": self.slug,
            "Environment": self.environment,
            "ManagedBy": "tenantctl",
        }
        merged.update(self.tags)
        return merged
