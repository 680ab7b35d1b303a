"""
tenantctl configuration system.

Provides:
- Pydantic-based settings (TENANTCTL_ environment variables, .env files)
- Tenant configuration model and slug normalization
- Resolution from YAML files and interactive prompts
- Persisted per-tenant variable sets for the infrastructure provider
"""

from tenantctl.config.materializer import VariableSetStore, parse_variables, render_variables
from tenantctl.config.resolver import (
    ConfigResolver,
    ConsolePrompter,
    FileSource,
    HybridSource,
    InteractiveSource,
    resolve_config,
)
from tenantctl.config.settings import Settings, get_settings
from tenantctl.config.tenant import (
    BACKEND_UNIT,
    FUNCTION_NAMES,
    CredentialMode,
    TenantConfig,
    normalize_slug,
    validate_slug,
)

__all__ = [
    "Settings",
    "get_settings",
    "TenantConfig",
    "CredentialMode",
    "FUNCTION_NAMES",
    "BACKEND_UNIT",
    "normalize_slug",
    "validate_slug",
    "ConfigResolver",
    "ConsolePrompter",
    "FileSource",
    "HybridSource",
    "InteractiveSource",
    "resolve_config",
    "VariableSetStore",
    "render_variables",
    "parse_variables",
]
