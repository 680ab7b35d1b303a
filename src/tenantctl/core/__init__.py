"""Core modules for tenantctl - centralized error definitions."""

from tenantctl.core.errors import (
    ConfigError,
    ConfigErrorKind,
    ConfirmationAborted,
    CredentialError,
    DestroyError,
    ExitCode,
    NetworkError,
    PhasePreconditionError,
    ProviderError,
    PublishVerificationError,
    TenantCtlError,
    UnknownCloudError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "TenantCtlError",
    "ConfigError",
    "ConfigErrorKind",
    "NetworkError",
    "CredentialError",
    "UnknownCloudError",
    "ProviderError",
    "DestroyError",
    "PublishVerificationError",
    "PhasePreconditionError",
    "ConfirmationAborted",
    "main_with_error_handling",
    "format_error_message",
]
