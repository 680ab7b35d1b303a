"""
Unified error handling for tenantctl CLI commands.

Every failure a deployment run can hit is a TenantCtlError subclass carrying
its own exit code, so the CLI never has to guess how to terminate.

Exit Codes:
- 0: Success (also an operator-declined confirmation)
- 10: Configuration error
- 11: Provider error (infrastructure, build, push or sync tool failure)
- 20: Network error reaching the cloud control plane
- 21: Credential error
- 22: Unclassified cloud error
- 30: Publish verification error
- 31: Phase precondition not met
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum, StrEnum
from typing import Any, Callable, TypeVar

import structlog

from tenantctl.logging import scrub

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    NETWORK_ERROR = 20
    CREDENTIAL_ERROR = 21
    CLOUD_ERROR = 22
    VERIFICATION_ERROR = 30
    PRECONDITION_ERROR = 31
    UNKNOWN_ERROR = 127


class ConfigErrorKind(StrEnum):
    """Why a configuration was rejected."""

    MISSING_FIELD = "MissingField"
    INVALID_VALUE = "InvalidValue"
    UNREADABLE_SOURCE = "UnreadableSource"


class TenantCtlError(Exception):
    """Base exception for tenantctl errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def raw(self) -> str | None:
        """Verbatim text reported by the external system, when there was one."""
        return self.details.get("raw")

    def scrub_secrets(self) -> "TenantCtlError":
        """Mask the current run's registered secrets in message and details, in place."""
        self.message = scrub(self.message)
        self.details = scrub(self.details)
        self.args = (self.message,)
        return self


class ConfigError(TenantCtlError):
    """Raised for missing or invalid tenant configuration."""

    exit_code = ExitCode.CONFIG_ERROR

    def __init__(
        self,
        message: str,
        kind: ConfigErrorKind = ConfigErrorKind.INVALID_VALUE,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        merged = {"kind": str(kind)}
        if field:
            merged["field"] = field
        merged.update(details or {})
        super().__init__(message, merged)
        self.kind = kind
        self.field = field


class NetworkError(TenantCtlError):
    """Raised when the cloud control plane cannot be reached."""

    exit_code = ExitCode.NETWORK_ERROR


class CredentialError(TenantCtlError):
    """Raised when credentials are missing, invalid, expired or denied."""

    exit_code = ExitCode.CREDENTIAL_ERROR


class UnknownCloudError(TenantCtlError):
    """Raised for identity-check failures that match no known signature."""

    exit_code = ExitCode.CLOUD_ERROR


class ProviderError(TenantCtlError):
    """Raised when an external provider/tool fails."""

    exit_code = ExitCode.PROVIDER_ERROR


class DestroyError(ProviderError):
    """Raised when the infrastructure provider fails to destroy a tenant."""


class PublishVerificationError(TenantCtlError):
    """Raised when a pushed artifact cannot be found in the registry."""

    exit_code = ExitCode.VERIFICATION_ERROR


class PhasePreconditionError(TenantCtlError):
    """Raised when a phase is entered without the outputs it depends on."""

    exit_code = ExitCode.PRECONDITION_ERROR


class ConfirmationAborted(TenantCtlError):
    """Raised when the operator declines a destructive confirmation."""

    exit_code = ExitCode.SUCCESS


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI command functions that provides unified error handling.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - TenantCtlError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except ConfirmationAborted as e:
                if log_errors:
                    logger.info("command_aborted", message=e.message)
                return e.exit_code
            except TenantCtlError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130  # Standard exit code for SIGINT
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=int(ExitCode.UNKNOWN_ERROR),
                    )
                traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: TenantCtlError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    details = {k: v for k, v in error.details.items() if k not in ("raw", "traceback")}
    if details:
        detail_str = ", ".join(f"{k}={v}" for k, v in details.items())
        msg = f"{msg} ({detail_str})"
    return msg
