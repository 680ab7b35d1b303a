"""
Credential and connectivity verification.

Runs once per deployment run, before anything is mutated:

1. Resolve the STS endpoint for the region. Failure here is a network
   problem and is reported as such, never as a credential problem.
2. Call GetCallerIdentity. The failure is classified through
   ``ERROR_CODE_TABLE``; signatures not in the table are surfaced verbatim
   as UnknownCloudError instead of being guessed at.

Nothing here retries.
"""

from __future__ import annotations

import socket
from enum import StrEnum
from typing import Any, Callable

import structlog
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ProfileNotFound,
)

from tenantctl.core.errors import (
    CredentialError,
    NetworkError,
    TenantCtlError,
    UnknownCloudError,
)
from tenantctl.providers.base import IdentityChecker

logger = structlog.get_logger()

HostResolver = Callable[[str, int], Any]


class ErrorKind(StrEnum):
    """Classification of an identity-check failure."""

    NETWORK = "network"
    CREDENTIAL = "credential"
    UNKNOWN = "unknown"


ERROR_CODE_TABLE: dict[str, ErrorKind] = {
    "InvalidClientTokenId": ErrorKind.CREDENTIAL,
    "SignatureDoesNotMatch": ErrorKind.CREDENTIAL,
    "AccessDenied": ErrorKind.CREDENTIAL,
    "AccessDeniedException": ErrorKind.CREDENTIAL,
    "ExpiredToken": ErrorKind.CREDENTIAL,
    "ExpiredTokenException": ErrorKind.CREDENTIAL,
    "UnrecognizedClientException": ErrorKind.CREDENTIAL,
    "AuthFailure": ErrorKind.CREDENTIAL,
    "RequestTimeout": ErrorKind.NETWORK,
}

EXCEPTION_TABLE: tuple[tuple[type[BaseException], ErrorKind], ...] = (
    (NoCredentialsError, ErrorKind.CREDENTIAL),
    (PartialCredentialsError, ErrorKind.CREDENTIAL),
    (ProfileNotFound, ErrorKind.CREDENTIAL),
    (EndpointConnectionError, ErrorKind.NETWORK),
    (ConnectTimeoutError, ErrorKind.NETWORK),
)

NETWORK_HINTS = (
    "Check DNS resolution and internet connectivity",
    "Check HTTPS_PROXY / NO_PROXY if you are behind a proxy",
    "Check that your VPN allows traffic to the cloud API endpoints",
)

CREDENTIAL_HINTS = (
    "Check that the selected profile exists and has not expired",
    "Refresh SSO or session credentials and retry",
    "Check that the access key is active and the secret matches",
)


def control_plane_endpoint(region: str) -> str:
    """Hostname of the identity service for a region."""
    return f"sts.{region}.amazonaws.com"


def error_code(exc: BaseException) -> str | None:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


def classify(exc: BaseException) -> ErrorKind:
    """Map an identity-check failure to an ErrorKind."""
    code = error_code(exc)
    if code is not None:
        return ERROR_CODE_TABLE.get(code, ErrorKind.UNKNOWN)
    for exc_type, kind in EXCEPTION_TABLE:
        if isinstance(exc, exc_type):
            return kind
    return ErrorKind.UNKNOWN


def to_error(exc: BaseException, region: str) -> TenantCtlError:
    """Wrap an identity-check failure into the matching tenantctl error."""
    kind = classify(exc)
    code = error_code(exc) or type(exc).__name__
    details = {"region": region, "code": code, "raw": str(exc)}

    if kind is ErrorKind.CREDENTIAL:
        details["hints"] = list(CREDENTIAL_HINTS)
        return CredentialError(f"Cloud credentials were rejected ({code})", details)
    if kind is ErrorKind.NETWORK:
        details["hints"] = list(NETWORK_HINTS)
        return NetworkError(f"Cloud control plane unreachable ({code})", details)
    return UnknownCloudError(f"Identity check failed: {exc}", details)


class CredentialVerifier:
    """Two-stage reachability and identity check."""

    def __init__(
        self,
        identity: IdentityChecker,
        resolve_host: HostResolver = socket.getaddrinfo,
    ) -> None:
        self._identity = identity
        self._resolve_host = resolve_host

    def verify(self, region: str) -> str:
        """Return the account id behind the active credentials."""
        endpoint = control_plane_endpoint(region)
        try:
            self._resolve_host(endpoint, 443)
        except OSError as e:
            raise NetworkError(
                f"Cannot resolve {endpoint}",
                {
                    "region": region,
                    "endpoint": endpoint,
                    "raw": str(e),
                    "hints": list(NETWORK_HINTS),
                },
            ) from e

        try:
            identity = self._identity.caller_identity()
        except (ClientError, BotoCoreError) as e:
            error = to_error(e, region)
            logger.warning(
                "identity_check_failed",
                region=region,
                error_type=type(error).__name__,
                code=error.details.get("code"),
            )
            raise error from e

        account_id = str(identity.get("Account", ""))
        if not account_id:
            raise UnknownCloudError(
                "Identity check returned no account id",
                {"region": region, "raw": str(identity)},
            )
        logger.info("credentials_verified", region=region, account_id=account_id)
        return account_id
