"""Verification of credentials before a run and of artifacts after each push."""

from tenantctl.verification.credentials import (
    ERROR_CODE_TABLE,
    CredentialVerifier,
    ErrorKind,
    classify,
    control_plane_endpoint,
)
from tenantctl.verification.publish import StepVerifier

__all__ = [
    "CredentialVerifier",
    "ErrorKind",
    "ERROR_CODE_TABLE",
    "classify",
    "control_plane_endpoint",
    "StepVerifier",
]
