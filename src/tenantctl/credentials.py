"""
Credential context for a deployment run.

The context is acquired once when a run starts and handed to every adapter
that talks to the cloud. Subprocess adapters receive its environment
overlay; boto3 adapters receive its session. Nothing writes credentials into
``os.environ``, and the context wipes its key material when released.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, ContextManager, Iterable, Iterator, Mapping

import boto3
import structlog

from tenantctl.config.tenant import CredentialMode, TenantConfig
from tenantctl.core.errors import CredentialError, TenantCtlError
from tenantctl.logging import forget_secrets, register_secret

logger = structlog.get_logger()

CREDENTIAL_ENV_VARS = (
    "AWS_PROFILE",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
)


@dataclass
class CredentialContext:
    """Explicit cloud identity for one run."""

    region: str
    mode: CredentialMode = CredentialMode.PROFILE
    profile: str | None = None
    access_key_id: str | None = field(default=None, repr=False)
    secret_access_key: str | None = field(default=None, repr=False)
    session_token: str | None = field(default=None, repr=False)
    released: bool = False
    _session: Any = field(default=None, repr=False)

    @classmethod
    def from_config(cls, config: TenantConfig) -> "CredentialContext":
        return cls(
            region=config.region,
            mode=config.credential_mode,
            profile=config.credential_profile,
            access_key_id=config.aws_access_key_id,
            secret_access_key=config.aws_secret_access_key,
            session_token=config.aws_session_token,
        )

    def _check_active(self) -> None:
        if self.released:
            raise CredentialError("Credential context used after release")

    def session(self) -> Any:
        """boto3 session bound to this context's identity."""
        self._check_active()
        if self._session is None:
            if self.mode is CredentialMode.KEYS:
                self._session = boto3.Session(
                    aws_access_key_id=self.access_key_id,
                    aws_secret_access_key=self.secret_access_key,
                    aws_session_token=self.session_token,
                    region_name=self.region,
                )
            else:
                self._session = boto3.Session(profile_name=self.profile, region_name=self.region)
        return self._session

    def client(self, service: str) -> Any:
        return self.session().client(service, region_name=self.region)

    def subprocess_env(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """Environment for external tools: the base environment plus this identity."""
        self._check_active()
        env = dict(os.environ if base is None else base)
        env["AWS_REGION"] = self.region
        env["AWS_DEFAULT_REGION"] = self.region

        if self.mode is CredentialMode.KEYS:
            env.pop("AWS_PROFILE", None)
            env["AWS_ACCESS_KEY_ID"] = self.access_key_id or ""
            env["AWS_SECRET_ACCESS_KEY"] = self.secret_access_key or ""
            if self.session_token:
                env["AWS_SESSION_TOKEN"] = self.session_token
            else:
                env.pop("AWS_SESSION_TOKEN", None)
        elif self.profile:
            for name in CREDENTIAL_ENV_VARS:
                env.pop(name, None)
            env["AWS_PROFILE"] = self.profile
        return env

    def release(self) -> None:
        """Drop the session and wipe key material. Safe to call twice."""
        self.access_key_id = None
        self.secret_access_key = None
        self.session_token = None
        self._session = None
        self.released = True


@contextmanager
def hold_credentials(
    ctx: CredentialContext, secrets: Iterable[str] = ()
) -> Iterator[CredentialContext]:
    """Hold a CredentialContext for the duration of a run and always release it."""
    for secret in secrets:
        register_secret(secret)
    logger.debug("credentials_acquired", mode=str(ctx.mode), profile=ctx.profile, region=ctx.region)
    try:
        yield ctx
    except TenantCtlError as e:
        e.scrub_secrets()
        raise
    finally:
        ctx.release()
        forget_secrets()
        logger.debug("credentials_released")


def credential_context(config: TenantConfig) -> ContextManager[CredentialContext]:
    """Credential context for a resolved tenant config."""
    secrets = list(config.secret_values())
    if config.aws_access_key_id:
        secrets.append(config.aws_access_key_id)
    return hold_credentials(CredentialContext.from_config(config), secrets)
