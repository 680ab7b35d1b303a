"""
Tenant teardown.

Destroys every resource of one tenant. Without ``force`` the operator must
answer "yes" (or type the tenant slug) before anything destructive is attempted.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import structlog

from tenantctl.config.materializer import VariableSetStore
from tenantctl.config.settings import Settings
from tenantctl.config.tenant import SECRET_FIELDS, validate_slug
from tenantctl.core.errors import (
    ConfirmationAborted,
    DestroyError,
    ProviderError,
)
from tenantctl.credentials import CredentialContext, hold_credentials
from tenantctl.orchestration.registry import ToolchainFactory
from tenantctl.verification.credentials import CredentialVerifier

logger = structlog.get_logger()

# Receives the prompt text, returns what the operator typed.
Confirmer = Callable[[str], str]


def console_confirmer(message: str) -> str:
    from tenantctl.cli.ux import text_input

    return text_input(message)


class TeardownController:
    """Loads a tenant's variable set and destroys its infrastructure."""

    def __init__(
        self,
        settings: Settings,
        toolchain_factory: ToolchainFactory,
        store: Optional[VariableSetStore] = None,
        confirm: Confirmer = console_confirmer,
        verifier_factory: Callable = CredentialVerifier,
    ) -> None:
        self._settings = settings
        self._toolchain_factory = toolchain_factory
        self._store = store or VariableSetStore(settings.resolve(settings.vars_dir))
        self._confirm = confirm
        self._verifier_factory = verifier_factory

    def _var_file(self, slug: str) -> tuple[Path, dict]:
        variables = self._store.load(slug)
        if variables is not None:
            return self._store.path_for(slug), variables

        logger.warning(
            "variable_set_missing",
            tenant=slug,
            message="No persisted variable set; destroying with a degraded set scoped only by slug",
        )
        return self._store.materialize_degraded(slug), {}

    def _require_confirmation(self, slug: str) -> None:
        answer = self._confirm(
            f"Type 'yes' (or the tenant slug '{slug}') to destroy all resources of '{slug}'"
        )
        if (answer or "").strip() not in ("yes", slug):
            raise ConfirmationAborted(
                f"Destroy of tenant '{slug}' cancelled",
                {"tenant": slug},
            )

    def destroy(
        self,
        tenant_slug: str,
        force: bool = False,
        region: Optional[str] = None,
        profile: Optional[str] = None,
    ) -> Path:
        """Destroy a tenant and return the variable file used.

        Raises:
            ConfirmationAborted: the operator answered anything but "yes" or the slug
            DestroyError: the infrastructure provider failed
        """
        slug = validate_slug(tenant_slug)

        var_file, variables = self._var_file(slug)
        region = region or variables.get("aws_region") or self._settings.default_region
        secrets = [variables.get(name, "") for name in SECRET_FIELDS]
        secrets.append(variables.get("third_party_api_key", ""))

        with hold_credentials(CredentialContext(region=region, profile=profile), secrets) as creds:
            toolchain = self._toolchain_factory(self._settings, creds, slug)
            account_id = self._verifier_factory(toolchain.identity).verify(region)

            if not force:
                self._require_confirmation(slug)

            logger.info("tenant_destroy_started", tenant=slug, account_id=account_id)
            try:
                toolchain.infrastructure.destroy(var_file)
            except DestroyError:
                raise
            except ProviderError as e:
                raise DestroyError(e.message, e.details) from e

        logger.info("tenant_destroyed", tenant=slug, var_file=str(var_file))
        return var_file
