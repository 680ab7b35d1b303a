"""Tests for the verify CLI command."""

from conftest import no_dns
from tenantctl.cli.verify import verify_command
from tenantctl.core.errors import ExitCode
from tenantctl.orchestrator import TenantOrchestrator
from tenantctl.providers.memory import InMemoryIdentity
from tenantctl.verification.credentials import CredentialVerifier


def unreachable(host, port):
    raise OSError(f"Name or service not known: {host}")


class TestVerifyCommand:
    def test_valid_credentials(self, orchestrator, toolchain):
        assert verify_command(region="eu-west-1", orchestrator=orchestrator) == 0
        assert toolchain.identity.calls == 1

    def test_default_region(self, settings, toolchain):
        seen = []

        def factory(settings, credentials, slug):
            seen.append(credentials.region)
            return toolchain

        orchestrator = TenantOrchestrator(
            settings,
            toolchain_factory=factory,
            verifier_factory=lambda identity: CredentialVerifier(identity, resolve_host=no_dns),
        )

        assert verify_command(orchestrator=orchestrator) == 0
        assert seen == [settings.default_region]

    def test_rejected_credentials(self, orchestrator, toolchain):
        toolchain.identity = InMemoryIdentity(error_code="InvalidClientTokenId")

        assert verify_command(orchestrator=orchestrator) == ExitCode.CREDENTIAL_ERROR

    def test_unclassified_error(self, orchestrator, toolchain):
        toolchain.identity = InMemoryIdentity(error_code="Throttling")

        assert verify_command(orchestrator=orchestrator) == ExitCode.CLOUD_ERROR

    def test_unreachable_control_plane(self, settings, toolchain):
        """DNS failure is a network error, never a credential error."""
        orchestrator = TenantOrchestrator(
            settings,
            toolchain_factory=lambda s, c, slug: toolchain,
            verifier_factory=lambda identity: CredentialVerifier(identity, resolve_host=unreachable),
        )

        assert verify_command(orchestrator=orchestrator) == ExitCode.NETWORK_ERROR
        assert toolchain.identity.calls == 0
