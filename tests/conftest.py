"""Root test configuration."""

import logging

import pytest
import structlog
from tenantctl.config.settings import Settings
from tenantctl.config.tenant import TenantConfig
from tenantctl.orchestration.registry import Toolchain
from tenantctl.orchestrator import TenantOrchestrator
from tenantctl.providers.memory import (
    InMemoryAssetPublisher,
    InMemoryBuilder,
    InMemoryIdentity,
    InMemoryInfrastructure,
    InMemoryRegistry,
    InMemorySiteBuilder,
)
from tenantctl.verification.credentials import CredentialVerifier

REGISTRY_HOST = "123456789012.dkr.ecr.us-east-1.amazonaws.com"
TEST_FUNCTIONS = ("f1", "f2")

CONVERGED_OUTPUTS = {
    "load_balancer_dns": "acme-lb-1234.us-east-1.elb.amazonaws.com",
    "cdn_domain": "d111abcdef8.cloudfront.net",
    "cdn_distribution_id": "E2CDNEXAMPLE",
}


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def registry_urls(slug, units):
    return {unit: f"{REGISTRY_HOST}/{slug}-{unit}" for unit in units}


def no_dns(host, port):
    """Host resolver that always succeeds without touching the network."""
    return [(2, 1, 6, "", ("127.0.0.1", port))]


def offline_verifier(identity):
    return CredentialVerifier(identity, resolve_host=no_dns)


@pytest.fixture
def project(tmp_path):
    """Project tree with a backend, two functions and a frontend."""
    backend = tmp_path / "backend"
    backend.mkdir()
    (backend / "Dockerfile").write_text("FROM python:3.12-slim\n")
    for name in TEST_FUNCTIONS:
        function_dir = tmp_path / "functions" / name
        function_dir.mkdir(parents=True)
        (function_dir / "Dockerfile").write_text("FROM public.ecr.aws/lambda/python:3.12\n")
    (tmp_path / "frontend").mkdir()
    (tmp_path / "infra").mkdir()
    return tmp_path


@pytest.fixture
def settings(project):
    return Settings(project_root=project, _env_file=None)


@pytest.fixture
def tenant_config():
    return TenantConfig(
        slug="acme",
        environment="production",
        region="us-east-1",
        frontend_bucket="acme-frontend",
        assets_bucket="acme-assets",
        db_username="app",
        backend_image_tag="v1",
        function_image_tag="v1",
        db_password="db-pass-0001",
        jwt_secret="jwt-secret-0001",
        session_secret="session-secret-0001",
    )


@pytest.fixture
def toolchain():
    """In-memory toolchain primed for tenant ``acme`` with functions f1 and f2."""
    registry = InMemoryRegistry(host=REGISTRY_HOST)
    infrastructure = InMemoryInfrastructure(
        outputs=CONVERGED_OUTPUTS,
        registry_outputs={
            "ecr_repository_urls": registry_urls("acme", ("backend",) + TEST_FUNCTIONS)
        },
    )
    return Toolchain(
        infrastructure=infrastructure,
        builder=InMemoryBuilder(registry),
        registry=registry,
        site_builder=InMemorySiteBuilder(),
        publisher=InMemoryAssetPublisher(files_per_sync=3),
        identity=InMemoryIdentity(),
    )


@pytest.fixture
def orchestrator(settings, toolchain):
    return TenantOrchestrator(
        settings,
        toolchain_factory=lambda settings, credentials, slug: toolchain,
        verifier_factory=offline_verifier,
        function_names=TEST_FUNCTIONS,
    )
