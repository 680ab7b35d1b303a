"""Registry-side confirmation that a pushed image really exists."""

from __future__ import annotations

import structlog

from tenantctl.core.errors import PublishVerificationError
from tenantctl.providers.base import ImageRegistry

logger = structlog.get_logger()


class StepVerifier:
    """Re-queries the registry after every push instead of trusting the push exit code."""

    def __init__(self, registry: ImageRegistry) -> None:
        self._registry = registry

    def verify_published(self, repository: str, tag: str) -> None:
        """Raise PublishVerificationError unless ``repository:tag`` is retrievable."""
        try:
            found = self._registry.image_exists(repository, tag)
        except Exception as e:
            raise PublishVerificationError(
                f"Could not query registry for {repository}:{tag}",
                {"repository": repository, "tag": tag, "raw": str(e)},
            ) from e

        if not found:
            raise PublishVerificationError(
                f"Image {repository}:{tag} not found in registry after push",
                {"repository": repository, "tag": tag},
            )
        logger.info("image_verified", repository=repository, tag=tag)
