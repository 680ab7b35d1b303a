"""
boto3 adapters: identity check, container registry, object store and CDN.

All clients come from the run's CredentialContext so every call is made as
the identity verified at the start of the run.
"""

from __future__ import annotations

import base64
import mimetypes
import time
from pathlib import Path
from typing import Any, Sequence

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from tenantctl.core.errors import ProviderError
from tenantctl.credentials import CredentialContext
from tenantctl.logging import register_secret
from tenantctl.providers.base import RegistryAuthorization

logger = structlog.get_logger()

# Files served with no-cache so a new deploy is picked up without waiting for TTLs.
NO_CACHE_FILES = frozenset({"index.html"})
DELETE_BATCH_SIZE = 1000


def _provider_error(message: str, exc: Exception, **details: Any) -> ProviderError:
    code = None
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code")
    return ProviderError(message, {**details, "code": code or type(exc).__name__, "raw": str(exc)})


class StsIdentityChecker:
    """GetCallerIdentity through the run's credentials."""

    def __init__(self, credentials: CredentialContext) -> None:
        self._credentials = credentials

    def caller_identity(self) -> dict[str, Any]:
        return self._credentials.client("sts").get_caller_identity()


class EcrRegistry:
    """Elastic Container Registry queries."""

    def __init__(self, credentials: CredentialContext) -> None:
        self._credentials = credentials

    def authorization(self) -> RegistryAuthorization:
        try:
            response = self._credentials.client("ecr").get_authorization_token()
        except (ClientError, BotoCoreError) as e:
            raise _provider_error("Failed to obtain registry authorization", e) from e

        data = response["authorizationData"][0]
        username, password = (
            base64.b64decode(data["authorizationToken"]).decode("utf-8").split(":", 1)
        )
        host = data["proxyEndpoint"].removeprefix("https://")
        register_secret(password)
        return RegistryAuthorization(host=host, username=username, password=password)

    def image_exists(self, repository: str, tag: str) -> bool:
        client = self._credentials.client("ecr")
        try:
            response = client.describe_images(
                repositoryName=repository,
                imageIds=[{"imageTag": tag}],
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in {"ImageNotFoundException", "RepositoryNotFoundException"}:
                return False
            raise
        return bool(response.get("imageDetails"))


class S3AssetPublisher:
    """Mirrors a local directory into a bucket and invalidates the CDN."""

    def __init__(self, credentials: CredentialContext) -> None:
        self._credentials = credentials

    def _remote_keys(self, client: Any, bucket: str) -> set[str]:
        keys: set[str] = set()
        paginator = client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket):
            for obj in page.get("Contents", []):
                keys.add(obj["Key"])
        return keys

    def sync(self, local_dir: Path, bucket: str, delete: bool = True) -> int:
        """Upload every file under local_dir; with delete, remove keys no longer present."""
        client = self._credentials.client("s3")
        local_files = sorted(p for p in local_dir.rglob("*") if p.is_file())
        local_keys = {p.relative_to(local_dir).as_posix(): p for p in local_files}

        try:
            remote_keys = self._remote_keys(client, bucket) if delete else set()

            for key, path in local_keys.items():
                extra_args: dict[str, Any] = {}
                content_type, _ = mimetypes.guess_type(path.name)
                if content_type:
                    extra_args["ContentType"] = content_type
                if path.name in NO_CACHE_FILES:
                    extra_args["CacheControl"] = "no-cache"
                client.upload_file(str(path), bucket, key, ExtraArgs=extra_args or None)

            stale = sorted(remote_keys - set(local_keys))
            for start in range(0, len(stale), DELETE_BATCH_SIZE):
                batch = stale[start : start + DELETE_BATCH_SIZE]
                client.delete_objects(
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"Failed to sync assets to bucket {bucket}", e, bucket=bucket) from e

        logger.info("assets_synced", bucket=bucket, uploaded=len(local_keys), deleted=len(stale))
        return len(local_keys)

    def invalidate(self, distribution_id: str, paths: Sequence[str]) -> str:
        client = self._credentials.client("cloudfront")
        try:
            response = client.create_invalidation(
                DistributionId=distribution_id,
                InvalidationBatch={
                    "Paths": {"Quantity": len(paths), "Items": list(paths)},
                    "CallerReference": f"tenantctl-{time.time_ns()}",
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(
                f"Failed to invalidate CDN distribution {distribution_id}",
                e,
                distribution_id=distribution_id,
            ) from e

        invalidation_id = response["Invalidation"]["Id"]
        logger.info("cdn_invalidated", distribution_id=distribution_id, invalidation_id=invalidation_id)
        return invalidation_id
