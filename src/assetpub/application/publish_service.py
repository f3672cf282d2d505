"""Service for publishing a build artifact"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional
from urllib.parse import urlparse

from assetpub.domain.config import BuildConfig, RetryPolicy
from assetpub.domain.errors import MissingEnvironmentError
from assetpub.domain.models.asset import Asset
from assetpub.domain.models.publish_request import PublishRequest
from assetpub.domain.platform import get_platform, get_real_type
from assetpub.infrastructure.hashing import hash_file
from assetpub.infrastructure.registry.base import AssetRegistry
from assetpub.infrastructure.retry import BeforeSleepHook, RetryExecutor, RetryPredicate
from assetpub.infrastructure.storage.base import BlobHeaders, BlobStore

logger = logging.getLogger(__name__)


class AssetPublisher:
    """Uploads an artifact to blob storage and registers its metadata

    Every network call goes through a RetryExecutor. Uploads to the
    primary and mirror accounts run concurrently; registration happens
    once all uploads have finished.
    """

    def __init__(
        self,
        primary_store: BlobStore,
        registry: AssetRegistry,
        build: BuildConfig,
        cdn_url: Optional[str],
        mirror_cdn_url: Optional[str],
        mirror_store: Optional[BlobStore] = None,
        retry_policy: Optional[RetryPolicy] = None,
        retry_on: Optional[RetryPredicate] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """Initialize publisher

        Args:
            primary_store: Main storage account
            registry: Asset database
            build: Quality (container/collection name) and commit
            cdn_url: CDN prefix for the primary account
            mirror_cdn_url: CDN prefix for the mirror account
            mirror_store: Mirror storage account (None = don't mirror)
            retry_policy: Retry policy for every network call
            retry_on: Optional retryability predicate (default: retry every Exception)
            sleep: Optional sleep function for retry delays
        """
        self.primary_store = primary_store
        self.mirror_store = mirror_store
        self.registry = registry
        self.build = build
        self.cdn_url = cdn_url
        self.mirror_cdn_url = mirror_cdn_url
        self.retry_policy = retry_policy or RetryPolicy()
        self.retry_on = retry_on
        self.sleep = sleep

    def _executor(self, target: str) -> RetryExecutor:
        return RetryExecutor(
            self.retry_policy,
            retry_on=self.retry_on,
            before_sleep=self._log_retry(target),
            sleep=self.sleep,
        )

    def _log_retry(self, target: str) -> BeforeSleepHook:
        max_attempts = self.retry_policy.max_attempts

        def _before_sleep(attempt: int, exception: BaseException, delay: float) -> None:
            logger.warning(
                f"{target} failed (attempt {attempt}/{max_attempts}): {exception}. "
                f"Retrying in {delay:.1f}s..."
            )

        return _before_sleep

    def _require_settings(self) -> None:
        if not self.build.quality:
            raise MissingEnvironmentError("RELEASE_QUALITY")
        if not self.build.commit:
            raise MissingEnvironmentError("BUILD_SOURCEVERSION")
        if not self.cdn_url:
            raise MissingEnvironmentError("CDN_URL")
        if not self.mirror_cdn_url:
            raise MissingEnvironmentError("MIRROR_CDN_URL")

    def _upload(self, store: BlobStore, request: PublishRequest, blob_name: str, headers: BlobHeaders) -> None:
        quality = self.build.quality
        self._executor(f"Upload to {store.name}").run(
            lambda: store.upload_file(quality, blob_name, request.file_path, headers)
        )
        logger.info(f"Blob successfully uploaded to {store.name} storage.")

    def _upload_all(self, stores: List[BlobStore], request: PublishRequest, blob_name: str) -> None:
        if not stores:
            logger.info("No blobs to upload.")
            return

        names = " and ".join(store.name for store in stores)
        logger.info(f"Uploading blobs to {names} storage...")
        headers = BlobHeaders.for_file(request.file_path, request.file_name)
        with ThreadPoolExecutor(max_workers=len(stores)) as pool:
            futures = [pool.submit(self._upload, store, request, blob_name, headers) for store in stores]
            # Re-raises the first terminal failure after all uploads settle
            for future in futures:
                future.result()
        logger.info("All blobs successfully uploaded.")

    def publish(self, request: PublishRequest) -> Asset:
        """Publish one artifact

        Args:
            request: Artifact description and local path

        Returns:
            The registered Asset

        Raises:
            UnrecognizedPlatformError: If the build tuple has no platform name
            MissingEnvironmentError: If quality, commit or CDN urls are missing
            Exception: The terminal failure of an upload or of registration
        """
        # get_platform needs the unprocessed type
        platform = get_platform(request.product, request.os, request.arch, request.type)
        asset_type = get_real_type(request.type)
        self._require_settings()
        quality = self.build.quality
        commit = self.build.commit

        logger.info("Creating asset...")
        digest = hash_file(request.file_path)
        logger.info(f"Size: {digest.size}")
        logger.info(f"SHA1: {digest.sha1}")
        logger.info(f"SHA256: {digest.sha256}")

        blob_name = f"{commit}/{request.file_name}"
        pending: List[BlobStore] = []
        for store in filter(None, [self.primary_store, self.mirror_store]):
            exists = self._executor(f"Existence check on {store.name}").run(
                lambda store=store: store.exists(quality, blob_name)
            )
            if exists:
                logger.info(f"Blob {quality}, {blob_name} already exists on {store.name}, not publishing again.")
            else:
                pending.append(store)
        self._upload_all(pending, request, blob_name)

        asset_url = f"{self.cdn_url.rstrip('/')}/{quality}/{blob_name}"
        blob_path = urlparse(asset_url).path
        asset = Asset.for_platform(
            platform,
            type=asset_type,
            url=asset_url,
            hash=digest.sha1,
            mooncake_url=f"{self.mirror_cdn_url.rstrip('/')}{blob_path}",
            sha256hash=digest.sha256,
            size=digest.size,
        )
        logger.info(f"Asset: {json.dumps(asset.to_document(), indent=2)}")

        self._executor("Asset registration").run(lambda: self.registry.create_asset(commit, asset))
        logger.info("Asset successfully created")
        return asset
