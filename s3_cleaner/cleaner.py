"""
Empties S3 buckets of every object version and delete marker.

Listing follows the version listing cursors page by page; deletion is split
into chunks of at most 1000 identifiers that are sent concurrently.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, TypedDict

import boto3
import botocore.config
import botocore.exceptions

from .config import ConnectionSettings
from .exceptions import BatchDeleteError, DeleteFailure

if TYPE_CHECKING:
    from boto3 import Session
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

# Hard limit of the DeleteObjects API.
MAX_DELETE_KEYS = 1000


class ObjectIdentifier(TypedDict):
    Key: str
    VersionId: str


def chunked(
    identifiers: list[ObjectIdentifier], size: int = MAX_DELETE_KEYS
) -> list[list[ObjectIdentifier]]:
    """Split identifiers into consecutive chunks of at most ``size`` items."""
    if size < 1 or size > MAX_DELETE_KEYS:
        raise ValueError(f"chunk size must be between 1 and {MAX_DELETE_KEYS}")
    return [identifiers[i : i + size] for i in range(0, len(identifiers), size)]


class S3BucketCleaner:
    """
    Lists and deletes every object version in a bucket.

    Attributes:
        settings: Connection settings used to build the S3 client.
    """

    def __init__(
        self, settings: ConnectionSettings, s3_client: S3Client | None = None
    ) -> None:
        """
        Initialize the cleaner.

        Args:
            settings: Connection settings.
            s3_client: An existing client to use instead of creating one.
        """
        self.settings = settings
        self._session: Session | None = None
        self._boto_config: botocore.config.Config | None = None
        self._s3_client = s3_client

    @property
    def session(self) -> Session:
        """Lazily create and cache boto3 session."""
        if self._session is None:
            self._session = boto3.session.Session(
                profile_name=self.settings.profile,
                region_name=self.settings.region,
            )
        return self._session

    @property
    def boto_config(self) -> botocore.config.Config:
        """Lazily create and cache boto configuration."""
        if self._boto_config is None:
            # Each bucket worker runs its own pool of delete workers.
            pool_size = max(
                self.settings.connection_pool_size, self.settings.max_workers**2
            )
            self._boto_config = botocore.config.Config(
                max_pool_connections=pool_size,
                retries={"max_attempts": self.settings.max_retries, "mode": "adaptive"},
            )
        return self._boto_config

    @property
    def s3_client(self) -> S3Client:
        """Lazily create and cache the S3 client."""
        if self._s3_client is None:
            self._s3_client = self.session.client(
                "s3", endpoint_url=self.settings.endpoint_url, config=self.boto_config
            )
        return self._s3_client

    def bucket_exists(self, bucket_name: str) -> bool:
        """
        Check that a bucket exists and is reachable with our credentials.

        Missing buckets, denied access and connection failures all count as
        not existing.

        Args:
            bucket_name: Name of the bucket.

        Returns:
            True if the bucket can be accessed, False otherwise.
        """
        try:
            self.s3_client.head_bucket(Bucket=bucket_name)
            return True
        except (
            botocore.exceptions.ClientError,
            botocore.exceptions.BotoCoreError,
        ) as e:
            logger.debug(f"head_bucket failed for {bucket_name}: {e}")
            return False

    def list_object_versions(self, bucket_name: str) -> list[ObjectIdentifier]:
        """
        List every object version and delete marker in a bucket.

        Pages are fetched one after another, passing the next key and
        version id markers of each truncated page into the following call.
        A failing call propagates and no partial list is returned.

        Args:
            bucket_name: Name of the bucket.

        Returns:
            Identifiers of all versions and delete markers.
        """
        params: dict[str, str] = {"Bucket": bucket_name}
        identifiers: list[ObjectIdentifier] = []
        pages = 0

        while True:
            page = self.s3_client.list_object_versions(**params)
            pages += 1
            identifiers.extend(
                {"Key": v["Key"], "VersionId": v["VersionId"]}
                for v in page.get("Versions", [])
            )
            identifiers.extend(
                {"Key": m["Key"], "VersionId": m["VersionId"]}
                for m in page.get("DeleteMarkers", [])
            )

            if not page.get("IsTruncated"):
                break

            params.pop("KeyMarker", None)
            params.pop("VersionIdMarker", None)
            if page.get("NextKeyMarker") is not None:
                params["KeyMarker"] = page["NextKeyMarker"]
            if page.get("NextVersionIdMarker") is not None:
                params["VersionIdMarker"] = page["NextVersionIdMarker"]

        logger.debug(
            f"Listed {len(identifiers)} versions in {bucket_name} ({pages} pages)"
        )
        return identifiers

    def _delete_chunk(
        self, bucket_name: str, chunk: list[ObjectIdentifier]
    ) -> list[DeleteFailure]:
        response = self.s3_client.delete_objects(
            Bucket=bucket_name,
            Delete={"Objects": chunk, "Quiet": True},
        )
        return [
            DeleteFailure(
                key=err.get("Key", ""),
                version_id=err.get("VersionId"),
                code=err.get("Code", ""),
                message=err.get("Message", ""),
            )
            for err in response.get("Errors", [])
        ]

    def delete_objects(
        self, bucket_name: str, identifiers: list[ObjectIdentifier]
    ) -> int:
        """
        Delete a list of object versions from a bucket.

        One quiet DeleteObjects call is issued per chunk of at most
        ``MAX_DELETE_KEYS`` identifiers and all chunks run concurrently.
        Every chunk is attempted even when another one fails.

        Args:
            bucket_name: Name of the bucket.
            identifiers: Versions to delete.

        Returns:
            The number of identifiers submitted for deletion.

        Raises:
            BatchDeleteError: If any object was reported as not deleted.
                Failures are ordered as the identifiers were listed.
        """
        chunks = chunked(identifiers)
        if not chunks:
            return 0

        results: list[list[DeleteFailure]] = [[] for _ in chunks]
        call_errors: list[tuple[int, Exception]] = []

        worker_count = min(self.settings.max_workers, len(chunks))
        with ThreadPoolExecutor(max_workers=worker_count) as executor:
            futures = {
                executor.submit(self._delete_chunk, bucket_name, chunk): index
                for index, chunk in enumerate(chunks)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    results[index] = future.result()
                except (
                    botocore.exceptions.ClientError,
                    botocore.exceptions.BotoCoreError,
                ) as e:
                    call_errors.append((index, e))

        if call_errors:
            # Surface the earliest failing chunk once every chunk has finished.
            raise min(call_errors, key=lambda item: item[0])[1]

        failures = [failure for chunk_failures in results for failure in chunk_failures]
        if failures:
            raise BatchDeleteError(failures)

        logger.debug(
            f"Deleted {len(identifiers)} versions from {bucket_name} "
            f"in {len(chunks)} requests"
        )
        return len(identifiers)

    def empty_bucket(self, bucket_name: str) -> int:
        """
        Delete every object version and delete marker in a bucket.

        Args:
            bucket_name: Name of the bucket to empty.

        Returns:
            The number of versions deleted.
        """
        identifiers = self.list_object_versions(bucket_name)
        logger.info(f"Found {len(identifiers)} objects/versions in {bucket_name}")
        return self.delete_objects(bucket_name, identifiers)
