"""Runs the cleaner over every configured bucket."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import botocore.exceptions

from .cleaner import S3BucketCleaner
from .config import CleanerConfig, RunMode
from .exceptions import DeploymentBucketError
from .prompt import BucketConfirmer, PromptConfirmer, confirm_buckets

if TYPE_CHECKING:
    from mypy_boto3_cloudformation import CloudFormationClient

logger = logging.getLogger(__name__)

DEPLOYMENT_BUCKET_RESOURCE = "ServerlessDeploymentBucket"


@dataclass
class RemovalReport:
    """What happened to each candidate bucket in one run."""

    emptied: list[str] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)
    declined: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class DeploymentBucketResolver:
    """
    Finds the name of the stack's deployment artifact bucket.

    A bucket named in the ``provider.deploymentBucket`` setting wins;
    otherwise the physical id of the stack's deployment bucket resource is
    looked up in CloudFormation.
    """

    def __init__(
        self,
        stack_name: str | None,
        cleaner: S3BucketCleaner,
        document: Mapping[str, Any] | None = None,
        cloudformation_client: CloudFormationClient | None = None,
    ) -> None:
        self.stack_name = stack_name
        self.cleaner = cleaner
        self.document = document or {}
        self._cloudformation_client = cloudformation_client

    @property
    def cloudformation_client(self) -> CloudFormationClient:
        if self._cloudformation_client is None:
            self._cloudformation_client = self.cleaner.session.client(
                "cloudformation", config=self.cleaner.boto_config
            )
        return self._cloudformation_client

    def _configured_name(self) -> str | None:
        provider = self.document.get("provider") or {}
        if not isinstance(provider, Mapping):
            return None
        bucket = provider.get("deploymentBucket")
        if isinstance(bucket, Mapping):
            bucket = bucket.get("name")
        return bucket if isinstance(bucket, str) and bucket else None

    def resolve(self) -> str:
        """
        Resolve the deployment bucket name.

        Returns:
            The bucket name.

        Raises:
            DeploymentBucketError: If no name is configured and the stack
                lookup fails.
        """
        name = self._configured_name()
        if name:
            return name

        if not self.stack_name:
            raise DeploymentBucketError(
                "Cannot resolve the deployment bucket without a stack name"
            )

        try:
            response = self.cloudformation_client.describe_stack_resource(
                StackName=self.stack_name,
                LogicalResourceId=DEPLOYMENT_BUCKET_RESOURCE,
            )
        except (
            botocore.exceptions.ClientError,
            botocore.exceptions.BotoCoreError,
        ) as e:
            raise DeploymentBucketError(
                f"Could not find the deployment bucket of stack {self.stack_name}: {e}"
            )
        return response["StackResourceDetail"]["PhysicalResourceId"]


class S3Remover:
    """
    Empties the configured buckets for a lifecycle run mode.

    Buckets are confirmed, checked for existence, and then emptied
    concurrently. A failure in one bucket never affects another, and only a
    configuration problem makes the run itself fail.

    Attributes:
        config: Which buckets to empty.
        cleaner: Storage operations.
        confirmer: Asks the operator when prompting is enabled.
        resolver: Finds the deployment bucket when auto-resolve is enabled.
    """

    def __init__(
        self,
        config: CleanerConfig,
        cleaner: S3BucketCleaner,
        confirmer: BucketConfirmer | None = None,
        resolver: DeploymentBucketResolver | None = None,
    ) -> None:
        self.config = config
        self.cleaner = cleaner
        self.confirmer = confirmer or PromptConfirmer()
        self.resolver = resolver

    def candidate_buckets(self, mode: RunMode) -> list[str]:
        """
        Select the buckets to consider for a run mode.

        Args:
            mode: The lifecycle run mode.

        Returns:
            Bucket names without duplicates, in configuration order.
        """
        candidates = self.config.candidates(mode)
        if mode is not RunMode.PRE_DEPLOY and self.config.auto_resolve:
            if self.resolver is None:
                raise DeploymentBucketError(
                    "autoResolve is enabled but no deployment bucket resolver is set"
                )
            candidates.append(self.resolver.resolve())
        return list(dict.fromkeys(candidates))

    def existing_buckets(self, buckets: list[str]) -> list[str]:
        """Drop buckets that are missing or inaccessible."""
        existing = []
        for bucket in buckets:
            if self.cleaner.bucket_exists(bucket):
                existing.append(bucket)
            else:
                logger.warning(
                    f"{bucket} not found or you do not have permissions, skipping..."
                )
        return existing

    def remove(self, mode: RunMode) -> RemovalReport:
        """
        Empty every selected bucket.

        Args:
            mode: The lifecycle run mode.

        Returns:
            The outcome of every candidate bucket.
        """
        report = RemovalReport()

        try:
            candidates = self.candidate_buckets(mode)
        except DeploymentBucketError as e:
            logger.error(f"Could not resolve the deployment bucket: {e}")
            candidates = list(dict.fromkeys(self.config.candidates(mode)))

        if not candidates:
            logger.info(f"No buckets configured to empty for {mode.value}")
            return report

        confirmed = confirm_buckets(candidates, self.config.prompt, self.confirmer)
        report.declined = [bucket for bucket in candidates if bucket not in confirmed]

        existing = self.existing_buckets(confirmed)
        report.not_found = [bucket for bucket in confirmed if bucket not in existing]
        if not existing:
            return report

        worker_count = min(self.cleaner.settings.max_workers, len(existing))
        with ThreadPoolExecutor(max_workers=worker_count) as executor:
            futures = {
                executor.submit(self.cleaner.empty_bucket, bucket): bucket
                for bucket in existing
            }
            for future in as_completed(futures):
                bucket = futures[future]
                try:
                    deleted = future.result()
                except Exception as e:
                    logger.error(f"bucket {bucket} cannot be emptied. {e}")
                    report.failed[bucket] = str(e)
                else:
                    logger.info(
                        f"bucket {bucket} successfully emptied ({deleted} objects/versions)"
                    )
                    report.emptied.append(bucket)

        return report
