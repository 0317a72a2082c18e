"""Empty S3 buckets, including every object version and delete marker."""

from .cleaner import MAX_DELETE_KEYS, S3BucketCleaner
from .config import CleanerConfig, ConnectionSettings, RunMode
from .exceptions import (
    BatchDeleteError,
    CleanerError,
    ConfigurationError,
    DeleteFailure,
    DeploymentBucketError,
)
from .prompt import BucketConfirmer, PromptConfirmer
from .remover import DeploymentBucketResolver, RemovalReport, S3Remover

__version__ = "1.0.0"

__all__ = [
    "MAX_DELETE_KEYS",
    "BatchDeleteError",
    "BucketConfirmer",
    "CleanerConfig",
    "CleanerError",
    "ConfigurationError",
    "ConnectionSettings",
    "DeleteFailure",
    "DeploymentBucketError",
    "DeploymentBucketResolver",
    "PromptConfirmer",
    "RemovalReport",
    "RunMode",
    "S3BucketCleaner",
    "S3Remover",
]
