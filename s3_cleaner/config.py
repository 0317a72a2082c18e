"""Configuration for the S3 cleaner."""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_SECTION = "serverless-s3-cleaner"

_KNOWN_KEYS = {"buckets", "bucketsToCleanOnDeploy", "prompt", "autoResolve"}


class RunMode(enum.Enum):
    """The point in the deployment lifecycle the cleaner is running at."""

    PRE_DEPLOY = "deploy"
    PRE_REMOVAL = "remove"
    ON_DEMAND = "s3remove"


def _bucket_list(mapping: Mapping[str, Any], key: str) -> tuple[str, ...]:
    value = mapping.get(key)
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigurationError(f'"{key}" must be a list of bucket names')
    for name in value:
        if not isinstance(name, str) or not name:
            raise ConfigurationError(
                f'"{key}" must only contain non-empty bucket names, got {name!r}'
            )
    return tuple(value)


def _flag(mapping: Mapping[str, Any], key: str) -> bool:
    value = mapping.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigurationError(f'"{key}" must be true or false, got {value!r}')
    return value


@dataclass(frozen=True)
class CleanerConfig:
    """
    Which buckets to empty and how.

    Attributes:
        buckets: Buckets emptied before stack removal or on demand.
        buckets_to_clean_on_deploy: Buckets emptied before a stack deploy,
            e.g. the old name of a renamed bucket.
        prompt: Ask the operator to confirm each bucket.
        auto_resolve: Also empty the stack's deployment bucket on removal.
    """

    buckets: tuple[str, ...] = ()
    buckets_to_clean_on_deploy: tuple[str, ...] = ()
    prompt: bool = False
    auto_resolve: bool = False

    def __post_init__(self) -> None:
        if not self.buckets and not self.buckets_to_clean_on_deploy:
            raise ConfigurationError(
                'You must configure "buckets" or "bucketsToCleanOnDeploy" '
                f"parameters in custom > {CONFIG_SECTION} section"
            )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> CleanerConfig:
        """
        Build the configuration from the host's camelCase settings.

        Args:
            mapping: The ``custom.serverless-s3-cleaner`` section.

        Returns:
            The validated configuration.

        Raises:
            ConfigurationError: If the section is malformed or configures
                neither bucket list.
        """
        if mapping is None:
            mapping = {}
        if not isinstance(mapping, Mapping):
            raise ConfigurationError(f"{CONFIG_SECTION} section must be a mapping")

        unknown = sorted(set(mapping) - _KNOWN_KEYS)
        if unknown:
            raise ConfigurationError(
                f"Unknown {CONFIG_SECTION} parameters: {', '.join(unknown)}"
            )

        return cls(
            buckets=_bucket_list(mapping, "buckets"),
            buckets_to_clean_on_deploy=_bucket_list(mapping, "bucketsToCleanOnDeploy"),
            prompt=_flag(mapping, "prompt"),
            auto_resolve=_flag(mapping, "autoResolve"),
        )

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> CleanerConfig:
        """Read the cleaner section out of a serverless.yml style file."""
        return cls.from_mapping(load_section(read_document(path)))

    def candidates(self, mode: RunMode) -> list[str]:
        """Return the configured buckets for a run mode."""
        if mode is RunMode.PRE_DEPLOY:
            return list(self.buckets_to_clean_on_deploy)
        return list(self.buckets)


def read_document(path: str | os.PathLike[str]) -> dict[str, Any]:
    """
    Load a YAML configuration document.

    Args:
        path: Path to the file, usually ``serverless.yml``.

    Returns:
        The parsed top-level mapping.

    Raises:
        ConfigurationError: If the file is missing or is not a YAML mapping.
    """
    config_path = Path(path)
    try:
        with config_path.open(encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file {config_path} not found")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {config_path}: {e}")

    if not isinstance(document, dict):
        raise ConfigurationError(f"{config_path} must contain a YAML mapping")
    logger.debug(f"Loaded configuration from {config_path}")
    return document


def load_section(
    document: Mapping[str, Any], required: bool = True
) -> Mapping[str, Any] | None:
    """
    Return the cleaner section of a configuration document.

    Args:
        document: Parsed configuration file.
        required: Raise when the section is absent instead of returning None.

    Raises:
        ConfigurationError: If the section is required but absent, or is
            not a mapping.
    """
    custom = document.get("custom") or {}
    if not isinstance(custom, Mapping) or CONFIG_SECTION not in custom:
        if not required:
            return None
        raise ConfigurationError(f"Missing custom > {CONFIG_SECTION} section")
    section = custom[CONFIG_SECTION]
    if section is not None and not isinstance(section, Mapping):
        raise ConfigurationError(f"{CONFIG_SECTION} section must be a mapping")
    return section


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got {value}")
    return value


@dataclass
class ConnectionSettings:
    """Settings for the storage API connection."""

    region: str | None = None
    profile: str | None = None
    endpoint_url: str | None = None
    max_workers: int = 10
    max_retries: int = 5
    connection_pool_size: int = 20

    @classmethod
    def from_environment(cls) -> ConnectionSettings:
        """Create connection settings from environment variables."""
        return cls(
            region=os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION"),
            profile=os.environ.get("AWS_PROFILE") or None,
            endpoint_url=os.environ.get("S3_CLEANER_ENDPOINT_URL") or None,
            max_workers=_int_from_env("S3_CLEANER_MAX_WORKERS", 10),
        )
