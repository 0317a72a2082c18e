"""Command line interface for the S3 cleaner."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .cleaner import S3BucketCleaner
from .config import (
    CONFIG_SECTION,
    CleanerConfig,
    ConnectionSettings,
    RunMode,
    load_section,
    read_document,
)
from .exceptions import ConfigurationError
from .remover import DeploymentBucketResolver, S3Remover

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "serverless.yml"

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_INTERRUPTED = 1
EXIT_BUCKET_FAILED = 2


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Args:
        argv: Arguments to parse, defaults to ``sys.argv[1:]``.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="s3-cleaner",
        description="Empty S3 buckets before a stack is deployed or removed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Commands:
  deploy      Empty bucketsToCleanOnDeploy before a stack deploy
  remove      Empty buckets before a stack removal
  s3remove    Empty buckets on demand

Examples:
  %(prog)s remove                        Use custom > {CONFIG_SECTION} in serverless.yml
  %(prog)s s3remove --bucket my-bucket   Empty a specific bucket
  %(prog)s remove --prompt               Confirm every bucket first
        """,
    )
    parser.add_argument(
        "command",
        choices=[mode.value for mode in RunMode],
        help="Lifecycle step to run",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG,
        help=f"Configuration file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--bucket",
        "-b",
        action="append",
        dest="buckets",
        help="Bucket to empty on remove, replaces the configured buckets",
    )
    parser.add_argument(
        "--deploy-bucket",
        action="append",
        dest="deploy_buckets",
        help="Bucket to empty on deploy, replaces bucketsToCleanOnDeploy",
    )
    prompt_group = parser.add_mutually_exclusive_group()
    prompt_group.add_argument(
        "--prompt",
        action="store_true",
        default=None,
        help="Ask for confirmation before emptying each bucket",
    )
    prompt_group.add_argument(
        "--yes",
        "-y",
        action="store_false",
        dest="prompt",
        default=None,
        help="Skip confirmation prompts",
    )
    parser.add_argument(
        "--auto-resolve",
        action="store_true",
        default=None,
        help="Also empty the stack's deployment bucket on remove",
    )
    parser.add_argument("--stack-name", help="CloudFormation stack name")
    parser.add_argument(
        "--stage", default="dev", help="Stage used to build the stack name (default: dev)"
    )
    parser.add_argument("--region", help="AWS region")
    parser.add_argument("--profile", help="AWS profile")
    parser.add_argument("--endpoint-url", help="S3 compatible endpoint URL")
    parser.add_argument(
        "--workers",
        "-w",
        type=int,
        help="Number of concurrent workers (default: 10)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    return parser.parse_args(argv)


def load_document(args: argparse.Namespace) -> dict[str, Any]:
    """Read the configuration file, unless it is absent and not needed."""
    has_overrides = bool(args.buckets or args.deploy_buckets)
    if has_overrides and args.config == DEFAULT_CONFIG and not Path(args.config).exists():
        return {}
    return read_document(args.config)


def build_config(document: Mapping[str, Any], args: argparse.Namespace) -> CleanerConfig:
    """
    Merge the configuration file section with command line overrides.

    Args:
        document: Parsed configuration file.
        args: Parsed command line arguments.

    Returns:
        The validated bucket configuration.
    """
    has_overrides = bool(args.buckets or args.deploy_buckets)
    section = load_section(document, required=not has_overrides)

    mapping = dict(section or {})
    if args.buckets:
        mapping["buckets"] = args.buckets
    if args.deploy_buckets:
        mapping["bucketsToCleanOnDeploy"] = args.deploy_buckets
    if args.prompt is not None:
        mapping["prompt"] = args.prompt
    if args.auto_resolve is not None:
        mapping["autoResolve"] = args.auto_resolve
    return CleanerConfig.from_mapping(mapping)


def build_settings(args: argparse.Namespace) -> ConnectionSettings:
    """Apply command line overrides on top of the environment settings."""
    settings = ConnectionSettings.from_environment()
    if args.region:
        settings.region = args.region
    if args.profile:
        settings.profile = args.profile
    if args.endpoint_url:
        settings.endpoint_url = args.endpoint_url
    if args.workers is not None:
        if args.workers < 1:
            raise ConfigurationError("--workers must be at least 1")
        settings.max_workers = args.workers
    return settings


def stack_name(document: Mapping[str, Any], args: argparse.Namespace) -> str | None:
    """Return ``--stack-name`` or ``<service>-<stage>`` from the document."""
    if args.stack_name:
        return args.stack_name
    service = document.get("service")
    if isinstance(service, Mapping):
        service = service.get("name")
    if not isinstance(service, str) or not service:
        return None
    return f"{service}-{args.stage}"


def main(argv: list[str] | None = None) -> int:
    """Main function that runs one lifecycle step."""
    args = parse_arguments(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        document = load_document(args)
        config = build_config(document, args)
        settings = build_settings(args)
    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_CONFIG_ERROR

    cleaner = S3BucketCleaner(settings)
    resolver = None
    if config.auto_resolve:
        resolver = DeploymentBucketResolver(stack_name(document, args), cleaner, document)
    remover = S3Remover(config, cleaner, resolver=resolver)

    try:
        report = remover.remove(RunMode(args.command))
    except KeyboardInterrupt:
        logger.warning("Operation interrupted by user")
        return EXIT_INTERRUPTED
    except EOFError:
        logger.warning("Input closed while waiting for confirmation")
        return EXIT_INTERRUPTED

    logger.info(
        f"Emptied {len(report.emptied)} buckets, "
        f"skipped {len(report.not_found) + len(report.declined)}, "
        f"failed {len(report.failed)}"
    )
    return EXIT_OK if report.ok else EXIT_BUCKET_FAILED


if __name__ == "__main__":
    sys.exit(main())
