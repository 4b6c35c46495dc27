"""CLI entry point for publishing modules.

Usage:
    python -m foundry upload --type s3 --s3-bucket acme-modules ./modules
    python -m foundry upload --config registry.yaml ./modules
    python -m foundry list --type s3 --s3-bucket acme-modules acme vpc aws

The upload command walks the directory (recursively by default) looking for
module descriptor files, parses each one, filters it by the configured
version constraints, archives the module directory and uploads the archive.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from foundry.lib.config import REGISTRY_TYPES, UploadSettings, load_settings
from foundry.lib.errors import ConfigurationError, ConstraintParseError, RegistryError
from foundry.lib.logging import setup_logging
from foundry.lib.publish import Publisher, PublishReport
from foundry.lib.registry import get_registry

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _add_registry_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="YAML file with upload settings")
    parser.add_argument(
        "--type",
        choices=REGISTRY_TYPES,
        help="Registry type to use",
    )
    parser.add_argument("--s3-bucket", help="Bucket to use when using the S3 registry type")
    parser.add_argument("--s3-prefix", help="Prefix to use when using the S3 registry type")
    parser.add_argument("--s3-region", help="Region of the S3 bucket when using the S3 registry type")
    parser.add_argument("--s3-endpoint-url", help="Custom S3 endpoint (MinIO, LocalStack)")
    parser.add_argument("--gcs-bucket", help="Bucket to use when using the GCS registry type")
    parser.add_argument("--gcs-prefix", help="Prefix to use when using the GCS registry type")
    parser.add_argument("--gcs-project", help="Project owning the GCS bucket (default: GOOGLE_CLOUD_PROJECT)")
    parser.add_argument("--local-path", help="Directory to use when using the local registry type")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-log",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument("--log-file", help="Write logs to a file in addition to console")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="module-foundry",
        description="Publish versioned modules to an object-storage registry",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Upload every module below modules/ to S3
    python -m foundry upload --type s3 --s3-bucket example-bucket modules/

    # Only publish 1.x releases, fail if a version is already published
    python -m foundry upload --config registry.yaml \\
        --version-constraints-semver ">=1.0.0, <2.0.0" --no-ignore-existing modules/

    # List the published versions of a module
    python -m foundry list --type gcs --gcs-bucket example-bucket acme vpc google

Every setting can also be given as an environment variable prefixed with
MODULE_REGISTRY_ (e.g. MODULE_REGISTRY_S3_BUCKET).
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload modules to a registry")
    _add_registry_arguments(upload)
    upload.add_argument("directory", help="Directory to search for modules")
    upload.add_argument(
        "--version-constraints-semver",
        help="Limit the module versions that are eligible for upload with semver constraints",
    )
    upload.add_argument(
        "--version-constraints-regex",
        help="Limit the module versions that are eligible for upload with a regex",
    )
    upload.add_argument(
        "--recursive",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Recursively traverse <directory> and upload all modules in subdirectories (default: on)",
    )
    upload.add_argument(
        "--ignore-existing",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Skip modules that already exist instead of failing (default: on)",
    )
    upload.add_argument("--spec-file-name", help="Name of the module descriptor file")

    list_cmd = subparsers.add_parser("list", help="List published versions of a module")
    _add_registry_arguments(list_cmd)
    list_cmd.add_argument("namespace")
    list_cmd.add_argument("name")
    list_cmd.add_argument("provider")

    return parser


def _settings_from_args(args: argparse.Namespace) -> UploadSettings:
    overrides: Dict[str, Any] = {
        "type": args.type,
        "s3_bucket": args.s3_bucket,
        "s3_prefix": args.s3_prefix,
        "s3_region": args.s3_region,
        "s3_endpoint_url": args.s3_endpoint_url,
        "gcs_bucket": args.gcs_bucket,
        "gcs_prefix": args.gcs_prefix,
        "gcs_project": args.gcs_project,
        "local_path": args.local_path,
    }
    if args.command == "upload":
        overrides.update(
            version_constraints_semver=args.version_constraints_semver,
            version_constraints_regex=args.version_constraints_regex,
            recursive=args.recursive,
            ignore_existing=args.ignore_existing,
            spec_file_name=args.spec_file_name,
        )
    return load_settings(args.config, **overrides)


def print_summary(report: PublishReport) -> None:
    """Print the per-module outcomes of a run."""
    if not report.results:
        print("No modules found.")
        return

    width = max(len(r.spec.display_name) if r.spec else len(str(r.spec_path)) for r in report.results)
    print()
    for result in report.results:
        label = result.spec.display_name if result.spec else str(result.spec_path)
        line = f"  {label:<{width}}  {result.outcome.value}"
        if result.module is not None:
            line += f"  {result.module.download_url}"
        elif result.reason:
            line += f"  ({result.reason})"
        print(line)

    counts = report.counts()
    print()
    print("  " + ", ".join(f"{k}={v}" for k, v in counts.items() if v))


def upload_command(settings: UploadSettings, directory: str) -> int:
    publisher = Publisher.from_settings(settings)
    report = PublishReport()
    try:
        publisher.publish(directory, report=report)
    except RegistryError:
        # Nothing to summarize when the run failed before the first module
        if report.results:
            print_summary(report)
        raise
    print_summary(report)
    return EXIT_OK


def list_command(settings: UploadSettings, namespace: str, name: str, provider: str) -> int:
    registry = get_registry(settings)
    modules = registry.list_module_versions(namespace, name, provider)
    if not modules:
        print(f"No versions found for {namespace}/{name}/{provider}.")
        return EXIT_OK
    for module in modules:
        print(f"{module.version}\t{module.download_url}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, json_format=args.json_log, log_file=args.log_file)

    try:
        settings = _settings_from_args(args)
        if args.command == "upload":
            return upload_command(settings, args.directory)
        return list_command(settings, args.namespace, args.name, args.provider)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except ConstraintParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        # A module version that is not semver is bad data, not bad usage
        return EXIT_FAILED if e.module else EXIT_USAGE
    except RegistryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
