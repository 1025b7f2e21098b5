#!/usr/bin/env python3
"""Command-line interface for lsdeps."""

import argparse
import logging
import os
import sys
from typing import List, Optional

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .dependency_resolver import DependencyResolver, ResolutionCancelled, ResolveOptions, ResolveResult
from .registry import DEFAULT_REGISTRY_URL, DEFAULT_TIMEOUT, PackageNotFoundError, RegistryClient, RegistryError
from .versions import LATEST_TAG

logger = logging.getLogger(__name__)

PACKAGE_URL_TEMPLATE = "https://npmjs.com/package/{name}/v/{version}"
LOG_FORMAT = "%(levelname)s: %(message)s"


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="lsdeps",
        description="Count the transitive dependencies of an npm package",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Count the dependencies of the latest release:
    lsdeps react

  Count the dependencies of a specific version, ignoring peer dependencies:
    lsdeps react-dom --version 18.2.0 --skip-peer

  Fetch eight packages at a time:
    lsdeps webpack -j 8
        """
    )
    parser.add_argument("package", help="The npm package to count dependencies for")
    parser.add_argument("-v", "--version", default=LATEST_TAG,
                        help="The version of the package being fetched (default: latest)")
    parser.add_argument("-p", "--skip-peer", action="store_true",
                        help="Skip counting peer dependencies")
    parser.add_argument("-o", "--skip-optional", action="store_true",
                        help="Skip counting optional dependencies")
    parser.add_argument("--silent", action="store_true",
                        help='Hide the "Fetching dependencies for..." messages')
    parser.add_argument("--verbose", action="store_true",
                        help="Enable verbose output")
    parser.add_argument("-j", "--jobs", type=_positive_int, default=1,
                        help="Number of packages to fetch concurrently (default: 1)")
    parser.add_argument("--fallback-latest", action="store_true",
                        help="Fetch the latest release when a requested version does not exist")
    parser.add_argument("--registry", default=os.environ.get("LSDEPS_REGISTRY", DEFAULT_REGISTRY_URL),
                        help=f"Registry base URL (default: $LSDEPS_REGISTRY or {DEFAULT_REGISTRY_URL})")
    parser.add_argument("--timeout", type=float,
                        default=os.environ.get("LSDEPS_TIMEOUT", str(DEFAULT_TIMEOUT)),
                        help=f"Request timeout in seconds (default: $LSDEPS_TIMEOUT or {DEFAULT_TIMEOUT:g})")
    parser.add_argument("--list", action="store_true", dest="list_dependencies",
                        help="Print the name of every dependency after the report")

    return parser


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def format_report(result: ResolveResult) -> str:
    """Format the final dependency report for a resolution."""
    url = PACKAGE_URL_TEMPLATE.format(name=result.package_name, version=result.version)
    return (
        f"\nName: {result.package_name}\n"
        f"URL: {url}\n"
        f"Dependency count: {result.count}\n"
    )


def run(args: argparse.Namespace) -> int:
    """Resolve the requested package and print the report. Returns the exit status."""
    registry = RegistryClient(args.registry, timeout=args.timeout)
    options = ResolveOptions(
        skip_peer=args.skip_peer,
        skip_optional=args.skip_optional,
        jobs=args.jobs,
        fallback_to_latest=args.fallback_latest
    )
    resolver = DependencyResolver(registry, options)

    if not args.silent:
        print(f"Fetching dependencies for {args.package}@{args.version}")

    with logging_redirect_tqdm(), tqdm(
        unit="pkg", bar_format="{desc} [{n_fmt}/{total_fmt}]", disable=args.silent, leave=False
    ) as status:
        def progress(name: str, specifier: str, discovered: int) -> None:
            status.total = discovered
            status.set_description_str(f"Fetching dependencies for {name}@{specifier}", refresh=False)
            status.update(1)

        try:
            result = resolver.resolve(args.package, args.version, progress=progress)
        except PackageNotFoundError as e:
            logger.error("%s", e)
            return 1
        except RegistryError as e:
            logger.error("Error fetching dependencies for %s@%s: %s", args.package, args.version, e)
            return 1
        except ResolutionCancelled as e:
            logger.warning("Cancelled; %d dependencies discovered so far (incomplete)", e.count)
            return 1

    if result.failures:
        logger.info("%d packages could not be expanded", len(result.failures))

    print(format_report(result))
    if args.list_dependencies:
        print("\n".join(sorted(result.dependencies)))
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr
    )

    sys.exit(run(args))


if __name__ == "__main__":
    main()
