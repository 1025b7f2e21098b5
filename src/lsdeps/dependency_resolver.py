#!/usr/bin/env python3
"""
Dependency resolver module for lsdeps.

This module counts the transitive dependencies of an npm package by querying
the registry for each discovered package and merging its dependency edges into
a visited set. The traversal uses an explicit worklist, so deep dependency
trees never grow the call stack, and pending entries can be fetched by a pool
of worker threads.
"""

import logging
import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Tuple

from .registry import PackageMetadata, PackageNotFoundError, RegistryClient, RegistryError
from .versions import LATEST_TAG, normalize_version, unpack_alias

logger = logging.getLogger(__name__)

CANCEL_POLL_INTERVAL = 0.1

PackageRef = Tuple[str, str]
ProgressCallback = Callable[[str, str, int], None]


class ResolutionCancelled(Exception):
    """Exception raised when a resolution is cancelled before it completes."""
    def __init__(self, dependencies: Dict[str, str]):
        self.dependencies = dependencies
        super().__init__(
            f"Resolution cancelled after discovering {len(dependencies)} dependencies"
        )

    @property
    def count(self) -> int:
        return len(self.dependencies)


@dataclass
class ResolveOptions:
    """Options controlling which edges are followed and how fetches run."""

    skip_peer: bool = False
    skip_optional: bool = False
    jobs: int = 1
    fallback_to_latest: bool = False


@dataclass
class FetchFailure:
    """A discovered package whose metadata could not be fetched."""

    name: str
    version: str
    error: RegistryError

    @property
    def not_found(self) -> bool:
        return isinstance(self.error, PackageNotFoundError)


@dataclass
class ResolveResult:
    """Outcome of a completed resolution."""

    package_name: str
    version: str
    dependencies: Dict[str, str]
    failures: List[FetchFailure] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.dependencies)


@dataclass
class _Traversal:
    root_name: str
    visited: Dict[str, str] = field(default_factory=dict)
    pending: Deque[PackageRef] = field(default_factory=deque)
    failures: List[FetchFailure] = field(default_factory=list)


class DependencyResolver:
    """
    Resolves the transitive dependency set of a package.

    Args:
        registry: Object with a ``fetch_metadata(name, version)`` method,
            usually a ``RegistryClient``.
        options (Optional[ResolveOptions]): Edge and concurrency options.
    """

    def __init__(self, registry=None, options: Optional[ResolveOptions] = None):
        self.registry = registry if registry is not None else RegistryClient()
        self.options = options or ResolveOptions()
        if self.options.jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {self.options.jobs}")
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Request cancellation of the running resolution. Safe to call from any thread."""
        self._cancelled.set()

    def resolve(
        self,
        package_name: str,
        version: str = LATEST_TAG,
        progress: Optional[ProgressCallback] = None
    ) -> ResolveResult:
        """
        Resolve every package transitively required by ``package_name``.

        Args:
            package_name (str): The root package.
            version (str): Version specifier of the root, ``npm:`` aliases included.
            progress (Optional[ProgressCallback]): Called with the name, specifier
                and number of discovered packages before each fetch.

        Returns:
            ResolveResult: The deduplicated dependency set, root excluded.

        Raises:
            RegistryError: If the root package itself cannot be fetched.
            ResolutionCancelled: If the run is cancelled or interrupted.
        """
        root_name, root_specifier = unpack_alias(package_name, version)
        root_version = normalize_version(root_specifier)

        state = _Traversal(root_name=root_name)
        logger.debug("Resolving root %s@%s", root_name, root_version)
        try:
            self._check_cancelled(state)
            self._merge(state, self._fetch(root_name, root_version))
            if self.options.jobs > 1:
                self._drain_concurrently(state, progress)
            else:
                self._drain(state, progress)
        except KeyboardInterrupt:
            raise ResolutionCancelled(dict(state.visited)) from None
        finally:
            self._cancelled.clear()

        logger.debug("Resolved %d dependencies for %s", len(state.visited), root_name)
        return ResolveResult(root_name, root_specifier, state.visited, state.failures)

    def _drain(self, state: _Traversal, progress: Optional[ProgressCallback]) -> None:
        while state.pending:
            self._check_cancelled(state)
            ref = state.pending.popleft()
            self._report(state, ref, progress)
            self._absorb(state, self._expand(*ref))

    def _drain_concurrently(self, state: _Traversal, progress: Optional[ProgressCallback]) -> None:
        executor = ThreadPoolExecutor(max_workers=self.options.jobs, thread_name_prefix="lsdeps")
        in_flight: Dict[Future, PackageRef] = {}
        try:
            # Only this thread touches the visited set, so a name is never added twice.
            while state.pending or in_flight:
                self._check_cancelled(state)
                while state.pending and len(in_flight) < self.options.jobs:
                    ref = state.pending.popleft()
                    self._report(state, ref, progress)
                    in_flight[executor.submit(self._expand, *ref)] = ref

                done, _ = wait(in_flight, timeout=CANCEL_POLL_INTERVAL, return_when=FIRST_COMPLETED)
                for future in done:
                    del in_flight[future]
                    self._absorb(state, future.result())
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _check_cancelled(self, state: _Traversal) -> None:
        if self._cancelled.is_set():
            raise ResolutionCancelled(dict(state.visited))

    def _report(self, state: _Traversal, ref: PackageRef, progress: Optional[ProgressCallback]) -> None:
        name, specifier = ref
        logger.debug("Fetching dependencies for %s@%s", name, specifier)
        if progress is not None:
            progress(name, specifier, len(state.visited))

    def _expand(self, name: str, specifier: str) -> Tuple[Optional[PackageMetadata], Optional[FetchFailure]]:
        package_name, package_specifier = unpack_alias(name, specifier)
        version = normalize_version(package_specifier)
        try:
            return self._fetch(package_name, version), None
        except RegistryError as e:
            return None, FetchFailure(package_name, version, e)

    def _fetch(self, name: str, version: str) -> PackageMetadata:
        try:
            return self.registry.fetch_metadata(name, version)
        except PackageNotFoundError:
            if not self.options.fallback_to_latest or version == LATEST_TAG:
                raise
            logger.debug("%s@%s not found, trying %s", name, version, LATEST_TAG)
            return self.registry.fetch_metadata(name, LATEST_TAG)

    def _absorb(
        self,
        state: _Traversal,
        outcome: Tuple[Optional[PackageMetadata], Optional[FetchFailure]]
    ) -> None:
        metadata, failure = outcome
        if failure is not None:
            state.failures.append(failure)
            if failure.not_found:
                logger.warning("Package %s@%s does not exist", failure.name, failure.version)
            else:
                logger.error("Error fetching dependencies for %s@%s: %s",
                             failure.name, failure.version, failure.error)
            return
        self._merge(state, metadata)

    def _merge(self, state: _Traversal, metadata: PackageMetadata) -> None:
        for dep_name, dep_specifier in metadata.edges(self.options.skip_peer, self.options.skip_optional):
            if dep_name == state.root_name or dep_name in state.visited:
                continue
            state.visited[dep_name] = dep_specifier
            state.pending.append((dep_name, dep_specifier))


def get_all_dependencies(
    package_name: str,
    version: str = LATEST_TAG,
    skip_peer: bool = False,
    skip_optional: bool = False,
    registry=None,
    jobs: int = 1,
    fallback_to_latest: bool = False
) -> Dict[str, str]:
    """
    Get all transitive dependencies of a package.

    Args:
        package_name (str): The name of the package.
        version (str): Version specifier of the package.
        skip_peer (bool): Do not follow peer dependency edges.
        skip_optional (bool): Do not follow optional dependency edges.
        registry: Registry client to query, a default ``RegistryClient`` if None.
        jobs (int): Number of concurrent fetches.
        fallback_to_latest (bool): Retry missing versions against ``latest``.

    Returns:
        Dict[str, str]: Dependency names mapped to the specifier they were first seen with.
    """
    options = ResolveOptions(
        skip_peer=skip_peer,
        skip_optional=skip_optional,
        jobs=jobs,
        fallback_to_latest=fallback_to_latest
    )
    return DependencyResolver(registry, options).resolve(package_name, version).dependencies
