"""Shared fixtures: an in-memory registry that records every fetch."""

import threading

import pytest

from lsdeps.registry import NetworkError, PackageMetadata, PackageNotFoundError


class FakeRegistry:
    """Serves metadata from a ``{(name, version): PackageMetadata | Exception}`` table."""

    def __init__(self, packages=None):
        self.packages = dict(packages or {})
        self.calls = []
        self._lock = threading.Lock()

    def add(self, name, version="latest", dependencies=None, peer=None, optional=None):
        self.packages[(name, version)] = PackageMetadata(dependencies, peer, optional)
        return self

    def fail(self, name, version, error):
        self.packages[(name, version)] = error
        return self

    def fetch_metadata(self, name, version):
        with self._lock:
            self.calls.append((name, version))
        entry = self.packages.get((name, version))
        if entry is None:
            raise PackageNotFoundError(name, version)
        if isinstance(entry, BaseException):
            raise entry
        return entry

    def fetch_count(self, name):
        return sum(1 for called, _ in self.calls if called == name)


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def example_registry():
    """root -> {A: 1.0.0, B: ^1.0.0}, B -> {A: 1.0.0}."""
    return (
        FakeRegistry()
        .add("root", dependencies={"A": "1.0.0", "B": "^1.0.0"})
        .add("A", "1.0.0")
        .add("B", "1.0.0", dependencies={"A": "1.0.0"})
    )


@pytest.fixture
def network_error():
    return NetworkError("connection reset")
