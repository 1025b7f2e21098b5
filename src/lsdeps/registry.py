#!/usr/bin/env python3
"""
Registry client module for lsdeps.

This module fetches package metadata from the npm registry JSON API and
reduces it to the dependency fields the resolver needs.
"""

import http.client
import json
import logging
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple
from urllib.parse import quote, urlsplit

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.npmjs.com"
DEFAULT_TIMEOUT = 10.0
NOT_FOUND_BODY = "Not Found"


class RegistryError(Exception):
    """Base class for errors raised while fetching package metadata."""


class InvalidURLError(RegistryError):
    """Exception raised when a registry URL cannot be built."""
    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Invalid registry URL {url!r}: {reason}")


class NetworkError(RegistryError):
    """Exception raised for transport-level failures."""


class PackageNotFoundError(RegistryError):
    """Exception raised when the registry has no such package or version."""
    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version
        super().__init__(f"Package {name}@{version} does not exist")


class DecodeError(RegistryError):
    """Exception raised when a response body is not package metadata."""


@dataclass
class PackageMetadata:
    """Dependency fields of one published package version."""

    dependencies: Optional[Dict[str, str]] = None
    peer_dependencies: Optional[Dict[str, str]] = None
    optional_dependencies: Optional[Dict[str, str]] = None

    @classmethod
    def from_json(cls, data: Any) -> "PackageMetadata":
        """
        Build metadata from a decoded registry document.

        Args:
            data: The decoded JSON body.

        Returns:
            PackageMetadata: The dependency categories found in the document.

        Raises:
            DecodeError: If the document does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")

        return cls(
            dependencies=_dependency_field(data, "dependencies"),
            peer_dependencies=_dependency_field(data, "peerDependencies"),
            optional_dependencies=_dependency_field(data, "optionalDependencies"),
        )

    def edges(self, skip_peer: bool = False, skip_optional: bool = False) -> Iterator[Tuple[str, str]]:
        """Yield (name, specifier) edges: regular, then peer, then optional."""
        categories = [self.dependencies]
        if not skip_peer:
            categories.append(self.peer_dependencies)
        if not skip_optional:
            categories.append(self.optional_dependencies)

        for category in categories:
            if category:
                yield from category.items()


def _dependency_field(data: Dict[str, Any], key: str) -> Optional[Dict[str, str]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise DecodeError(f"Field {key!r} is not a mapping of names to versions")
    return value


class RegistryClient:
    """Fetches package metadata from an npm-compatible registry."""

    def __init__(self, registry_url: str = DEFAULT_REGISTRY_URL, timeout: float = DEFAULT_TIMEOUT):
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout

    def package_url(self, name: str, version: str) -> str:
        """
        Build the metadata URL for a package version.

        Args:
            name (str): The package name, scoped names included.
            version (str): A concrete version or dist-tag.

        Returns:
            str: The registry URL.

        Raises:
            InvalidURLError: If the name or registry URL cannot form a valid URL.
        """
        parts = urlsplit(self.registry_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise InvalidURLError(self.registry_url, "registry must be an http(s) URL")

        url = f"{self.registry_url}/{name}/{version}"
        if not name or not version:
            raise InvalidURLError(url, "package name and version are required")
        if any(ch.isspace() or not ch.isprintable() for ch in name + version):
            raise InvalidURLError(url, "package name contains whitespace or control characters")

        return f"{self.registry_url}/{quote(name, safe='@')}/{quote(version, safe='')}"

    def fetch_metadata(self, name: str, version: str) -> PackageMetadata:
        """
        Fetch the dependency metadata of ``name@version``.

        Args:
            name (str): The package name.
            version (str): A concrete version or dist-tag.

        Returns:
            PackageMetadata: The package's dependency categories.

        Raises:
            InvalidURLError: If no valid URL can be built.
            PackageNotFoundError: If the registry does not know the package or version.
            NetworkError: On transport failures.
            DecodeError: If the response is not valid metadata.
        """
        url = self.package_url(name, version)
        logger.debug("GET %s", url)

        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise PackageNotFoundError(name, version) from e
            raise NetworkError(f"Error fetching {url}: HTTP {e.code} {e.reason}") from e
        except urllib.error.URLError as e:
            raise NetworkError(f"Error fetching {url}: {e.reason}") from e
        except (socket.timeout, OSError) as e:
            raise NetworkError(f"Error fetching {url}: {e}") from e
        except http.client.HTTPException as e:
            raise NetworkError(f"Error fetching {url}: {type(e).__name__} {e}") from e

        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(f"Error decoding JSON from {url}: {e}") from e

        if data == NOT_FOUND_BODY:
            raise PackageNotFoundError(name, version)

        return PackageMetadata.from_json(data)
