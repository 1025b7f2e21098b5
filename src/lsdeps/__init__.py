"""Tool for counting the transitive dependencies of npm packages."""

__version__ = "0.1.0"

from .dependency_resolver import DependencyResolver, ResolveOptions, ResolveResult, get_all_dependencies
from .registry import PackageMetadata, RegistryClient
from .versions import normalize_version, unpack_alias
