#!/usr/bin/env python3
"""
Version specifier handling for lsdeps.

The npm registry accepts a concrete version or a dist-tag as a lookup key.
This module maps the version specifiers found in package.json dependency
fields to one of those keys without asking the registry which versions exist.
"""

import re
from typing import Tuple

LATEST_TAG = "latest"
NEXT_TAG = "next"
ALIAS_PREFIX = "npm:"

VERSION_REGEX = re.compile(r"\d+\.\d+\.\d+(-(alpha|beta|rc)\.\d+)?")


def normalize_version(specifier: str) -> str:
    """
    Map a version specifier to a registry lookup key.

    Exact versions are kept, caret and tilde ranges are approximated by their
    minimum version, the ``next`` tag is kept and everything else becomes
    ``latest``.

    Args:
        specifier (str): The raw specifier from a dependency edge.

    Returns:
        str: A concrete version, ``next`` or ``latest``.
    """
    if VERSION_REGEX.fullmatch(specifier):
        return specifier

    if specifier[:1] in ("^", "~") and VERSION_REGEX.fullmatch(specifier[1:]):
        return specifier[1:]

    if specifier == NEXT_TAG:
        return specifier

    return LATEST_TAG


def unpack_alias(name: str, specifier: str) -> Tuple[str, str]:
    """
    Recover the real package behind an ``npm:<name>@<specifier>`` alias.

    Args:
        name (str): The dependency name as written in the edge.
        specifier (str): The version specifier of the edge.

    Returns:
        Tuple[str, str]: The package name to fetch and its version specifier.
        Non-alias specifiers are returned unchanged.
    """
    if not specifier.startswith(ALIAS_PREFIX):
        return name, specifier

    target = specifier[len(ALIAS_PREFIX):]
    # A scoped name starts with "@", so the separator is searched after it.
    separator = target.find("@", 1)
    if separator == -1:
        return target, LATEST_TAG
    return target[:separator], target[separator + 1:] or LATEST_TAG
