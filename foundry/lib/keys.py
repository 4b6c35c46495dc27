"""Canonical registry key layout.

Every backend stores an archive under::

    namespace=<ns>/name=<name>/provider=<provider>/version=<version>/<ns>-<name>-<provider>-<version>.tar.gz

optionally below a backend-configured prefix. The layout is the contract
between publishers and readers of a bucket and must not change.

A field containing ``/`` yields a key that cannot be decoded. A field
containing ``-`` makes the archive file name ambiguous, which is harmless
because only the ``version=`` segment is ever decoded.
"""

from __future__ import annotations

from typing import Optional

from foundry.lib.errors import KeyDecodeError

__all__ = [
    "ARCHIVE_SUFFIX",
    "archive_name",
    "join_prefix",
    "module_key",
    "module_prefix",
    "parse_version_from_key",
]

ARCHIVE_SUFFIX = ".tar.gz"
VERSION_SEGMENT = "version="


def join_prefix(prefix: Optional[str], key: str) -> str:
    """Place ``key`` below ``prefix`` (no-op for an empty prefix)."""
    prefix = (prefix or "").strip("/")
    if not prefix:
        return key
    return f"{prefix}/{key}"


def archive_name(namespace: str, name: str, provider: str, version: str) -> str:
    return f"{namespace}-{name}-{provider}-{version}{ARCHIVE_SUFFIX}"


def module_prefix(
    namespace: str,
    name: str,
    provider: str,
    prefix: Optional[str] = None,
) -> str:
    """Listing prefix shared by every version of a module.

    Ends with a separator so that provider ``aws`` does not also match
    ``aws2``.
    """
    return join_prefix(
        prefix, f"namespace={namespace}/name={name}/provider={provider}/"
    )


def module_key(
    namespace: str,
    name: str,
    provider: str,
    version: str,
    prefix: Optional[str] = None,
) -> str:
    """Encode a module identity as its object key."""
    return (
        module_prefix(namespace, name, provider, prefix)
        + f"{VERSION_SEGMENT}{version}/"
        + archive_name(namespace, name, provider, version)
    )


def parse_version_from_key(key: str) -> str:
    """Recover the version from an object key.

    Raises:
        KeyDecodeError: If the key has no ``version=`` segment followed by
            an archive file name.
    """
    segments = key.split("/")
    # version=<v> is the directory directly holding the archive; segments
    # further up may belong to the backend prefix
    if len(segments) >= 2 and segments[-1] and segments[-2].startswith(VERSION_SEGMENT):
        version = segments[-2][len(VERSION_SEGMENT):]
        if version:
            return version

    raise KeyDecodeError(
        "failed to parse module version from object key",
        key=key,
    )
