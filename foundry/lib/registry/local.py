"""Local filesystem registry backend."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from foundry.lib.registry.base import Registry

logger = logging.getLogger(__name__)

__all__ = ["LocalRegistry"]


class LocalRegistry(Registry):
    """Registry stored in a directory, using the same key layout as the buckets.

    Useful for development and tests.

    Example:
        >>> registry = LocalRegistry("./registry")
        >>> registry.upload_module("acme", "vpc", "aws", "1.0.0", archive).download_url
        'file:///.../registry/namespace=acme/name=vpc/provider=aws/version=1.0.0/acme-vpc-aws-1.0.0.tar.gz'
    """

    def __init__(self, base_path: Union[str, Path], prefix: Optional[str] = None) -> None:
        super().__init__(prefix)
        self.base_path = Path(base_path).resolve()

    @property
    def scheme(self) -> str:
        return "local"

    def _resolve_path(self, key: str) -> Path:
        return self.base_path.joinpath(*key.split("/"))

    def download_url(self, key: str) -> str:
        return self._resolve_path(key).as_uri()

    def _exists(self, key: str) -> bool:
        return self._resolve_path(key).is_file()

    def _iter_keys(self, prefix: str) -> Iterator[str]:
        # Listing prefixes always end at a directory boundary
        directory = self._resolve_path(prefix.rstrip("/"))
        if not directory.is_dir():
            return
        for path in sorted(directory.rglob("*")):
            if path.is_file():
                yield path.relative_to(self.base_path).as_posix()

    def _put(self, key: str, content: BinaryIO) -> None:
        target = self._resolve_path(key)
        target.parent.mkdir(parents=True, exist_ok=True)

        # Write beside the target and rename so readers never see a partial archive
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as handle:
                shutil.copyfileobj(content, handle)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Wrote %s", target)

    def __repr__(self) -> str:
        return f"LocalRegistry(base_path={str(self.base_path)!r}, prefix={self.prefix!r})"
