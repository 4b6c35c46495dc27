"""Streaming tar.gz archiver for module directories.

Only regular files are archived, under paths relative to the module root
with posix separators. Files are copied one at a time straight through the
tar and gzip layers into the output object, so a single file handle is open
at any moment.
"""

from __future__ import annotations

import io
import logging
import os
import stat
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Tuple, Union

from foundry.lib.errors import ArchiveError, ArchiveSourceNotFound

logger = logging.getLogger(__name__)

__all__ = ["ArchiveStats", "archive_module", "iter_module_files", "write_archive"]


@dataclass
class ArchiveStats:
    """Counters for a written archive."""

    files: int = 0
    bytes_read: int = 0
    bytes_written: int = 0


class _CountingWriter(io.RawIOBase):
    """Write-through wrapper that counts compressed bytes."""

    def __init__(self, target: BinaryIO):
        self._target = target
        self.count = 0

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:  # type: ignore[override]
        written = self._target.write(data)
        written = len(data) if written is None else written
        self.count += written
        return written


def _raise_walk_error(error: OSError) -> None:
    raise error


def iter_module_files(root: Path) -> Iterator[Tuple[Path, str, os.stat_result]]:
    """Yield ``(path, arcname, lstat)`` for every regular file below root.

    Symlinks, devices and other non-regular entries are skipped. Walk order
    is sorted so archives of the same tree list entries identically.
    """
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            info = os.lstat(path)
            if not stat.S_ISREG(info.st_mode):
                continue
            yield path, path.relative_to(root).as_posix(), info


def write_archive(root: Union[str, Path], fileobj: BinaryIO) -> ArchiveStats:
    """Write a gzip-compressed tar of ``root`` into ``fileobj``.

    The tar trailer and gzip footer are always written, so an empty tree
    still yields a valid, extractable archive. ``fileobj`` is left open.

    Raises:
        ArchiveSourceNotFound: If ``root`` does not exist
        ArchiveError: If ``root`` is not a directory, or on any I/O error
            while walking or copying; the output is then invalid and must
            not be uploaded
    """
    root = Path(root)
    if not root.exists():
        raise ArchiveSourceNotFound("unable to archive module: root does not exist", path=str(root))
    if not root.is_dir():
        raise ArchiveError("unable to archive module: root is not a directory", path=str(root))

    stats = ArchiveStats()
    sink = _CountingWriter(fileobj)
    current = str(root)

    try:
        with tarfile.open(fileobj=sink, mode="w:gz", format=tarfile.PAX_FORMAT) as tar:
            for path, arcname, info in iter_module_files(root):
                current = str(path)
                tarinfo = tarfile.TarInfo(arcname)
                tarinfo.size = info.st_size
                tarinfo.mtime = int(info.st_mtime)
                tarinfo.mode = stat.S_IMODE(info.st_mode)

                with open(path, "rb") as handle:
                    tar.addfile(tarinfo, handle)

                stats.files += 1
                stats.bytes_read += info.st_size
                logger.debug("Archived %s", arcname)
    except OSError as e:
        raise ArchiveError("failed to archive module", path=current, cause=e) from e

    stats.bytes_written = sink.count
    logger.debug(
        "Archived %d files (%d bytes, %d compressed) from %s",
        stats.files,
        stats.bytes_read,
        stats.bytes_written,
        root,
    )
    return stats


def archive_module(root: Union[str, Path]) -> io.BytesIO:
    """Archive ``root`` into memory and return the buffer rewound to 0."""
    buffer = io.BytesIO()
    write_archive(root, buffer)
    buffer.seek(0)
    return buffer
