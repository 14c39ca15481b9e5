import io
import logging
import posixpath
import zipfile
from typing import List, Optional

from .errors import ArchiveFinalizeFailed, ArchiveWriteFailed, PathCollision


logger = logging.getLogger(__name__)

# Fixed metadata so identical inputs give byte-identical archives.
ENTRY_TIMESTAMP = (1980, 1, 1, 0, 0, 0)
ENTRY_PERMISSIONS = 0o644 << 16


class ArchiveAssembler:
    """
    Write-once, in-memory zip builder.

    Every entry path must be unique; adding after `finalize()` or finalizing
    twice is an error rather than a silent no-op.
    """

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED) -> None:
        self._buffer = io.BytesIO()
        self._zip: Optional[zipfile.ZipFile] = zipfile.ZipFile(self._buffer, "w", compression)
        self._compression = compression
        self._paths: List[str] = []
        self._seen = set()

    @property
    def closed(self) -> bool:
        return self._zip is None

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    def add(self, path: str, data: bytes) -> None:
        if self._zip is None:
            raise ArchiveWriteFailed(f"archive already finalized; cannot add {path!r}")

        _check_entry_path(path)
        if path in self._seen:
            raise PathCollision(f"archive already holds an entry at {path!r}")

        info = zipfile.ZipInfo(path, date_time=ENTRY_TIMESTAMP)
        info.compress_type = self._compression
        info.external_attr = ENTRY_PERMISSIONS
        try:
            self._zip.writestr(info, data)
        except (OSError, ValueError, zipfile.LargeZipFile) as exc:
            raise ArchiveWriteFailed(f"unable to write {path!r} to archive") from exc

        self._seen.add(path)
        self._paths.append(path)
        logger.debug("Added %s (%d bytes)", path, len(data))

    def finalize(self) -> bytes:
        if self._zip is None:
            raise ArchiveFinalizeFailed("archive was already finalized")

        zf, self._zip = self._zip, None
        try:
            zf.close()
        except (OSError, ValueError) as exc:
            raise ArchiveFinalizeFailed("unable to close archive") from exc

        data = self._buffer.getvalue()
        self._buffer.close()
        logger.info("Archive finalized: %d entries, %d bytes", len(self._paths), len(data))
        return data

    def discard(self) -> None:
        """Drop a partially built archive without producing bytes."""
        if self._zip is not None:
            zf, self._zip = self._zip, None
            zf.close()
        self._buffer.close()


def _check_entry_path(path: str) -> None:
    if not path or path.startswith("/") or "\\" in path:
        raise ArchiveWriteFailed(f"invalid archive path {path!r}")
    parts = path.split("/")
    if any(part in ("", ".", "..") for part in parts) or posixpath.normpath(path) != path:
        raise ArchiveWriteFailed(f"invalid archive path {path!r}")
