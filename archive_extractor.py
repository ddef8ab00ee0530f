"""
archive_extractor.py
====================
Unpack a downloaded JDK archive (zip, tar, tar.gz/tgz) into its
extraction target.

Archives are untrusted input:
  - every output path must resolve strictly inside the destination,
    otherwise extraction stops with ``PathTraversal``
  - only regular file bytes are written; directories are implied and tar
    links/devices are skipped
  - permission bits come from the archive (zip "nu" extra field, tar
    header mode), masked to 0o777, and are only applied on POSIX

The archive's root folder (``jdk-21.0.2+13/``) is found by locating the
entry that ends in ``bin/java`` and is stripped from every path. A
destination that already holds ``bin/java`` is treated as extracted, so a
failed extraction removes the destination it created.
"""

from __future__ import annotations

import logging
import os
import shutil
import struct
import tarfile
import zipfile
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional

from errors import ExtractionError, IncompleteExtraction, PathTraversal, UnsupportedArchive
from platform_types import ArchiveFormat, HostFacts, archive_format_by_filename, strip_archive_suffix

logger = logging.getLogger(__name__)

# rwxr-xr-x
DEFAULT_ZIP_MODE = 0o755

# "nu" – ASi Unix extra field
ASI_UNIX_EXTRA_ID = 0x756E


def contained_path(root: Path, name: str, log: Optional[List[str]] = None) -> Path:
    """
    ``root / name``, refusing anything that does not resolve strictly below *root*.

    Raises:
        PathTraversal: *name* is absolute, climbs out with ``..`` or names *root* itself
    """
    target = Path(root) / name
    if Path(root).resolve() not in target.resolve().parents:
        if log is not None:
            log.append(f"  Invalid file! {name}")
            log.append("    Would not be extracted to target directory, could be malicious archive! Exiting")
        logger.error("Path %r escapes %s", name, root)
        raise PathTraversal(f"{name!r} escapes {root}", log)
    return target


def extraction_target(cache_root: Path, filename: str) -> Path:
    """``<cache>/zulu22-linux_x64.tar.gz`` extracts to ``<cache>/zulu22-linux_x64``."""
    return contained_path(cache_root, strip_archive_suffix(filename))


def zip_mode(extra: bytes) -> int:
    """
    Permission bits from a zip entry's extra data.

    ASi Unix block layout: CRC-32 (4 bytes), then the st_mode short. Only
    the rwx bits are kept. Without such a block the default applies.
    """
    mode = DEFAULT_ZIP_MODE
    offset = 0
    while offset + 4 <= len(extra):
        header_id, size = struct.unpack_from("<HH", extra, offset)
        offset += 4
        if header_id == ASI_UNIX_EXTRA_ID and size >= 6 and offset + 6 <= len(extra):
            (st_mode,) = struct.unpack_from("<H", extra, offset + 4)
            mode = st_mode & 0o777
        offset += size
    return mode


def find_prefix(names: Iterable[str], executable: str) -> Optional[str]:
    """Everything before *executable* in the first entry ending with it."""
    for name in names:
        if name.endswith(executable):
            return name[: len(name) - len(executable)]
    return None


class ArchiveExtractor:
    """Extracts JDK archives for the given host."""

    def __init__(self, host: HostFacts) -> None:
        self.host = host
        self.posix = os.name == "posix"

    def extract(
        self,
        archive: Path,
        destination: Path,
        archive_format: Optional[ArchiveFormat] = None,
        log: Optional[List[str]] = None,
    ) -> Path:
        """
        Extract *archive* into *destination* and return the destination.

        Raises:
            UnsupportedArchive:   not a zip/tar/tar.gz/tgz
            PathTraversal:        an entry escapes the destination
            IncompleteExtraction: no runtime executable afterwards
            ExtractionError:      the archive could not be read
        """
        if log is None:
            log = []
        archive = Path(archive)
        executable = self.host.java_executable
        if (Path(destination) / executable).is_file():
            log.append(f"Already extracted: {destination}")
            return Path(destination)

        fmt = archive_format or archive_format_by_filename(archive.name)
        if fmt is None or not fmt.extractable:
            log.append(f"Unknown archive format for {archive.name}, can't continue")
            raise UnsupportedArchive(f"Cannot extract {archive.name}: unsupported archive format", log)

        destination = Path(destination).resolve()
        created = not destination.exists()
        destination.mkdir(parents=True, exist_ok=True)
        log.append(f"Extracting {archive} to: {destination}")
        logger.info("Extracting %s → %s", archive.name, destination)

        try:
            try:
                if fmt.key == "zip":
                    self._extract_zip(archive, destination, executable, log)
                else:
                    self._extract_tar(archive, destination, executable, fmt.gzipped, log)
            except (zipfile.BadZipFile, tarfile.TarError, OSError, EOFError) as exc:
                log.append(f"Failed to extract {archive.name}: {exc}")
                raise ExtractionError(f"Failed to extract {archive.name}: {exc}", log) from exc

            if not (destination / executable).is_file():
                log.append(f"Extracting failed to produce expected java executable: {destination / executable}")
                raise IncompleteExtraction(
                    f"{archive.name} did not contain {executable}", log
                )
        except ExtractionError:
            # A half-written tree would pass the already-extracted check next time
            if created:
                log.append(f"Removing partial extraction {destination}")
                shutil.rmtree(destination, ignore_errors=True)
            raise
        return destination

    # ================================================================
    #  FORMATS
    # ================================================================

    def _extract_zip(self, archive: Path, destination: Path, executable: str, log: List[str]) -> None:
        with zipfile.ZipFile(archive) as zf:
            # Some vendors build zips with Windows separators
            entries = [(info, info.filename.replace("\\", "/")) for info in zf.infolist()]
            prefix = find_prefix((name for _, name in entries), executable)
            if prefix is not None:
                log.append(f"  Prefix: {prefix}")

            for info, name in entries:
                if info.is_dir() or name.endswith("/"):
                    continue
                with zf.open(info) as source:
                    self._write_entry(destination, prefix, name, source, zip_mode(info.extra), log)

    def _extract_tar(
        self,
        archive: Path,
        destination: Path,
        executable: str,
        gzipped: bool,
        log: List[str],
    ) -> None:
        mode = "r:gz" if gzipped else "r:"
        with tarfile.open(archive, mode) as tar:
            prefix = find_prefix((member.name for member in tar), executable)
        if prefix is not None:
            log.append(f"  Prefix: {prefix}")

        with tarfile.open(archive, mode) as tar:
            for member in tar:
                if member.isdir():
                    continue
                # extractfile() follows links, so check the member type first
                source = tar.extractfile(member) if member.isfile() else None
                if source is None:
                    log.append(f"  Skipping non-file entry {member.name}")
                    continue
                with source:
                    self._write_entry(destination, prefix, member.name, source, member.mode, log)

    # ================================================================
    #  ENTRY WRITING
    # ================================================================

    def _write_entry(
        self,
        destination: Path,
        prefix: Optional[str],
        name: str,
        source: BinaryIO,
        mode: int,
        log: List[str],
    ) -> None:
        if prefix is not None:
            if not name.startswith(prefix):
                return
            name = name[len(prefix):]

        target = contained_path(destination, name, log).resolve()
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as out:
            shutil.copyfileobj(source, out)
        if self.posix:
            os.chmod(target, mode & 0o777)
