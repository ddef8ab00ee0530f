"""
jdk_downloader.py
=================
Fetch a package's archive into the cache root and check its digest.

Checksum sources, best first:
  1. ``checksum`` + ``checksum_type`` from the package detail
  2. the file at ``checksum_uri`` (online only); its first token is the
     digest and the algorithm is inferred from the digest length

With neither, the archive is accepted unverified. A mismatching archive
is left on disk and ``ChecksumMismatch`` is raised.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from archive_extractor import contained_path
from disco_api import DiscoClient, PackageDescriptor, PackageDetail
from errors import ChecksumMismatch, DownloadFailed, NetworkUnavailable, ProvisionerError
from http_client import HttpFetcher

logger = logging.getLogger(__name__)

# Hex digest length → hashlib algorithm
_DIGEST_LENGTHS = {
    32: "md5",
    40: "sha1",
    64: "sha256",
    128: "sha512",
}

SUPPORTED_ALGORITHMS = tuple(_DIGEST_LENGTHS.values())

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def normalize_algorithm(name: str) -> Optional[str]:
    """``"SHA-256"`` → ``"sha256"``; None for anything unsupported."""
    key = name.strip().lower().replace("-", "").replace("_", "")
    return key if key in SUPPORTED_ALGORITHMS else None


def infer_algorithm(digest: str) -> Optional[str]:
    if not _HEX_RE.fullmatch(digest):
        return None
    return _DIGEST_LENGTHS.get(len(digest))


def file_digest(path: Path, algorithm: str) -> str:
    digest = hashlib.new(algorithm)
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify_checksum(
    path: Path,
    algorithm: str,
    expected: str,
    log: Optional[List[str]] = None,
) -> None:
    """Raise ``ChecksumMismatch`` unless *path* hashes to *expected*."""
    actual = file_digest(path, algorithm)
    if actual.lower() != expected.strip().lower():
        if log is not None:
            log.append(f"Invalid {algorithm} checksum for {path.name}: expected {expected}, got {actual}")
        raise ChecksumMismatch(
            f"Checksum mismatch for {path.name}: expected {algorithm} {expected}, got {actual}",
            algorithm=algorithm, expected=expected, actual=actual, log_output=log,
        )
    logger.info("Checksum OK: %s (%s)", path.name, algorithm)


class JdkDownloader:
    """Downloads and verifies catalog packages into the cache root."""

    def __init__(
        self,
        disco: DiscoClient,
        fetcher: Optional[HttpFetcher] = None,
    ) -> None:
        self.disco = disco
        self.fetcher = fetcher or disco.fetcher
        self.cache_root = disco.cache_root
        self.offline = disco.offline

    def resolve_checksum(
        self,
        detail: PackageDetail,
        log: List[str],
    ) -> Optional[Tuple[str, str]]:
        """Return ``(algorithm, digest)`` or None when nothing usable is published."""
        if detail.checksum and detail.checksum_type:
            algorithm = normalize_algorithm(detail.checksum_type)
            if algorithm is None:
                log.append(f"Unknown checksum {detail.checksum_type}: {detail.checksum}")
                logger.warning("Unknown checksum type %s", detail.checksum_type)
                return None
            return algorithm, detail.checksum

        if detail.checksum_uri and not self.offline:
            try:
                raw = self.fetcher.get_text(detail.checksum_uri)
            except ProvisionerError as exc:
                log.append(f"Failed to download checksum from {detail.checksum_uri}: {exc}")
                return None
            tokens = raw.split()
            digest = tokens[0] if tokens else ""
            algorithm = infer_algorithm(digest)
            if algorithm is None:
                log.append(f"Unknown checksum {digest!r} from {detail.checksum_uri}")
                logger.warning("Unrecognised checksum format from %s", detail.checksum_uri)
                return None
            return algorithm, digest

        return None

    def download(self, package: PackageDescriptor, log: Optional[List[str]] = None) -> Path:
        """
        Make sure ``<cache>/<filename>`` exists and matches its checksum.

        Returns:
            Path to the local archive
        """
        if log is None:
            log = []

        archive = contained_path(self.cache_root, package.filename, log)
        url = package.links.pkg_download_redirect
        checksum: Optional[Tuple[str, str]] = None
        try:
            detail = self.disco.fetch_detail(package)
        except ProvisionerError as exc:
            log.append(
                f'Failed to download package info for "{package.filename}" ({package.id}), '
                "assuming redirect link is valid"
            )
            logger.warning("Package info for %s unavailable: %s", package.filename, exc)
        else:
            checksum = self.resolve_checksum(detail, log)
            if detail.direct_download_uri:
                url = detail.direct_download_uri

        if archive.exists():
            log.append(f"Using existing {archive}")
        elif self.offline:
            log.append(f"Offline mode, can't download {package.filename} ({package.id})")
            raise NetworkUnavailable(f"Offline mode, can't download {package.filename}", log)
        elif not url:
            log.append(f"Failed to find download link for {package.filename} ({package.id})")
            raise DownloadFailed(f"No download link for {package.filename}", log)
        else:
            log.append(f"Downloading {url}")
            try:
                self.fetcher.download_file(url, archive)
            except ProvisionerError as exc:
                log.append(f"Failed to download {package.filename} from {url}: {exc}")
                exc.log_output = list(log)
                raise

        if checksum is None:
            log.append("No checksum found, assuming existing file is valid")
            return archive

        algorithm, expected = checksum
        log.append(f"Verifying {algorithm} checksum")
        verify_checksum(archive, algorithm, expected, log)
        return archive
