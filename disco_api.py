"""
disco_api.py
============
Client for the foojay Disco API (https://api.foojay.io/disco/v3.0).

  - fetch_catalog()          → every downloadable JDK archive package
  - resolve(version, ...)    → catalog filtered for a host and ranked best first
  - fetch_detail(package)    → checksum and direct-download metadata

Responses are cached as JSON under the cache root for ``ttl_hours``
(12 by default). Offline, cached data is used however old it is.

Cache layout:
  packages.json            the catalog
  <filename>.json          {"package": ..., "info": ...} for one package

Empty strings are written as JSON null and null is read back as "", so
cached records round-trip to the same descriptor.
"""

from __future__ import annotations

import functools
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from archive_extractor import contained_path
from errors import CatalogParseError, EmptyCatalog, NetworkUnavailable
from http_client import HttpFetcher
from java_install import JavaVersion
from platform_types import (
    DISTRIBUTIONS,
    LIBC_TYPES,
    Architecture,
    ArchiveFormat,
    Distribution,
    HostFacts,
    LibC,
    OperatingSystem,
    archive_format_by_filename,
    get_arch,
    get_archive_format,
    get_distribution,
    get_libc,
    get_os,
    rank,
)

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
#  Constants
# ──────────────────────────────────────────────

DISCO_API = "https://api.foojay.io/disco/v3.0"

PACKAGES_FILE = "packages.json"

# Archive types the extractor can unpack
SUPPORTED_ARCHIVE_TYPES = "zip,tar,tar.gz,tgz"

ANY_VERSION = -1


def _str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _to_json(value: Any) -> Any:
    """Recursively replace empty strings with None."""
    if isinstance(value, dict):
        return {k: _to_json(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_json(v) for v in value]
    if value == "":
        return None
    return value


# ──────────────────────────────────────────────
#  Data Structures
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Links:
    pkg_info_uri: str = ""
    pkg_download_redirect: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Links":
        data = data or {}
        return cls(
            pkg_info_uri=_str(data, "pkg_info_uri"),
            pkg_download_redirect=_str(data, "pkg_download_redirect"),
        )


@dataclass(frozen=True)
class PackageDescriptor:
    """
    One catalog entry.

    The classification fields (``archive_format``, ``distro``, ``os_type``,
    ``libc``, ``arch``, ``semver``) are derived once from the raw strings
    when the descriptor is built and never change afterwards.
    """

    id: str
    major_version: int
    jdk_version: int
    filename: str
    java_version: str = ""
    archive_type: str = ""
    distribution: str = ""
    operating_system: str = ""
    lib_c_type: str = ""
    architecture: str = ""
    size: int = 0
    javafx_bundled: bool = False
    links: Links = field(default_factory=Links)

    archive_format: Optional[ArchiveFormat] = field(init=False, repr=False, compare=False)
    distro: Optional[Distribution] = field(init=False, repr=False, compare=False)
    os_type: Optional[OperatingSystem] = field(init=False, repr=False, compare=False)
    libc: Optional[LibC] = field(init=False, repr=False, compare=False)
    arch: Optional[Architecture] = field(init=False, repr=False, compare=False)
    semver: Optional[JavaVersion] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        derived = {
            "archive_format": get_archive_format(self.archive_type)
            or archive_format_by_filename(self.filename),
            "distro": get_distribution(self.distribution),
            "os_type": get_os(self.operating_system),
            "libc": get_libc(self.lib_c_type),
            "arch": get_arch(self.architecture),
            "semver": JavaVersion.parse(self.java_version),
        }
        for name, value in derived.items():
            object.__setattr__(self, name, value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageDescriptor":
        return cls(
            id=_str(data, "id"),
            major_version=int(data.get("major_version") or 0),
            jdk_version=int(data.get("jdk_version") or 0),
            filename=_str(data, "filename"),
            java_version=_str(data, "java_version"),
            archive_type=_str(data, "archive_type"),
            distribution=_str(data, "distribution"),
            operating_system=_str(data, "operating_system"),
            lib_c_type=_str(data, "lib_c_type"),
            architecture=_str(data, "architecture"),
            size=int(data.get("size") or 0),
            javafx_bundled=bool(data.get("javafx_bundled", False)),
            links=Links.from_dict(data.get("links")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "major_version": self.major_version,
            "jdk_version": self.jdk_version,
            "filename": self.filename,
            "java_version": self.java_version,
            "archive_type": self.archive_type,
            "distribution": self.distribution,
            "operating_system": self.operating_system,
            "lib_c_type": self.lib_c_type,
            "architecture": self.architecture,
            "size": self.size,
            "javafx_bundled": self.javafx_bundled,
            "links": {
                "pkg_info_uri": self.links.pkg_info_uri,
                "pkg_download_redirect": self.links.pkg_download_redirect,
            },
        }


@dataclass(frozen=True)
class PackageDetail:
    """Per-package download metadata from ``/ids/{id}``."""

    filename: str = ""
    direct_download_uri: str = ""
    download_site_uri: str = ""
    signature_uri: str = ""
    checksum_uri: str = ""
    checksum: str = ""
    checksum_type: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageDetail":
        return cls(
            filename=_str(data, "filename"),
            direct_download_uri=_str(data, "direct_download_uri"),
            download_site_uri=_str(data, "download_site_uri"),
            signature_uri=_str(data, "signature_uri"),
            checksum_uri=_str(data, "checksum_uri"),
            checksum=_str(data, "checksum"),
            checksum_type=_str(data, "checksum_type"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "direct_download_uri": self.direct_download_uri,
            "download_site_uri": self.download_site_uri,
            "signature_uri": self.signature_uri,
            "checksum_uri": self.checksum_uri,
            "checksum": self.checksum,
            "checksum_type": self.checksum_type,
        }


# ──────────────────────────────────────────────
#  Ordering
# ──────────────────────────────────────────────

def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def compare_packages(a: PackageDescriptor, b: PackageDescriptor) -> int:
    """Newest JDK first, then distribution and libc preference, then newest build."""
    if a.jdk_version != b.jdk_version:
        return _cmp(b.jdk_version, a.jdk_version)
    result = _cmp(rank(DISTRIBUTIONS, a.distro), rank(DISTRIBUTIONS, b.distro))
    if result:
        return result
    result = _cmp(rank(LIBC_TYPES, a.libc), rank(LIBC_TYPES, b.libc))
    if result:
        return result
    if a.semver is not None and b.semver is not None:
        return _cmp(b.semver, a.semver)
    if a.semver is not None:
        return -1
    if b.semver is not None:
        return 1
    return 0


package_sort_key = functools.cmp_to_key(compare_packages)


def parse_envelope(text: str, source: str) -> Tuple[Optional[str], List[Any]]:
    """Split a ``{"message"?, "result": [...]}`` response into its parts."""
    try:
        root = json.loads(text)
    except ValueError as exc:
        raise CatalogParseError(f"Failed to parse response from {source}: {exc}") from exc
    if not isinstance(root, dict) or not isinstance(root.get("result"), list):
        raise CatalogParseError(f"Failed to parse response from {source}: no result list")
    message = root.get("message")
    return (str(message) if message is not None else None), root["result"]


# ──────────────────────────────────────────────
#  Disco Client
# ──────────────────────────────────────────────

class DiscoClient:
    """
    Catalog cache plus package resolver.

    Args:
        cache_root: Directory holding cached JSON (and, later, archives)
        host:       Host facts used for the libc filter
        fetcher:    HTTP fetcher; anything with ``get_text(url)``
        api_url:    Disco API base URL
        offline:    Never touch the network
        ttl_hours:  Cache freshness window
    """

    def __init__(
        self,
        cache_root: Path,
        host: HostFacts,
        fetcher: Optional[HttpFetcher] = None,
        api_url: str = DISCO_API,
        offline: bool = False,
        ttl_hours: float = 12,
    ) -> None:
        self.cache_root = Path(cache_root)
        self.host = host
        self.fetcher = fetcher or HttpFetcher()
        self.api_url = api_url.rstrip("/")
        self.offline = offline
        self.ttl_seconds = ttl_hours * 3600

    # ================================================================
    #  CACHE
    # ================================================================

    def _read_cache(self, path: Path) -> Optional[Any]:
        """Cached JSON if present and fresh (or offline); None means fetch."""
        if not path.is_file():
            return None
        age = time.time() - path.stat().st_mtime
        if age > self.ttl_seconds:
            if not self.offline:
                logger.info("Cache file %s is stale (%.1f h old)", path.name, age / 3600)
                return None
            logger.warning("Using stale %s while offline", path.name)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read cache file %s: %s", path, exc)
            return None

    def _write_cache(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(_to_json(data), fh, indent=2)

    # ================================================================
    #  CATALOG
    # ================================================================

    def catalog_url(self) -> str:
        return (
            f"{self.api_url}/packages/?"
            "&package_type=jdk"
            "&directly_downloadable=true"
            f"&archive_type={SUPPORTED_ARCHIVE_TYPES}"
        )

    def fetch_catalog(self) -> List[PackageDescriptor]:
        """Return the package list, from cache when possible."""
        cache_file = self.cache_root / PACKAGES_FILE
        cached = self._read_cache(cache_file)
        if isinstance(cached, list):
            try:
                return [PackageDescriptor.from_dict(entry) for entry in cached]
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("Ignoring malformed %s: %s", cache_file, exc)

        if self.offline:
            raise NetworkUnavailable("Cannot download package list while offline")

        url = self.catalog_url()
        logger.info("Downloading package list")
        _, entries = parse_envelope(self.fetcher.get_text(url), url)
        try:
            packages = [PackageDescriptor.from_dict(entry) for entry in entries]
        except (TypeError, ValueError, AttributeError) as exc:
            raise CatalogParseError(f"Malformed package in response from {url}: {exc}") from exc
        if not packages:
            raise EmptyCatalog(f"No packages returned from {url}")

        self._write_cache(cache_file, [pkg.to_dict() for pkg in packages])
        logger.info("Catalog fetched: %d packages", len(packages))
        return packages

    def resolve(
        self,
        version: int = ANY_VERSION,
        os_type: Optional[OperatingSystem] = None,
        distro: Optional[Distribution] = None,
        arch: Optional[Architecture] = None,
    ) -> List[PackageDescriptor]:
        """
        Filter the catalog and rank it best first.

        ``None`` filters match anything. With ``version == -1`` only packages
        at the highest ``jdk_version`` left after the other filters remain.
        """
        matches: List[PackageDescriptor] = []
        for pkg in self.fetch_catalog():
            if version != ANY_VERSION and pkg.jdk_version != version:
                continue
            if os_type is not None and pkg.os_type != os_type:
                continue
            if distro is not None and pkg.distro != distro:
                continue
            if arch is not None:
                parch = pkg.arch
                if parch is None or (arch.key != parch.key and arch.parent != parch.key):
                    continue
            # musl builds only when the host looks like musl
            if self.host.libc.key != "musl" and pkg.libc is not None and pkg.libc.key == "musl":
                continue
            matches.append(pkg)

        if version == ANY_VERSION and matches:
            newest = max(pkg.jdk_version for pkg in matches)
            matches = [pkg for pkg in matches if pkg.jdk_version == newest]

        return sorted(matches, key=package_sort_key)

    # ================================================================
    #  PACKAGE DETAIL
    # ================================================================

    def fetch_detail(self, package: PackageDescriptor) -> PackageDetail:
        """Checksum/download metadata for *package*, cached by filename."""
        cache_file = contained_path(self.cache_root, f"{package.filename}.json")
        cached = self._read_cache(cache_file)
        if isinstance(cached, dict) and isinstance(cached.get("info"), dict):
            return PackageDetail.from_dict(cached["info"])

        if self.offline:
            raise NetworkUnavailable(f"Cannot download package info for {package.filename} while offline")

        url = f"{self.api_url}/ids/{package.id}"
        _, entries = parse_envelope(self.fetcher.get_text(url), url)
        if not entries:
            raise EmptyCatalog(f"No package info returned from {url}")
        if len(entries) != 1:
            logger.warning("Multiple package infos returned from %s", url)
        if not isinstance(entries[0], dict):
            raise CatalogParseError(f"Malformed package info from {url}")

        detail = PackageDetail.from_dict(entries[0])
        self._write_cache(cache_file, {"package": package.to_dict(), "info": detail.to_dict()})
        return detail
