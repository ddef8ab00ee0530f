"""
java_provisioner.py
===================
Ties discovery and provisioning together.

  JavaProvisioner    resolve → download → verify → extract → probe, once
  ToolchainResolver  run the locator chain, provision on total failure

Security errors (``PathTraversal``, ``ChecksumMismatch``) reach the caller
unchanged with the diagnostic trail attached. Any other failure of a
provisioning attempt becomes ``ProvisionFailed``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Mapping, Optional

from archive_extractor import ArchiveExtractor, extraction_target
from disco_api import ANY_VERSION, DiscoClient
from errors import SECURITY_ERRORS, ProvisionFailed, ProvisionerError
from http_client import HttpFetcher
from java_install import JavaInstall, dedupe_installs, sort_installs
from java_locators import (
    CacheLocator,
    DirectoryLocator,
    EnvironmentLocator,
    GradleLocator,
    LocatorChain,
)
from java_probe import JavaProbe
from jdk_downloader import JdkDownloader
from platform_types import Distribution, HostFacts
from provisioner_config import ProvisionerConfig

logger = logging.getLogger(__name__)


def _describe(version: int) -> str:
    return f"Java {version}" if version >= 0 else "Java (latest)"


# ──────────────────────────────────────────────
#  Provisioning
# ──────────────────────────────────────────────

class JavaProvisioner:
    """Downloads and unpacks a JDK from the Disco catalog."""

    def __init__(
        self,
        host: HostFacts,
        disco: DiscoClient,
        downloader: Optional[JdkDownloader] = None,
        extractor: Optional[ArchiveExtractor] = None,
        probe: Optional[JavaProbe] = None,
    ) -> None:
        self.host = host
        self.disco = disco
        self.downloader = downloader or JdkDownloader(disco)
        self.extractor = extractor or ArchiveExtractor(host)
        self.probe = probe or JavaProbe(host)
        self.log_output: List[str] = []

    def provision(self, version: int = ANY_VERSION, distro: Optional[Distribution] = None) -> JavaInstall:
        """
        Provision the best catalog package for this host.

        Args:
            version: Major version, or -1 for the newest available
            distro:  Restrict to one distribution; None accepts all
        """
        log: List[str] = []
        self.log_output = log
        wanted = _describe(version)

        try:
            packages = self.disco.resolve(version, self.host.os, distro, self.host.arch)
        except ProvisionerError as exc:
            log.append(f"Failed to resolve packages for {self.host.arch}: {exc}")
            logger.warning("Package lookup for %s failed: %s", self.host.arch, exc)
            packages = []

        if not packages:
            log.append(f"No {wanted} packages for {self.host.os}/{self.host.arch}, trying any architecture")
            try:
                packages = self.disco.resolve(version, self.host.os, distro, None)
            except ProvisionerError as exc:
                log.append(f"Failed to resolve packages: {exc}")
                raise ProvisionFailed(f"Could not find a downloadable {wanted}: {exc}", log) from exc

        if not packages:
            log.append(f"No downloadable {wanted} for {self.host.os}")
            raise ProvisionFailed(f"Could not find a downloadable {wanted}", log)

        package = packages[0]
        log.append(f"Selected {package.filename} ({package.distribution} {package.java_version})")
        logger.info("Provisioning %s from %s", wanted, package.filename)

        try:
            archive = self.downloader.download(package, log)
            target = extraction_target(self.disco.cache_root, package.filename)
            home = self.extractor.extract(archive, target, package.archive_format, log)
        except SECURITY_ERRORS as exc:
            exc.log_output = list(log)
            logger.error("Provisioning %s aborted: %s", package.filename, exc)
            raise
        except ProvisionerError as exc:
            raise ProvisionFailed(f"Failed to provision {package.filename}: {exc}", log) from exc

        install = self.probe.probe(home, version if version >= 0 else None, log)
        if install is None:
            log.append(f"Provisioned {home} is not a working Java installation")
            raise ProvisionFailed(f"Provisioned {package.filename} did not produce a usable {wanted}", log)

        logger.info("Provisioned %s", install)
        return install


# ──────────────────────────────────────────────
#  Locate-or-provision
# ──────────────────────────────────────────────

class ToolchainResolver:
    """
    Front door used by build tooling.

    Args:
        config:    Provisioner settings
        host:      Host facts; detected when omitted
        fetcher:   HTTP fetcher shared by the catalog client and downloader
        environ:   Environment for the locators (default ``os.environ``)
        user_home: Home directory for per-user locations (default ``Path.home()``)
    """

    def __init__(
        self,
        config: ProvisionerConfig,
        host: Optional[HostFacts] = None,
        fetcher: Optional[HttpFetcher] = None,
        environ: Optional[Mapping[str, str]] = None,
        user_home: Optional[Path] = None,
    ) -> None:
        self.config = config
        self.host = host or HostFacts.detect()
        self.probe = JavaProbe(self.host)

        self.chain = LocatorChain([
            EnvironmentLocator(self.probe, self.host, environ),
            GradleLocator(self.probe, self.host, config.properties, environ, user_home),
            DirectoryLocator(self.probe, self.host, config.search_paths, environ, user_home),
            CacheLocator(self.probe, config.cache_root),
        ])
        self.disco = DiscoClient(
            config.cache_root,
            self.host,
            fetcher=fetcher,
            api_url=config.api_url,
            offline=config.offline,
            ttl_hours=config.cache_ttl_hours,
        )
        self.provisioner = JavaProvisioner(self.host, self.disco, probe=self.probe)

    def locate(
        self,
        version: int = ANY_VERSION,
        distro: Optional[Distribution] = None,
        provision: bool = True,
    ) -> JavaInstall:
        """Return a local install, provisioning one if nothing is found."""
        result = self.chain.find(version)
        if result.success and result.install is not None:
            return result.install

        log = list(result.log)
        if not provision:
            raise ProvisionFailed(result.message, log)

        log.append(f"Provisioner: downloading {_describe(version)}")
        try:
            return self.provisioner.provision(version, distro)
        except ProvisionerError as exc:
            exc.log_output = log + ["  " + line for line in exc.log_output]
            raise

    def list_installs(self, version: int = ANY_VERSION) -> List[JavaInstall]:
        """Every install any locator can see, de-duplicated and best first."""
        return sort_installs(dedupe_installs(self.chain.find_all(version)))
