"""
java_locators.py
================
Discovery of Java installs already present on the machine.

Every locator offers the same three members and nothing else:

  - ``find(version)``      → ``LocateResult`` (never raises for "not found")
  - ``find_all(version)``  → list of ``JavaInstall`` (possibly empty)
  - ``log_output``         → diagnostic lines from the last call

``version`` is a major version, or a negative number for "any".

Locators, in chain priority:
  EnvironmentLocator  – JAVA_HOME_17_X64, JAVA_HOME_17, JAVA_HOME, JAVA_HOME*
  GradleLocator       – Gradle toolchain properties, JDK<n> vars, ~/.gradle/jdks
  DirectoryLocator    – OS install dirs and version-manager roots
  CacheLocator        – JDKs previously provisioned into the cache root

Probing is shared through a ``JavaProbe`` each locator is given.
"""

from __future__ import annotations

import logging
import os
import re
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Sequence, Tuple

from java_install import JavaInstall
from java_probe import JavaProbe
from platform_types import HostFacts

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
#  Result Object
# ──────────────────────────────────────────────

@dataclass
class LocateResult:
    """Outcome of a ``find``; ``log`` is the diagnostic trail either way."""

    success: bool
    message: str
    install: Optional[JavaInstall] = None
    log: List[str] = field(default_factory=list)

    @classmethod
    def found(cls, install: JavaInstall, log: Optional[List[str]] = None) -> "LocateResult":
        return cls(success=True, message=f"Found {install}", install=install, log=list(log or []))

    @classmethod
    def not_found(cls, message: str, log: Optional[List[str]] = None) -> "LocateResult":
        return cls(success=False, message=message, log=list(log or []))


def _wanted(version: int) -> Optional[int]:
    return version if version >= 0 else None


def _child_dirs(directory: Path) -> List[Path]:
    try:
        return sorted(p for p in directory.iterdir() if p.is_dir())
    except OSError as exc:
        logger.debug("Cannot list %s: %s", directory, exc)
        return []


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# ──────────────────────────────────────────────
#  Environment Variables
# ──────────────────────────────────────────────

class EnvironmentLocator:
    """Looks at JAVA_HOME and its versioned/arch-suffixed variants."""

    name = "Environment"
    PREFIX = "JAVA_HOME"

    def __init__(
        self,
        probe: JavaProbe,
        host: HostFacts,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.probe = probe
        self.host = host
        self.environ = environ if environ is not None else os.environ
        self.log_output: List[str] = []

    def arch_suffix(self) -> str:
        arch = self.host.arch
        if arch.is_64bit and arch.is_arm:
            return "_arm64"
        if arch.is_64bit:
            return "_X64"
        return ""

    def candidate_keys(self, version: int) -> List[str]:
        """Variable names to try, best first, without duplicates."""
        keys: List[str] = []
        if version >= 0:
            keys.append(f"{self.PREFIX}_{version}{self.arch_suffix()}")
            keys.append(f"{self.PREFIX}_{version}")
        keys.append(self.PREFIX)
        keys.extend(sorted(k for k in self.environ if k.startswith(self.PREFIX)))

        unique: List[str] = []
        for key in keys:
            if key not in unique:
                unique.append(key)
        return unique

    def _candidates(self, version: int) -> Iterator[Tuple[str, str]]:
        for key in self.candidate_keys(version):
            value = self.environ.get(key, "")
            if not value:
                self.log_output.append(f"${key} is not set")
                continue
            self.log_output.append(f"${key} = {value}")
            yield key, value

    def find(self, version: int) -> LocateResult:
        self.log_output = []
        for _, value in self._candidates(version):
            install = self.probe.probe(value, _wanted(version), self.log_output)
            if install:
                return LocateResult.found(install, self.log_output)
        return LocateResult.not_found(
            f"No usable Java in {self.PREFIX} environment variables", self.log_output
        )

    def find_all(self, version: int) -> List[JavaInstall]:
        self.log_output = []
        found: List[JavaInstall] = []
        for _, value in self._candidates(version):
            install = self.probe.probe(value, _wanted(version), self.log_output)
            if install:
                found.append(install)
        return found


# ──────────────────────────────────────────────
#  Gradle Toolchain Conventions
# ──────────────────────────────────────────────

FROM_ENV_PROPERTY = "org.gradle.java.installations.fromEnv"
PATHS_PROPERTY = "org.gradle.java.installations.paths"
USER_HOME_PROPERTY = "gradle.user.home"

# Marker files Gradle writes once a provisioned JDK is complete
READY_MARKERS = (".ready", "provisioned.ok")

_JDK_ENV_RE = re.compile(r"JDK\d\d*")


class GradleLocator:
    """
    Finds JDKs the way Gradle's toolchain support does.

    Sources, in order: env vars named by ``fromEnv``, directories listed in
    ``paths``, ``JDK<n>`` env vars, and auto-provisioned JDKs in
    ``<gradle user home>/jdks`` carrying a ready marker.
    """

    name = "Gradle"

    def __init__(
        self,
        probe: JavaProbe,
        host: HostFacts,
        properties: Optional[Mapping[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        user_home: Optional[Path] = None,
    ) -> None:
        self.probe = probe
        self.host = host
        self.properties = dict(properties or {})
        self.environ = environ if environ is not None else os.environ
        self.user_home = Path(user_home) if user_home else Path.home()
        self.log_output: List[str] = []

    def gradle_user_home(self) -> Path:
        configured = self.properties.get(USER_HOME_PROPERTY) or self.environ.get("GRADLE_USER_HOME")
        if configured:
            return Path(configured)
        return self.user_home / ".gradle"

    def _is_ready(self, directory: Path) -> bool:
        return any((directory / marker).exists() for marker in READY_MARKERS)

    def _bundle_home(self, directory: Path) -> Path:
        # macOS JDKs keep the actual home inside the app bundle
        if self.host.os.key != "macos":
            return directory
        if (directory / "Contents" / "Home").is_dir():
            return directory / "Contents" / "Home"
        for child in _child_dirs(directory):
            if (child / "Contents" / "Home").is_dir():
                return child / "Contents" / "Home"
        return directory

    def provisioned_dirs(self) -> List[Path]:
        jdks = self.gradle_user_home() / "jdks"
        if not jdks.is_dir():
            self.log_output.append(f"{jdks} does not exist")
            return []

        ready: List[Path] = []
        for child in _child_dirs(jdks):
            if self._is_ready(child):
                ready.append(self._bundle_home(child))
            for nested in _child_dirs(child):
                if self._is_ready(nested):
                    ready.append(self._bundle_home(nested))
        return ready

    def candidates(self) -> List[Path]:
        paths: List[Path] = []
        for env_name in _split_list(self.properties.get(FROM_ENV_PROPERTY, "")):
            value = self.environ.get(env_name, "")
            if value:
                self.log_output.append(f"${env_name} = {value}")
                paths.append(Path(value))
            else:
                self.log_output.append(f"${env_name} is not set")

        paths.extend(Path(p) for p in _split_list(self.properties.get(PATHS_PROPERTY, "")))

        for key in sorted(self.environ):
            if _JDK_ENV_RE.fullmatch(key) and self.environ[key]:
                self.log_output.append(f"${key} = {self.environ[key]}")
                paths.append(Path(self.environ[key]))

        paths.extend(self.provisioned_dirs())
        return paths

    def find(self, version: int) -> LocateResult:
        self.log_output = []
        for path in self.candidates():
            install = self.probe.probe(path, _wanted(version), self.log_output)
            if install:
                return LocateResult.found(install, self.log_output)
        return LocateResult.not_found("No usable Java in Gradle toolchain locations", self.log_output)

    def find_all(self, version: int) -> List[JavaInstall]:
        self.log_output = []
        found: List[JavaInstall] = []
        for path in self.candidates():
            install = self.probe.probe(path, _wanted(version), self.log_output)
            if install:
                found.append(install)
        return found


# ──────────────────────────────────────────────
#  Well-known Directories
# ──────────────────────────────────────────────

class DirectoryLocator:
    """Scans explicit roots, or the usual install locations for the host OS."""

    name = "Directory"

    def __init__(
        self,
        probe: JavaProbe,
        host: HostFacts,
        search_paths: Optional[Sequence[str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        user_home: Optional[Path] = None,
    ) -> None:
        self.probe = probe
        self.host = host
        self.search_paths = [Path(p) for p in (search_paths or [])]
        self.environ = environ if environ is not None else os.environ
        self.user_home = Path(user_home) if user_home else Path.home()
        self.log_output: List[str] = []

    def default_roots(self) -> List[Path]:
        """Usual JDK parent directories for this host, existing or not."""
        roots: List[Path] = []
        home = self.user_home
        os_key = self.host.os.key

        if os_key == "windows":
            for letter in string.ascii_uppercase:
                drive = Path(f"{letter}:/")
                if not drive.exists():
                    continue
                roots.append(drive / "Program Files" / "Java")
                if self.host.arch.is_64bit:
                    roots.append(drive / "Program Files (x86)" / "Java")
        elif os_key == "macos":
            roots.append(Path("/Library/Java/JavaVirtualMachines"))
        else:
            roots.extend(Path(p) for p in (
                "/usr/java", "/usr/lib/jvm", "/usr/lib64/jvm", "/usr/local/",
                "/opt", "/app/jdk", "/opt/jdk", "/opt/jdks",
            ))

        # IntelliJ downloads
        if os_key == "macos":
            roots.append(home / "Library" / "Java" / "JavaVirtualMachines")
        else:
            roots.append(home / ".jdks")

        # Version managers
        roots.append(home / ".jabba" / "jdks")
        if self.environ.get("JABBA_HOME"):
            roots.append(Path(self.environ["JABBA_HOME"]) / "jdks")
        roots.append(home / ".sdkman" / "candidates" / "java")
        roots.append(home / ".asdf" / "installs" / "java")
        if self.environ.get("ASDF_DATA_DIR"):
            roots.append(Path(self.environ["ASDF_DATA_DIR"]) / "installs" / "java")
        return roots

    def _java_home(self, directory: Path) -> Optional[Path]:
        if (directory / self.host.java_executable).is_file():
            return directory
        if self.host.os.key == "macos":
            bundle = directory / "Contents" / "Home"
            if (bundle / self.host.java_executable).is_file():
                return bundle
        return None

    def candidates(self) -> List[Path]:
        roots = self.search_paths or self.default_roots()
        homes: List[Path] = []
        for root in roots:
            if not root.is_dir():
                continue
            own = self._java_home(root)
            if own:
                homes.append(own)
                continue
            for child in _child_dirs(root):
                found = self._java_home(child)
                if found:
                    homes.append(found)
        if not homes:
            self.log_output.append("No Java homes under " + ", ".join(str(r) for r in roots))
        return homes

    def find(self, version: int) -> LocateResult:
        self.log_output = []
        for path in self.candidates():
            install = self.probe.probe(path, _wanted(version), self.log_output)
            if install:
                return LocateResult.found(install, self.log_output)
        return LocateResult.not_found("No usable Java in well-known directories", self.log_output)

    def find_all(self, version: int) -> List[JavaInstall]:
        self.log_output = []
        found: List[JavaInstall] = []
        for path in self.candidates():
            install = self.probe.probe(path, _wanted(version), self.log_output)
            if install:
                found.append(install)
        return found


# ──────────────────────────────────────────────
#  Provisioned Cache
# ──────────────────────────────────────────────

class CacheLocator:
    """JDKs extracted into the managed cache root by earlier provisioning."""

    name = "Cache"

    def __init__(self, probe: JavaProbe, cache_root: Path) -> None:
        self.probe = probe
        self.cache_root = Path(cache_root)
        self.log_output: List[str] = []

    def candidates(self) -> List[Path]:
        if not self.cache_root.is_dir():
            self.log_output.append(
                f"Java Provisioner has not provisioned any Java installations ({self.cache_root} does not exist)"
            )
            return []
        return _child_dirs(self.cache_root)

    def find(self, version: int) -> LocateResult:
        self.log_output = []
        for path in self.candidates():
            install = self.probe.probe(path, _wanted(version), self.log_output)
            if install:
                return LocateResult.found(install, self.log_output)
        return LocateResult.not_found("No usable Java in the provisioning cache", self.log_output)

    def find_all(self, version: int) -> List[JavaInstall]:
        self.log_output = []
        found: List[JavaInstall] = []
        for path in self.candidates():
            install = self.probe.probe(path, _wanted(version), self.log_output)
            if install:
                found.append(install)
        return found


# ──────────────────────────────────────────────
#  Chain
# ──────────────────────────────────────────────

class LocatorChain:
    """Tries locators in priority order; ``find`` stops at the first hit."""

    name = "Chain"

    def __init__(self, locators: Sequence) -> None:
        self.locators = list(locators)
        self.log_output: List[str] = []

    def find(self, version: int) -> LocateResult:
        self.log_output = []
        for locator in self.locators:
            result = locator.find(version)
            self.log_output.append(f"{locator.name}: {result.message}")
            self.log_output.extend("  " + line for line in result.log)
            if result.success:
                logger.info("%s locator found %s", locator.name, result.install)
                return LocateResult.found(result.install, self.log_output)
        wanted = f"Java {version}" if version >= 0 else "Java"
        return LocateResult.not_found(f"No {wanted} installation found", self.log_output)

    def find_all(self, version: int) -> List[JavaInstall]:
        """Union of every locator's results, unsorted and possibly with duplicates."""
        self.log_output = []
        found: List[JavaInstall] = []
        for locator in self.locators:
            installs = locator.find_all(version)
            self.log_output.append(f"{locator.name}: {len(installs)} found")
            self.log_output.extend("  " + line for line in locator.log_output)
            found.extend(installs)
        return found
