"""
platform_types.py
=================
Closed variant tables for everything the Disco catalog classifies a
package by, plus detection of the current host.

Tables:
  - OPERATING_SYSTEMS  (windows, macos, linux, ...)
  - ARCHITECTURES      (x64, aarch64, amd64 → x64, ...)
  - ARCHIVE_FORMATS    (zip, tar, tar.gz, tgz, ...)
  - DISTRIBUTIONS      (microsoft, temurin, zulu, ...), in preference order
  - LIBC_TYPES         (glibc, libc, musl, c_std_lib)

Each variant has a canonical lowercase ``key`` (the value the catalog
uses) and a tuple of ``names`` matched against host- or API-reported
strings. Table order is the preference order used when ranking packages.

Host facts are detected once by ``HostFacts.detect()`` and passed around
explicitly, so tests can hand in synthetic ones.
"""

from __future__ import annotations

import logging
import platform
import subprocess
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
#  Variant Dataclasses
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class OperatingSystem:
    key: str
    names: Tuple[str, ...] = ()
    exe_suffix: str = ""

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Architecture:
    """
    A CPU architecture as named by the catalog.

    ``parent`` is the key of the broader variant this one is a spelling of
    (amd64 → x64). A host may use packages built for its own key or for
    its parent's key.
    """

    key: str
    names: Tuple[str, ...] = ()
    parent: Optional[str] = None
    is_64bit: bool = False
    is_arm: bool = False

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class ArchiveFormat:
    key: str
    extractable: bool = False
    gzipped: bool = False

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Distribution:
    key: str
    description: str = ""

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class LibC:
    key: str

    def __str__(self) -> str:
        return self.key


V = TypeVar("V")


def _table(*variants: V) -> Dict[str, V]:
    return {v.key: v for v in variants}  # type: ignore[attr-defined]


# ──────────────────────────────────────────────
#  Operating Systems
# ──────────────────────────────────────────────

OPERATING_SYSTEMS: Dict[str, OperatingSystem] = _table(
    OperatingSystem("windows", ("windows", "win"), exe_suffix=".exe"),
    OperatingSystem("macos", ("macos", "mac", "osx", "darwin")),
    OperatingSystem("linux", ("linux", "unix")),
    OperatingSystem("alpine", ("alpine", "alpine_linux")),
    OperatingSystem("musl", ("musl", "linux_musl")),
    OperatingSystem("aix", ("aix",)),
    OperatingSystem("solaris", ("solaris", "sunos")),
    OperatingSystem("qnx", ("qnx",)),
    OperatingSystem("unknown"),
)

WINDOWS = OPERATING_SYSTEMS["windows"]
MACOS = OPERATING_SYSTEMS["macos"]
LINUX = OPERATING_SYSTEMS["linux"]

# OS families on which libc detection runs external tools
_LINUX_FAMILY = ("linux", "alpine")


# ──────────────────────────────────────────────
#  Architectures
# ──────────────────────────────────────────────

ARCHITECTURES: Dict[str, Architecture] = _table(
    Architecture("x86", ("x86", "x32", "286")),
    Architecture("x64", ("x64",), is_64bit=True),
    Architecture("aarch32", ("aarch32",), is_arm=True),
    Architecture("aarch64", ("aarch64",), is_64bit=True, is_arm=True),
    Architecture("ppc", ("ppc",)),
    Architecture("ppc64", ("ppc64",), is_64bit=True),
    Architecture("amd64", ("amd64", "_amd64"), parent="x64", is_64bit=True),
    Architecture("arm", ("arm",), is_arm=True),
    Architecture("arm32", ("arm32", "aarch32", "armv6", "armv7l", "armv7"), is_arm=True),
    # Python reports "arm64" on Apple silicon and Windows on ARM
    Architecture("arm64", ("arm64", "armv8"), parent="aarch64", is_64bit=True, is_arm=True),
    Architecture("mips", ("mips",)),
    Architecture("ppc64el", ("ppc64el",), parent="ppc64", is_64bit=True),
    Architecture("ppc64le", ("ppc64le",), parent="ppc64"),
    Architecture("riscv64", ("riscv64", "risc-v", "riscv"), is_64bit=True),
    Architecture("s390", ("s390",)),
    Architecture("s390x", ("s390x",)),
    Architecture("sparc", ("sparc",)),
    Architecture("sparcv9", ("sparcv9",)),
    Architecture("x86-64", ("x86-64", "x86_64", "x86lx64"), parent="x64", is_64bit=True),
    Architecture("x86-32", ("x86-32", "x86_32", "x86lx32"), parent="x86"),
    Architecture("i386", ("i386", "i396", "386"), parent="x86"),
    Architecture("i486", ("i486", "i496", "486"), parent="x86"),
    Architecture("i586", ("i586", "i596", "586"), parent="x86"),
    Architecture("i686", ("i686", "i696", "686"), parent="x86"),
    Architecture("unknown"),
)

UNKNOWN_ARCH = ARCHITECTURES["unknown"]


# ──────────────────────────────────────────────
#  Archive Formats
# ──────────────────────────────────────────────

ARCHIVE_FORMATS: Dict[str, ArchiveFormat] = _table(
    ArchiveFormat("apk"),
    ArchiveFormat("cab"),
    ArchiveFormat("deb"),
    ArchiveFormat("dmg"),
    ArchiveFormat("exe"),
    ArchiveFormat("msi"),
    ArchiveFormat("pkg"),
    ArchiveFormat("rpm"),
    ArchiveFormat("tar", extractable=True),
    ArchiveFormat("tar.gz", extractable=True, gzipped=True),
    ArchiveFormat("tgz", extractable=True, gzipped=True),
    ArchiveFormat("zip", extractable=True),
)

ZIP = ARCHIVE_FORMATS["zip"]
TAR = ARCHIVE_FORMATS["tar"]
TAR_GZ = ARCHIVE_FORMATS["tar.gz"]
TGZ = ARCHIVE_FORMATS["tgz"]


# ──────────────────────────────────────────────
#  Distributions (preference order)
# ──────────────────────────────────────────────

DISTRIBUTIONS: Dict[str, Distribution] = _table(
    # Preferred
    Distribution("microsoft", "Used by Minecraft"),
    Distribution("temurin", "Eclipse Adoptium build of OpenJDK"),
    Distribution("zulu", "Azul, has macOS ARM builds for Java 8"),
    # Highlights from the others
    Distribution("jetbrains", "DCEVM, swing optimisations"),
    Distribution("corretto", "Amazon, container/cloud optimisations"),
    Distribution("oracle_open_jdk", "Vanilla OpenJDK"),
    # Everything else
    Distribution("debian"),
    Distribution("bisheng"),
    Distribution("dragonwell"),
    Distribution("kona"),
    Distribution("liberica"),
    Distribution("liberica_native"),
    Distribution("mandrel"),
    Distribution("openlogic"),
    Distribution("redhat"),
    Distribution("sap_machine"),
    # Restrictive licensing
    Distribution("zulu_prime"),
    Distribution("oracle"),
    Distribution("graalvm"),
    # GraalVM builds
    Distribution("graalvm_community"),
    Distribution("gluon_graalvm"),
    # Unmaintained
    Distribution("aoj", "Predecessor of Temurin"),
    Distribution("ojdk_build"),
    Distribution("trava"),
    Distribution("graalvm_ce8"),
    Distribution("graalvm_ce11"),
    Distribution("graalvm_ce17"),
    Distribution("graalvm_ce19"),
    Distribution("graalvm_ce16"),
    # OpenJ9
    Distribution("semeru"),
    Distribution("aoj_openj9"),
    Distribution("semeru_certified"),
)


# ──────────────────────────────────────────────
#  C Libraries
# ──────────────────────────────────────────────

LIBC_TYPES: Dict[str, LibC] = _table(
    LibC("glibc"),
    LibC("libc"),
    LibC("musl"),
    LibC("c_std_lib"),
)

GLIBC = LIBC_TYPES["glibc"]
MUSL = LIBC_TYPES["musl"]


# ──────────────────────────────────────────────
#  Lookup Functions
# ──────────────────────────────────────────────

def get_os(key: Optional[str]) -> Optional[OperatingSystem]:
    """Look up an OS by catalog key or alias (case-insensitive)."""
    if not key:
        return None
    return _by_name(OPERATING_SYSTEMS.values(), key)


def get_arch(key: Optional[str]) -> Optional[Architecture]:
    """Look up an architecture by its canonical catalog key."""
    if not key:
        return None
    return ARCHITECTURES.get(key.lower())


def arch_by_name(name: str) -> Architecture:
    """Map a host-reported machine string to a variant, or ``unknown``."""
    return _by_name(ARCHITECTURES.values(), name) or UNKNOWN_ARCH


def get_archive_format(key: Optional[str]) -> Optional[ArchiveFormat]:
    if not key:
        return None
    return ARCHIVE_FORMATS.get(key.lower())


def archive_format_by_filename(filename: str) -> Optional[ArchiveFormat]:
    """Return the first format (table order) whose suffix ends *filename*."""
    name = filename.lower()
    for fmt in ARCHIVE_FORMATS.values():
        if name.endswith("." + fmt.key):
            return fmt
    return None


def strip_archive_suffix(filename: str) -> str:
    """``jdk-22_linux.tar.gz`` → ``jdk-22_linux``; other formats lose the last extension."""
    if filename.endswith(".tar.gz"):
        return filename[: -len(".tar.gz")]
    stem, dot, _ = filename.rpartition(".")
    return stem if dot else filename


def get_distribution(key: Optional[str]) -> Optional[Distribution]:
    if not key:
        return None
    return DISTRIBUTIONS.get(key.lower())


def get_libc(key: Optional[str]) -> Optional[LibC]:
    if not key:
        return None
    return LIBC_TYPES.get(key.lower())


def rank(table: Dict[str, V], variant: Optional[V]) -> int:
    """Position of *variant* in *table*; unknown/None sorts after everything."""
    if variant is None:
        return len(table)
    keys = list(table)
    key = variant.key  # type: ignore[attr-defined]
    return keys.index(key) if key in table else len(table)


def _by_name(variants, name: str):
    lowered = name.strip().lower()
    for variant in variants:
        if lowered == variant.key or lowered in variant.names:
            return variant
    return None


# ──────────────────────────────────────────────
#  Host Detection
# ──────────────────────────────────────────────

CommandRunner = Callable[[Sequence[str]], Tuple[int, List[str]]]

_SYSTEM_MAP: Dict[str, str] = {
    "Windows": "windows",
    "Darwin": "macos",
    "Linux": "linux",
    "AIX": "aix",
    "SunOS": "solaris",
}


def run_command(command: Sequence[str]) -> Tuple[int, List[str]]:
    """Run *command*, returning ``(exit_code, output_lines)``; never raises."""
    try:
        result = subprocess.run(list(command), capture_output=True, text=True)
    except OSError as exc:
        return -1, [str(exc)]
    output = (result.stdout or "") + (result.stderr or "")
    return result.returncode, output.splitlines() or [""]


def detect_libc(os_variant: OperatingSystem, runner: CommandRunner = run_command) -> LibC:
    """
    Best-effort libc detection.

    musl is only reported when ``getconf GNU_LIBC_VERSION`` or
    ``ldd --version`` mention it. Anything else, including both tools
    failing, counts as glibc. Non-Linux hosts are always glibc.
    """
    if os_variant.key not in _LINUX_FAMILY:
        return GLIBC

    for command in (["getconf", "GNU_LIBC_VERSION"], ["ldd", "--version"]):
        code, lines = runner(command)
        if code != 0:
            logger.warning("Failed to run `%s`: %s", " ".join(command), lines[0] if lines else "")
            continue
        if any("musl" in line.lower() for line in lines):
            return MUSL
    return GLIBC


@dataclass(frozen=True)
class HostFacts:
    """The platform the pipeline is resolving runtimes for."""

    os: OperatingSystem
    arch: Architecture
    libc: LibC

    @property
    def exe_suffix(self) -> str:
        return self.os.exe_suffix

    @property
    def java_executable(self) -> str:
        """Relative path of the runtime executable inside a Java home."""
        return "bin/java" + self.os.exe_suffix

    @classmethod
    def detect(
        cls,
        system: Optional[str] = None,
        machine: Optional[str] = None,
        runner: CommandRunner = run_command,
    ) -> "HostFacts":
        system = system if system is not None else platform.system()
        machine = machine if machine is not None else platform.machine()
        os_variant = OPERATING_SYSTEMS[_SYSTEM_MAP.get(system, "unknown")]
        arch = arch_by_name(machine)
        libc = detect_libc(os_variant, runner)
        logger.debug("Host facts: os=%s arch=%s libc=%s", os_variant, arch, libc)
        return cls(os=os_variant, arch=arch, libc=libc)


__all__ = [
    "OperatingSystem",
    "Architecture",
    "ArchiveFormat",
    "Distribution",
    "LibC",
    "HostFacts",
    "OPERATING_SYSTEMS",
    "ARCHITECTURES",
    "ARCHIVE_FORMATS",
    "DISTRIBUTIONS",
    "LIBC_TYPES",
    "get_os",
    "get_arch",
    "arch_by_name",
    "get_archive_format",
    "archive_format_by_filename",
    "strip_archive_suffix",
    "get_distribution",
    "get_libc",
    "rank",
    "detect_libc",
    "run_command",
]
