"""
java_install.py
===============
What a probed Java home looks like, and how installs are ranked.

  - ``JavaInstall``   transient record produced by probing a directory
  - ``JavaVersion``   parsed Java version string ("17.0.9+9", "1.8.0_392", "21-ea")
  - ``compare_installs`` / ``sort_installs``   total order used for listings
  - ``dedupe_installs``  drop records pointing at the same resolved home
"""

from __future__ import annotations

import functools
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

# Vendors ahead of everything else, best first
VENDOR_ORDER = [
    re.compile(r"microsoft", re.IGNORECASE),
    re.compile(r"openjdk", re.IGNORECASE),
    re.compile(r"temurin|adoptium|eclipse foundation", re.IGNORECASE),
    re.compile(r"azul systems", re.IGNORECASE),
]

_VERSION_RE = re.compile(
    r"^(?P<numbers>\d+(?:\.\d+)*)"
    r"(?:_(?P<update>\d+))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+?))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)

Identifier = Tuple[int, Union[int, str]]


def _identifiers(text: Optional[str]) -> Tuple[Identifier, ...]:
    # Numeric identifiers sort before alphanumeric ones
    if not text:
        return ()
    parts = re.split(r"[.-]", text)
    return tuple((0, int(p)) if p.isdigit() else (1, p) for p in parts if p)


# ──────────────────────────────────────────────
#  JavaVersion
# ──────────────────────────────────────────────

@dataclass(frozen=True, order=True)
class JavaVersion:
    """
    A parsed Java version, ordered like a semantic version.

    Trailing zero components are ignored (``17`` == ``17.0.0``), a release
    sorts after its pre-releases, and the build number breaks ties.
    """

    numbers: Tuple[int, ...]
    is_release: bool = True
    pre: Tuple[Identifier, ...] = ()
    build: Tuple[Identifier, ...] = ()
    raw: str = field(default="", compare=False)

    @property
    def major(self) -> int:
        if not self.numbers:
            return 0
        # Legacy scheme: 1.8.0_392 is Java 8
        if self.numbers[0] == 1 and len(self.numbers) > 1:
            return self.numbers[1]
        return self.numbers[0]

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["JavaVersion"]:
        """Return the parsed version, or None if *text* isn't version-shaped."""
        if not text:
            return None
        match = _VERSION_RE.match(text.strip())
        if not match:
            return None

        numbers = [int(n) for n in match.group("numbers").split(".")]
        if match.group("update"):
            numbers.append(int(match.group("update")))
        while len(numbers) > 1 and numbers[-1] == 0:
            numbers.pop()

        pre = match.group("pre")
        return cls(
            numbers=tuple(numbers),
            is_release=not pre,
            pre=_identifiers(pre),
            build=_identifiers(match.group("build")),
            raw=text,
        )

    def __str__(self) -> str:
        return self.raw or ".".join(str(n) for n in self.numbers)


# ──────────────────────────────────────────────
#  JavaInstall
# ──────────────────────────────────────────────

@dataclass
class JavaInstall:
    """A Java home that answered a probe."""

    home: Path
    is_jdk: bool
    version: int                 # Major version (8, 17, 21)
    full_version: str = ""       # e.g. "17.0.9"
    vendor: str = ""             # e.g. "Eclipse Adoptium"

    @property
    def parsed_version(self) -> Optional[JavaVersion]:
        return JavaVersion.parse(self.full_version)

    def java_binary(self, exe_suffix: str = "") -> Path:
        return self.home / "bin" / ("java" + exe_suffix)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "home": str(self.home),
            "is_jdk": self.is_jdk,
            "version": self.version,
            "full_version": self.full_version,
            "vendor": self.vendor,
        }

    def __str__(self) -> str:
        kind = "JDK" if self.is_jdk else "JRE"
        vendor = f" ({self.vendor})" if self.vendor else ""
        return f"{kind} {self.full_version or self.version}{vendor} at {self.home}"


# ──────────────────────────────────────────────
#  Ordering
# ──────────────────────────────────────────────

def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def vendor_rank(vendor: str) -> Optional[int]:
    """Index of the first preference pattern matching *vendor*, else None."""
    for index, pattern in enumerate(VENDOR_ORDER):
        if pattern.search(vendor):
            return index
    return None


def _compare_vendor(a: str, b: str) -> int:
    if a and not b:
        return -1
    if b and not a:
        return 1
    if not a and not b:
        return 0

    rank_a, rank_b = vendor_rank(a), vendor_rank(b)
    if rank_a is None and rank_b is None:
        return _cmp(a, b)
    if rank_a is None:
        return 1
    if rank_b is None:
        return -1
    return _cmp(rank_a, rank_b)


def _compare_version(a: str, b: str) -> int:
    if a and not b:
        return -1
    if b and not a:
        return 1
    if not a and not b:
        return 0

    parsed_a, parsed_b = JavaVersion.parse(a), JavaVersion.parse(b)
    if parsed_a is not None and parsed_b is None:
        return -1
    if parsed_b is not None and parsed_a is None:
        return 1
    if parsed_a is None and parsed_b is None:
        return _cmp(a, b)
    return _cmp(parsed_b, parsed_a)


def compare_installs(a: JavaInstall, b: JavaInstall) -> int:
    """
    Three-way comparison; negative means *a* is preferred.

    JDKs before JREs, newer major first, preferred vendors first, then the
    newest full version.
    """
    if a.is_jdk != b.is_jdk:
        return -1 if a.is_jdk else 1
    if a.version != b.version:
        return _cmp(b.version, a.version)
    result = _compare_vendor(a.vendor, b.vendor)
    if result:
        return result
    return _compare_version(a.full_version, b.full_version)


install_sort_key = functools.cmp_to_key(compare_installs)


def sort_installs(installs: Iterable[JavaInstall]) -> List[JavaInstall]:
    return sorted(installs, key=install_sort_key)


def dedupe_installs(installs: Iterable[JavaInstall]) -> List[JavaInstall]:
    """Keep the first record for each resolved home directory."""
    seen: set = set()
    unique: List[JavaInstall] = []
    for install in installs:
        key = os.path.normcase(os.path.realpath(install.home))
        if key in seen:
            continue
        seen.add(key)
        unique.append(install)
    return unique
