"""
java_probe.py
=============
Run a candidate Java home's executable out-of-process and turn its
reported system properties into a ``JavaInstall``.

The probe never raises for a bad candidate: a missing executable, a
non-zero exit, or output without the expected properties all produce
``None`` and a line in the caller's diagnostic log.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Union

from java_install import JavaInstall, JavaVersion
from platform_types import HostFacts

logger = logging.getLogger(__name__)

PROBE_ARGS = ["-XshowSettings:properties", "-version"]

# "    java.version = 17.0.9"
_PROPERTY_RE = re.compile(r"^\s+([\w.]+) = (.*)$")


def parse_properties(output: str) -> Dict[str, str]:
    """Collect ``key = value`` lines from ``-XshowSettings:properties`` output."""
    props: Dict[str, str] = {}
    for line in output.splitlines():
        match = _PROPERTY_RE.match(line)
        if match:
            props.setdefault(match.group(1), match.group(2).strip())
    return props


def major_from_spec_version(spec_version: str) -> Optional[int]:
    """``"1.8"`` → 8, ``"17"`` → 17."""
    parts = spec_version.strip().split(".")
    try:
        if parts[0] == "1" and len(parts) > 1:
            return int(parts[1])
        return int(parts[0])
    except ValueError:
        return None


class JavaProbe:
    """Probes Java homes for the given host."""

    def __init__(self, host: HostFacts) -> None:
        self.host = host

    def java_binary(self, home: Path) -> Path:
        return home / self.host.java_executable

    def probe(
        self,
        home: Union[str, Path],
        version: Optional[int] = None,
        log: Optional[List[str]] = None,
    ) -> Optional[JavaInstall]:
        """
        Probe *home* and return its install record.

        Args:
            home:    Candidate Java home directory
            version: Required major version; ``None`` accepts any
            log:     Diagnostic trail to append to
        """
        home = Path(home)
        if log is None:
            log = []

        binary = self.java_binary(home)
        if not binary.is_file():
            log.append(f"  No {self.host.java_executable} in {home}")
            return None

        log.append(f"  Probing {home}")
        try:
            result = subprocess.run(
                [str(binary), *PROBE_ARGS],
                capture_output=True, text=True,
            )
        except OSError as exc:
            log.append(f"  Failed to run {binary}: {exc}")
            logger.debug("Probe of %s failed: %s", binary, exc)
            return None

        if result.returncode != 0:
            log.append(f"  {binary} exited with code {result.returncode}")
            return None

        # Properties go to stderr; some launchers print them to stdout
        props = parse_properties((result.stderr or "") + "\n" + (result.stdout or ""))
        full_version = props.get("java.version", "")
        major = major_from_spec_version(props.get("java.specification.version", ""))
        if major is None:
            parsed = JavaVersion.parse(full_version)
            major = parsed.major if parsed else None
        if major is None:
            log.append(f"  Could not read java version from {binary} output")
            return None

        if version is not None and major != version:
            log.append(f"  Wrong version: Was {major} wanted {version}")
            return None

        install = JavaInstall(
            home=home,
            is_jdk=(home / "bin" / ("javac" + self.host.exe_suffix)).is_file(),
            version=major,
            full_version=full_version,
            vendor=props.get("java.vendor", ""),
        )
        log.append(f"  Found {install}")
        logger.debug("Probed %s", install)
        return install
