#!/usr/bin/env python3
"""
main.py – JDK Provisioner CLI
=============================
Find a Java installation for the requested version, downloading one
from the foojay Disco catalog when none is installed.

    jdk-provisioner --version 17            print the Java home for Java 17
    jdk-provisioner --all                   list every install found
    jdk-provisioner --version 21 --distro temurin --offline
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from disco_api import ANY_VERSION
from errors import ProvisionerError
from java_provisioner import ToolchainResolver
from platform_types import DISTRIBUTIONS, get_distribution
from provisioner_config import ProvisionerConfig

logger = logging.getLogger("jdk_provisioner")


# ──────────────────────────────────────────────
#  Logging
# ──────────────────────────────────────────────

def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


# ──────────────────────────────────────────────
#  CLI
# ──────────────────────────────────────────────

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Locate or provision a Java installation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--version", type=int, default=ANY_VERSION,
                   help="Major Java version (default: newest)")
    p.add_argument("--all", action="store_true", help="List every installation found")
    p.add_argument("--distro", default=None, choices=sorted(DISTRIBUTIONS),
                   metavar="KEY", help="Only provision this distribution")
    p.add_argument("--cache", default=None, help="Cache directory override")
    p.add_argument("--offline", action="store_true", help="Never use the network")
    p.add_argument("--config", default="config.json", help="Path to config.json")
    p.add_argument("--log-file", default=None, help="Also write logs to this file")
    p.add_argument("--verbose", action="store_true", help="Debug logging and diagnostic trail")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    config = ProvisionerConfig.load(args.config)
    if args.cache:
        config.cache_dir = args.cache
    if args.offline:
        config.offline = True

    resolver = ToolchainResolver(config)

    if args.all:
        installs = resolver.list_installs(args.version)
        if args.verbose:
            for line in resolver.chain.log_output:
                print(line, file=sys.stderr)
        for install in installs:
            print(install)
        return 0 if installs else 1

    try:
        install = resolver.locate(args.version, get_distribution(args.distro))
    except ProvisionerError as exc:
        logger.error("%s", exc)
        for line in exc.log_output:
            print(line, file=sys.stderr)
        return 1

    print(install.home)
    return 0


if __name__ == "__main__":
    sys.exit(main())
