"""
provisioner_config.py
=====================
Settings for the provisioner, read from an optional ``config.json``.

Example::

    {
      "cache_dir": "cache",
      "offline": false,
      "api_url": "https://api.foojay.io/disco/v3.0",
      "cache_ttl_hours": 12,
      "search_paths": ["/opt/jdks"],
      "properties": {"org.gradle.java.installations.paths": "/opt/jdk-17"}
    }

Environment overrides: JDK_PROVISIONER_CACHE, JDK_PROVISIONER_OFFLINE,
JDK_PROVISIONER_API.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from disco_api import DISCO_API

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class ProvisionerConfig:
    cache_dir: str = "cache"
    offline: bool = False
    api_url: str = DISCO_API
    cache_ttl_hours: float = 12
    search_paths: List[str] = field(default_factory=list)
    properties: Dict[str, str] = field(default_factory=dict)

    @property
    def cache_root(self) -> Path:
        return Path(self.cache_dir).expanduser()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cache_dir": self.cache_dir,
            "offline": self.offline,
            "api_url": self.api_url,
            "cache_ttl_hours": self.cache_ttl_hours,
            "search_paths": list(self.search_paths),
            "properties": dict(self.properties),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProvisionerConfig":
        defaults = cls()
        return cls(
            cache_dir=str(data.get("cache_dir", defaults.cache_dir)),
            offline=bool(data.get("offline", defaults.offline)),
            api_url=str(data.get("api_url", defaults.api_url)),
            cache_ttl_hours=float(data.get("cache_ttl_hours", defaults.cache_ttl_hours)),
            search_paths=[str(p) for p in data.get("search_paths", [])],
            properties={str(k): str(v) for k, v in data.get("properties", {}).items()},
        )

    @classmethod
    def load(
        cls,
        path: str | Path = "config.json",
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ProvisionerConfig":
        """
        Load *path* (defaults if missing or unreadable), then apply env overrides.
        """
        path = Path(path)
        data: Dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as fh:
                    data = json.load(fh)
                if not isinstance(data, dict):
                    raise ValueError("top level must be an object")
                logger.debug("Config loaded from %s", path)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to load config %s, using defaults: %s", path, exc)
                data = {}
        else:
            logger.debug("Config file %s not found, using defaults", path)

        try:
            config = cls.from_dict(data)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Invalid config values in %s, using defaults: %s", path, exc)
            config = cls()

        env = environ if environ is not None else os.environ
        if env.get("JDK_PROVISIONER_CACHE"):
            config.cache_dir = env["JDK_PROVISIONER_CACHE"]
        if env.get("JDK_PROVISIONER_OFFLINE"):
            config.offline = env["JDK_PROVISIONER_OFFLINE"].strip().lower() in _TRUTHY
        if env.get("JDK_PROVISIONER_API"):
            config.api_url = env["JDK_PROVISIONER_API"]
        return config

    def save(self, path: str | Path = "config.json") -> None:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(self.to_dict(), fh, indent=2)
        logger.debug("Config saved to %s", path)
