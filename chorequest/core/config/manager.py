"""
ConfigManager: YAML-backed tunables for the ChoreQuest recurring engine.

Purpose
-------
- Provide hierarchical, dot-notation access to engine tunables
  (e.g. ``"recurring_quests.unresolved_statuses"``).
- Keep behavior knobs out of code so operators can change them per deployment.

Responsibilities
----------------
- Load and deep-merge every YAML file in the ``config/`` directory.
- Serve reads from an in-memory dictionary, falling back to caller defaults.
- Allow in-process overrides (tests, one-off maintenance runs).

Key Design Decisions
--------------------
- YAML is the single source for defaults; overrides live in memory only.
- Loading is lazy: the first ``get()`` loads YAML if ``initialize()`` was
  never called.
- Broken YAML files are logged and skipped, never fatal.

Dependencies
------------
- ``PyYAML`` for parsing.
- ``chorequest.core.logging.logger.get_logger`` for structured logs.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import yaml

from chorequest.core.config.config import Config
from chorequest.core.logging.logger import get_logger

logger = get_logger(__name__)


__all__ = ["ConfigManager"]


# ============================================================================
# ConfigManager
# ============================================================================


class ConfigManager:
    """
    Engine configuration access backed by YAML defaults.

    Features
    --------
    - Dot-notation reads with defaults.
    - Deep-merged YAML composition across files.
    - In-memory overrides layered over YAML.
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)  # type: ignore[arg-type]
            else:
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        logger.info(
            "YAML configs loaded",
            extra={"yaml_file_count": loaded_count, "config_dir": str(config_dir)},
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults (idempotent).

        Parameters
        ----------
        config_dir:
            Directory to scan. Defaults to ``<project root>/config``.
        """
        if cls._initialized:
            return

        cls._config_dir = Path(config_dir) if config_dir else Config.PROJECT_ROOT / "config"
        cls._defaults = {}
        cls._load_yaml_configs(cls._config_dir)
        cls._initialized = True

    @classmethod
    def clear_cache(cls) -> None:
        """
        Drop loaded defaults and overrides.

        Intended for tests; the next read reloads YAML.
        """
        cls._defaults = {}
        cls._overrides = {}
        cls._initialized = False
        logger.debug("ConfigManager cache cleared")

    # =========================================================================
    # READS / OVERRIDES
    # =========================================================================

    @staticmethod
    def _lookup(source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Examples
        --------
        >>> ConfigManager.get("recurring_quests.default_timezone", "UTC")
        'UTC'
        """
        if not cls._initialized:
            cls.initialize()

        value = cls._lookup(cls._overrides, key)
        if value is None:
            value = cls._lookup(cls._defaults, key)
        if value is None:
            return default

        return copy.deepcopy(value)

    @classmethod
    def set_override(cls, key: str, value: Any) -> None:
        """Set an in-memory override for a dot-notation key."""
        parts = key.split(".")
        node: Dict[str, Any] = cls._overrides
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
        logger.info("Config override set", extra={"config_key": key})
