"""Config store: optional config file (master over env) plus pushed overrides.

Precedence, highest first: pushed overrides, config file, environment/.env, defaults.
"""
import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = (".yaml", ".yml")


def _parse(path: Path, raw: str) -> Any:
    suffix = path.suffix.lower()
    if suffix in _YAML_SUFFIXES:
        return yaml.safe_load(raw)
    if suffix == ".json":
        return json.loads(raw)
    raise ValueError(f"unsupported config file type {suffix!r} (use .yaml, .yml or .json)")


def read_config_file(path: Optional[Path]) -> dict[str, Any]:
    """Read a YAML or JSON config file into a flat dict. Missing or invalid files give {}."""
    if path is None:
        return {}
    if not path.exists():
        logger.debug("Config file not found: %s (optional; using env/defaults)", path)
        return {}
    try:
        data = _parse(path, path.read_text())
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.warning("Could not load config file %s: %s", path, e)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must contain a mapping; got %s", path, type(data).__name__)
        return {}
    return data


class ConfigStore:
    """Holds the current Settings instance and rebuilds it when sources change."""

    def __init__(self, settings_cls: type, config_file_path: Optional[str] = None):
        self._settings_cls = settings_cls
        self._file_path: Optional[Path] = (
            Path(config_file_path).expanduser().resolve() if config_file_path else None
        )
        self._overrides: dict[str, Any] = {}
        self._current: Optional[Any] = None
        self._lock = threading.RLock()

    @property
    def file_path(self) -> Optional[Path]:
        return self._file_path

    def _build(self, overrides: dict[str, Any]) -> Any:
        env_values = self._settings_cls().model_dump()
        file_values = read_config_file(self._file_path)
        return self._settings_cls(**{**env_values, **file_values, **overrides})

    def load_initial(self) -> None:
        """Build settings from env, file and overrides. Call once at startup."""
        with self._lock:
            self._current = self._build(self._overrides)
            if self._file_path and self._file_path.exists():
                logger.info("Loaded config file (master over env): %s", self._file_path)

    def get_settings(self) -> Any:
        with self._lock:
            if self._current is None:
                self.load_initial()
            return self._current

    def update(self, overrides: dict[str, Any]) -> bool:
        """Push overrides. Returns False and keeps the previous config when validation fails."""
        with self._lock:
            candidate = {**self._overrides, **overrides}
            try:
                self._current = self._build(candidate)
            except Exception as e:
                logger.warning("Config update rejected; keeping previous config: %s", e)
                return False
            self._overrides = candidate
            return True

    def reload_from_file(self) -> None:
        """Re-read the config file, keeping pushed overrides."""
        with self._lock:
            try:
                self._current = self._build(self._overrides)
            except Exception as e:
                logger.warning("Config reload rejected; keeping previous config: %s", e)

    def clear_overrides(self) -> None:
        with self._lock:
            self._overrides = {}
            self._current = self._build({})
