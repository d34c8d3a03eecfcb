"""Configuration resolver with layered priority.

Priority (highest to lowest):
1. CLI / caller-supplied arguments
2. Environment variables (STAGEARC_*)
3. Config files (user > system), YAML
4. Defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from stagearc.core.errors import ConfigError

ALLOWED_LOGGING_LEVELS = frozenset({"quiet", "normal", "verbose", "debug"})
DEFAULT_LOGGING_LEVEL = "normal"

ENV_PREFIX = "STAGEARC_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class ConfigSource:
    """Represents where a config value came from."""

    value: Any
    source: str  # 'cli' | 'env' | 'user_config' | 'system_config' | 'default'


@dataclass(frozen=True)
class LoggingPolicy:
    """Resolved, immutable logging policy.

    Resolver-level only; stagearc.core.logging.apply_logging_policy turns it
    into runtime state.
    """

    level_name: str  # quiet | normal | verbose | debug
    emit_error: bool
    emit_warning: bool
    emit_info: bool
    emit_verbose: bool
    emit_debug: bool
    color: bool
    sources: dict[str, ConfigSource]


def _flatten_items(data: dict[str, Any], prefix: str = "") -> list[tuple[str, Any]]:
    """Flatten nested dicts to dot-notation key paths."""
    items: list[tuple[str, Any]] = []
    for key, value in data.items():
        key_path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            items.extend(_flatten_items(value, key_path))
        else:
            items.append((key_path, value))
    return items


class ConfigResolver:
    """Resolve configuration with strict priority.

    Example:
        resolver = ConfigResolver(
            cli_args={"staging": {"temp_root": "/srv/out/.staging"}},
            user_config_path=Path("~/.config/stagearc/config.yaml"),
        )

        temp_root, source = resolver.resolve("staging.temp_root")
        # temp_root = '/srv/out/.staging', source = 'cli'
    """

    def __init__(
        self,
        cli_args: dict[str, Any] | None = None,
        user_config_path: Path | None = None,
        system_config_path: Path | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> None:
        """Initialize config resolver.

        Args:
            cli_args: Caller overrides (highest priority, nested dicts or dotted keys)
            user_config_path: Path to user config file
            system_config_path: Path to system config file
            defaults: Default values (lowest priority)
        """
        self.cli_args = cli_args or {}
        self.user_config_path = user_config_path or Path.home() / ".config/stagearc/config.yaml"
        self.system_config_path = system_config_path or Path("/etc/stagearc/config.yaml")
        self.defaults = self._default_config() if defaults is None else defaults

        self._user_config: dict[str, Any] | None = None
        self._system_config: dict[str, Any] | None = None
        self._use_env = True

    @classmethod
    def builtin(cls, cli_args: dict[str, Any] | None = None) -> ConfigResolver:
        """Resolver that ignores config files and the environment.

        Used by the module-level archive functions, which must behave the same
        on every host.
        """
        resolver = cls(cli_args=cli_args)
        resolver._user_config = {}
        resolver._system_config = {}
        resolver._use_env = False
        return resolver

    def resolve(self, key: str) -> tuple[Any, str]:
        """Resolve config value with priority.

        Args:
            key: Config key (dot notation: 'staging.temp_root')

        Returns:
            (value, source) tuple

        Raises:
            ConfigError: If key not found in any source
        """
        value = self._from_cli(key)
        if value is not None:
            return value, "cli"

        value = self._from_env(key)
        if value is not None:
            return value, "env"

        value = self._get_nested(self._get_user_config(), key)
        if value is not None:
            return value, "user_config"

        value = self._get_nested(self._get_system_config(), key)
        if value is not None:
            return value, "system_config"

        value = self._get_nested(self.defaults, key)
        if value is not None:
            return value, "default"

        raise ConfigError(f"Config key '{key}' not found in any source")

    def resolve_or(self, key: str, default: Any) -> Any:
        """Resolve a key, returning default when no source provides it."""
        try:
            value, _src = self.resolve(key)
        except ConfigError as e:
            if "not found in any source" in str(e):
                return default
            raise
        return value

    def resolve_bool(self, key: str, default: bool) -> bool:
        """Resolve a boolean key. Environment strings are normalized."""
        value = self.resolve_or(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return bool(value)
        s = str(value).strip().lower()
        if s in _TRUE_VALUES:
            return True
        if s in _FALSE_VALUES:
            return False
        raise ConfigError(f"Config key '{key}' must be a bool, got {value!r}")

    def resolve_path(self, key: str) -> Path | None:
        """Resolve an optional path key; empty or missing values give None."""
        value = self.resolve_or(key, None)
        if value is None:
            return None
        if not isinstance(value, (str, os.PathLike)):
            raise ConfigError(f"Config key '{key}' must be a path string, got {type(value).__name__}")
        if str(value).strip() == "":
            return None
        return Path(value).expanduser()

    def resolve_logging_level(self) -> str:
        """Resolve and validate logging.level.

        Allowed values (case-insensitive): quiet | normal | verbose | debug.
        Returns DEFAULT_LOGGING_LEVEL when no source sets the key.

        Raises:
            ConfigError: If the resolved value is invalid.
        """
        level, _src = self._resolve_logging_level_and_source()
        return level

    def resolve_logging_policy(self) -> LoggingPolicy:
        """Resolve the logging policy. Side-effect free."""
        level_name, src = self._resolve_logging_level_and_source()
        order = ["quiet", "normal", "verbose", "debug"]
        rank = order.index(level_name)

        return LoggingPolicy(
            level_name=level_name,
            emit_error=True,
            emit_warning=True,
            emit_info=rank >= 1,
            emit_verbose=rank >= 2,
            emit_debug=rank >= 3,
            color=self.resolve_bool("logging.color", True),
            sources={"level_name": src},
        )

    def _resolve_logging_level_and_source(self) -> tuple[str, ConfigSource]:
        key = "logging.level"
        try:
            value, source = self.resolve(key)
        except ConfigError as e:
            if "not found in any source" not in str(e):
                raise
            return DEFAULT_LOGGING_LEVEL, ConfigSource(value=DEFAULT_LOGGING_LEVEL, source="default")

        if not isinstance(value, str):
            raise ConfigError(f"Config key '{key}' must be a string, got {type(value).__name__}")
        norm = value.strip().lower()
        if norm not in ALLOWED_LOGGING_LEVELS:
            allowed = ", ".join(sorted(ALLOWED_LOGGING_LEVELS))
            raise ConfigError(f"Invalid '{key}': {value!r}. Allowed values: {allowed}")
        return norm, ConfigSource(value=norm, source=source)

    def resolve_all(self) -> dict[str, ConfigSource]:
        """Resolve every key known from defaults, config files and CLI args."""
        all_keys: set[str] = set()
        for data in (self.defaults, self._get_user_config(), self._get_system_config()):
            all_keys.update(k for k, _v in _flatten_items(data))
        all_keys.update(k for k, _v in _flatten_items(self.cli_args))

        result: dict[str, ConfigSource] = {}
        for key in sorted(all_keys):
            try:
                value, source = self.resolve(key)
            except ConfigError:
                continue
            result[key] = ConfigSource(value=value, source=source)
        return result

    def _from_cli(self, key: str) -> Any | None:
        # Dotted keys are accepted verbatim as well as nested dicts.
        if key in self.cli_args:
            return self.cli_args[key]
        return self._get_nested(self.cli_args, key)

    def _from_env(self, key: str) -> Any | None:
        """Environment variable format: STAGEARC_STAGING_TEMP_ROOT."""
        if not self._use_env:
            return None
        env_key = f"{ENV_PREFIX}{key.upper().replace('.', '_')}"
        return os.environ.get(env_key)

    def _get_user_config(self) -> dict[str, Any]:
        if self._user_config is None:
            self._user_config = self._load_yaml(self.user_config_path)
        return self._user_config

    def _get_system_config(self) -> dict[str, Any]:
        if self._system_config is None:
            self._system_config = self._load_yaml(self.system_config_path)
        return self._system_config

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        path = path.expanduser()
        if not path.exists():
            return {}

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _get_nested(self, data: dict[str, Any], key: str) -> Any | None:
        """Get nested value using dot notation.

        Example:
            data = {'staging': {'prefix': 'x-'}}
            _get_nested(data, 'staging.prefix') -> 'x-'
        """
        current: Any = data
        for part in key.split("."):
            if not isinstance(current, dict):
                return None
            current = current.get(part)
            if current is None:
                return None
        return current

    @staticmethod
    def _default_config() -> dict[str, Any]:
        """Default configuration."""
        return {
            "logging": {
                "level": DEFAULT_LOGGING_LEVEL,
                "color": True,
            },
            "staging": {
                # None: the destination's own directory.
                "temp_root": None,
                "prefix": "stagearc-",
            },
            "archives": {
                "debug": {
                    "include_trace": False,
                },
            },
            "diagnostics": {
                "enabled": False,
                "path": str(Path.home() / ".stagearc" / "diagnostics.jsonl"),
            },
        }
