"""Configuration management for Taxonomist."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import TaxonomistConfig
from .resolver import (
    assign_path,
    env_to_overrides,
    flatten_for_env,
    resolve_with_precedence,
)

DEFAULT_CONFIG_PATH = Path("~/.taxonomist/config.yaml")
_CONFIG_HEADER = textwrap.dedent(
    """\
    # Taxonomist configuration file
    # Managed by `taxonomist config set`; hand edits are preserved on the next load.
    """
)


class ConfigManager:
    """Read, write, and resolve the user configuration file."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> TaxonomistConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Dotted-key overrides supplied on the command line.
            include_env: Whether ``TAXONOMIST__`` environment variables apply.
            ensure_file: Whether to create a default file when none exists.
            env_overrides: Explicit environment mapping used instead of ``os.environ``.

        Returns:
            TaxonomistConfig: Configuration after applying precedence rules.
        """
        if ensure_file:
            self.ensure_exists()

        env_layer = None
        if include_env:
            env_layer = env_to_overrides(env_overrides if env_overrides is not None else self._env)

        return resolve_with_precedence(
            defaults=TaxonomistConfig(),
            file_overrides=self._read_file(),
            env_overrides=env_layer or None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return raw overrides stored on disk."""
        return self._read_file()

    def set_value(self, dotted_key: str, value: Any) -> TaxonomistConfig:
        """Persist a single dotted-key override after validating the result.

        Raises:
            ConfigError: If the key is empty or the new value fails validation.
        """
        segments = [segment.strip() for segment in dotted_key.split(".") if segment.strip()]
        if not segments:
            raise ConfigError(
                "KEY must specify a dotted path such as 'planner.optimizer_batch_size'."
            )

        file_data = self._read_file()
        assign_path(file_data, segments, value)
        config = resolve_with_precedence(defaults=TaxonomistConfig(), file_overrides=file_data)
        self.save(file_data)
        return config

    def save(self, config: TaxonomistConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        if isinstance(config, TaxonomistConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(TaxonomistConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    # Internal helpers -------------------------------------------------

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
        )


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "TaxonomistConfig",
    "resolve_with_precedence",
    "flatten_for_env",
    "ConfigError",
]
