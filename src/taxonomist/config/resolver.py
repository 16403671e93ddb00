"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping, Sequence

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import TaxonomistConfig

ENV_PREFIX = "TAXONOMIST__"


def resolve_with_precedence(
    *,
    defaults: TaxonomistConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> TaxonomistConfig:
    """Merge configuration layers; later layers win.

    Precedence runs defaults < file < environment < CLI. Keys in any layer may be
    nested mappings or dotted paths such as ``"planner.optimizer_batch_size"``.

    Args:
        defaults: Baseline configuration.
        file_overrides: Values read from the YAML configuration file.
        env_overrides: Values derived from ``TAXONOMIST__`` environment variables.
        cli_overrides: Values passed explicitly on the command line.

    Returns:
        TaxonomistConfig: Validated configuration.

    Raises:
        ConfigError: If a layer is malformed or the merged values fail validation.
    """
    layers: Sequence[tuple[str, Mapping[str, Any] | None]] = (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    )
    merged: dict[str, Any] = defaults.model_dump(mode="python")
    for layer_name, layer in layers:
        if layer is None:
            continue
        merged = _deep_merge(merged, expand_dotted_keys(layer, layer_name=layer_name))

    try:
        return TaxonomistConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: TaxonomistConfig) -> Dict[str, str]:
    """Render the config as ``TAXONOMIST__SECTION__KEY`` environment mappings."""
    flat: Dict[str, str] = {}
    pending: list[tuple[list[str], Any]] = [([], config.model_dump(mode="python"))]
    while pending:
        prefix, value = pending.pop()
        if isinstance(value, dict):
            pending.extend((prefix + [str(key)], child) for key, child in value.items())
            continue
        if isinstance(value, list):
            rendered = yaml.safe_dump(value, default_flow_style=True).strip()
        elif value is None:
            rendered = "null"
        else:
            rendered = str(value)
        flat[ENV_PREFIX + "__".join(part.upper() for part in prefix)] = rendered
    return flat


def env_to_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``TAXONOMIST__`` variables into a nested override mapping."""
    overrides: dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        segments = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
        if not segments:
            continue
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        assign_path(overrides, segments, value, layer_name="environment")
    return overrides


def expand_dotted_keys(source: Mapping[str, Any], *, layer_name: str) -> dict[str, Any]:
    """Return ``source`` with dotted keys expanded into nested dictionaries."""
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{layer_name.capitalize()} overrides must be a mapping.")

    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{layer_name.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = expand_dotted_keys(value, layer_name=layer_name)
        assign_path(expanded, key.split("."), value, layer_name=layer_name)
    return expanded


def assign_path(
    target: dict[str, Any],
    path: Sequence[str],
    value: Any,
    *,
    layer_name: str = "cli",
) -> None:
    """Set ``value`` at ``path`` inside ``target``, creating intermediate mappings.

    Raises:
        ConfigError: If an intermediate segment already holds a scalar.
    """
    node = target
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            dotted = ".".join(path)
            raise ConfigError(
                f"{layer_name.capitalize()} override for {dotted} conflicts with existing value."
            )
        node = child
    leaf = path[-1]
    if isinstance(value, MappingABC) and isinstance(node.get(leaf), MappingABC):
        node[leaf] = _deep_merge(node[leaf], value)
    else:
        node[leaf] = deepcopy(value)


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = [
    "ENV_PREFIX",
    "resolve_with_precedence",
    "flatten_for_env",
    "env_to_overrides",
    "expand_dotted_keys",
    "assign_path",
]
