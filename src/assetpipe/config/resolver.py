"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Iterable, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import AssetPipeConfig

ENV_PREFIX = "ASSETPIPE__"


def resolve_with_precedence(
    *,
    defaults: AssetPipeConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AssetPipeConfig:
    """Merge configuration sources: defaults < file < environment < CLI.

    Args:
        defaults: Baseline configuration model.
        file_overrides: Nested mapping read from the YAML config file.
        env_overrides: Nested mapping derived from ``ASSETPIPE__`` variables.
        cli_overrides: Mapping of (optionally dotted) keys supplied on the command line.

    Returns:
        AssetPipeConfig: Validated configuration.

    Raises:
        ConfigError: If an override is malformed or the merged values fail validation.
    """
    layers = (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    )
    merged = defaults.model_dump(mode="python")
    for label, layer in layers:
        if layer:
            merged = _deep_merge(merged, _expand_layer(layer, label))

    try:
        return AssetPipeConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def overrides_from_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Translate ``ASSETPIPE__SECTION__KEY`` variables into a nested mapping.

    Values are parsed as YAML scalars so ``"7"`` becomes ``7`` and ``"[a, b]"``
    becomes a list; unparsable values are kept as raw strings.
    """
    overrides: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        path = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if not path:
            continue
        try:
            value: Any = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        _set_path(overrides, path, value, "environment")
    return overrides


def _split_key(key: str) -> list[str]:
    # ".png" style extension keys are data, not dotted paths.
    return [key] if key.startswith(".") else key.split(".")


def _expand_layer(layer: Mapping[str, Any], label: str) -> dict[str, Any]:
    if not isinstance(layer, MappingABC):
        raise ConfigError(f"{label.capitalize()} overrides must be a mapping.")
    expanded: dict[str, Any] = {}
    for key, value in layer.items():
        if not isinstance(key, str):
            raise ConfigError(f"{label.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = _expand_layer(value, label)
        _set_path(expanded, _split_key(key), value, label)
    return expanded


def _set_path(target: dict[str, Any], path: Iterable[str], value: Any, label: str) -> None:
    parts = list(path)
    node = target
    for part in parts[:-1]:
        child = node.setdefault(part, {})
        if not isinstance(child, dict):
            raise ConfigError(
                f"{label.capitalize()} override for {'.'.join(parts)} conflicts with existing value."
            )
        node = child
    leaf = parts[-1]
    current = node.get(leaf)
    if isinstance(value, dict) and isinstance(current, dict):
        node[leaf] = _deep_merge(current, value)
    else:
        node[leaf] = value


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, MappingABC) and isinstance(merged.get(key), MappingABC):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = ["ENV_PREFIX", "overrides_from_env", "resolve_with_precedence"]
