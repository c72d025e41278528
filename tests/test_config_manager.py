"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from assetpipe.config import (
    AssetPipeConfig,
    ConfigError,
    ConfigManager,
    overrides_from_env,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".assetpipe" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "assetpipe configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, AssetPipeConfig)
    assert config.watch.settle_delay_seconds == pytest.approx(0.5)


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"watch": {"workers": 2, "queue_size": 16}, "cli": {"recent_events_limit": 3}})

    env = {"ASSETPIPE__WATCH__WORKERS": "6", "ASSETPIPE__WATCH__SETTLE_DELAY_SECONDS": "1.5"}
    cli = {"watch.settle_delay_seconds": 0.25}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.watch.queue_size == 16
    assert config.cli.recent_events_limit == 3
    # Environment overrides the file, CLI overrides the environment.
    assert config.watch.workers == 6
    assert config.watch.settle_delay_seconds == pytest.approx(0.25)


def test_load_ignores_environment_when_disabled(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    monkeypatch.setenv("ASSETPIPE__WATCH__WORKERS", "9")

    assert manager.load().watch.workers == 9
    assert manager.load(include_env=False).watch.workers == 4


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=AssetPipeConfig(),
            file_overrides={"watch": {"debounce": 1}},
        )


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=AssetPipeConfig(),
            file_overrides={"watch": {"workers": "not-an-int"}},
        )


def test_extension_overrides_are_normalized() -> None:
    config = resolve_with_precedence(
        defaults=AssetPipeConfig(),
        file_overrides={"processing": {"extensions": {"image": ["PNG", ".Psd"]}}},
    )

    assert config.processing.extensions.image == [".png", ".psd"]


def test_overrides_from_env_nests_and_parses_values() -> None:
    overrides = overrides_from_env(
        {
            "ASSETPIPE__WATCH__WORKERS": "7",
            "ASSETPIPE__PROCESSING__INCLUDE_HIDDEN_FILES": "true",
            "ASSETPIPE__STORAGE__DATABASE_PATH": "/data/catalog.db",
            "UNRELATED": "ignored",
        }
    )

    assert overrides == {
        "watch": {"workers": 7},
        "processing": {"include_hidden_files": True},
        "storage": {"database_path": "/data/catalog.db"},
    }


def test_conflicting_dotted_override_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=AssetPipeConfig(),
            cli_overrides={"watch": 3, "watch.workers": 2},
        )
