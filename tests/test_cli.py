"""CLI integration tests for `assetpipe scan` and `assetpipe status`."""

from __future__ import annotations

import json
import os
from pathlib import Path

from click.testing import CliRunner
from PIL import Image

from assetpipe.cli import cli


def _env_with_home(tmp_path: Path) -> dict[str, str]:
    """Return environment variables pointing HOME to a temp directory.

    Args:
        tmp_path: Temporary directory provided by pytest.

    Returns:
        dict[str, str]: Environment mapping with HOME set.
    """
    env = {key: value for key, value in os.environ.items() if not key.startswith("ASSETPIPE__")}
    env["HOME"] = str(tmp_path / "home")
    return env


def _asset_tree(tmp_path: Path) -> Path:
    root = tmp_path / "assets"
    root.mkdir()
    Image.new("RGB", (32, 64), color="orange").save(root / "hero.png")
    (root / "notes.tmp").write_text("scratch", encoding="utf-8")
    (root / "theme.wav").write_bytes(b"\x00" * 64)
    return root


def test_cli_help_lists_commands() -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("scan", "watch", "status", "config"):
        assert command in result.output


def test_scan_catalogs_supported_files(tmp_path: Path) -> None:
    root = _asset_tree(tmp_path)
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["scan", str(root)], env=env)

    assert result.exit_code == 0, result.output
    assert "New asset processed: hero.png (Image" in result.output
    assert "notes.tmp" not in result.output
    assert "Scan summary" in result.output
    assert "Pipeline Summary" in result.output
    assert (tmp_path / "home" / ".assetpipe" / "catalog.db").exists()


def test_scan_json_reports_counts(tmp_path: Path) -> None:
    root = _asset_tree(tmp_path)
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    database = tmp_path / "custom.db"

    result = runner.invoke(
        cli, ["--database", str(database), "scan", str(root), "--json"], env=env
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["processed"] == 2
    assert payload["inserted"] == 2
    assert payload["summary"]["total_assets"] == 2
    assert payload["summary"]["by_category"] == {"Image": 1, "Audio": 1}
    assert database.exists()


def test_scan_prompts_for_missing_path(tmp_path: Path) -> None:
    root = _asset_tree(tmp_path)
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["scan"], input=f"{root}\n", env=env)

    assert result.exit_code == 0, result.output
    assert "Asset directory" in result.output
    assert "Scan summary" in result.output


def test_scan_missing_directory_aborts(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["scan", str(tmp_path / "nope")], env=env)

    assert result.exit_code == 1
    assert "Directory not found" in result.output


def test_status_requires_existing_catalog(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["status"], env=env)

    assert result.exit_code == 1
    assert "No catalog found" in result.output


def test_status_reports_summary_and_events(tmp_path: Path) -> None:
    root = _asset_tree(tmp_path)
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    runner.invoke(cli, ["scan", str(root)], env=env)

    result = runner.invoke(cli, ["status", "--json", "--events", "1"], env=env)

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["summary"]["total_assets"] == 2
    assert payload["summary"]["completed_assets"] == 2
    assert [row["category"] for row in payload["categories"]] == ["Audio", "Image"]
    assert len(payload["events"]) == 1
    assert payload["events"][0]["kind"] == "FileDiscovered"

    table = runner.invoke(cli, ["status"], env=env)
    assert table.exit_code == 0
    assert "Recent Events" in table.output
    assert "By Category" in table.output


def test_rescan_after_change_reports_update(tmp_path: Path) -> None:
    root = _asset_tree(tmp_path)
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    runner.invoke(cli, ["scan", str(root)], env=env)

    (root / "theme.wav").write_bytes(b"\x01" * 64)
    result = runner.invoke(cli, ["scan", str(root)], env=env)

    assert result.exit_code == 0, result.output
    assert "Re-processed changed file: theme.wav" in result.output
    assert "New asset processed" not in result.output
