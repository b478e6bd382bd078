"""Tests for ``depweave diff``."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

from click.testing import CliRunner

from depweave.cli.main import cli


class TestDiff:
    def test_identical_files(self, runner: CliRunner, resolved_dir: Path, tmp_path: Path) -> None:
        lock = resolved_dir / "depweave.lock"
        copy = tmp_path / "copy.lock"
        shutil.copy(lock, copy)
        result = runner.invoke(cli, ["diff", str(copy), str(lock)])
        assert result.exit_code == 0
        assert "No differences" in result.output

    def test_changed_package(self, runner: CliRunner, resolved_dir: Path, tmp_path: Path) -> None:
        lock = resolved_dir / "depweave.lock"
        old = tmp_path / "old.lock"
        shutil.copy(lock, old)
        runner.invoke(cli, ["resolve", "--use", "zlib", "1.3.0", str(resolved_dir)])

        result = runner.invoke(cli, ["diff", "--format", "json", str(old), str(lock)])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["added"] == [] and data["removed"] == []
        assert data["changed"] == [{"name": "zlib", "field": "version", "old": "1.3.1", "new": "1.3.0"}]

    def test_text_output(self, runner: CliRunner, resolved_dir: Path, tmp_path: Path) -> None:
        lock = resolved_dir / "depweave.lock"
        old = tmp_path / "old.lock"
        shutil.copy(lock, old)
        runner.invoke(cli, ["resolve", "--use", "fmt", "9.1.0", str(resolved_dir)])
        result = runner.invoke(cli, ["diff", str(old), str(lock)])
        assert result.exit_code == 1
        assert "fmt" in result.output
        assert "9.1.0" in result.output

    def test_invalid_file(self, runner: CliRunner, tmp_path: Path) -> None:
        bad = tmp_path / "bad.lock"
        bad.write_text("nonsense\n")
        result = runner.invoke(cli, ["diff", str(bad), str(bad)])
        assert result.exit_code == 1
        assert "invalid lock-file" in result.output
