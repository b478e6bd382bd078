"""Tests for ``depweave resolve``.

Verifies:
    - A first resolve writes depweave.lock (exit code 0).
    - A repeated resolve leaves the file byte-identical.
    - Mode flags re-resolve and are mutually exclusive.
    - ``--use NAME VERSION`` changes only the pinned package.
    - Resolution failures exit with code 1 and keep the lock file.
    - JSON output structure.
"""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from depweave.cli.main import cli
from depweave.core.lockfile import Lockfile


def _versions(package_dir: Path) -> dict[str, str]:
    lockfile = Lockfile.read(package_dir / "depweave.lock")
    return {e.name: e.version for e in lockfile.entries}


class TestFirstResolve:
    def test_writes_lockfile(self, runner: CliRunner, package_dir: Path) -> None:
        result = runner.invoke(cli, ["resolve", str(package_dir)])
        assert result.exit_code == 0, result.output
        assert (package_dir / "depweave.lock").exists()
        assert "Lock file written" in result.output
        assert _versions(package_dir) == {"fmt": "10.2.1", "libpng": "1.6.43", "zlib": "1.3.1"}

    def test_plan_table_lists_packages(self, runner: CliRunner, package_dir: Path) -> None:
        result = runner.invoke(cli, ["resolve", str(package_dir)])
        for name in ("fmt", "libpng", "zlib"):
            assert name in result.output

    def test_json_output(self, runner: CliRunner, package_dir: Path) -> None:
        result = runner.invoke(cli, ["resolve", str(package_dir), "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["status"] == "written"
        assert data["path"].endswith("depweave.lock")
        assert sorted(data["lockfile"]["packages"]) == ["fmt", "libpng", "zlib"]
        assert data["diff"]["added"] == ["fmt", "libpng", "zlib"]

    def test_missing_directory(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["resolve", str(tmp_path / "nope")])
        assert result.exit_code == 2

    def test_missing_recipe(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["resolve", str(tmp_path)])
        assert result.exit_code == 1
        assert "recipe file not found" in result.output


class TestRepeatedResolve:
    def test_second_run_is_byte_identical(self, runner: CliRunner, resolved_dir: Path) -> None:
        before = (resolved_dir / "depweave.lock").read_bytes()
        result = runner.invoke(cli, ["resolve", str(resolved_dir)])
        assert result.exit_code == 0
        assert "up to date" in result.output
        assert (resolved_dir / "depweave.lock").read_bytes() == before

    def test_stale_lock_is_reported(self, runner: CliRunner, resolved_dir: Path) -> None:
        before = (resolved_dir / "depweave.lock").read_bytes()
        recipe = resolved_dir / "depweave.yaml"
        recipe.write_text(recipe.read_text().replace('fmt: ">=9"', 'fmt: "~>9.0"'))
        result = runner.invoke(cli, ["resolve", str(resolved_dir)])
        assert result.exit_code == 0
        assert "stale" in result.output
        assert (resolved_dir / "depweave.lock").read_bytes() == before

        forced = runner.invoke(cli, ["resolve", "--force", str(resolved_dir)])
        assert forced.exit_code == 0
        assert _versions(resolved_dir)["fmt"] == "9.1.0"


class TestModes:
    def test_mode_flag_is_recorded(self, runner: CliRunner, resolved_dir: Path) -> None:
        result = runner.invoke(cli, ["resolve", "--pick-highest", str(resolved_dir)])
        assert result.exit_code == 0
        assert Lockfile.read(resolved_dir / "depweave.lock").heuristics == "pickHighest"

    def test_mode_flags_are_exclusive(self, runner: CliRunner, package_dir: Path) -> None:
        result = runner.invoke(cli, ["resolve", "--prefer-local", "--pick-highest", str(package_dir)])
        assert result.exit_code == 2
        assert "mutually exclusive" in result.output
        assert not (package_dir / "depweave.lock").exists()

    def test_no_network_without_candidates(self, runner: CliRunner, package_dir: Path) -> None:
        result = runner.invoke(cli, ["resolve", "--no-network", str(package_dir)])
        assert result.exit_code == 1
        assert "No candidate found" in result.output
        assert not (package_dir / "depweave.lock").exists()

    def test_system_policy_allow_list(self, runner: CliRunner, package_dir: Path) -> None:
        result = runner.invoke(
            cli,
            ["resolve", "--system-policy", "allowList", "--system-list", "zlib,fmt", str(package_dir)],
        )
        assert result.exit_code == 0, result.output


class TestUse:
    def test_pin_changes_only_that_package(self, runner: CliRunner, resolved_dir: Path) -> None:
        result = runner.invoke(cli, ["resolve", "--use", "zlib", "1.3.0", str(resolved_dir)])
        assert result.exit_code == 0, result.output
        assert _versions(resolved_dir) == {"fmt": "10.2.1", "libpng": "1.6.43", "zlib": "1.3.0"}
        assert Lockfile.read(resolved_dir / "depweave.lock").pins == {"zlib": "1.3.0"}

    def test_several_pins(self, runner: CliRunner, resolved_dir: Path) -> None:
        result = runner.invoke(
            cli,
            ["resolve", "--use", "libpng", "1.6.40", "--use", "fmt", "9.1.0", str(resolved_dir)],
        )
        assert result.exit_code == 0, result.output
        assert _versions(resolved_dir) == {"fmt": "9.1.0", "libpng": "1.6.40", "zlib": "1.3.1"}

    def test_conflicting_pin_fails(self, runner: CliRunner, resolved_dir: Path) -> None:
        before = (resolved_dir / "depweave.lock").read_bytes()
        result = runner.invoke(cli, ["resolve", "--use", "zlib", "1.2.13", str(resolved_dir)])
        assert result.exit_code == 1
        assert "libpng requires zlib >=1.3" in result.output
        assert (resolved_dir / "depweave.lock").read_bytes() == before

    def test_bad_pin_version(self, runner: CliRunner, resolved_dir: Path) -> None:
        result = runner.invoke(cli, ["resolve", "--use", "zlib", "latest", str(resolved_dir)])
        assert result.exit_code == 1
        assert "not a valid semantic version" in result.output
