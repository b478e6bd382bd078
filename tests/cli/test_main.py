"""Tests for the top-level ``depweave`` group and error reporting."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from depweave.cli.main import cli
from depweave.cli.output import handle_errors
from depweave.exceptions import PinConflict, RecipeNotFound, ResolutionConflict


class TestGroup:
    def test_commands_are_registered(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("resolve", "plan", "build-id", "diff"):
            assert command in result.output

    def test_verbose_logging(self, runner: CliRunner, package_dir: Path) -> None:
        result = runner.invoke(cli, ["-vv", "resolve", str(package_dir)])
        assert result.exit_code == 0

    def test_environment_variables(self, runner: CliRunner, package_dir: Path) -> None:
        result = runner.invoke(
            cli, ["resolve", str(package_dir)], env={"DEPWEAVE_RESOLVE_PICK_HIGHEST": "1"}
        )
        assert result.exit_code == 0, result.output
        assert "pickHighest" in (package_dir / "depweave.lock").read_text()


class TestHandleErrors:
    def test_depweave_error_exits_1(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            with handle_errors():
                raise ResolutionConflict("zlib", [("libpng", ">=1.3"), ("app", "<1.3")])
        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "libpng requires zlib >=1.3" in err
        assert "app requires zlib <1.3" in err

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (ResolutionConflict("zlib", [("[bold]app", "<1.3")]), "[bold]app requires zlib <1.3"),
            (RecipeNotFound("zlib", ["app", "[dim]png"]), "app -> [dim]png -> zlib"),
            (PinConflict("zlib", "1.2.0", ">=1.3", "[red]png"), "[red]png requires zlib >=1.3"),
        ],
    )
    def test_context_lines_are_not_markup(self, capsys, exc, expected: str) -> None:
        with pytest.raises(SystemExit):
            with handle_errors():
                raise exc
        assert expected in capsys.readouterr().err

    def test_keyboard_interrupt_exits_130(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            with handle_errors():
                raise KeyboardInterrupt
        assert exc_info.value.code == 130

    def test_other_errors_propagate(self) -> None:
        with pytest.raises(RuntimeError):
            with handle_errors():
                raise RuntimeError("bug")
