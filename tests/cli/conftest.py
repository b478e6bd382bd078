"""Shared fixtures for CLI tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from depweave.cli.main import cli


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture
def resolved_dir(runner: CliRunner, package_dir: Path) -> Path:
    """The shared package directory after a first ``depweave resolve``."""
    result = runner.invoke(cli, ["resolve", str(package_dir)])
    assert result.exit_code == 0, result.output
    return package_dir
