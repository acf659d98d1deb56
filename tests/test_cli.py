"""Tests for the command line interface."""

from typer.testing import CliRunner

from uifeedback import __version__
from uifeedback.cli import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_tools_lists_registered_tools():
    result = runner.invoke(app, ["tools"])
    assert result.exit_code == 0
    assert "run_workflow" in result.output
    assert "launch_web_server" in result.output
