"""Tests for courier/cli/main.py"""
from __future__ import annotations

import pytest
from typer.testing import CliRunner

from courier import __version__
from courier.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    for var in ("COURIER_USER_ID", "COURIER_BACKEND_URL"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


class TestCommands:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_probe(self, tmp_path):
        config = tmp_path / "courier.toml"
        config.write_text('[platform]\npush_supported = false\n')
        result = runner.invoke(app, ["probe", "--config", str(config)])
        assert result.exit_code == 0
        assert "Capabilities" in result.output
        assert "Realtime socket" in result.output

    @pytest.mark.parametrize("command", ["subscribe", "unsubscribe", "run"])
    def test_requires_user(self, command):
        result = runner.invoke(app, [command])
        assert result.exit_code == 1
        assert "No user configured" in result.output

    def test_invalid_config(self, tmp_path):
        config = tmp_path / "broken.toml"
        config.write_text('[store]\nbackend = "redis"\n')
        result = runner.invoke(app, ["probe", "-c", str(config)])
        assert result.exit_code == 1
