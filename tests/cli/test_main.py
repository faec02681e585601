"""
Tests for the rkentry command-line interface.
"""
import pytest
from typer.testing import CliRunner

from rkentry.cli.main import app

runner = CliRunner()


class TestParseCommand:
    """Test `rkentry parse`."""

    def test_parse(self):
        result = runner.invoke(app, ["parse", "gin[0].port=2008,gin[0].enabled=false"])

        assert result.exit_code == 0
        assert '"port": 2008' in result.output
        assert '"enabled": false' in result.output

    def test_parse_error(self):
        result = runner.invoke(app, ["parse", "a=b=c"])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestEnvCommand:
    """Test `rkentry env`."""

    def test_lists_overrides(self, monkeypatch):
        monkeypatch.setenv("RK_GIN_0_PORT", "8081")
        monkeypatch.setenv("RK_0_BAD", "x")

        result = runner.invoke(app, ["env"])

        assert result.exit_code == 0
        assert "RK_GIN_0_PORT" in result.output
        assert "applied" in result.output
        assert "skipped" in result.output

    def test_no_overrides(self):
        result = runner.invoke(app, ["env", "--prefix", "nothing"])

        assert result.exit_code == 0
        assert "No NOTHING_" in result.output


class TestResolveCommand:
    """Test `rkentry resolve`."""

    def test_yaml_output_with_flag(self, boot_file):
        result = runner.invoke(app, ["resolve", str(boot_file), "--rkset", "gin[0].port=2008"])

        assert result.exit_code == 0
        assert "port: 2008" in result.output
        assert "commonservice:" in result.output

    def test_json_output(self, boot_file):
        result = runner.invoke(app, ["resolve", str(boot_file), "--json"])

        assert result.exit_code == 0
        assert '"port": 1949' in result.output

    def test_env_override(self, boot_file, monkeypatch):
        monkeypatch.setenv("APP_GIN_0_PORT", "3000")

        result = runner.invoke(app, ["resolve", str(boot_file), "--prefix", "app"])

        assert result.exit_code == 0
        assert "port: 3000" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["resolve", str(tmp_path / "missing.yaml")])
        assert result.exit_code == 1

    def test_bad_flag(self, boot_file):
        result = runner.invoke(app, ["resolve", str(boot_file), "--rkset", "gin[0=1"])
        assert result.exit_code == 1


class TestLocaleCommand:
    """Test `rkentry locale`."""

    def test_wildcard_matches(self):
        result = runner.invoke(app, ["locale", "*::*::*::*"])

        assert result.exit_code == 0
        assert "does not match" not in result.output
        assert "matches" in result.output

    @pytest.mark.parametrize("value", ["rk::*::*::*", "bad-locale"])
    def test_mismatch(self, value):
        result = runner.invoke(app, ["locale", value])

        assert result.exit_code == 0
        assert "does not match" in result.output
