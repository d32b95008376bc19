"""Tests for the merge-env-config command."""

import json

import pytest
import yaml

from layerconf import __version__
from layerconf.cli import main


class TestMergeEnvConfig:
    """Test cases for the CLI entry point."""

    def test_merges_yaml(self, write_config, monkeypatch, capsys):
        monkeypatch.setenv("DOMAIN", "dev.example.com")
        a = write_config("a.yml", "domain: example.com\ndb:\n  master: rw@/example\n")
        b = write_config("b.yml", "domain: {{ env(\"DOMAIN\") }}\nis_dev: true\n")

        assert main([str(a), str(b)]) == 0

        out = capsys.readouterr().out
        assert yaml.safe_load(out) == {
            "domain": "dev.example.com",
            "db": {"master": "rw@/example"},
            "is_dev": True,
        }

    def test_merges_json(self, write_config, monkeypatch, capsys):
        monkeypatch.setenv("FOO", "BOO")
        a = write_config("a.json", '{"foo": "bar", "env_foo": "{{ env("FOO") }}"}')
        b = write_config("b.json", '{"bar": "baz"}')

        assert main(["-json", str(a), str(b)]) == 0

        out = capsys.readouterr().out
        assert json.loads(out) == {"foo": "bar", "env_foo": "BOO", "bar": "baz"}
        assert out.startswith('{\n  "bar"')

    def test_no_arguments(self, capsys):
        assert main([]) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Usage of merge-env-config" in captured.err

    @pytest.mark.parametrize("flag", ["-v", "-version"])
    def test_version(self, flag, capsys):
        assert main([flag]) == 0
        assert __version__ in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        missing = tmp_path / "nothing.yml"
        assert main([str(missing)]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        assert str(missing) in captured.err

    def test_required_variable(self, write_config, monkeypatch, capsys):
        monkeypatch.delenv("MUST_DOMAIN_CLI", raising=False)
        f = write_config("must.yml", "domain: '{{ must_env(\"MUST_DOMAIN_CLI\") }}'\n")

        assert main([str(f)]) == 1
        assert "MUST_DOMAIN_CLI is not defined" in capsys.readouterr().err
