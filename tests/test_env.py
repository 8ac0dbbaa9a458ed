"""Tests for env file loading."""

import pytest

from procfleet.env import EnvFileError, child_environment, read_env


class TestReadEnv:
    def test_reads_values(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text('# settings\nDATABASE_URL=postgres://localhost/db\nGREETING="hello world"\nexport MODE=dev\n')

        env = read_env(env_file)

        assert env == {
            "DATABASE_URL": "postgres://localhost/db",
            "GREETING": "hello world",
            "MODE": "dev",
        }

    def test_drops_keys_without_values(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("BARE\nSET=1\n")
        assert read_env(env_file) == {"SET": "1"}

    def test_missing_optional_file(self, tmp_path):
        assert read_env(tmp_path / ".env") == {}

    def test_missing_required_file(self, tmp_path):
        with pytest.raises(EnvFileError):
            read_env(tmp_path / ".env.test", required=True)


class TestChildEnvironment:
    def test_layers_overrides_and_port(self, monkeypatch):
        monkeypatch.setenv("INHERITED", "yes")
        monkeypatch.setenv("MODE", "prod")

        env = child_environment({"MODE": "dev"}, port=5100)

        assert env["INHERITED"] == "yes"
        assert env["MODE"] == "dev"
        assert env["PORT"] == "5100"

    def test_port_overrides_env_file(self):
        assert child_environment({"PORT": "1"}, port=5000)["PORT"] == "5000"

    def test_does_not_mutate_overrides(self):
        overrides = {"A": "1"}
        child_environment(overrides, port=5000)
        assert overrides == {"A": "1"}
