import logging

import pytest
from click.testing import CliRunner

import conplicity.cli as cli_module
from conplicity.errors import ConnectivityError, ProtocolMismatchError
from conplicity.models import Volume


def _fake_conplicity(captured, status=0):
    class FakeConplicity:
        def __init__(self, config, hostname):
            captured["config"] = config
            captured["hostname"] = hostname

        def run(self, targets):
            captured["targets"] = list(targets)
            return status

    return FakeConplicity


def test_backup_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = tmp_path / ".conplicity.yml"
    config_file.write_text(
        "target_url: s3://config-bucket\n"
        "full_if_older_than: 7D\n"
        "run_timeout: 3600\n"
        "volumes:\n"
        "  data: /srv/data\n",
        encoding="utf-8",
    )
    captured = {}
    monkeypatch.setattr(cli_module, "Conplicity", _fake_conplicity(captured))

    result = CliRunner().invoke(
        cli_module.main,
        [
            "backup",
            "--config",
            str(config_file),
            "--url",
            "s3://cli-bucket",
            "--no-verify",
        ],
    )

    assert result.exit_code == 0, result.output
    config = captured["config"]
    assert config.target_url == "s3://cli-bucket"
    assert config.full_if_older_than == "7D"
    assert config.remove_older_than == "30D"
    assert config.no_verify is True
    assert config.run_timeout == 3600.0
    assert [(t.name, t.host_path) for t in captured["targets"]] == [("data", "/srv/data")]


def test_backup_reads_credentials_from_environment(tmp_path, monkeypatch):
    captured = {}
    monkeypatch.setattr(cli_module, "Conplicity", _fake_conplicity(captured))
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(
        cli_module.main,
        ["backup", "--volume", "db=/srv/db"],
        env={
            "DUPLICITY_TARGET_URL": "swift://container",
            "SWIFT_USERNAME": "user",
            "PUSHGATEWAY_URL": "http://gw:9091",
        },
    )

    assert result.exit_code == 0, result.output
    config = captured["config"]
    assert config.target_url == "swift://container"
    assert config.swift_username == "user"
    assert config.pushgateway_url == "http://gw:9091"
    assert config.image == "camptocamp/duplicity:latest"


def test_backup_exit_status_follows_cycle_result(tmp_path, monkeypatch):
    monkeypatch.setattr(cli_module, "Conplicity", _fake_conplicity({}, status=1))
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(
        cli_module.main,
        ["backup", "--url", "s3://bucket", "--volume", "db=/srv/db"],
    )

    assert result.exit_code == 1


def test_backup_requires_target_url(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["backup", "--volume", "db=/srv/db"], env={})

    assert result.exit_code != 0
    assert "No duplicity target URL configured" in result.output


def test_backup_rejects_malformed_volume(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["backup", "--url", "s3://bucket", "--volume", "nopath"])

    assert result.exit_code != 0
    assert "Invalid volume specification: nopath" in result.output


class FakeInventoryClient:
    error = None

    @classmethod
    def connect(cls, remote_address, psk, **_kwargs):
        if cls.error:
            raise cls.error
        return cls()

    def list_volumes(self):
        return [Volume(name="vol1", hostname="node1"), Volume(name="vol2", hostname="node1")]


def test_volumes_lists_remote_inventory(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    FakeInventoryClient.error = None
    monkeypatch.setattr(cli_module, "RemoteInventoryClient", FakeInventoryClient)

    result = CliRunner().invoke(
        cli_module.main,
        ["volumes", "--remote-address", "http://remote:8182", "--psk", "key"],
    )

    assert result.exit_code == 0, result.output
    assert "vol1" in result.output
    assert "vol2" in result.output


def test_volumes_reports_unreachable_remote(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    FakeInventoryClient.error = ConnectivityError("connection refused")
    monkeypatch.setattr(cli_module, "RemoteInventoryClient", FakeInventoryClient)

    result = CliRunner().invoke(cli_module.main, ["volumes", "--remote-address", "http://remote:8182"])

    assert result.exit_code != 0
    assert "Failed to connect to the remote Conplicity instance" in result.output


def test_volumes_reports_protocol_mismatch(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    FakeInventoryClient.error = ProtocolMismatchError('Wrong response: {"type":"wrong"}')
    monkeypatch.setattr(cli_module, "RemoteInventoryClient", FakeInventoryClient)

    result = CliRunner().invoke(cli_module.main, ["volumes", "--remote-address", "http://remote:8182"])

    assert result.exit_code != 0
    assert "did not answer like a Conplicity instance" in result.output


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    conplicity_level = logging.getLogger("conplicity").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("conplicity").setLevel(conplicity_level)


@pytest.mark.parametrize(
    ("name", "expected"),
    [("warn", logging.WARNING), ("fatal", logging.CRITICAL), ("panic", logging.CRITICAL), ("DEBUG", logging.DEBUG)],
)
def test_backup_accepts_original_log_level_names(tmp_path, monkeypatch, restore_logging, name, expected):
    monkeypatch.setattr(cli_module, "Conplicity", _fake_conplicity({}))
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(
        cli_module.main,
        ["backup", "--url", "s3://bucket", "--volume", "db=/srv/db"],
        env={"CONPLICITY_LOG_LEVEL": name},
    )

    assert result.exit_code == 0, result.output
    assert logging.getLogger("conplicity").level == expected


def test_backup_json_flag_logs_json_to_stderr(tmp_path, monkeypatch, restore_logging):
    class LoggingConplicity:
        def __init__(self, config, hostname):
            pass

        def run(self, targets):
            logging.getLogger("conplicity").warning("cycle finished")
            return 0

    monkeypatch.setattr(cli_module, "Conplicity", LoggingConplicity)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(
        cli_module.main,
        ["backup", "--url", "s3://bucket", "--volume", "db=/srv/db"],
        env={"JSON_OUTPUT": "true"},
    )

    assert result.exit_code == 0, result.output
    assert '"event": "cycle finished"' in result.output
    assert '"level": "warning"' in result.output
    assert not any(
        isinstance(handler, cli_module.RichHandler) for handler in logging.getLogger().handlers
    )


def test_backup_rejects_non_boolean_config_flag(tmp_path, monkeypatch):
    config_file = tmp_path / ".conplicity.yml"
    config_file.write_text("target_url: s3://bucket\nno_verify: 'false'\n", encoding="utf-8")
    monkeypatch.setattr(cli_module, "Conplicity", _fake_conplicity({}))
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["backup", "--volume", "db=/srv/db"])

    assert result.exit_code != 0
    assert "Config key 'no_verify' must be true or false" in result.output


def test_backup_accepts_boolean_config_flag(tmp_path, monkeypatch):
    config_file = tmp_path / ".conplicity.yml"
    config_file.write_text("target_url: s3://bucket\nno_verify: false\n", encoding="utf-8")
    captured = {}
    monkeypatch.setattr(cli_module, "Conplicity", _fake_conplicity(captured))
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["backup", "--volume", "db=/srv/db"])

    assert result.exit_code == 0, result.output
    assert captured["config"].no_verify is False
