import json

import pytest
from typer.testing import CliRunner

from mediahub import __version__
from mediahub.cli import app as cli
from mediahub.exceptions import LocalMisconfigurationError
from mediahub.models.instance import ServiceInstance, ServiceType
from mediahub.storage.config_manager import CONFIG_FILE_NAME
from mediahub.storage.registry import REGISTRY_FILE_NAME

runner = CliRunner()


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(cli, "CONFIG_FILE", tmp_path / CONFIG_FILE_NAME)
    return tmp_path


def invoke(*args):
    return runner.invoke(cli.app, list(args))


def test_version():
    result = invoke("--version")

    assert result.exit_code == 0
    assert __version__ in result.output


def test_validate_creates_and_prints_config(config_dir):
    result = invoke("validate")

    assert result.exit_code == 0
    assert "request_timeout" in result.output
    assert (config_dir / CONFIG_FILE_NAME).is_file()


def test_validate_reports_invalid_config(config_dir):
    (config_dir / CONFIG_FILE_NAME).write_text(
        "[DEFAULT]\nrequest_timeout = 0\n", encoding="utf-8"
    )

    result = invoke("validate")

    assert result.exit_code == 1
    assert "invalid" in result.output


def test_instance_lifecycle(config_dir):
    added = invoke(
        "instance", "add", "Radarr", "http://nas:7878",
        "--type", "radarr", "--api-key", "key", "--no-test",
    )
    assert added.exit_code == 0, added.output
    assert "Added Radarr instance 'Radarr'" in added.output

    listed = invoke("instance", "list")
    assert "Radarr" in listed.output
    assert "nas:7878" in listed.output

    stored = json.loads((config_dir / REGISTRY_FILE_NAME).read_text(encoding="utf-8"))
    assert stored["instances"][0]["base_url"] == "http://nas:7878"
    assert "key" not in json.dumps(stored)

    removed = invoke("instance", "remove", "radarr", "--force")
    assert removed.exit_code == 0
    assert "Removed 'Radarr'" in removed.output
    assert "No instances configured" in invoke("instance", "list").output


def test_remove_unknown_instance_fails():
    result = invoke("instance", "remove", "nothing", "--force")

    assert result.exit_code == 1
    assert "No instance matches" in result.output


def test_groups_can_be_added_and_moved():
    assert invoke("group", "add", "Home").exit_code == 0
    assert invoke("group", "add", "Remote", "--color", "green").exit_code == 0

    moved = invoke("group", "move", "1", "0")

    assert moved.exit_code == 0
    assert moved.output.index("Remote") < moved.output.index("Home")


def test_moving_a_missing_group_fails():
    result = invoke("group", "move", "4", "0")

    assert result.exit_code == 1


def test_connection_test_without_instances():
    result = invoke("test")

    assert result.exit_code == 0
    assert "No instances configured" in result.output


def test_add_rejects_blank_qbittorrent_username(config_dir):
    result = invoke(
        "instance", "add", "qBit", "http://nas:8080", "--type", "qbittorrent",
        "--username", "", "--password", "", "--no-test",
    )

    assert result.exit_code == 1
    assert isinstance(result.exception, LocalMisconfigurationError)
    assert not (config_dir / REGISTRY_FILE_NAME).exists()


def test_connection_test_reports_missing_credentials(config_dir):
    instance = ServiceInstance(
        name="qBit", base_url="http://nas:8080", service_type=ServiceType.QBITTORRENT
    )
    (config_dir / REGISTRY_FILE_NAME).write_text(
        json.dumps({"instances": [instance.model_dump(mode="json")], "groups": []}),
        encoding="utf-8",
    )

    result = invoke("test")

    assert result.exit_code == 1
    assert "Missing credentials" in result.output
