import pytest

from mediahub.core.hub import MediaHub
from mediahub.models.instance import ServiceInstance, ServiceType
from mediahub.storage.config_manager import CONFIG_FILE_NAME


@pytest.mark.asyncio
async def test_hub_loads_registry_and_runs_cache_sweep(tmp_path):
    async with MediaHub.from_config_dir(tmp_path) as hub:
        await hub.orchestrator.add_instance(
            ServiceInstance(
                name="Radarr",
                base_url="http://nas:7878",
                service_type=ServiceType.RADARR,
            ),
            api_key="key",
        )
        cleanup_task = hub.cache._cleanup_task
        assert cleanup_task is not None and not cleanup_task.done()

    assert cleanup_task.done()
    assert (tmp_path / CONFIG_FILE_NAME).is_file()

    async with MediaHub.from_config_dir(tmp_path) as hub:
        (instance,) = hub.registry.instances
        assert instance.name == "Radarr"
        assert await hub.credentials.get_api_key(instance.id) == "key"


@pytest.mark.asyncio
async def test_hub_writes_json_logs_when_configured(tmp_path):
    log_dir = tmp_path / "logs"

    async with MediaHub.from_config_dir(tmp_path, {"json_log_dir": str(log_dir)}):
        pass

    assert list(log_dir.glob("mediahub_*.jsonl"))


@pytest.mark.asyncio
async def test_hub_closes_json_log_when_teardown_fails(tmp_path, monkeypatch):
    hub = MediaHub.from_config_dir(tmp_path, {"json_log_dir": str(tmp_path / "logs")})
    await hub.start()

    async def broken_close():
        raise RuntimeError("session close failed")

    monkeypatch.setattr(hub.orchestrator, "close", broken_close)

    with pytest.raises(RuntimeError):
        await hub.close()

    assert hub.structured_logger._json_file.closed
