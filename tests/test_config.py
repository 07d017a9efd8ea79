import pytest

from fraudit.lib.config import ConfigSingleton


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    for name in ("NOTIFICATION_POLL_INTERVAL", "REDIS_SSL", "ALLOWED_ORIGINS", "RISK_API_URL"):
        monkeypatch.delenv(name, raising=False)
    ConfigSingleton.reset()
    yield
    ConfigSingleton.reset()


async def test_defaults_without_file(tmp_path):
    config = await ConfigSingleton.initialize(str(tmp_path / "missing.yaml"))

    assert config["notifications"]["poll_interval"] == 30
    assert config["notifications"]["seen_set_capacity"] == 100
    assert ConfigSingleton.get_config("risk_api.base_url") == "http://localhost:5000/api"


async def test_yaml_file_merged_over_defaults(tmp_path):
    config_file = tmp_path / "notifications.yaml"
    config_file.write_text("notifications:\n  poll_limit: 8\nredis:\n  host: redis.internal\n")

    config = await ConfigSingleton.initialize(str(config_file))

    assert config["notifications"]["poll_limit"] == 8
    assert config["notifications"]["poll_interval"] == 30
    assert config["redis"]["host"] == "redis.internal"
    assert config["redis"]["port"] == 6379


async def test_environment_overrides_win(tmp_path, monkeypatch):
    config_file = tmp_path / "notifications.yaml"
    config_file.write_text("notifications:\n  poll_interval: 60\n")
    monkeypatch.setenv("NOTIFICATION_POLL_INTERVAL", "15")
    monkeypatch.setenv("REDIS_SSL", "true")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example")

    config = await ConfigSingleton.initialize(str(config_file))

    assert config["notifications"]["poll_interval"] == 15
    assert config["redis"]["ssl"] is True
    assert config["ingress"]["allowed_origins"] == ["https://a.example", "https://b.example"]


async def test_invalid_environment_value_is_ignored(tmp_path, monkeypatch):
    monkeypatch.setenv("NOTIFICATION_POLL_INTERVAL", "often")
    config = await ConfigSingleton.initialize(str(tmp_path / "missing.yaml"))
    assert config["notifications"]["poll_interval"] == 30


def test_get_config_before_initialize_raises():
    with pytest.raises(RuntimeError):
        ConfigSingleton.get_config()
