import pytest
import yaml

from testsuites.api_testing.framework.config_loader import ConfigLoader, ConfigurationError


def test_env_override_and_defaults(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.dump({"auth": {"default_ttl": 600, "login_attempts": 2}}),
        encoding="utf-8",
    )
    monkeypatch.delenv("AUTH_DEFAULT_TTL", raising=False)

    ConfigLoader.reset()
    loader = ConfigLoader(config_path=config_path)
    assert loader.get("auth.default_ttl") == 600
    assert loader.get("auth.login_retry_delay", 1.0) == 1.0

    monkeypatch.setenv("AUTH_DEFAULT_TTL", "120")
    assert loader.get("auth.default_ttl", 3600) == 120
    ConfigLoader.reset()


def test_reload_updates_values(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump({"auth": {"login_attempts": 5}}), encoding="utf-8")

    ConfigLoader.reset()
    loader = ConfigLoader(config_path=config_path)
    assert loader.get("auth.login_attempts") == 5

    config_path.write_text(yaml.dump({"auth": {"login_attempts": 1}}), encoding="utf-8")
    loader.reload()
    assert loader.get("auth.login_attempts") == 1
    ConfigLoader.reset()


def test_environment_overlay_is_merged(monkeypatch, tmp_path):
    (tmp_path / "config.yaml").write_text(
        yaml.dump({"providers": {"svc": {"base_url": "http://svc.test", "persist": True}}}),
        encoding="utf-8",
    )
    (tmp_path / "staging.yaml").write_text(
        yaml.dump({"providers": {"svc": {"base_url": "http://staging.svc.test"}}}),
        encoding="utf-8",
    )
    monkeypatch.setenv("ENVIRONMENT", "staging")

    ConfigLoader.reset()
    loader = ConfigLoader(config_path=tmp_path / "config.yaml")

    assert loader.get_section("providers")["svc"] == {
        "base_url": "http://staging.svc.test",
        "persist": True,
    }
    ConfigLoader.reset()


def test_invalid_yaml_raises_configuration_error(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("api: [unclosed", encoding="utf-8")

    ConfigLoader.reset()
    with pytest.raises(ConfigurationError):
        ConfigLoader(config_path=config_path)
    ConfigLoader.reset()


def test_missing_file_uses_defaults(tmp_path):
    ConfigLoader.reset()
    loader = ConfigLoader(config_path=tmp_path / "absent.yaml")

    assert loader.get_section("providers") == {}
    assert loader.get("auth.login_attempts", 3) == 3
    ConfigLoader.reset()
