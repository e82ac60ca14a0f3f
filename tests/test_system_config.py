import copy

import pytest
import yaml

from config.system_config import _validate_config, load_configuration, merge_dicts


@pytest.fixture
def default_config():
    return load_configuration()


def test_default_profile_loads(default_config):
    assert default_config["providers"]["priority"][0] == "OpenAI"
    assert default_config["performance"]["request_timeout"] == 45
    assert default_config["orchestrator"]["max_auto_retries"] == 0
    assert default_config["orchestrator"]["retry_delay"] == 1.0
    assert default_config["key_store"]["backend"] == "file"


def test_missing_file_falls_back_to_default(tmp_path, default_config):
    config = load_configuration(str(tmp_path / "nao-existe.yaml"))

    assert config == default_config


def test_empty_file_is_rejected(tmp_path):
    path = tmp_path / "vazio.yaml"
    path.write_text("", encoding="utf-8")

    with pytest.raises(ValueError):
        load_configuration(str(path))


def test_unsupported_extension_is_rejected(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("x = 1", encoding="utf-8")

    with pytest.raises(ValueError):
        load_configuration(str(path))


def test_custom_yaml_profile(tmp_path, default_config):
    custom = merge_dicts(default_config, {"key_store": {"backend": "memory"}, "performance": {"request_timeout": 10}})
    path = tmp_path / "custom.yaml"
    path.write_text(yaml.safe_dump(custom), encoding="utf-8")

    config = load_configuration(str(path))

    assert config["key_store"]["backend"] == "memory"
    assert config["performance"]["request_timeout"] == 10
    assert config["providers"]["priority"] == default_config["providers"]["priority"]


@pytest.mark.parametrize(
    "override, message",
    [
        ({"providers": {"priority": []}}, "priority"),
        ({"providers": {"priority": ["OpenAI", "Bard"]}}, "Bard"),
        ({"performance": {"request_timeout": 0}}, "request_timeout"),
        ({"key_store": {"backend": "sqlite"}}, "sqlite"),
        ({"orchestrator": {"max_auto_retries": -1}}, "max_auto_retries"),
        ({"orchestrator": {"retry_delay": -0.5}}, "retry_delay"),
        ({"orchestrator": {"agents": {"marina": {"fallback": ["Llama"]}}}}, "marina"),
    ],
)
def test_validation_errors(default_config, override, message):
    config = merge_dicts(copy.deepcopy(default_config), override)

    with pytest.raises(ValueError, match=message):
        _validate_config(config)


def test_missing_sections_are_reported():
    with pytest.raises(ValueError, match="key_store"):
        _validate_config({"providers": {"priority": ["OpenAI"]}, "orchestrator": {}, "performance": {}})


def test_merge_dicts_is_recursive():
    merged = merge_dicts({"a": {"b": 1, "c": 2}, "d": 1}, {"a": {"c": 3}})

    assert merged == {"a": {"b": 1, "c": 3}, "d": 1}
