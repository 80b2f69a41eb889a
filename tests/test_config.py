import pytest

import config


@pytest.fixture(autouse=True)
def config_path(tmp_path, monkeypatch):
    path = tmp_path / ".taskdeck_config.yaml"
    monkeypatch.setattr(config, "USER_CONFIG_PATH", path)
    return path


def test_defaults_without_file():
    assert config.get_default_stage() == "idea"
    assert config.get_default_template() == ""
    assert config.get_log_level() == "WARNING"


def test_default_stage_is_normalized(config_path):
    config.set_default_stage("Chat")
    assert config.get_default_stage() == "idea"
    config.set_default_stage("Plan")
    assert config.get_default_stage() == "plan"
    assert "default_stage: plan" in config_path.read_text(encoding="utf-8")


def test_unknown_default_stage_rejected():
    with pytest.raises(ValueError, match="Unknown stage"):
        config.set_default_stage("someday")


def test_clearing_last_value_removes_file(config_path):
    config.set_default_template("bug")
    assert config.get_default_template() == "bug"
    config.set_default_template("")
    assert not config_path.exists()


def test_log_level(config_path):
    config.set_log_level("info")
    assert config.get_log_level() == "INFO"
    with pytest.raises(ValueError):
        config.set_log_level("loud")


def test_broken_file_falls_back_to_defaults(config_path):
    config_path.write_text("default_stage: [unclosed", encoding="utf-8")
    assert config.get_default_stage() == "idea"
    config_path.write_text("- just\n- a list\n", encoding="utf-8")
    assert config.get_log_level() == "WARNING"
