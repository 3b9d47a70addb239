import json
from pathlib import Path

import pytest
import yaml

from corrector.config import ConfigManager, Settings
from corrector.exceptions import ConfigurationError

EXAMPLE_PROJECT = Path(__file__).resolve().parent.parent / "configs" / "project.yml"


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture
def project(tmp_path):
    mappings_dir = tmp_path / "mappings"
    mappings_dir.mkdir()
    write_yaml(
        mappings_dir / "orders.yml",
        {"id": "erp-orders", "name": "orders", "targetApi": {"url": "https://erp.test/orders", "method": "post"}},
    )
    (mappings_dir / "users.json").write_text(
        json.dumps({"id": "erp-users", "targetApi": {"url": "https://erp.test/users", "method": "GET"}})
    )
    (mappings_dir / "notes.txt").write_text("ignored")
    return write_yaml(
        tmp_path / "project.yml",
        {
            "name": "test",
            "mappings_dir": "mappings",
            "mappings": [{"id": "inline", "targetApi": {"url": "https://x.test", "method": "GET"}}],
            "settings": {"audit": {"enabled": True}},
        },
    )


def test_loads_inline_and_directory_mappings(project):
    manager = ConfigManager(str(project))

    assert manager.find_mapping("inline").target_api.url == "https://x.test"
    assert manager.find_mapping("erp-orders") is manager.find_mapping("orders")
    assert manager.find_mapping("orders").target_api.method == "POST"
    assert manager.find_mapping("erp-users") is not None
    assert manager.find_mapping("notes") is None


def test_get_setting_dot_notation(project):
    manager = ConfigManager(str(project))
    assert manager.get_setting("audit.enabled") is True
    assert manager.get_setting("audit.missing", "fallback") == "fallback"


def test_missing_project_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigManager(str(tmp_path / "nope.yml")).load_config()


def test_invalid_mapping_file(tmp_path):
    path = write_yaml(tmp_path / "bad.yml", {"id": "no-target"})
    with pytest.raises(ConfigurationError, match="Invalid mapping file"):
        ConfigManager.load_mapping_file(path)


def test_missing_mappings_dir(tmp_path):
    project = write_yaml(tmp_path / "project.yml", {"name": "t", "mappings_dir": "absent"})
    with pytest.raises(ConfigurationError, match="Mappings directory not found"):
        ConfigManager(str(project)).find_mapping("x")


def test_invalid_inline_mapping_is_skipped(tmp_path, caplog):
    project = write_yaml(
        tmp_path / "project.yml",
        {
            "name": "t",
            "mappings": [
                {"id": "broken"},
                {"id": "fine", "targetApi": {"url": "https://x.test", "method": "GET"}},
            ],
        },
    )
    manager = ConfigManager(str(project))

    with caplog.at_level("WARNING", logger="corrector.config.manager"):
        assert manager.find_mapping("broken") is None
    assert manager.find_mapping("fine").id == "fine"
    assert [label for label, _ in manager.invalid_mappings] == ["inline mapping broken"]
    assert "Skipping invalid inline mapping broken" in caplog.text


def test_invalid_mapping_file_does_not_hide_valid_ones(tmp_path):
    mappings_dir = tmp_path / "mappings"
    mappings_dir.mkdir()
    write_yaml(mappings_dir / "bad.yml", {"id": "bad"})
    write_yaml(mappings_dir / "good.yml", {"id": "good", "targetApi": {"url": "https://x.test", "method": "GET"}})
    project = write_yaml(tmp_path / "project.yml", {"name": "t", "mappings_dir": "mappings"})
    manager = ConfigManager(str(project))

    assert manager.find_mapping("good").target_api.url == "https://x.test"
    assert manager.find_mapping("bad") is None
    label, reason = manager.invalid_mappings[0]
    assert label == "mapping file bad.yml"
    assert "targetApi" in reason


def test_example_configs_are_valid():
    manager = ConfigManager(str(EXAMPLE_PROJECT))
    contact = manager.find_mapping("crm-contact")
    workflow = manager.find_mapping("erp-sync-orders")

    assert contact.id == "crm-create-contact"
    assert contact.target_api.resilience.retry_count == 2
    assert [step.name for step in workflow.steps] == ["lookup-customer", "create-orders"]
    assert workflow.custom_transforms == {"cents": "round(value * 100)"}


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("CORRECTOR_HTTP_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("CORRECTOR_ALLOW_NONE_AUTH_OVERRIDE", "false")
    settings = Settings()
    assert settings.http_timeout_seconds == 5
    assert settings.allow_none_auth_override is False
    assert settings.token_expiry_margin_seconds == 60
