"""Unit tests for notifer.engine.config — notifer.yaml loading and global defaults."""

import threading

import pytest
import yaml

from notifer.engine.config import (
    DEFAULT_SERVER_URL,
    GlobalDefaults,
    NotiferConfig,
    get_config,
    get_config_path,
    get_global_defaults,
    load_config,
    save_config,
    update_global_defaults,
)
from notifer.engine.errors import NotiferConfigError


class TestGlobalDefaults:
    def test_defaults(self):
        defaults = GlobalDefaults()
        assert defaults.server_url == DEFAULT_SERVER_URL == "https://app.notifer.io"
        assert defaults.default_credentials_id == ""
        assert defaults.default_topic == ""
        assert defaults.default_priority == 3

    def test_server_url_required(self):
        with pytest.raises(ValueError):
            GlobalDefaults(server_url="")

    def test_server_url_scheme(self):
        with pytest.raises(ValueError):
            GlobalDefaults(server_url="notifer.example")
        assert GlobalDefaults(server_url="http://localhost:8080").server_url == "http://localhost:8080"

    @pytest.mark.parametrize("given,stored", [(0, 1), (1, 1), (4, 4), (9, 5)])
    def test_default_priority_clamped(self, given, stored):
        assert GlobalDefaults(default_priority=given).default_priority == stored


class TestLoadConfig:
    def test_load(self, project_root):
        config = load_config(str(project_root / "notifer.yaml"))
        assert isinstance(config, NotiferConfig)
        assert config.notifer.server_url == "https://notifer.example"
        assert config.notifer.default_topic == "ci"
        assert config.notifer.default_priority == 4
        assert config.logging.level == "DEBUG"
        assert get_config() is config
        assert get_config_path() == project_root / "notifer.yaml"

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "absent.yaml"))
        assert config.notifer.server_url == DEFAULT_SERVER_URL
        assert config.credentials.store_path == ".notifer/credentials.yaml"

    def test_auto_discovers_from_subdirectory(self, project_root, monkeypatch):
        sub = project_root / "a" / "b"
        sub.mkdir(parents=True)
        monkeypatch.chdir(sub)
        assert load_config().notifer.default_topic == "ci"

    def test_null_default_priority(self, tmp_path):
        path = tmp_path / "notifer.yaml"
        path.write_text("notifer:\n  default_priority:\n", encoding="utf-8")
        assert load_config(str(path)).notifer.default_priority == 3

    def test_non_numeric_default_priority(self, tmp_path):
        path = tmp_path / "notifer.yaml"
        path.write_text("notifer:\n  default_priority: high\n", encoding="utf-8")
        with pytest.raises(NotiferConfigError, match="default_priority"):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "notifer.yaml"
        path.write_text("notifer: [unclosed\n", encoding="utf-8")
        with pytest.raises(NotiferConfigError, match="Invalid YAML"):
            load_config(str(path))

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "notifer.yaml"
        path.write_text("notifer:\n  server_url: ftp://x\nlogging:\n  level: LOUD\n", encoding="utf-8")
        with pytest.raises(NotiferConfigError) as exc_info:
            load_config(str(path))
        errors = exc_info.value.validation_errors
        assert any(e.startswith("notifer.server_url") for e in errors)
        assert any(e.startswith("logging.level") for e in errors)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "notifer.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(NotiferConfigError, match="mapping"):
            load_config(str(path))


class TestGlobalDefaultsAdministration:
    def test_snapshot_unaffected_by_update(self, project_root):
        load_config(str(project_root / "notifer.yaml"))
        snapshot = get_global_defaults()
        update_global_defaults(persist=False, default_topic="releases")
        assert snapshot.default_topic == "ci"
        assert get_global_defaults().default_topic == "releases"

    def test_snapshot_is_a_copy(self, project_root):
        load_config(str(project_root / "notifer.yaml"))
        snapshot = get_global_defaults()
        snapshot.default_topic = "mutated"
        assert get_global_defaults().default_topic == "ci"

    def test_update_persists(self, project_root):
        path = project_root / "notifer.yaml"
        load_config(str(path))
        update_global_defaults(default_credentials_id="deploy-token", default_priority="2")
        saved = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert saved["notifer"]["default_credentials_id"] == "deploy-token"
        assert saved["notifer"]["default_priority"] == 2
        assert saved["logging"]["level"] == "DEBUG"

    def test_unknown_setting_rejected(self, project_root):
        load_config(str(project_root / "notifer.yaml"))
        with pytest.raises(NotiferConfigError, match="Unknown global setting"):
            update_global_defaults(persist=False, colour="blue")

    def test_invalid_update_leaves_value_unchanged(self, project_root):
        load_config(str(project_root / "notifer.yaml"))
        with pytest.raises(NotiferConfigError):
            update_global_defaults(persist=False, default_topic="x", server_url="not-a-url")
        defaults = get_global_defaults()
        assert defaults.server_url == "https://notifer.example"
        assert defaults.default_topic == "ci"

    def test_concurrent_readers_see_whole_values(self, project_root):
        load_config(str(project_root / "notifer.yaml"))
        seen = []

        def reader():
            for _ in range(200):
                d = get_global_defaults()
                seen.append((d.default_topic, d.default_credentials_id))

        def writer():
            for i in range(50):
                update_global_defaults(persist=False, default_topic=f"t{i}", default_credentials_id=f"c{i}")

        threads = [threading.Thread(target=reader) for _ in range(3)] + [threading.Thread(target=writer)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for topic, creds in seen:
            if topic == "ci":
                assert creds == "ci-token"
            else:
                assert topic[1:] == creds[1:]

    def test_save_to_explicit_path(self, project_root, tmp_path):
        load_config(str(project_root / "notifer.yaml"))
        target = tmp_path / "out" / "notifer.yaml"
        assert save_config(str(target)) == target
        assert yaml.safe_load(target.read_text(encoding="utf-8"))["notifer"]["default_topic"] == "ci"
