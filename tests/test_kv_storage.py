"""
Tests for the key-value stores.
"""

from unittest.mock import patch

import yaml

from utils.kv_storage import MemoryStore, YamlFileStore


class TestMemoryStore:
    def test_get_set(self):
        store = MemoryStore({"a": "1"})
        store.set("b", "2")

        assert store.get("a") == "1"
        assert store.get("b") == "2"
        assert store.get("missing") is None
        assert sorted(store.keys()) == ["a", "b"]


class TestYamlFileStore:
    def test_set_writes_yaml_and_creates_parent(self, tmp_path):
        path = tmp_path / "nested" / "state.yaml"
        store = YamlFileStore(str(path))

        store.set("pluginSettings", '{"panicMode": true}')

        with open(path, encoding="utf-8") as f:
            assert yaml.safe_load(f) == {"pluginSettings": '{"panicMode": true}'}

    def test_values_survive_new_instance(self, tmp_path):
        path = tmp_path / "state.yaml"
        YamlFileStore(str(path)).set("key", "value")

        assert YamlFileStore(str(path)).get("key") == "value"

    def test_missing_file_is_empty(self, tmp_path):
        assert YamlFileStore(str(tmp_path / "absent.yaml")).get("key") is None

    def test_malformed_file_is_empty(self, tmp_path):
        path = tmp_path / "state.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")

        store = YamlFileStore(str(path))

        assert store.get("key") is None
        store.set("key", "value")
        assert YamlFileStore(str(path)).get("key") == "value"

    def test_default_path_from_config(self, tmp_path):
        path = str(tmp_path / "configured.yaml")
        with patch("config.get_config", return_value={"STORAGE_FILE": path}):
            store = YamlFileStore()

        assert str(store.storage_path) == path
