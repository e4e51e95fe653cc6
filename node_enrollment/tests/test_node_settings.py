"""Tests for node_settings module."""

from pathlib import Path

import pytest

from node_enrollment.lib.errors import NodeConfigError
from node_enrollment.lib.node_settings import flatten_settings, load_node_state


class TestFlattenSettings:
    """Tests for flatten_settings()."""

    def test_nested_mappings_become_dotted_keys(self) -> None:
        nested = {"security": {"enabled": True, "http.ssl": {"enabled": False}}}

        assert flatten_settings(nested) == {
            "security.enabled": True,
            "security.http.ssl.enabled": False,
        }

    def test_flat_keys_are_kept(self) -> None:
        assert flatten_settings({"cluster.name": "c1"}) == {"cluster.name": "c1"}

    def test_lists_are_values(self) -> None:
        settings = {"discovery": {"seed_hosts": ["a:9300", "b:9300"]}}

        assert flatten_settings(settings) == {"discovery.seed_hosts": ["a:9300", "b:9300"]}


class TestLoadNodeState:
    """Tests for load_node_state()."""

    def test_reads_nested_yaml(self, config_dir: Path) -> None:
        """Nested YAML settings are flattened."""
        (config_dir / "node.yml").write_text("security:\n  transport.ssl:\n    enabled: true\n")

        state = load_node_state(config_dir)

        assert state.settings == {"security.transport.ssl.enabled": True}

    def test_default_data_path_is_home_data(self, config_dir: Path) -> None:
        """Without path.data the data directory is <home>/data."""
        state = load_node_state(config_dir)

        assert state.data_paths == [config_dir.resolve().parent / "data"]

    def test_relative_data_path_resolves_against_home(self, config_dir: Path) -> None:
        (config_dir / "node.yml").write_text("path.data: var/data\n")

        state = load_node_state(config_dir)

        assert state.data_paths == [config_dir.resolve().parent / "var" / "data"]

    def test_list_of_data_paths(self, config_dir: Path, tmp_path: Path) -> None:
        absolute = tmp_path / "abs-data"
        (config_dir / "node.yml").write_text(f"path:\n  data:\n    - {absolute}\n    - rel\n")

        state = load_node_state(config_dir)

        assert state.data_paths == [absolute, config_dir.resolve().parent / "rel"]

    def test_missing_file_is_empty_settings(self, tmp_path: Path) -> None:
        config_dir = tmp_path / "config"
        config_dir.mkdir()

        state = load_node_state(config_dir)

        assert state.settings == {}
        assert state.config_file == config_dir / "node.yml"

    def test_empty_file_is_empty_settings(self, config_dir: Path) -> None:
        (config_dir / "node.yml").write_text("")

        assert load_node_state(config_dir).settings == {}

    def test_invalid_yaml_raises(self, config_dir: Path) -> None:
        (config_dir / "node.yml").write_text("security: [unclosed\n")

        with pytest.raises(NodeConfigError):
            load_node_state(config_dir)

    def test_non_mapping_root_raises(self, config_dir: Path) -> None:
        (config_dir / "node.yml").write_text("- a\n- b\n")

        with pytest.raises(NodeConfigError, match="must be a mapping") as exc_info:
            load_node_state(config_dir)

        assert exc_info.value.exit_code == 78
