"""
Tests for treelox settings and YAML config loading.
"""

import pytest

from treelox import LoxConfig, load_config


class TestLoxConfig:
    """Test the settings dataclass."""

    def test_defaults(self):
        """Default settings."""
        config = LoxConfig()
        assert config.max_errors == 20
        assert config.max_call_depth == 200
        assert config.show_source is False
        assert config.prompt == "> "

    def test_dict_round_trip(self):
        """to_dict output loads back into the same settings."""
        config = LoxConfig(max_errors=3, prompt="lox> ")
        assert LoxConfig.from_dict(config.to_dict()) == config

    def test_unknown_key(self):
        """Unknown keys are rejected."""
        with pytest.raises(ValueError, match="unknown configuration key"):
            LoxConfig.from_dict({"colour": "red"})

    @pytest.mark.parametrize("data", [
        {"max_errors": 0},
        {"max_call_depth": -1},
        {"max_call_depth": "deep"},
        {"show_source": "yes"},
        {"prompt": 5},
    ])
    def test_invalid_values(self, data):
        """Values of the wrong type or range are rejected."""
        with pytest.raises(ValueError):
            LoxConfig.from_dict(data)


class TestLoadConfig:
    """Test reading settings from YAML files."""

    def test_load(self, tmp_path):
        """All settings load from YAML."""
        path = tmp_path / "treelox.yaml"
        path.write_text(
            "max_errors: 5\nmax_call_depth: 500\nshow_source: true\nprompt: 'lox> '\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config == LoxConfig(max_errors=5, max_call_depth=500,
                                   show_source=True, prompt="lox> ")

    def test_partial_file_keeps_defaults(self, tmp_path):
        """Keys absent from the file keep their defaults."""
        path = tmp_path / "treelox.yaml"
        path.write_text("show_source: true\n", encoding="utf-8")
        config = load_config(str(path))
        assert config.show_source is True
        assert config.max_errors == 20

    def test_empty_file(self, tmp_path):
        """An empty file gives the default settings."""
        path = tmp_path / "treelox.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == LoxConfig()

    def test_not_a_mapping(self, tmp_path):
        """The top level must be a mapping."""
        path = tmp_path / "treelox.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError, match="expected a mapping"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        """Malformed YAML is a ValueError."""
        path = tmp_path / "treelox.yaml"
        path.write_text("max_errors: [1, 2\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        """A missing file raises OSError."""
        with pytest.raises(OSError):
            load_config(tmp_path / "absent.yaml")
