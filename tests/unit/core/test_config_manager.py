"""
Unit Tests for ConfigManager
============================

Purpose
-------
Test environment-backed static settings and YAML tunables: dot-notation
reads, overrides and typed accessors.

Test Coverage
-------------
- Repository config/progression.yaml values
- Deep-merged overrides
- Missing keys and defaults
- Typed accessors raising ConfigValidationError
- Malformed YAML skipped
- Environment parsing with bounded fallbacks

Testing Strategy
----------------
- Unit tests using tmp_path for throwaway config directories
- AAA pattern (Arrange, Act, Assert)
"""

from pathlib import Path

import pytest

from src.core.config.config import Config, Environment
from src.core.config.errors import ConfigValidationError
from src.core.config.manager import ConfigManager

CONFIG_DIR = Path(__file__).resolve().parents[3] / "config"


@pytest.mark.unit
class TestConfigManager:
    """Test ConfigManager reads."""

    def test_reads_repository_defaults(self, config_manager):
        # Assert
        assert config_manager.get_int("progression.xp.level_quantum") == 200
        assert config_manager.get_float("progression.difficulty_bonus.Expert") == 2.0
        assert config_manager.get("progression.stop.minimum_completion_percentage") == 5

    def test_section_is_a_dict(self, config_manager):
        # Act
        rarity = config_manager.get("progression.xp.achievement_rarity")

        # Assert
        assert rarity["legendary"] == 500
        assert config_manager.get_section("progression.achievements")["all_missions_threshold"] == 4

    def test_missing_key_returns_default(self, config_manager):
        # Assert
        assert config_manager.get("progression.nope.nothing", 7) == 7
        assert config_manager.get("progression.xp.level_quantum.deeper") is None

    def test_overrides_are_deep_merged(self):
        # Arrange
        overrides = {"progression": {"xp": {"level_quantum": 100}}}

        # Act
        manager = ConfigManager(config_dir=CONFIG_DIR, overrides=overrides)

        # Assert
        assert manager.get_int("progression.xp.level_quantum") == 100
        assert manager.get_int("progression.xp.good_decision_base") == 5

    def test_typed_accessor_rejects_garbage(self, tmp_path):
        # Arrange
        (tmp_path / "bad.yaml").write_text("progression:\n  xp:\n    level_quantum: lots\n")
        manager = ConfigManager(config_dir=tmp_path)

        # Act & Assert
        with pytest.raises(ConfigValidationError):
            manager.get_int("progression.xp.level_quantum")

    def test_malformed_yaml_is_skipped(self, tmp_path):
        # Arrange
        (tmp_path / "a.yaml").write_text("progression:\n  stop:\n    minimum_completion_percentage: 9\n")
        (tmp_path / "b.yaml").write_text("progression: [unclosed\n")

        # Act
        manager = ConfigManager(config_dir=tmp_path)

        # Assert
        assert manager.get_int("progression.stop.minimum_completion_percentage") == 9

    def test_missing_directory_gives_empty_config(self, tmp_path):
        # Act
        manager = ConfigManager(config_dir=tmp_path / "absent")

        # Assert
        assert manager.get_all_keys() == []
        assert manager.get_int("progression.xp.level_quantum", 200) == 200

    def test_get_section_rejects_scalar(self, config_manager):
        # Act & Assert
        with pytest.raises(ConfigValidationError):
            config_manager.get_section("progression.xp.level_quantum")


@pytest.mark.unit
class TestStaticConfig:
    """Test Config environment parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [("12", 12), ("abc", 5), ("0", 5), ("500", 5)],
    )
    def test_safe_int_falls_back(self, monkeypatch, raw, expected):
        # Arrange
        monkeypatch.setenv("DATABASE_POOL_SIZE", raw)

        # Act & Assert
        assert Config._safe_int("DATABASE_POOL_SIZE", 5, min_val=1, max_val=200) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [("yes", True), ("OFF", False), ("maybe", None)],
    )
    def test_safe_bool(self, monkeypatch, raw, expected):
        # Arrange
        monkeypatch.setenv("LOG_JSON", raw)

        # Act & Assert
        assert Config._safe_bool("LOG_JSON", None) is expected

    def test_unknown_environment_defaults_to_development(self):
        # Assert
        assert Environment.from_string("qa") is Environment.DEVELOPMENT

    def test_testing_environment_loaded(self):
        # Assert
        assert Config.is_testing()
        assert Config.CONFIG_DIR == CONFIG_DIR
