"""Tests for the configuration module."""

import json
import tempfile
from pathlib import Path

import pytest

from testintel.config import (
    CorrelationConfig,
    EngineConfig,
    IntelligenceConfig,
    PatternConfig,
    StorageConfig,
    create_example_config,
    get_default_config,
)


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_default_values(self):
        """Test default values are set correctly."""
        config = EngineConfig()
        assert config.max_history_per_test == 100
        assert config.min_history_for_insights == 3
        assert config.min_history_for_prediction == 2
        assert config.recent_window == 10

    def test_history_cap_validation(self):
        """Test that the history cap must be positive."""
        with pytest.raises(ValueError):
            EngineConfig(max_history_per_test=0)


class TestPatternConfig:
    """Tests for PatternConfig."""

    def test_default_values(self):
        """Test default values are set correctly."""
        config = PatternConfig()
        assert config.slow_threshold_ms == 5000.0
        assert config.flaky_transition_ratio == 0.3
        assert config.always_fails_ratio == 0.9

    def test_ratio_validation(self):
        """Test that ratios must lie between 0 and 1."""
        with pytest.raises(ValueError):
            PatternConfig(always_fails_ratio=1.5)


class TestCorrelationConfig:
    """Tests for CorrelationConfig."""

    def test_default_values(self):
        """Test default values are set correctly."""
        config = CorrelationConfig()
        assert config.window_seconds == 300.0
        assert config.increment == 0.1
        assert config.report_threshold == 0.5
        assert config.max_results == 5

    def test_window_validation(self):
        """Test that the correlation window must be positive."""
        with pytest.raises(ValueError):
            CorrelationConfig(window_seconds=0)


class TestIntelligenceConfig:
    """Tests for IntelligenceConfig."""

    def test_default_config(self):
        """Test creating a default configuration."""
        config = get_default_config()
        assert config.storage.data_dir == ".testintel"
        assert config.storage.autosave is True
        assert config.git.enabled is True

    def test_from_file(self):
        """Test loading configuration from a file."""
        config_data = {
            "engine": {"max_history_per_test": 50},
            "storage": {"autosave": False},
        }

        with tempfile.NamedTemporaryFile(
            mode="w", suffix=".json", delete=False
        ) as f:
            json.dump(config_data, f)
            f.flush()

            config = IntelligenceConfig.from_file(f.name)
            assert config.engine.max_history_per_test == 50
            assert config.storage.autosave is False
            assert config.patterns.slow_threshold_ms == 5000.0

    def test_from_file_not_found(self):
        """Test loading from non-existent file raises error."""
        with pytest.raises(FileNotFoundError):
            IntelligenceConfig.from_file("/nonexistent/path.json")

    def test_to_file(self):
        """Test saving configuration to a file."""
        config = get_default_config()
        config.engine.max_history_per_test = 42

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            config.to_file(path)

            assert path.exists()

            loaded = IntelligenceConfig.from_file(path)
            assert loaded.engine.max_history_per_test == 42

    def test_find_and_load_searches_parents(self):
        """Test that configuration is found in a parent directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            IntelligenceConfig(storage=StorageConfig(data_dir="state")).to_file(
                base / "testintel.json"
            )
            nested = base / "a" / "b"
            nested.mkdir(parents=True)

            config = IntelligenceConfig.find_and_load(nested)
            assert config.storage.data_dir == "state"

    def test_load_or_default_without_file(self, tmp_path, monkeypatch):
        """Test that defaults are used when no file is found."""
        monkeypatch.chdir(tmp_path)
        config = IntelligenceConfig.load_or_default()
        assert config == IntelligenceConfig()

    def test_create_example_config(self):
        """Test creating an example configuration file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "example.json"
            result = create_example_config(path)

            assert result == path
            assert path.exists()

            with open(path) as f:
                data = json.load(f)
                assert "engine" in data
                assert "patterns" in data
                assert "correlation" in data
                assert "storage" in data

    def test_get_absolute_paths(self):
        """Test getting absolute paths from config."""
        config = get_default_config()

        with tempfile.TemporaryDirectory() as tmpdir:
            base_dir = Path(tmpdir)
            paths = config.get_absolute_paths(base_dir)

            assert paths["data_dir"].is_absolute()
            assert paths["data_dir"].name == ".testintel"
            assert paths["state_file"] == paths["data_dir"] / "intelligence.json"
