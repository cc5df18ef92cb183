"""Tests for ExtractionConfig."""

from pathlib import Path

import pytest
from receipt_fields.config import DEFAULT_RULES_PATH, ExtractionConfig


class TestExtractionConfig:
    """Test suite for ExtractionConfig."""

    def test_defaults(self):
        """Test the documented default tunables."""
        config = ExtractionConfig()

        assert config.max_candidates == 5
        assert config.confidence_threshold == 0.5
        assert config.payee_adjacency_ratio == 0.5
        assert config.usage_fallback_confidence == 0.1
        assert config.rules_path == DEFAULT_RULES_PATH
        assert DEFAULT_RULES_PATH.exists()

    def test_from_dict(self):
        """Test overrides replace only the named values."""
        config = ExtractionConfig.from_dict({'max_candidates': 3, 'rules_path': 'custom.yml'})

        assert config.max_candidates == 3
        assert config.rules_path == Path('custom.yml')
        assert config.confidence_threshold == 0.5

    def test_unknown_key(self):
        """Test unknown keys are rejected."""
        with pytest.raises(ValueError, match="max_candidate"):
            ExtractionConfig.from_dict({'max_candidate': 3})

    def test_from_yaml(self, tmp_path):
        """Test loading overrides from YAML."""
        config_path = tmp_path / "config.yml"
        config_path.write_text("confidence_threshold: 0.7\nusage_fuzzy_threshold: 90\n", encoding="utf-8")

        config = ExtractionConfig.from_yaml(config_path)

        assert config.confidence_threshold == 0.7
        assert config.usage_fuzzy_threshold == 90

    def test_from_empty_yaml(self, tmp_path):
        """Test an empty file gives the defaults."""
        config_path = tmp_path / "config.yml"
        config_path.write_text("", encoding="utf-8")

        assert ExtractionConfig.from_yaml(config_path) == ExtractionConfig()

    def test_yaml_must_be_mapping(self, tmp_path):
        """Test a list document is rejected."""
        config_path = tmp_path / "config.yml"
        config_path.write_text("- 1\n- 2\n", encoding="utf-8")

        with pytest.raises(ValueError):
            ExtractionConfig.from_yaml(config_path)

    def test_missing_yaml(self, tmp_path):
        """Test a missing config file raises."""
        with pytest.raises(FileNotFoundError):
            ExtractionConfig.from_yaml(tmp_path / "missing.yml")
