"""Tests for configuration module."""

import tempfile
from pathlib import Path

import pytest

from tmt_prism.config import (
    ConversionConfig,
    _deep_merge,
    default_config,
    load_config,
)
from tmt_prism.exceptions import ConfigurationError


class TestConversionConfig:
    """Tests for ConversionConfig defaults and parsing."""

    def test_defaults(self):
        """Test default option values."""
        config = ConversionConfig()

        assert config.fraction is False
        assert config.use_num_proteins_column is True
        assert config.use_unique_peptide is True
        assert config.summary_for_multiple_rows == "max"
        assert config.remove_psm_with_missing_value_within_run is True
        assert config.remove_protein_with_1_feature is False
        assert config.which_proteinid == "Protein.Accessions"
        assert config.channel_prefix_pattern == "^X"

    def test_msstats_option_names(self):
        """Test that the MSstatsTMT option names are accepted."""
        config = ConversionConfig.from_dict({
            "useNumProteinsColumn": False,
            "summaryforMultipleRows": "sum",
            "which.proteinid": "Master.Protein.Accessions",
            "removeProtein_with1Feature": True,
        })

        assert config.use_num_proteins_column is False
        assert config.summary_for_multiple_rows == "sum"
        assert config.which_proteinid == "Master.Protein.Accessions"
        assert config.remove_protein_with_1_feature is True

    def test_snake_case_names(self):
        """Test that field names are accepted."""
        config = ConversionConfig.from_dict({"fraction": True, "n_workers": 4})
        assert config.fraction is True
        assert config.n_workers == 4

    def test_empty_dict_gives_defaults(self):
        assert ConversionConfig.from_dict({}) == ConversionConfig()
        assert ConversionConfig.from_dict(None) == ConversionConfig()

    def test_unknown_option_raises(self):
        """Test that unknown options are rejected."""
        with pytest.raises(ConfigurationError, match="Unknown conversion option"):
            ConversionConfig.from_dict({"useUniquePeptides": True})

    def test_bad_summary_raises(self):
        with pytest.raises(ConfigurationError, match="summaryforMultipleRows"):
            ConversionConfig(summary_for_multiple_rows="mean")

    def test_negative_workers_raises(self):
        with pytest.raises(ConfigurationError):
            ConversionConfig(n_workers=-1)

    def test_to_dict_round_trip(self):
        config = ConversionConfig(fraction=True, summary_for_multiple_rows="sum")
        assert ConversionConfig.from_dict(config.to_dict()) == config


class TestDeepMerge:
    """Tests for deep merge utility."""

    def test_simple_merge(self):
        """Test merging flat dictionaries."""
        base = {"a": 1, "b": 2}
        override = {"b": 3, "c": 4}
        result = _deep_merge(base, override)
        assert result == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self):
        """Test merging nested dictionaries."""
        base = {
            "section1": {"a": 1, "b": 2},
            "section2": {"c": 3},
        }
        override = {
            "section1": {"b": 20, "d": 4},
            "section3": {"e": 5},
        }
        result = _deep_merge(base, override)
        assert result["section1"] == {"a": 1, "b": 20, "d": 4}
        assert result["section2"] == {"c": 3}
        assert result["section3"] == {"e": 5}

    def test_base_not_modified(self):
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}


class TestLoadConfig:
    """Tests for configuration loading."""

    def test_default_config(self):
        """Test loading default configuration."""
        config = load_config(None)

        assert config == default_config()
        assert config["conversion"]["summary_for_multiple_rows"] == "max"
        assert config["summarization"]["method"] == "median_polish"
        assert config["output"]["format"] == "parquet"

    def test_yaml_override(self):
        """Test loading config from YAML file."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("""
conversion:
  fraction: true
  summaryforMultipleRows: sum
summarization:
  median_polish:
    max_iterations: 20
""")
            f.flush()
            config_path = Path(f.name)

        try:
            config = load_config(config_path)
            assert config["conversion"]["fraction"] is True
            assert config["conversion"]["summaryforMultipleRows"] == "sum"
            assert config["summarization"]["median_polish"]["max_iterations"] == 20
            # Defaults should be preserved
            assert config["summarization"]["median_polish"]["convergence_tolerance"] == 0.0001
            assert config["conversion"]["use_unique_peptide"] is True
        finally:
            config_path.unlink()

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "does_not_exist.yaml")
        assert config == default_config()
