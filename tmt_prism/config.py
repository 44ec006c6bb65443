"""Configuration for the PSM -> feature conversion.

Options can be given either with their snake_case field names or with the
option names used by the MSstatsTMT converter (``useNumProteinsColumn``,
``which.proteinid`` ...), so existing parameter files keep working.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PROTEIN_ACCESSIONS = 'Protein.Accessions'
MASTER_PROTEIN_ACCESSIONS = 'Master.Protein.Accessions'
PROTEIN_ID_CHOICES = (PROTEIN_ACCESSIONS, MASTER_PROTEIN_ACCESSIONS)

SUMMARY_METHODS = ('max', 'sum')

# MSstatsTMT option names -> field names
OPTION_ALIASES = {
    'fraction': 'fraction',
    'useNumProteinsColumn': 'use_num_proteins_column',
    'useUniquePeptide': 'use_unique_peptide',
    'summaryforMultipleRows': 'summary_for_multiple_rows',
    'removePSM_withMissingValue_withinRun': 'remove_psm_with_missing_value_within_run',
    'removeProtein_with1Feature': 'remove_protein_with_1_feature',
    'which.proteinid': 'which_proteinid',
}


@dataclass
class ConversionConfig:
    """Options controlling the conversion pipeline."""

    fraction: bool = False
    use_num_proteins_column: bool = True
    use_unique_peptide: bool = True
    summary_for_multiple_rows: str = 'max'
    remove_psm_with_missing_value_within_run: bool = True
    remove_protein_with_1_feature: bool = False
    which_proteinid: str = PROTEIN_ACCESSIONS

    # Regex removed from the start of channel labels after the annotation join
    channel_prefix_pattern: str | None = '^X'

    n_workers: int = 1  # Parallel workers for the multiple-measurement resolver

    def __post_init__(self):
        if self.summary_for_multiple_rows not in SUMMARY_METHODS:
            raise ConfigurationError(
                f"summaryforMultipleRows must be one of {SUMMARY_METHODS}, "
                f"got '{self.summary_for_multiple_rows}'"
            )
        if self.n_workers < 0:
            raise ConfigurationError(f"n_workers must be >= 0, got {self.n_workers}")

    @classmethod
    def from_dict(cls, options: dict | None) -> ConversionConfig:
        """Build a config from a dict of snake_case or MSstatsTMT option names."""
        if not options:
            return cls()

        valid = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in options.items():
            name = OPTION_ALIASES.get(key, key)
            if name not in valid:
                raise ConfigurationError(f"Unknown conversion option: '{key}'")
            kwargs[name] = value

        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


def default_config() -> dict:
    """Return the default configuration tree used by the CLI."""
    return {
        'conversion': ConversionConfig().to_dict(),
        'summarization': {
            'method': 'median_polish',
            'log_transform': True,
            'median_polish': {'max_iterations': 10, 'convergence_tolerance': 0.0001},
        },
        'output': {
            'format': 'parquet',
            'write_metadata': True,
        },
    }


def load_config(config_path: Path | None) -> dict:
    """Load configuration from YAML file or return defaults."""
    config = default_config()

    if config_path and Path(config_path).exists():
        with open(config_path) as f:
            user_config = yaml.safe_load(f) or {}
        # Deep merge user config over defaults
        config = _deep_merge(config, user_config)
        logger.debug(f"Loaded configuration from {config_path}")
    elif config_path:
        logger.warning(f"Config file {config_path} not found - using defaults")

    return config


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override dict into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
