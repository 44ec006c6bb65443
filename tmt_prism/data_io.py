"""Data I/O module for loading PD PSM reports and run/channel annotations."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

import pandas as pd
import pyarrow.parquet as pq

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Protein id columns recognized in PD PSM exports (sanitized names)
PROTEIN_ID_COLUMNS = ['Protein.Accessions', 'Master.Protein.Accessions']

# Required columns for processing (sanitized names)
REQUIRED_COLUMNS = [
    'Annotated.Sequence',
    'Charge',
    'Ions.Score',
    'Spectrum.File',
    'Quan.Info',
]

# Annotation required columns
ANNOTATION_REQUIRED = ['Run', 'Channel', 'Condition', 'BioReplicate', 'Mixture']


@dataclass
class ValidationResult:
    """Result of validating a PD PSM report."""

    is_valid: bool
    filepath: Path
    missing_required: list[str] = field(default_factory=list)
    missing_protein_id: bool = False
    warnings: list[str] = field(default_factory=list)
    n_rows: int = 0
    n_runs: int = 0

    def __str__(self) -> str:
        if self.is_valid:
            return f"Valid: {self.filepath.name} ({self.n_rows} PSMs, {self.n_runs} runs)"
        else:
            issues = []
            if self.missing_required:
                issues.append(f"Missing columns: {self.missing_required}")
            if self.missing_protein_id:
                issues.append(f"No protein id column (one of {PROTEIN_ID_COLUMNS})")
            return f"Invalid: {self.filepath.name} - {'; '.join(issues)}"


def make_syntactic_name(name) -> str:
    """Turn a column header into a syntactic name.

    A name that does not start with a letter, or with a dot not followed by
    a digit, gets an ``X`` prefix; every character other than letters,
    digits, ``.`` and ``_`` becomes ``.``. Syntactic names are unchanged.

    Examples:
        >>> make_syntactic_name('# Proteins')
        'X..Proteins'
        >>> make_syntactic_name('Master Protein Accessions')
        'Master.Protein.Accessions'
        >>> make_syntactic_name('126')
        'X126'
        >>> make_syntactic_name('Abundance: 127N')
        'Abundance..127N'
    """
    name = str(name)
    if not re.match(r'[A-Za-z]|\.(?![0-9])', name):
        name = 'X' + name
    return re.sub(r'[^A-Za-z0-9._]', '.', name)


def standardize_pd_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename PD export headers to their syntactic names."""
    rename_map = {col: make_syntactic_name(col) for col in df.columns}
    rename_map = {k: v for k, v in rename_map.items() if k != v}
    if not rename_map:
        return df
    return df.rename(columns=rename_map)


def standardize_channel_labels(annotation: pd.DataFrame) -> pd.DataFrame:
    """Give annotation channels the same syntactic form as the PSM columns."""
    annotation = annotation.copy()
    annotation['Channel'] = annotation['Channel'].map(make_syntactic_name)
    return annotation


def _detect_separator(filepath: Path) -> str:
    suffix = filepath.suffix.lower()
    return '\t' if suffix in ['.tsv', '.txt'] else ','


def _read_header(filepath: Path) -> list[str]:
    """Column names of a report without loading its rows."""
    if filepath.suffix.lower() == '.parquet':
        return pq.ParquetFile(filepath).schema_arrow.names
    return list(pd.read_csv(filepath, sep=_detect_separator(filepath), nrows=0).columns)


def _read_table(filepath: Path) -> pd.DataFrame:
    if filepath.suffix.lower() == '.parquet':
        return pd.read_parquet(filepath)
    return pd.read_csv(filepath, sep=_detect_separator(filepath))


def validate_psm_report(filepath: Path) -> ValidationResult:
    """Validate that a PD PSM report has the required columns.

    Args:
        filepath: Path to the PSM report (CSV, TSV/TXT or parquet)

    Returns:
        ValidationResult with validation details

    """
    filepath = Path(filepath)
    result = ValidationResult(is_valid=True, filepath=filepath)

    try:
        # Read just the header first
        header = {make_syntactic_name(col) for col in _read_header(filepath)}
    except (OSError, ValueError, pd.errors.ParserError) as e:
        result.is_valid = False
        result.warnings.append(f"Error reading file: {str(e)}")
        return result

    for col in REQUIRED_COLUMNS:
        if col not in header:
            result.missing_required.append(col)
            result.is_valid = False

    if not any(col in header for col in PROTEIN_ID_COLUMNS):
        result.missing_protein_id = True
        result.is_valid = False

    # Warnings for missing optional columns
    if 'X..Proteins' not in header and 'X..Protein.Groups' not in header:
        result.warnings.append(
            "No '# Proteins' / '# Protein Groups' column - shared PSM filtering "
            "by protein count is unavailable"
        )

    # If valid, get some stats
    if result.is_valid:
        df_full = standardize_pd_columns(_read_table(filepath))
        result.n_rows = len(df_full)
        result.n_runs = df_full['Spectrum.File'].nunique()

    return result


def load_psm_report(
    filepath: Path,
    validate: bool = True,
) -> pd.DataFrame:
    """Load a PD PSM report with syntactic column names.

    Args:
        filepath: Path to CSV/TSV/TXT or parquet report
        validate: Whether to validate before loading

    Returns:
        DataFrame with standardized column names

    Raises:
        ValueError: If validation fails and validate=True

    """
    filepath = Path(filepath)

    if validate:
        validation = validate_psm_report(filepath)
        if not validation.is_valid:
            raise ValueError(f"Invalid PSM report: {validation}")
        for w in validation.warnings:
            logger.warning(w)

    df = standardize_pd_columns(_read_table(filepath))
    logger.info(f"Loaded {len(df)} PSMs from {filepath}")

    return df


def validate_annotation(annotation: pd.DataFrame) -> pd.DataFrame:
    """Check an annotation table and return it unchanged.

    Raises:
        ConfigurationError: If required columns are missing or a
            (Run, Channel) pair is annotated more than once
    """
    missing = [col for col in ANNOTATION_REQUIRED if col not in annotation.columns]
    if missing:
        raise ConfigurationError(
            f"Please check the required columns in the annotation file. "
            f"Columns {', '.join(missing)} are missing.",
            missing_columns=missing,
        )

    keys = annotation[['Run', 'Channel']].astype(str)
    duplicated = keys[keys.duplicated()].drop_duplicates()
    if len(duplicated) > 0:
        pairs = list(duplicated.itertuples(index=False, name=None))
        raise ConfigurationError(
            f"Annotation has more than one row for (Run, Channel): {pairs}"
        )

    return annotation


def load_annotation(source: Union[Path, str, pd.DataFrame]) -> pd.DataFrame:
    """Load and validate the run/channel annotation.

    Args:
        source: Path to annotation CSV/TSV, or an in-memory DataFrame

    Returns:
        Validated annotation DataFrame

    Raises:
        ConfigurationError: If validation fails

    """
    if isinstance(source, pd.DataFrame):
        annotation = source
    else:
        filepath = Path(source)
        annotation = pd.read_csv(
            filepath,
            sep=_detect_separator(filepath),
            dtype={'Run': str, 'Channel': str},
        )
        logger.info(f"Loaded annotation for {len(annotation)} run/channel pairs "
                    f"from {filepath}")

    return validate_annotation(annotation)


def write_table(df: pd.DataFrame, output_path: Path) -> Path:
    """Write a table as parquet, CSV or TSV depending on the file suffix."""
    output_path = Path(output_path)
    suffix = output_path.suffix.lower()

    if suffix == '.parquet':
        # Categorical channels round-trip through parquet
        df.to_parquet(output_path, index=False)
    elif suffix == '.csv':
        df.to_csv(output_path, index=False)
    elif suffix in ['.tsv', '.txt']:
        df.to_csv(output_path, sep='\t', index=False)
    else:
        raise ValueError(f"Unsupported output format: {output_path.suffix}")

    logger.info(f"Wrote {len(df)} rows to {output_path}")
    return output_path


def load_converted_data(path: Path) -> pd.DataFrame:
    """Load a table written by write_table."""
    path = Path(path)
    if path.suffix.lower() == '.parquet' or path.is_dir():
        return pd.read_parquet(path)
    return pd.read_csv(path, sep=_detect_separator(path), dtype={'Channel': str})
