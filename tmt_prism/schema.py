"""Protein-id column selection and projection onto the canonical schema.

PD PSM exports carry the protein assignment in either ``Protein.Accessions``
(paired with the ``X..Proteins`` count) or ``Master.Protein.Accessions``
(paired with ``X..Protein.Groups``). Column names here are the syntactic
forms produced by data_io.standardize_pd_columns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from .config import MASTER_PROTEIN_ACCESSIONS, PROTEIN_ACCESSIONS, PROTEIN_ID_CHOICES
from .exceptions import ConfigurationError, SchemaError
from .notices import Notice, NoticeKind, StageResult, make_notice

logger = logging.getLogger(__name__)

# Companion protein-count column for each protein-id convention
PROTEIN_COUNT_COLUMNS = {
    PROTEIN_ACCESSIONS: 'X..Proteins',
    MASTER_PROTEIN_ACCESSIONS: 'X..Protein.Groups',
}

# PD column -> canonical name (protein id / count are added per selection)
PD_COLUMN_MAP = {
    'Annotated.Sequence': 'PeptideSequence',
    'Charge': 'Charge',
    'Ions.Score': 'Ions.Score',
    'Spectrum.File': 'Run',
    'Quan.Info': 'Quan.Info',
}

# Canonical wide schema, in order, before the channel columns
CANONICAL_COLUMNS = [
    'ProteinName',
    'numProtein',
    'PeptideSequence',
    'Charge',
    'Ions.Score',
    'Run',
    'Quan.Info',
]


@dataclass
class ProteinColumns:
    """Effective protein-id column and its protein-count companion."""

    protein_col: str
    count_col: str
    notices: list[Notice] = field(default_factory=list)


def resolve_protein_columns(
    preference: str,
    columns,
) -> ProteinColumns:
    """Pick the protein-id column to use.

    Args:
        preference: 'Protein.Accessions' or 'Master.Protein.Accessions'
        columns: Column names present in the input table

    Returns:
        ProteinColumns with the chosen id and count columns

    Raises:
        ConfigurationError: If the preference is not a known column name
        SchemaError: If neither protein-id column is present
    """
    if preference not in PROTEIN_ID_CHOICES:
        raise ConfigurationError(
            f"which.proteinid must be one of {PROTEIN_ID_CHOICES}, got '{preference}'"
        )

    available = set(columns)
    alternate = (
        MASTER_PROTEIN_ACCESSIONS if preference == PROTEIN_ACCESSIONS
        else PROTEIN_ACCESSIONS
    )

    notices = []
    if preference in available:
        protein_col = preference
    elif alternate in available:
        protein_col = alternate
        notices.append(make_notice(
            NoticeKind.PROTEIN_ID_FALLBACK,
            f"Column {preference} not found - using {alternate} for protein ids",
            requested=preference,
            used=alternate,
        ))
    else:
        raise SchemaError(
            f"Input has no protein id column; expected one of {PROTEIN_ID_CHOICES}"
        )

    return ProteinColumns(
        protein_col=protein_col,
        count_col=PROTEIN_COUNT_COLUMNS[protein_col],
        notices=notices,
    )


def project_columns(
    data: pd.DataFrame,
    protein_columns: ProteinColumns,
    channels: list[str],
    require_count: bool = True,
    require_quan_info: bool = True,
) -> StageResult:
    """Subset and rename the PSM table to the canonical wide schema.

    Output columns are CANONICAL_COLUMNS followed by the annotation channels
    found in the input (in annotation order). Nothing else survives.

    Args:
        data: PSM table with standardized PD column names
        protein_columns: Result of resolve_protein_columns
        channels: Channel labels from the annotation
        require_count: Whether the protein-count column must be present
        require_quan_info: Whether the Quan.Info column must be present

    Returns:
        StageResult with the projected table

    Raises:
        SchemaError: If a required non-channel column is missing
    """
    source_map = {protein_columns.protein_col: 'ProteinName'}
    source_map.update(PD_COLUMN_MAP)

    optional = set()
    if not require_count:
        optional.add('numProtein')
    if not require_quan_info:
        optional.add('Quan.Info')

    missing = [src for src, dst in source_map.items()
               if src not in data.columns and dst not in optional]
    if require_count and protein_columns.count_col not in data.columns:
        missing.append(protein_columns.count_col)
    if missing:
        raise SchemaError(f"Input is missing required columns: {missing}")

    notices = []
    present_channels = []
    for channel in channels:
        if channel in data.columns:
            present_channels.append(channel)
        else:
            notices.append(make_notice(
                NoticeKind.MISSING_CHANNEL,
                f"Channel {channel} from the annotation is not a column of the input",
                channel=channel,
            ))

    projected = pd.DataFrame(index=data.index)
    projected['ProteinName'] = data[protein_columns.protein_col]
    if protein_columns.count_col in data.columns:
        projected['numProtein'] = data[protein_columns.count_col]
    else:
        projected['numProtein'] = np.nan
    for src, dst in PD_COLUMN_MAP.items():
        projected[dst] = data[src] if src in data.columns else np.nan
    for channel in present_channels:
        projected[channel] = pd.to_numeric(data[channel], errors='coerce')

    projected = projected.reset_index(drop=True)
    logger.debug(
        f"Projected {len(projected)} PSMs onto {len(present_channels)} channels "
        f"using {protein_columns.protein_col}"
    )

    return StageResult(data=projected[CANONICAL_COLUMNS + present_channels], notices=notices)


def present_channels(data: pd.DataFrame, channels: list[str]) -> list[str]:
    """Channels from the annotation that are columns of data, in annotation order."""
    return [c for c in channels if c in data.columns]
