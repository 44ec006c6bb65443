"""Row filters applied before and after reshaping.

- Shared peptide removal (wide table, before multiple-measurement resolution)
- Within-run completeness (long table)
- Proteins supported by a single feature (long table)
"""

from __future__ import annotations

import logging

import pandas as pd

from .notices import NoticeKind, StageResult, make_notice

logger = logging.getLogger(__name__)

UNIQUE_MARKER = 'Unique'


def _is_single_protein(num_protein: pd.Series) -> pd.Series:
    """True where the protein count is exactly one (1, 1.0 or '1')."""
    numeric = pd.to_numeric(num_protein, errors='coerce')
    return (numeric == 1) | (num_protein.astype(str).str.strip() == '1')


def remove_shared_peptides(
    data: pd.DataFrame,
    use_num_proteins_column: bool = True,
    use_unique_peptide: bool = True,
) -> StageResult:
    """Remove PSMs whose peptide is assigned to more than one protein.

    Two independent signals, applied in order:

    1. Count-based (use_num_proteins_column): keep rows with numProtein == 1.
    2. Tag-based (use_unique_peptide): if Quan.Info ever equals 'Unique',
       keep only those rows, then recount distinct proteins per peptide
       sequence over distinct (ProteinName, PeptideSequence) pairs and drop
       every peptide that maps to more than one protein. A table without the
       marker passes through unchanged.

    Args:
        data: Canonical wide PSM table
        use_num_proteins_column: Apply the count-based filter
        use_unique_peptide: Apply the tag-based filter

    Returns:
        StageResult with the filtered table
    """
    notices = []
    result = data

    if use_num_proteins_column:
        keep = _is_single_protein(result['numProtein'])
        n_removed = int((~keep).sum())
        result = result.loc[keep]
        if n_removed > 0:
            notices.append(make_notice(
                NoticeKind.SHARED_PSMS_REMOVED,
                f"Removed {n_removed} shared PSMs (assigned to multiple proteins)",
                n_removed=n_removed,
            ))

    if use_unique_peptide and (result['Quan.Info'] == UNIQUE_MARKER).any():
        n_before = len(result)
        result = result.loc[result['Quan.Info'] == UNIQUE_MARKER]

        pairs = result[['ProteinName', 'PeptideSequence']].drop_duplicates()
        proteins_per_peptide = pairs.groupby('PeptideSequence')['ProteinName'].size()
        shared = proteins_per_peptide[proteins_per_peptide > 1].index

        result = result.loc[~result['PeptideSequence'].isin(shared)]
        n_removed = n_before - len(result)
        if n_removed > 0:
            notices.append(make_notice(
                NoticeKind.SHARED_PEPTIDES_REMOVED,
                f"Removed {n_removed} PSMs of peptides that are not unique "
                f"({len(shared)} peptides used in more than one protein)",
                n_removed=n_removed,
                peptides=list(shared),
            ))

    return StageResult(data=result.reset_index(drop=True), notices=notices)


def remove_incomplete_features(
    data: pd.DataFrame,
    n_channels: int,
) -> StageResult:
    """Drop features that miss any channel within a run.

    Rows with a missing Intensity are removed, and every (PSM, Run) pair with
    fewer than n_channels observations loses all of its rows in that run.

    Args:
        data: Long-format annotated table
        n_channels: Number of distinct channels expected per run

    Returns:
        StageResult with the filtered table
    """
    observed = data.loc[data['Intensity'].notna()]
    counts = observed.groupby(['PSM', 'Run'], observed=True)['Intensity'].transform('size')
    result = observed.loc[counts >= n_channels].reset_index(drop=True)

    notices = []
    n_incomplete = (
        data[['PSM', 'Run']].drop_duplicates().shape[0]
        - result[['PSM', 'Run']].drop_duplicates().shape[0]
    )
    if len(result) < len(data):
        notices.append(make_notice(
            NoticeKind.INCOMPLETE_FEATURES_REMOVED,
            f"Removed {n_incomplete} features with missing values within a run "
            f"({len(data) - len(result)} rows)",
            n_features=n_incomplete,
            n_rows=len(data) - len(result),
        ))

    return StageResult(data=result, notices=notices)


def remove_single_feature_proteins(data: pd.DataFrame) -> StageResult:
    """Drop proteins that are supported by only one (peptide, charge) feature."""
    features = data[['ProteinName', 'PSM']].drop_duplicates()
    per_protein = features.groupby('ProteinName', observed=True).size()
    n_total = len(per_protein)
    single = per_protein[per_protein <= 1].index

    notices = []
    if len(single) > 0:
        data = data.loc[~data['ProteinName'].isin(single)]
        notices.append(make_notice(
            NoticeKind.SINGLE_FEATURE_PROTEINS_REMOVED,
            f"{len(single)} proteins, which have only one feature in a protein, "
            f"are removed among {n_total} proteins",
            n_removed=len(single),
            n_total=n_total,
        ))

    return StageResult(data=data.reset_index(drop=True), notices=notices)
