"""Combination of fractionated runs into one run per mixture.

A mixture may be split into several chromatographic fractions, each
acquired as its own run. Peptide ions quantified in more than one fraction
of the same mixture would be counted twice, so they are removed (not
averaged) before the fractions are merged into a single pseudo-run named
after the mixture.
"""

from __future__ import annotations

import logging

import pandas as pd

from .notices import NoticeKind, StageResult, make_notice

logger = logging.getLogger(__name__)

COMBINED_MIXTURE = 'Single'


def remove_shared_fraction_ions(mixture_data: pd.DataFrame) -> tuple[pd.DataFrame, int]:
    """Drop (PSM, ProteinName) keys seen in more than one run of a mixture.

    Rows with missing Intensity are removed first.

    Returns:
        Tuple of (filtered rows, number of peptide ions removed)
    """
    observed = mixture_data.loc[mixture_data['Intensity'].notna()]
    n_runs = observed.groupby(['PSM', 'ProteinName'], observed=True)['Run'].transform('nunique')
    shared = n_runs > 1
    n_removed = observed.loc[shared, ['PSM', 'ProteinName']].drop_duplicates().shape[0]
    return observed.loc[~shared], n_removed


def combine_fractions(data: pd.DataFrame) -> StageResult:
    """Merge all fractions of each mixture into one run.

    Per mixture, ions shared across fractions are removed; then Run is set to
    the mixture identifier and Mixture to COMBINED_MIXTURE. The result is
    deduplicated.

    Args:
        data: Long annotated table with PSM, ProteinName, Run, Mixture, Intensity

    Returns:
        StageResult with one synthetic run per mixture
    """
    notices = []
    parts = []

    for mixture, mixture_data in data.groupby('Mixture', sort=False, observed=True):
        kept, n_removed = remove_shared_fraction_ions(mixture_data)
        if n_removed > 0:
            notices.append(make_notice(
                NoticeKind.SHARED_FRACTION_IONS_REMOVED,
                f"Removed {n_removed} peptide ions shared by more than one "
                f"fraction of mixture {mixture}",
                mixture=mixture,
                n_removed=n_removed,
            ))
        parts.append(kept)

    if parts:
        combined = pd.concat(parts)
    else:
        combined = data.iloc[0:0]

    combined = combined.assign(
        Run=combined['Mixture'].astype(str),
        Mixture=COMBINED_MIXTURE,
    )
    combined = combined.drop_duplicates().reset_index(drop=True)

    notices.append(make_notice(
        NoticeKind.FRACTIONS_COMBINED,
        f"Fractions belonging to the same mixture have been combined "
        f"({data['Mixture'].nunique()} mixtures)",
        n_mixtures=int(data['Mixture'].nunique()),
    ))

    return StageResult(data=combined, notices=notices)
