"""
Protein-level summarization of the converted PSM table.

For every protein and run, the PSM x channel matrix of log2 intensities is
summarized into one abundance per channel:
- median_polish: Tukey median polish, abundance = overall + channel effect
- median: per-channel median over PSMs

This produces the protein table handed to group comparison; no hypothesis
testing happens here.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SUMMARIZATION_METHODS = ('median_polish', 'median')

ANNOTATION_COLUMNS = ['Run', 'Channel', 'Condition', 'BioReplicate', 'Mixture']


@dataclass
class MedianPolishResult:
    """
    Result of Tukey median polish.

    The residuals matrix captures deviations from the additive model:
        y_ij = μ + α_i + β_j + ε_ij

    with α_i the PSM effects and β_j the channel effects.
    """
    overall: float                    # Grand effect (μ)
    row_effects: pd.Series            # PSM effects (α)
    col_effects: pd.Series            # Channel effects (β)
    residuals: pd.DataFrame           # Residual matrix (PSMs × channels)
    n_iterations: int
    converged: bool

    @property
    def abundances(self) -> pd.Series:
        """Per-channel protein abundance: overall + channel effect."""
        return (self.overall + self.col_effects).rename('Abundance')


def tukey_median_polish(
    matrix: pd.DataFrame,
    max_iter: int = 10,
    tol: float = 1e-4,
) -> MedianPolishResult:
    """
    Apply Tukey's median polish to a PSM × channel matrix.

    Args:
        matrix: DataFrame with PSMs as rows, channels as columns
                Values should be log2 transformed
        max_iter: Maximum number of iterations
        tol: Convergence tolerance (max absolute change in residuals)

    Returns:
        MedianPolishResult with effects and residuals
    """
    row_idx = matrix.index
    col_idx = matrix.columns

    residuals = matrix.values.copy().astype(float)
    overall = 0.0
    row_effects = np.zeros(len(row_idx))
    col_effects = np.zeros(len(col_idx))

    converged = False

    for iteration in range(max_iter):
        old_residuals = residuals.copy()

        # Row sweep
        row_medians = np.nanmedian(residuals, axis=1)
        row_medians = np.nan_to_num(row_medians)
        residuals = residuals - row_medians[:, np.newaxis]
        row_effects += row_medians
        col_shift = np.nanmedian(col_effects)
        col_effects -= col_shift
        overall += col_shift

        # Column sweep
        col_medians = np.nanmedian(residuals, axis=0)
        col_medians = np.nan_to_num(col_medians)
        residuals = residuals - col_medians[np.newaxis, :]
        col_effects += col_medians
        row_shift = np.nanmedian(row_effects)
        row_effects -= row_shift
        overall += row_shift

        max_change = np.nanmax(np.abs(residuals - old_residuals))
        if max_change < tol:
            converged = True
            break

    result = MedianPolishResult(
        overall=overall,
        row_effects=pd.Series(row_effects, index=row_idx, name='psm_effect'),
        col_effects=pd.Series(col_effects, index=col_idx, name='channel_effect'),
        residuals=pd.DataFrame(residuals, index=row_idx, columns=col_idx),
        n_iterations=iteration + 1,
        converged=converged,
    )

    if not converged:
        logger.debug(f"Median polish did not converge after {max_iter} iterations")

    return result


def _summarize_matrix(matrix: pd.DataFrame, method: str, max_iter: int, tol: float) -> pd.Series:
    if method == 'median_polish':
        return tukey_median_polish(matrix, max_iter=max_iter, tol=tol).abundances
    return matrix.median(axis=0, skipna=True).rename('Abundance')


def summarize_proteins(
    data: pd.DataFrame,
    method: str = 'median_polish',
    log_transform: bool = True,
    max_iter: int = 10,
    tol: float = 1e-4,
) -> pd.DataFrame:
    """
    Summarize converted PSM data to one abundance per protein, run and channel.

    Args:
        data: Output of pd_to_tmt_format (long format)
        method: 'median_polish' (default) or 'median'
        log_transform: Take log2 of Intensity first (non-positive -> missing)
        max_iter: Median polish iterations
        tol: Median polish convergence tolerance

    Returns:
        DataFrame with Mixture, Run, Channel, Protein, Abundance, Condition,
        BioReplicate

    Raises:
        ConfigurationError: If method is unknown
    """
    if method not in SUMMARIZATION_METHODS:
        raise ConfigurationError(
            f"Unknown summarization method: {method}. "
            f"Use one of {SUMMARIZATION_METHODS}"
        )

    values = data.copy()
    values['Channel'] = values['Channel'].astype(str)
    if log_transform:
        intensity = values['Intensity'].where(values['Intensity'] > 0)
        values['Abundance'] = np.log2(intensity)
    else:
        values['Abundance'] = values['Intensity']

    logger.info(f"Summarizing {values['ProteinName'].nunique()} proteins using {method}")

    rows = []
    for (protein, run), group in values.groupby(['ProteinName', 'Run'], sort=True):
        matrix = group.pivot_table(
            index='PSM',
            columns='Channel',
            values='Abundance',
            aggfunc='first',
        )
        if matrix.empty:
            continue
        abundances = _summarize_matrix(matrix, method, max_iter, tol)
        for channel, abundance in abundances.items():
            rows.append({
                'Run': run,
                'Channel': channel,
                'Protein': protein,
                'Abundance': abundance,
            })

    summary = pd.DataFrame(rows, columns=['Run', 'Channel', 'Protein', 'Abundance'])

    annotation = values[ANNOTATION_COLUMNS].drop_duplicates(subset=['Run', 'Channel'])
    summary = summary.merge(annotation, on=['Run', 'Channel'], how='left')

    logger.info(f"Summarized to {summary['Protein'].nunique()} proteins, "
                f"{len(summary)} protein/run/channel values")

    return summary[
        ['Mixture', 'Run', 'Channel', 'Protein', 'Abundance', 'Condition', 'BioReplicate']
    ]
