"""Resolution of multiple measurements of one feature within one run.

A feature (peptide sequence + charge, per protein) can be quantified by
several PSMs in the same run. Only one row per (feature, protein, run) is
kept, chosen by an elimination cascade where each stage keeps only the
rows tied at its optimum:

1. Completeness: most non-missing channel intensities
2. Identification confidence: highest Ions.Score (skipped when any
   candidate has no score)
3. Aggregate intensity: highest max (or sum) over the non-missing channels

Partitions are independent, so they can be processed in parallel; the
result is merged back in input order.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from concurrent.futures import ProcessPoolExecutor, as_completed

import numpy as np
import pandas as pd

from .notices import NoticeKind, StageResult, make_notice

logger = logging.getLogger(__name__)


def feature_protein_key(data: pd.DataFrame) -> pd.Series:
    """Build the PeptideSequence_Charge_ProteinName key for each row."""
    return (
        data['PeptideSequence'].astype(str) + '_'
        + data['Charge'].astype(str) + '_'
        + data['ProteinName'].astype(str)
    )


def aggregate_intensity(values: pd.DataFrame, summary: str = 'max') -> pd.Series:
    """Per-row max or sum over non-missing intensities.

    Rows without any intensity get -inf so they never win a comparison.
    """
    if summary == 'max':
        total = values.max(axis=1, skipna=True)
    elif summary == 'sum':
        total = values.sum(axis=1, skipna=True, min_count=1)
    else:
        raise ValueError(f"Unknown summary for multiple rows: {summary}")
    return total.fillna(-np.inf)


def select_measurement(
    rows: pd.DataFrame,
    channels: list[str],
    summary: str = 'max',
) -> pd.DataFrame:
    """Apply the three-stage cascade to the rows of one (feature, run).

    Args:
        rows: All rows measuring the same feature in the same run
        channels: Channel intensity columns
        summary: 'max' or 'sum' aggregate for the intensity stage

    Returns:
        Surviving rows. More than one row only on an exact tie at stage 3.
    """
    candidates = rows

    n_measured = candidates[channels].notna().sum(axis=1)
    candidates = candidates.loc[n_measured == n_measured.max()]
    if len(candidates) < 2:
        return candidates

    scores = pd.to_numeric(candidates['Ions.Score'], errors='coerce')
    if scores.notna().all():
        candidates = candidates.loc[scores == scores.max()]
        if len(candidates) < 2:
            return candidates

    totals = aggregate_intensity(candidates[channels], summary)
    return candidates.loc[totals == totals.max()]


def _resolve_partitions(
    partitions: list[pd.DataFrame],
    channels: list[str],
    summary: str,
) -> list[tuple[object, int]]:
    """Pick one row per partition; returns (selected index label, n_tied)."""
    selected = []
    for rows in partitions:
        survivors = select_measurement(rows, channels, summary)
        selected.append((survivors.index[0], len(survivors)))
    return selected


def _worker_resolve_batch(
    args: tuple[list[pd.DataFrame], list[str], str],
) -> list[tuple[object, int]]:
    """Worker function for parallel resolution (must be picklable)."""
    partitions, channels, summary = args
    return _resolve_partitions(partitions, channels, summary)


def resolve_multiple_measurements(
    data: pd.DataFrame,
    channels: list[str],
    summary: str = 'max',
    n_workers: int = 1,
) -> StageResult:
    """Keep at most one row per (feature, protein, run).

    Rows whose (feature, protein, run) occurs once pass through unchanged.
    For the others, select_measurement narrows the candidates; if several
    rows remain tied after the intensity stage, the first one in input
    order is kept and an UNRESOLVED_TIE notice is raised.

    Args:
        data: Wide PSM table after shared peptide removal
        channels: Channel intensity columns
        summary: 'max' (default) or 'sum'
        n_workers: Number of worker processes (0 = all CPUs)

    Returns:
        StageResult with one row per (feature, protein, run), in input order
    """
    data = data.reset_index(drop=True)
    if data.empty:
        return StageResult(data=data)

    key = feature_protein_key(data)
    group_size = data.groupby(
        [key, data['Run']], sort=False, dropna=False
    )['Run'].transform('size')
    issue_mask = group_size > 1

    if not issue_mask.any():
        return StageResult(data=data)

    issued = data.loc[issue_mask]
    partitions = [
        rows for _, rows in issued.groupby(
            [key[issue_mask], issued['Run']], sort=False, dropna=False
        )
    ]

    n_workers = n_workers if n_workers > 0 else mp.cpu_count()
    if n_workers > 1 and len(partitions) > 1:
        logger.info(f"Resolving {len(partitions)} multiply measured features "
                    f"using {n_workers} parallel workers")
        chunk_size = max(1, len(partitions) // n_workers)
        chunks = [partitions[i:i + chunk_size] for i in range(0, len(partitions), chunk_size)]
        selected = []
        with ProcessPoolExecutor(max_workers=min(n_workers, len(chunks))) as executor:
            futures = [
                executor.submit(_worker_resolve_batch, (chunk, channels, summary))
                for chunk in chunks
            ]
            for future in as_completed(futures):
                selected.extend(future.result())
    else:
        selected = _resolve_partitions(partitions, channels, summary)

    keep_index = {index for index, _ in selected}
    keep = ~issue_mask | data.index.isin(keep_index)
    result = data.loc[keep].reset_index(drop=True)

    notices = [make_notice(
        NoticeKind.MULTIPLE_MEASUREMENTS,
        f"Multiple measurements of {len(partitions)} features within a run were "
        f"reduced to one row each (summaryforMultipleRows={summary})",
        n_features=len(partitions),
        n_rows_removed=len(data) - len(result),
    )]

    n_ties = sum(1 for _, n_tied in selected if n_tied > 1)
    if n_ties > 0:
        notices.append(make_notice(
            NoticeKind.UNRESOLVED_TIE,
            f"{n_ties} features had identical completeness, score and intensity "
            f"across measurements; the first measurement was kept",
            n_features=n_ties,
        ))

    return StageResult(data=result, notices=notices)
