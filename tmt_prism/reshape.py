"""Wide -> long reshaping and annotation of the PSM table."""

from __future__ import annotations

import logging
import re

import pandas as pd

from .exceptions import AnnotationError
from .notices import NoticeKind, StageResult, make_notice

logger = logging.getLogger(__name__)

ID_COLUMNS = ['ProteinName', 'PeptideSequence', 'Charge', 'Run']

ANNOTATION_COLUMNS = ['Run', 'Channel', 'Condition', 'BioReplicate', 'Mixture']

OUTPUT_COLUMNS = [
    'ProteinName',
    'PeptideSequence',
    'Charge',
    'PSM',
    'Channel',
    'Condition',
    'BioReplicate',
    'Run',
    'Mixture',
    'Intensity',
]


def melt_channels(data: pd.DataFrame, channels: list[str]) -> StageResult:
    """Pivot channel columns into (Channel, Intensity) pairs.

    One output row per input row and channel; exact duplicate rows are
    dropped afterwards.
    """
    long = data.melt(
        id_vars=ID_COLUMNS,
        value_vars=channels,
        var_name='Channel',
        value_name='Intensity',
    )
    long = long.drop_duplicates().reset_index(drop=True)
    return StageResult(data=long)


def normalize_channel_label(label, pattern: str | None = '^X') -> str:
    """Strip an upstream naming artifact from the start of a channel label.

    Header sanitizing turns a channel such as ``126`` into ``X126``; the
    default pattern removes that single leading ``X``.

    Examples:
        >>> normalize_channel_label('X126')
        '126'
        >>> normalize_channel_label('X127N')
        '127N'
        >>> normalize_channel_label('126')
        '126'
        >>> normalize_channel_label('X126', pattern=None)
        'X126'
    """
    label = str(label)
    if not pattern:
        return label
    return re.sub(pattern, '', label, count=1)


def join_annotation(
    data: pd.DataFrame,
    annotation: pd.DataFrame,
    channel_prefix_pattern: str | None = '^X',
) -> StageResult:
    """Attach Condition, BioReplicate and Mixture by (Run, Channel).

    Every (Run, Channel) pair of the data must be annotated. Missing pairs
    are reported one notice each and then abort the conversion.

    Args:
        data: Long table from melt_channels
        annotation: Annotation with Run, Channel, Condition, BioReplicate, Mixture
        channel_prefix_pattern: Regex stripped from channel labels after the join

    Returns:
        StageResult with the table in OUTPUT_COLUMNS order

    Raises:
        AnnotationError: If any (Run, Channel) pair has no annotation row
    """
    annot = annotation[ANNOTATION_COLUMNS].copy()
    annot['Run'] = annot['Run'].astype(str)
    annot['Channel'] = annot['Channel'].astype(str)

    left = data.copy()
    left['Run'] = left['Run'].astype(str)
    left['Channel'] = left['Channel'].astype(str)

    merged = left.merge(annot, on=['Run', 'Channel'], how='left')

    no_run_info = (
        merged.loc[merged['Condition'].isna(), ['Run', 'Channel']]
        .drop_duplicates()
    )
    if len(no_run_info) > 0:
        missing = [
            (run, normalize_channel_label(channel, channel_prefix_pattern))
            for run, channel in no_run_info.itertuples(index=False, name=None)
        ]
        notices = [
            make_notice(
                NoticeKind.MISSING_ANNOTATION,
                f"Annotation for Run : {run}, Channel : {channel} is missing",
                run=run,
                channel=channel,
            )
            for run, channel in missing
        ]
        raise AnnotationError(
            f"{len(notices)} (Run, Channel) combinations have no annotation - "
            f"please add them to the annotation file",
            missing=missing,
        )

    merged['PSM'] = (
        merged['PeptideSequence'].astype(str) + '_' + merged['Charge'].astype(str)
    )
    merged['Channel'] = pd.Categorical(
        merged['Channel'].map(
            lambda label: normalize_channel_label(label, channel_prefix_pattern)
        )
    )

    return StageResult(data=merged[OUTPUT_COLUMNS])
