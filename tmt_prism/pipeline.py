"""PSM -> feature conversion pipeline for Proteome Discoverer TMT output.

Stages, strictly in this order:

1. Protein-id column selection
2. Projection onto the canonical wide schema
3. Shared peptide removal
4. Multiple-measurement resolution
5. Wide -> long reshaping
6. Annotation join
7. Within-run completeness filter (optional)
8. Single-feature protein filter (optional)
9. Fraction combination (optional)

Each stage derives a new table; nothing is modified in place.
"""

from __future__ import annotations

import logging

import pandas as pd

from .config import ConversionConfig
from .data_io import standardize_channel_labels, standardize_pd_columns, validate_annotation
from .filtering import (
    remove_incomplete_features,
    remove_shared_peptides,
    remove_single_feature_proteins,
)
from .fractions import combine_fractions
from .multiple_measurements import resolve_multiple_measurements
from .notices import ConversionResult, StageResult
from .reshape import join_annotation, melt_channels
from .schema import present_channels, project_columns, resolve_protein_columns

logger = logging.getLogger(__name__)


def _build_config(config: ConversionConfig | None, options: dict) -> ConversionConfig:
    if config is None:
        return ConversionConfig.from_dict(options)
    if options:
        return ConversionConfig.from_dict({**config.to_dict(), **options})
    return config


def pd_to_tmt_format(
    input: pd.DataFrame,
    annotation: pd.DataFrame,
    config: ConversionConfig | None = None,
    **options,
) -> ConversionResult:
    """Convert a PD PSM table into the long, annotated feature table.

    Args:
        input: PSM sheet exported by Proteome Discoverer (raw or sanitized headers)
        annotation: Table with Run, Channel, Condition, BioReplicate, Mixture
        config: Conversion options (defaults when None)
        **options: Individual option overrides, by field name or by the
            MSstatsTMT option names (e.g. ``useUniquePeptide=False``)

    Returns:
        ConversionResult with the long table, the notices raised by every
        stage and a short method log

    Raises:
        ConfigurationError: Bad option value or incomplete annotation
        SchemaError: No usable protein-id column or other required column
        AnnotationError: Some (Run, Channel) pair in the data is not annotated
    """
    config = _build_config(config, options)
    annotation = standardize_channel_labels(validate_annotation(annotation))
    data = standardize_pd_columns(input)

    n_input_rows = len(data)
    notices = []
    method_log = []

    def record(stage: StageResult, step: str) -> pd.DataFrame:
        notices.extend(stage.notices)
        method_log.append(f"{step}: {len(stage.data)} rows")
        logger.debug(f"{step}: {len(stage.data)} rows")
        return stage.data

    logger.info(f"Converting {n_input_rows} PSMs")

    # 1-2. Schema
    protein_columns = resolve_protein_columns(config.which_proteinid, data.columns)
    notices.extend(protein_columns.notices)
    method_log.append(f"Protein ids from {protein_columns.protein_col}")

    expected_channels = [str(c) for c in annotation['Channel'].unique()]
    data = record(
        project_columns(
            data,
            protein_columns,
            expected_channels,
            require_count=config.use_num_proteins_column,
            require_quan_info=config.use_unique_peptide,
        ),
        'Column projection',
    )
    channels = present_channels(data, expected_channels)

    # 3. Shared peptides
    data = record(
        remove_shared_peptides(
            data,
            use_num_proteins_column=config.use_num_proteins_column,
            use_unique_peptide=config.use_unique_peptide,
        ),
        'Shared peptide removal',
    )

    # 4. Multiple measurements per feature and run
    data = record(
        resolve_multiple_measurements(
            data,
            channels,
            summary=config.summary_for_multiple_rows,
            n_workers=config.n_workers,
        ),
        f"Multiple measurements ({config.summary_for_multiple_rows})",
    )

    # 5-6. Long format with annotation
    data = record(melt_channels(data, channels), 'Long format')
    data = record(
        join_annotation(data, annotation, config.channel_prefix_pattern),
        'Annotation join',
    )

    # 7. Missing values within a run
    if config.remove_psm_with_missing_value_within_run:
        data = record(
            remove_incomplete_features(data, n_channels=len(expected_channels)),
            'Within-run completeness filter',
        )

    # 8. Proteins with one feature
    if config.remove_protein_with_1_feature:
        data = record(
            remove_single_feature_proteins(data),
            'Single-feature protein filter',
        )

    # 9. Fractions
    if config.fraction:
        data = record(combine_fractions(data), 'Fraction combination')

    data = data.reset_index(drop=True)
    logger.info(
        f"Conversion complete: {len(data)} rows, "
        f"{data['ProteinName'].nunique()} proteins, {data['PSM'].nunique()} features"
    )

    return ConversionResult(
        data=data,
        notices=notices,
        method_log=method_log,
        n_input_rows=n_input_rows,
    )
