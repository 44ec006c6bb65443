"""Tests for reshaping and annotation join."""

import numpy as np
import pandas as pd
import pytest

from tmt_prism.exceptions import AnnotationError
from tmt_prism.reshape import (
    OUTPUT_COLUMNS,
    join_annotation,
    melt_channels,
    normalize_channel_label,
)


def _wide():
    return pd.DataFrame({
        'ProteinName': ['P1', 'P2'],
        'numProtein': [1, 1],
        'PeptideSequence': ['AAAK', 'CCCK'],
        'Charge': [2, 3],
        'Ions.Score': [30.0, 40.0],
        'Run': ['run1', 'run1'],
        'Quan.Info': ['Unique', 'Unique'],
        'X126': [100.0, 200.0],
        'X127N': [110.0, np.nan],
    })


def _annotation(runs=('run1',)):
    rows = []
    for run in runs:
        rows.append({'Run': run, 'Channel': 'X126', 'Condition': 'A',
                     'BioReplicate': 'b1', 'Mixture': 'M1'})
        rows.append({'Run': run, 'Channel': 'X127N', 'Condition': 'B',
                     'BioReplicate': 'b2', 'Mixture': 'M1'})
    return pd.DataFrame(rows)


class TestMeltChannels:
    """Tests for wide -> long reshaping."""

    def test_one_row_per_psm_and_channel(self):
        result = melt_channels(_wide(), ['X126', 'X127N'])

        assert len(result.data) == 4
        assert list(result.data.columns) == [
            'ProteinName', 'PeptideSequence', 'Charge', 'Run', 'Channel', 'Intensity'
        ]
        aaak = result.data[result.data['PeptideSequence'] == 'AAAK']
        assert dict(zip(aaak['Channel'], aaak['Intensity'])) == {'X126': 100.0, 'X127N': 110.0}

    def test_missing_intensity_kept(self):
        result = melt_channels(_wide(), ['X126', 'X127N'])
        assert result.data['Intensity'].isna().sum() == 1

    def test_exact_duplicates_dropped(self):
        wide = pd.concat([_wide(), _wide().iloc[[0]]], ignore_index=True)

        result = melt_channels(wide, ['X126', 'X127N'])

        assert len(result.data) == 4


class TestNormalizeChannelLabel:
    """Tests for channel label cleanup."""

    def test_default_pattern(self):
        assert normalize_channel_label('X126') == '126'
        assert normalize_channel_label('X127N') == '127N'
        assert normalize_channel_label('126') == '126'

    def test_only_one_prefix_removed(self):
        assert normalize_channel_label('XX126') == 'X126'

    def test_custom_pattern(self):
        assert normalize_channel_label('Abundance..126', r'^Abundance\.\.') == '126'

    def test_disabled(self):
        assert normalize_channel_label('X126', None) == 'X126'
        assert normalize_channel_label('X126', '') == 'X126'


class TestJoinAnnotation:
    """Tests for annotation join."""

    def test_complete_annotation(self):
        long = melt_channels(_wide(), ['X126', 'X127N']).data

        result = join_annotation(long, _annotation())

        assert list(result.data.columns) == OUTPUT_COLUMNS
        assert len(result.data) == len(long)
        assert result.data['Condition'].notna().all()
        assert set(result.data['PSM']) == {'AAAK_2', 'CCCK_3'}
        assert isinstance(result.data['Channel'].dtype, pd.CategoricalDtype)
        assert set(result.data['Channel'].astype(str)) == {'126', '127N'}

    def test_conditions_follow_channel(self):
        long = melt_channels(_wide(), ['X126', 'X127N']).data

        result = join_annotation(long, _annotation()).data

        conditions = dict(zip(result['Channel'].astype(str), result['Condition']))
        assert conditions == {'126': 'A', '127N': 'B'}

    def test_extra_annotation_rows_ignored(self):
        long = melt_channels(_wide(), ['X126', 'X127N']).data

        result = join_annotation(long, _annotation(runs=('run1', 'run2')))

        assert len(result.data) == len(long)

    def test_missing_run_raises(self):
        """Test that an unannotated (Run, Channel) pair aborts the join."""
        wide = _wide()
        wide.loc[1, 'Run'] = 'run2'
        long = melt_channels(wide, ['X126', 'X127N']).data

        with pytest.raises(AnnotationError) as excinfo:
            join_annotation(long, _annotation())

        assert sorted(excinfo.value.missing) == [('run2', '126'), ('run2', '127N')]

    def test_numeric_run_matches_text_annotation(self):
        wide = _wide()
        wide['Run'] = [1, 1]
        long = melt_channels(wide, ['X126', 'X127N']).data
        annotation = _annotation(runs=('1',))

        result = join_annotation(long, annotation)

        assert result.data['Condition'].notna().all()

    def test_prefix_pattern_none_keeps_labels(self):
        long = melt_channels(_wide(), ['X126', 'X127N']).data

        result = join_annotation(long, _annotation(), channel_prefix_pattern=None)

        assert set(result.data['Channel'].astype(str)) == {'X126', 'X127N'}
