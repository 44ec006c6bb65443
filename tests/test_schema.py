"""Tests for protein-id selection and column projection."""

import numpy as np
import pandas as pd
import pytest

from tmt_prism.exceptions import ConfigurationError, SchemaError
from tmt_prism.notices import NoticeKind
from tmt_prism.schema import (
    CANONICAL_COLUMNS,
    ProteinColumns,
    present_channels,
    project_columns,
    resolve_protein_columns,
)


def _standardized_psms():
    return pd.DataFrame({
        'Protein.Accessions': ['P1', 'P2'],
        'X..Proteins': [1, 2],
        'Master.Protein.Accessions': ['P1', 'P2;P3'],
        'X..Protein.Groups': [1, 1],
        'Annotated.Sequence': ['AAAK', 'CCCK'],
        'Charge': [2, 3],
        'Ions.Score': [40.0, 35.0],
        'Spectrum.File': ['run1.raw', 'run1.raw'],
        'Quan.Info': ['Unique', 'Unique'],
        'Percolator.q.Value': [0.001, 0.002],
        'X126': [100.0, 200.0],
        'X127N': ['110', 'not a number'],
    })


class TestResolveProteinColumns:
    """Tests for protein-id column selection."""

    def test_preferred_present(self):
        result = resolve_protein_columns('Protein.Accessions', _standardized_psms().columns)

        assert result.protein_col == 'Protein.Accessions'
        assert result.count_col == 'X..Proteins'
        assert result.notices == []

    def test_master_preferred(self):
        result = resolve_protein_columns(
            'Master.Protein.Accessions', _standardized_psms().columns
        )

        assert result.protein_col == 'Master.Protein.Accessions'
        assert result.count_col == 'X..Protein.Groups'
        assert result.notices == []

    def test_fallback_emits_one_notice(self):
        """Test fallback to the alternate column when the preferred one is absent."""
        columns = _standardized_psms().drop(
            columns=['Protein.Accessions', 'X..Proteins']
        ).columns

        result = resolve_protein_columns('Protein.Accessions', columns)

        assert result.protein_col == 'Master.Protein.Accessions'
        assert result.count_col == 'X..Protein.Groups'
        assert len(result.notices) == 1
        assert result.notices[0].kind == NoticeKind.PROTEIN_ID_FALLBACK
        assert result.notices[0].payload == {
            'requested': 'Protein.Accessions',
            'used': 'Master.Protein.Accessions',
        }

    def test_fallback_other_direction(self):
        columns = ['Protein.Accessions', 'Charge']
        result = resolve_protein_columns('Master.Protein.Accessions', columns)

        assert result.protein_col == 'Protein.Accessions'
        assert len(result.notices) == 1

    def test_neither_present_raises(self):
        with pytest.raises(SchemaError):
            resolve_protein_columns('Protein.Accessions', ['Charge', 'Spectrum.File'])

    def test_unknown_preference_raises(self):
        with pytest.raises(ConfigurationError, match="which.proteinid"):
            resolve_protein_columns('Protein.Groups', _standardized_psms().columns)

    def test_deterministic(self):
        columns = _standardized_psms().columns
        first = resolve_protein_columns('Protein.Accessions', columns)
        second = resolve_protein_columns('Protein.Accessions', columns)
        assert (first.protein_col, first.count_col) == (second.protein_col, second.count_col)


class TestProjectColumns:
    """Tests for projection onto the canonical wide schema."""

    @pytest.fixture
    def protein_columns(self):
        return ProteinColumns(protein_col='Protein.Accessions', count_col='X..Proteins')

    def test_only_canonical_columns_survive(self, protein_columns):
        result = project_columns(_standardized_psms(), protein_columns, ['X126', 'X127N'])

        assert list(result.data.columns) == CANONICAL_COLUMNS + ['X126', 'X127N']
        assert list(result.data['ProteinName']) == ['P1', 'P2']
        assert list(result.data['numProtein']) == [1, 2]
        assert list(result.data['PeptideSequence']) == ['AAAK', 'CCCK']
        assert list(result.data['Run']) == ['run1.raw', 'run1.raw']
        assert result.notices == []

    def test_channels_coerced_to_numeric(self, protein_columns):
        result = project_columns(_standardized_psms(), protein_columns, ['X127N'])

        assert result.data['X127N'].iloc[0] == 110.0
        assert np.isnan(result.data['X127N'].iloc[1])

    def test_missing_channel_notice(self, protein_columns):
        result = project_columns(
            _standardized_psms(), protein_columns, ['X126', 'X128C']
        )

        assert 'X128C' not in result.data.columns
        assert len(result.notices) == 1
        assert result.notices[0].kind == NoticeKind.MISSING_CHANNEL
        assert result.notices[0].payload == {'channel': 'X128C'}

    def test_missing_required_column_raises(self, protein_columns):
        data = _standardized_psms().drop(columns=['Annotated.Sequence'])

        with pytest.raises(SchemaError, match='Annotated.Sequence'):
            project_columns(data, protein_columns, ['X126'])

    def test_missing_count_column_raises_when_required(self, protein_columns):
        data = _standardized_psms().drop(columns=['X..Proteins'])

        with pytest.raises(SchemaError, match='X..Proteins'):
            project_columns(data, protein_columns, ['X126'])

    def test_count_column_optional(self, protein_columns):
        data = _standardized_psms().drop(columns=['X..Proteins'])

        result = project_columns(data, protein_columns, ['X126'], require_count=False)

        assert result.data['numProtein'].isna().all()

    def test_quan_info_optional(self, protein_columns):
        data = _standardized_psms().drop(columns=['Quan.Info'])

        with pytest.raises(SchemaError):
            project_columns(data, protein_columns, ['X126'])

        result = project_columns(data, protein_columns, ['X126'], require_quan_info=False)
        assert result.data['Quan.Info'].isna().all()

    def test_input_not_modified(self, protein_columns):
        data = _standardized_psms()
        before = data.copy()

        project_columns(data, protein_columns, ['X126'])

        pd.testing.assert_frame_equal(data, before)


class TestPresentChannels:

    def test_annotation_order(self):
        data = pd.DataFrame(columns=['X127N', 'X126'])
        assert present_channels(data, ['X126', 'X127N', 'X128C']) == ['X126', 'X127N']
