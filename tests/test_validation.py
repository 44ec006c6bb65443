"""Tests for conversion QC metrics and report."""

import pandas as pd

from tmt_prism.notices import ConversionResult, NoticeKind, make_notice
from tmt_prism.pipeline import pd_to_tmt_format
from tmt_prism.reshape import OUTPUT_COLUMNS
from tmt_prism.validation import compute_conversion_metrics, generate_qc_report


def _conversion():
    psms = pd.DataFrame({
        'Protein Accessions': ['P1', 'P1', 'P2'],
        '# Proteins': [1, 1, 1],
        'Annotated Sequence': ['AAAK', 'CCCK', 'DDDK'],
        'Charge': [2, 2, 2],
        'Ions Score': [30.0, 31.0, 32.0],
        'Spectrum File': ['run1.raw'] * 3,
        'Quan Info': ['Unique', 'Unique', 'Unique'],
        '126': [100.0, 200.0, 300.0],
        '127N': [110.0, 210.0, 310.0],
    })
    annotation = pd.DataFrame({
        'Run': ['run1.raw', 'run1.raw'],
        'Channel': ['126', '127N'],
        'Condition': ['A', 'B'],
        'BioReplicate': ['b1', 'b2'],
        'Mixture': ['M1', 'M1'],
    })
    return pd_to_tmt_format(psms, annotation)


class TestConversionMetrics:

    def test_counts(self):
        metrics = compute_conversion_metrics(_conversion())

        assert metrics.passed
        assert metrics.n_input_psms == 3
        assert metrics.n_output_rows == 6
        assert metrics.n_proteins == 2
        assert metrics.n_features == 3
        assert metrics.n_runs == 1
        assert metrics.n_channels == 2
        assert metrics.n_mixtures == 1
        assert metrics.missing_intensity_fraction == 0.0
        assert metrics.warnings == []

    def test_empty_result_fails(self):
        result = ConversionResult(
            data=pd.DataFrame(columns=OUTPUT_COLUMNS),
            notices=[make_notice(NoticeKind.UNRESOLVED_TIE, 'tie', n_features=1)],
            n_input_rows=5,
        )

        metrics = compute_conversion_metrics(result)

        assert not metrics.passed
        assert metrics.notice_counts == {'unresolved_tie': 1}
        assert len(metrics.warnings) == 3


class TestQcReport:

    def test_report_written(self, tmp_path):
        result = _conversion()
        metrics = compute_conversion_metrics(result)
        path = tmp_path / 'qc.html'

        generate_qc_report(metrics, result.method_log, str(path))

        html = path.read_text()
        assert 'PASSED' in html
        assert 'Annotation join' in html
