"""
Validation module summarizing what a conversion kept and removed.

Produces a small metrics record and an HTML QC report from a
ConversionResult.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

from .notices import ConversionResult, NoticeKind

logger = logging.getLogger(__name__)


@dataclass
class ConversionMetrics:
    """Counts describing a finished conversion."""

    n_input_psms: int
    n_output_rows: int
    n_proteins: int
    n_features: int
    n_runs: int
    n_channels: int
    n_mixtures: int
    missing_intensity_fraction: float

    notice_counts: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        """Check if the conversion produced usable output."""
        return self.n_output_rows > 0 and self.n_proteins > 0


def compute_conversion_metrics(result: ConversionResult) -> ConversionMetrics:
    """
    Collect counts from a conversion result.

    Args:
        result: ConversionResult from pd_to_tmt_format

    Returns:
        ConversionMetrics
    """
    data = result.data
    warnings = []

    if len(data) == 0:
        warnings.append("No rows left after conversion")
        missing_fraction = 0.0
    else:
        missing_fraction = float(data['Intensity'].isna().mean())

    notice_counts = dict(Counter(n.kind.value for n in result.notices))

    if result.has_notice(NoticeKind.UNRESOLVED_TIE):
        warnings.append(
            "Some features had exactly tied measurements; the first one was kept"
        )
    if result.has_notice(NoticeKind.MISSING_CHANNEL):
        channels = [n.payload['channel'] for n in result.notices_of(NoticeKind.MISSING_CHANNEL)]
        warnings.append(f"Annotated channels missing from the input: {channels}")
    if result.n_input_rows > 0 and len(data) == 0:
        warnings.append("All PSMs were removed - check the filter options")

    metrics = ConversionMetrics(
        n_input_psms=result.n_input_rows,
        n_output_rows=len(data),
        n_proteins=int(data['ProteinName'].nunique()),
        n_features=int(data['PSM'].nunique()),
        n_runs=int(data['Run'].nunique()),
        n_channels=int(data['Channel'].nunique()),
        n_mixtures=int(data['Mixture'].nunique()),
        missing_intensity_fraction=missing_fraction,
        notice_counts=notice_counts,
        warnings=warnings,
    )

    logger.info(f"Conversion kept {metrics.n_features} features of "
                f"{metrics.n_proteins} proteins in {metrics.n_runs} runs")
    for w in warnings:
        logger.warning(w)

    return metrics


def generate_qc_report(
    metrics: ConversionMetrics,
    method_log: List[str],
    output_path: str,
) -> None:
    """
    Generate HTML QC report.

    Args:
        metrics: ConversionMetrics from compute_conversion_metrics
        method_log: List of processing steps applied
        output_path: Path to save HTML report
    """
    notice_rows = ''.join(
        f'<tr><td>{kind}</td><td>{count}</td></tr>'
        for kind, count in sorted(metrics.notice_counts.items())
    )

    html = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <title>TMT Conversion QC Report</title>
        <style>
            body {{ font-family: Arial, sans-serif; margin: 40px; }}
            h1 {{ color: #333; }}
            h2 {{ color: #666; border-bottom: 1px solid #ccc; }}
            .warning {{ color: #cc6600; background: #fff3e0; padding: 10px; margin: 5px 0; }}
            .passed {{ color: #006600; background: #e0ffe0; padding: 10px; }}
            .failed {{ color: #cc0000; background: #ffe0e0; padding: 10px; }}
            table {{ border-collapse: collapse; margin: 20px 0; }}
            th, td {{ border: 1px solid #ccc; padding: 8px; text-align: left; }}
            th {{ background: #f0f0f0; }}
        </style>
    </head>
    <body>
        <h1>TMT Conversion QC Report</h1>

        <h2>Status</h2>
        <div class="{'passed' if metrics.passed else 'failed'}">
            {'PASSED' if metrics.passed else 'FAILED'} -
            {'Output table is ready for summarization' if metrics.passed else 'No usable output'}
        </div>

        <h2>Counts</h2>
        <table>
            <tr><th>Metric</th><th>Value</th></tr>
            <tr><td>Input PSMs</td><td>{metrics.n_input_psms}</td></tr>
            <tr><td>Output rows</td><td>{metrics.n_output_rows}</td></tr>
            <tr><td>Proteins</td><td>{metrics.n_proteins}</td></tr>
            <tr><td>Features (peptide, charge)</td><td>{metrics.n_features}</td></tr>
            <tr><td>Runs</td><td>{metrics.n_runs}</td></tr>
            <tr><td>Channels</td><td>{metrics.n_channels}</td></tr>
            <tr><td>Mixtures</td><td>{metrics.n_mixtures}</td></tr>
            <tr><td>Missing intensities</td><td>{metrics.missing_intensity_fraction*100:.1f}%</td></tr>
        </table>

        <h2>Notices</h2>
        {f'<table><tr><th>Kind</th><th>Count</th></tr>{notice_rows}</table>' if notice_rows else '<p>No notices</p>'}

        <h2>Warnings</h2>
        {''.join(f'<div class="warning">{w}</div>' for w in metrics.warnings) if metrics.warnings else '<p>No warnings</p>'}

        <h2>Processing Steps</h2>
        <ol>
            {''.join(f'<li>{step}</li>' for step in method_log)}
        </ol>

    </body>
    </html>
    """

    with open(output_path, 'w') as f:
        f.write(html)

    logger.info(f"QC report saved to {output_path}")
