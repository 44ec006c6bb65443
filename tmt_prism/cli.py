"""Command-line interface for TMT-PRISM.

Converts Proteome Discoverer TMT PSM reports into the long, annotated
feature table and optionally summarizes it to protein level.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from . import __version__
from .config import SUMMARY_METHODS, PROTEIN_ID_CHOICES, ConversionConfig, load_config
from .data_io import load_annotation, load_converted_data, load_psm_report, write_table
from .exceptions import TMTPrismError
from .notices import ConversionResult
from .pipeline import pd_to_tmt_format
from .summarization import SUMMARIZATION_METHODS, summarize_proteins
from .validation import compute_conversion_metrics, generate_qc_report

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def _resolve_output_path(output: str, default_format: str) -> Path:
    path = Path(output)
    if not path.suffix:
        path = path.with_suffix(f'.{default_format}')
    return path


def _conversion_overrides(args: argparse.Namespace) -> dict:
    """Collect conversion options given on the command line."""
    overrides = {}
    if args.fraction:
        overrides['fraction'] = True
    if args.summary is not None:
        overrides['summary_for_multiple_rows'] = args.summary
    if args.protein_id is not None:
        overrides['which_proteinid'] = args.protein_id
    if args.ignore_num_proteins:
        overrides['use_num_proteins_column'] = False
    if args.keep_shared_quan:
        overrides['use_unique_peptide'] = False
    if args.keep_incomplete:
        overrides['remove_psm_with_missing_value_within_run'] = False
    if args.remove_single_feature_proteins:
        overrides['remove_protein_with_1_feature'] = True
    if args.workers is not None:
        overrides['n_workers'] = args.workers
    return overrides


def generate_conversion_metadata(
    config: dict,
    result: ConversionResult,
    input_files: list[str],
) -> dict:
    """Generate metadata JSON for provenance of a conversion.

    Args:
        config: Full configuration tree used for the run
        result: ConversionResult from pd_to_tmt_format
        input_files: PSM report and annotation paths

    Returns:
        Dictionary with version, timestamp, inputs, parameters, method log
        and notices
    """
    data = result.data
    return {
        'pipeline_version': __version__,
        'processing_date': datetime.now(timezone.utc).isoformat(),
        'source_files': input_files,
        'summary': {
            'n_input_psms': result.n_input_rows,
            'n_output_rows': len(data),
            'n_proteins': int(data['ProteinName'].nunique()),
            'n_features': int(data['PSM'].nunique()),
            'n_runs': int(data['Run'].nunique()),
        },
        'processing_parameters': config.get('conversion', {}),
        'method_log': result.method_log,
        'notices': [
            {'kind': n.kind.value, 'message': n.message}
            for n in result.notices
        ],
    }


def cmd_convert(args: argparse.Namespace) -> int:
    """Convert a PD PSM report to the long feature table."""
    config = load_config(Path(args.config) if args.config else None)
    conversion_options = {**config.get('conversion', {}), **_conversion_overrides(args)}
    conversion_config = ConversionConfig.from_dict(conversion_options)
    config['conversion'] = conversion_config.to_dict()

    input_path = Path(args.input)
    annotation_path = Path(args.annotation)
    output_path = _resolve_output_path(args.output, config['output']['format'])

    psms = load_psm_report(input_path)
    annotation = load_annotation(annotation_path)

    result = pd_to_tmt_format(psms, annotation, config=conversion_config)

    for notice in result.notices:
        logger.debug(str(notice))

    write_table(result.data, output_path)

    if config['output'].get('write_metadata', True):
        metadata = generate_conversion_metadata(
            config, result, [str(input_path), str(annotation_path)]
        )
        metadata_path = output_path.with_suffix('.metadata.json')
        with open(metadata_path, 'w') as f:
            json.dump(metadata, f, indent=2, default=str)
        logger.info(f"Wrote metadata to {metadata_path}")

    if args.report:
        metrics = compute_conversion_metrics(result)
        generate_qc_report(metrics, result.method_log, args.report)

    logger.info(f"Converted {result.n_input_rows} PSMs -> {len(result.data)} rows")
    return 0


def cmd_summarize(args: argparse.Namespace) -> int:
    """Summarize a converted table to protein level."""
    config = load_config(Path(args.config) if args.config else None)
    summ_config = config.get('summarization', {})
    polish_config = summ_config.get('median_polish', {})

    method = args.method or summ_config.get('method', 'median_polish')

    data = load_converted_data(Path(args.input))
    proteins = summarize_proteins(
        data,
        method=method,
        log_transform=summ_config.get('log_transform', True),
        max_iter=polish_config.get('max_iterations', 10),
        tol=polish_config.get('convergence_tolerance', 1e-4),
    )

    write_table(proteins, _resolve_output_path(args.output, config['output']['format']))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tmt-prism',
        description='TMT-PRISM: Proteome Discoverer TMT PSM conversion\n\n'
                    'Converts a PD PSM report plus a run/channel annotation into\n'
                    'a long feature table ready for protein summarization.\n\n'
                    'Primary usage:\n'
                    '  tmt-prism convert -i psms.txt -a annotation.csv -o features.parquet',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    conv_parser = subparsers.add_parser(
        'convert',
        help='Convert a PD PSM report to the long feature table',
        description='Run shared peptide removal, multiple-measurement resolution, '
                    'reshaping, annotation and the optional filters.'
    )
    conv_parser.add_argument('-i', '--input', required=True,
                             help='PD PSM report (CSV, TSV/TXT or parquet)')
    conv_parser.add_argument('-a', '--annotation', required=True,
                             help='Annotation CSV/TSV (Run, Channel, Condition, '
                                  'BioReplicate, Mixture)')
    conv_parser.add_argument('-o', '--output', required=True, help='Output table path')
    conv_parser.add_argument('-c', '--config', help='Configuration YAML file')
    conv_parser.add_argument('--report', help='Output HTML QC report path')
    conv_parser.add_argument('--fraction', action='store_true',
                             help='Combine fractions of each mixture')
    conv_parser.add_argument('--summary', choices=SUMMARY_METHODS,
                             help='Summary for multiple measurements of a feature')
    conv_parser.add_argument('--protein-id', choices=PROTEIN_ID_CHOICES,
                             help='Preferred protein id column')
    conv_parser.add_argument('--ignore-num-proteins', action='store_true',
                             help='Keep PSMs mapped to more than one protein')
    conv_parser.add_argument('--keep-shared-quan', action='store_true',
                             help='Keep PSMs whose Quan Info is not Unique')
    conv_parser.add_argument('--keep-incomplete', action='store_true',
                             help='Keep features with missing channels within a run')
    conv_parser.add_argument('--remove-single-feature-proteins', action='store_true',
                             help='Remove proteins with only one feature')
    conv_parser.add_argument('--workers', type=int,
                             help='Worker processes for multiple-measurement resolution')

    summ_parser = subparsers.add_parser(
        'summarize', help='Summarize a converted table to protein level'
    )
    summ_parser.add_argument('-i', '--input', required=True, help='Converted table')
    summ_parser.add_argument('-o', '--output', required=True, help='Output protein table')
    summ_parser.add_argument('-c', '--config', help='Configuration YAML file')
    summ_parser.add_argument('--method', choices=SUMMARIZATION_METHODS,
                             help='Summarization method')

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        if args.command == 'convert':
            return cmd_convert(args)
        elif args.command == 'summarize':
            return cmd_summarize(args)
        else:
            parser.print_help()
            return 1
    except TMTPrismError as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
