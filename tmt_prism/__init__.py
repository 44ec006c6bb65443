"""
TMT-PRISM: Proteome Discoverer TMT PSM conversion

Converts PSM-level TMT reports exported from Proteome Discoverer into the
long, annotated feature table used for protein summarization and group
comparison.
"""

__version__ = "0.1.0"

from .config import (
    ConversionConfig,
    load_config,
)
from .data_io import (
    load_psm_report,
    load_annotation,
    validate_psm_report,
    make_syntactic_name,
)
from .exceptions import (
    TMTPrismError,
    ConfigurationError,
    SchemaError,
    AnnotationError,
)
from .notices import (
    Notice,
    NoticeKind,
    ConversionResult,
)
from .pipeline import pd_to_tmt_format
from .summarization import (
    tukey_median_polish,
    summarize_proteins,
    MedianPolishResult,
)
from .group_comparison import (
    group_comparison,
    register_inference_model,
)
from .validation import (
    compute_conversion_metrics,
    generate_qc_report,
)
