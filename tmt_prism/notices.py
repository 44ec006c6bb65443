"""Structured record of what each pipeline stage did.

Every stage returns a StageResult carrying the new table plus the notices
it raised, so callers can inspect removals and fallbacks programmatically
instead of scraping log text. Notices are also written to the log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)


class NoticeKind(Enum):
    PROTEIN_ID_FALLBACK = 'protein_id_fallback'
    MISSING_CHANNEL = 'missing_channel'
    SHARED_PSMS_REMOVED = 'shared_psms_removed'
    SHARED_PEPTIDES_REMOVED = 'shared_peptides_removed'
    MULTIPLE_MEASUREMENTS = 'multiple_measurements'
    UNRESOLVED_TIE = 'unresolved_tie'
    MISSING_ANNOTATION = 'missing_annotation'
    INCOMPLETE_FEATURES_REMOVED = 'incomplete_features_removed'
    SINGLE_FEATURE_PROTEINS_REMOVED = 'single_feature_proteins_removed'
    SHARED_FRACTION_IONS_REMOVED = 'shared_fraction_ions_removed'
    FRACTIONS_COMBINED = 'fractions_combined'


_WARNING_KINDS = {
    NoticeKind.MISSING_CHANNEL,
    NoticeKind.UNRESOLVED_TIE,
    NoticeKind.MISSING_ANNOTATION,
}


@dataclass(frozen=True)
class Notice:
    """One informational event raised by a stage."""

    kind: NoticeKind
    message: str
    payload: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


def make_notice(kind: NoticeKind, message: str, **payload: Any) -> Notice:
    """Create a notice and log it."""
    level = logging.WARNING if kind in _WARNING_KINDS else logging.INFO
    logger.log(level, message)
    return Notice(kind=kind, message=message, payload=payload)


@dataclass
class StageResult:
    """Output of a single pipeline stage."""

    data: pd.DataFrame
    notices: list[Notice] = field(default_factory=list)


@dataclass
class ConversionResult:
    """Output of the full PSM -> feature conversion.

    data is the long-format table (ProteinName, PeptideSequence, Charge,
    PSM, Channel, Condition, BioReplicate, Run, Mixture, Intensity).
    """

    data: pd.DataFrame
    notices: list[Notice] = field(default_factory=list)
    method_log: list[str] = field(default_factory=list)
    n_input_rows: int = 0

    def notices_of(self, kind: NoticeKind) -> list[Notice]:
        return [n for n in self.notices if n.kind == kind]

    def has_notice(self, kind: NoticeKind) -> bool:
        return any(n.kind == kind for n in self.notices)
