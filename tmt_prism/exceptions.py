"""Exceptions raised by the TMT-PRISM conversion pipeline.

All of these are fatal: the pipeline stops immediately and no partial
output is produced.
"""

from __future__ import annotations


class TMTPrismError(ValueError):
    """Base class for conversion errors."""


class ConfigurationError(TMTPrismError):
    """Unrecognized option value or incomplete annotation table."""

    def __init__(self, msg: str, missing_columns: list[str] | None = None):
        super().__init__(msg)
        self.missing_columns = list(missing_columns or [])


class SchemaError(TMTPrismError):
    """Input table lacks a column the pipeline cannot do without."""


class AnnotationError(TMTPrismError):
    """At least one (Run, Channel) pair in the data has no annotation row."""

    def __init__(self, msg: str, missing: list[tuple[str, str]] | None = None):
        super().__init__(msg)
        self.missing = list(missing or [])
