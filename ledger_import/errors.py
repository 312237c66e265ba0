"""Structural failures raised by the import pipeline.

Row-level problems are never raised; they are reported through
``validation.ValidationResult``.
"""

from __future__ import annotations


class ImportPipelineError(ValueError):
    """A file could not be turned into a dataset at all."""


class EmptyInputError(ImportPipelineError):
    pass


class UnreadableFileError(ImportPipelineError):
    pass


class UnsupportedFormatError(ImportPipelineError):
    pass


class FileTooLargeError(ImportPipelineError):
    pass
