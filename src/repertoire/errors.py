"""Per-sample error taxonomy for repertoire summarisation."""

from __future__ import annotations

from typing import Optional


class RepertoireError(Exception):
    """Base class for failures that are recoverable at cohort level."""

    def __init__(self, message: str, *, sample_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.sample_id = sample_id

    def __str__(self) -> str:
        message = super().__str__()
        if self.sample_id is not None:
            return f"[{self.sample_id}] {message}"
        return message


class SampleNotFoundError(RepertoireError, FileNotFoundError):
    """The record source for a sample cannot be located."""


class MalformedInputError(RepertoireError, ValueError):
    """A record source or reference table violates its schema."""


class EmptyRepertoireError(RepertoireError):
    """No records remain to build a frequency table from."""


class NoClonesError(RepertoireError):
    """No clonotypes remain to compute diversity from."""


class InvalidCountError(RepertoireError, ValueError):
    """A clone size is zero, negative or not an integer."""
