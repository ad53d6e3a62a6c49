from __future__ import annotations


class RatesError(Exception):
    """Base class for errors raised by the rates package."""


class RecordSourceError(RatesError):
    """The record collection could not be fetched or decoded."""

    def __init__(self, message: str, *, source: str = "") -> None:
        super().__init__(message)
        self.source = source
