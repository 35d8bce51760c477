from __future__ import annotations


class AnalyzerError(RuntimeError):
    """Base error for the encrypted-state client core."""


class EventNotFoundError(AnalyzerError):
    """The expected event is missing from a transaction receipt."""


class EventDecodeError(AnalyzerError):
    """The expected event was found but its arguments could not be decoded."""


__all__ = [
    "AnalyzerError",
    "EventNotFoundError",
    "EventDecodeError",
]
