"""Exceptions raised by the wait engine and its configuration layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .outcome import WaitOutcome


class WaitError(Exception):
    """Base exception for the package."""

    pass


class ConfigurationError(WaitError, ValueError):
    """Invalid policy, profile or strategy chain. Raised before polling starts."""

    pass


class ConfigFileError(ConfigurationError):
    """Policy config file could not be read or failed schema validation."""

    pass


class WaitFailedError(WaitError):
    """A wait finished without success and the caller asked for an exception."""

    def __init__(self, outcome: "WaitOutcome") -> None:
        self.outcome = outcome
        super().__init__(
            f"wait failed: {outcome.kind.value if outcome.kind else 'unknown'} "
            f"after {outcome.elapsed:.2f}s ({outcome.poll_count} polls)"
            + (f": {outcome.last_error}" if outcome.last_error is not None else "")
        )
