"""Exception types raised by the oracle client and the game controller."""
from __future__ import annotations

from typing import Optional


class TwentyQuestionsError(Exception):
    """Base class for all package errors."""


class OracleError(TwentyQuestionsError):
    """An oracle call did not produce a usable completion."""


class OracleUnavailable(OracleError):
    """Transport failure or non-2xx reply from the relay."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.status}: {self.message}"


class OracleProtocolError(OracleError):
    """The relay answered 2xx but the body is not a chat completion."""


class ValidationRejected(TwentyQuestionsError):
    """A local check (theme gates, yes/no question check) refused the input."""


class InvalidAction(TwentyQuestionsError):
    """The action is not available on the current screen or turn."""


class GameBusy(InvalidAction):
    """Another action is still waiting on the oracle."""
