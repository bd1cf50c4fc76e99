"""Exception hierarchy for transcript acquisition."""

from typing import Optional


class TranscriptError(Exception):
    """Base error. `hint` is a human-readable next step for the caller."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint


class InvalidInput(TranscriptError):
    """The input is not a recognizable YouTube URL."""


class ConfigurationError(TranscriptError):
    """Missing or rejected credentials. Never retried."""


class StrategyError(TranscriptError):
    """A single acquisition strategy failed; the pipeline moves on.

    `blocked` marks failures that look like upstream access restrictions
    (bot checks, 403/429, IP blocks) rather than missing content.
    """

    def __init__(self, message: str, hint: Optional[str] = None, blocked: bool = False):
        super().__init__(message, hint)
        self.blocked = blocked


class CaptionsUnavailable(StrategyError):
    pass


class NoAudioAvailable(StrategyError):
    pass


class DownloadFailed(StrategyError):
    pass


class ParseError(StrategyError):
    pass


class FetchTimeoutError(StrategyError):
    """An outbound call exceeded its deadline and was cancelled."""


class HttpStatusError(StrategyError):
    def __init__(self, message: str, status_code: int):
        super().__init__(message, blocked=status_code in (403, 410, 429))
        self.status_code = status_code


class TranscriptionFailed(TranscriptError):
    """The speech-to-text call failed. Fatal for the request."""


class InsufficientContent(TranscriptionFailed):
    """The speech-to-text service returned (almost) nothing."""


class AcquisitionExhausted(TranscriptError):
    """Every strategy failed. Carries the full attempt ledger."""

    def __init__(self, attempts: list, hint: Optional[str] = None):
        summary = "; ".join(f"{a.strategy}: {a.error_message}" for a in attempts)
        super().__init__(f"All transcript strategies failed ({summary})", hint)
        self.attempts = attempts
