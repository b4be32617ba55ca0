from __future__ import annotations
from enum import Enum
from typing import Optional


class RejectionReason(str, Enum):
    TOO_SHORT = 'too_short'
    MISSING_CENTER_LETTER = 'missing_center_letter'
    DUPLICATE_WORD = 'duplicate_word'
    NOT_A_WORD = 'not_a_word'


class DictionaryErrorKind(str, Enum):
    NETWORK_UNAVAILABLE = 'network_unavailable'
    UPSTREAM_UNAVAILABLE = 'upstream_unavailable'
    TIMEOUT = 'timeout'
    RATE_LIMITED = 'rate_limited'
    MALFORMED_RESPONSE = 'malformed_response'

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_KINDS


RETRYABLE_KINDS = frozenset({
    DictionaryErrorKind.NETWORK_UNAVAILABLE,
    DictionaryErrorKind.UPSTREAM_UNAVAILABLE,
    DictionaryErrorKind.TIMEOUT,
})

ERROR_MESSAGES = {
    DictionaryErrorKind.NETWORK_UNAVAILABLE: 'No internet connection. Please check your network and try again.',
    DictionaryErrorKind.UPSTREAM_UNAVAILABLE: 'Dictionary service is temporarily unavailable. Please try again later.',
    DictionaryErrorKind.TIMEOUT: 'Request timed out. Please try again.',
    DictionaryErrorKind.RATE_LIMITED: 'Too many requests. Please wait a moment and try again.',
    DictionaryErrorKind.MALFORMED_RESPONSE: 'Error validating word. Please try again.',
}


def rejection_message(reason: RejectionReason, min_length: int = 4, center_letter: str = '') -> str:
    if reason is RejectionReason.TOO_SHORT:
        return f'Words must be at least {min_length} letters long.'
    if reason is RejectionReason.MISSING_CENTER_LETTER:
        return f'Word must contain the letter "{center_letter.upper()}".'
    if reason is RejectionReason.DUPLICATE_WORD:
        return 'You already found this word!'
    return 'Not a valid English word.'


class DictionaryError(Exception):
    """A dictionary lookup failed with one of the closed set of kinds."""

    def __init__(self, kind: DictionaryErrorKind, detail: str = '', status_code: Optional[int] = None):
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @property
    def user_message(self) -> str:
        return ERROR_MESSAGES[self.kind]


class SessionError(Exception):
    """A socket request that does not fit the session's current state."""


class ValidationCancelled(Exception):
    """Raised when a lookup is abandoned because a newer submission superseded it."""
