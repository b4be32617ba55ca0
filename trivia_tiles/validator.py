from __future__ import annotations
import logging
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

from .dictionary import CancellationToken, DictionaryCache, DictionaryClient, LookupSlot, normalize_word
from .errors import DictionaryError, RejectionReason, ValidationCancelled, rejection_message
from .progress import ProgressTracker
from .schemas import ValidationOutcome
from .telemetry import LOOKUP_CANCELLED, REMOTE_ERROR, WORD_ACCEPTED, WORD_REJECTED, Telemetry

logger = logging.getLogger(__name__)

DEFAULT_MIN_LENGTH = 4

LoadingCallback = Callable[[ValidationOutcome], Awaitable[None]]


class ValidatorState(str, Enum):
    IDLE = 'idle'
    VALIDATING_LOCAL = 'validating_local'
    VALIDATING_REMOTE = 'validating_remote'


class WordValidator:
    """Accept/reject decision for submitted words of one puzzle session.

    Local rules run first, in order, and the first failure wins without any
    network traffic. Words passing them are looked up through the shared
    cache and then the dictionary client. Only one lookup is ever in flight:
    a new submission cancels the previous one, and a cancelled submission
    never touches the found words or the progress tracker. A new request is
    not sent until the previous one has returned.
    """

    def __init__(
        self,
        center_letter: str,
        tracker: ProgressTracker,
        client: DictionaryClient,
        cache: Optional[DictionaryCache] = None,
        min_length: int = DEFAULT_MIN_LENGTH,
        telemetry: Optional[Telemetry] = None,
        letters: Iterable[str] = (),
    ):
        if cache is not None and cache is not client.cache:
            raise ValueError('validator must read the cache its client writes to')
        self.tracker = tracker
        self.client = client
        self.cache = client.cache
        self.min_length = min_length
        self.telemetry = telemetry or Telemetry([])
        self.state = ValidatorState.IDLE
        self.error_message: Optional[str] = None
        self._token: Optional[CancellationToken] = None
        self._slot = LookupSlot()
        self.reset(center_letter, letters)

    def reset(self, center_letter: str, letters: Iterable[str] = ()) -> None:
        self.cancel()
        self.center_letter = center_letter.strip().lower()
        self.letters = {l.lower() for l in letters} | {self.center_letter}
        self.error_message = None

    @property
    def is_validating(self) -> bool:
        return self.state is not ValidatorState.IDLE

    def clear_error(self) -> None:
        self.error_message = None

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        self.state = ValidatorState.IDLE

    def is_pangram(self, word: str) -> bool:
        return len(self.letters) > 1 and self.letters <= set(normalize_word(word))

    def check_local(self, word: str) -> Optional[RejectionReason]:
        word = normalize_word(word)
        if len(word) < self.min_length:
            return RejectionReason.TOO_SHORT
        if self.center_letter not in word:
            return RejectionReason.MISSING_CENTER_LETTER
        if word in self.tracker.found_words:
            return RejectionReason.DUPLICATE_WORD
        return None

    async def validate_word(self, candidate: str, on_loading: Optional[LoadingCallback] = None) -> Optional[ValidationOutcome]:
        """Validate one submission.

        Returns None when the submission was superseded by a newer one before
        it finished; that is not an error and has no visible effect.
        """
        if self._token is not None:
            self._token.cancel()
        token = self._token = CancellationToken()
        self.error_message = None
        self.state = ValidatorState.VALIDATING_LOCAL
        word = normalize_word(candidate)
        logger.debug('Validating "%s"', word)
        try:
            reason = self.check_local(word)
            if reason is not None:
                return self._reject(word, reason)

            cached = self.cache.get(word)
            if cached is not None:
                logger.info('Cache hit for "%s"', word)
                is_valid = cached
            else:
                self.state = ValidatorState.VALIDATING_REMOTE
                if on_loading is not None:
                    await on_loading(ValidationOutcome(word=word, status='loading'))
                try:
                    is_valid = await self.client.check(word, token, self._slot)
                except ValidationCancelled:
                    self.telemetry.track(LOOKUP_CANCELLED, word)
                    return None
                except DictionaryError as exc:
                    if token.cancelled:
                        return None
                    return self._errored(word, exc)

            if token.cancelled:
                return None
            if not is_valid:
                return self._reject(word, RejectionReason.NOT_A_WORD, from_cache=cached is not None)
            return self._accept(word, from_cache=cached is not None)
        finally:
            if self._token is token:
                self._token = None
                self.state = ValidatorState.IDLE

    def _accept(self, word: str, from_cache: bool) -> ValidationOutcome:
        milestones = self.tracker.record(word)
        self.telemetry.track(WORD_ACCEPTED, word, len(word))
        logger.info('Accepted "%s" (%d found)', word, len(self.tracker.found_words))
        return ValidationOutcome(
            word=word,
            status='accepted',
            fromCache=from_cache,
            isPangram=self.is_pangram(word),
            newClues=milestones.new_clues,
            finalChallenge=milestones.final_challenge,
        )

    def _reject(self, word: str, reason: RejectionReason, from_cache: bool = False) -> ValidationOutcome:
        message = rejection_message(reason, self.min_length, self.center_letter)
        self.error_message = message
        if reason is RejectionReason.NOT_A_WORD:
            self.telemetry.track(WORD_REJECTED, message, len(word))
        else:
            self.telemetry.track(WORD_REJECTED, message)
        logger.info('Rejected "%s": %s', word, reason.value)
        return ValidationOutcome(word=word, status='rejected', reason=reason, message=message, fromCache=from_cache)

    def _errored(self, word: str, exc: DictionaryError) -> ValidationOutcome:
        self.error_message = exc.user_message
        self.telemetry.track(REMOTE_ERROR, exc.kind.value)
        return ValidationOutcome(word=word, status='errored', errorKind=exc.kind, message=exc.user_message)
