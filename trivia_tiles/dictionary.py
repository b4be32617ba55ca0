from __future__ import annotations
import asyncio
import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional
from urllib.parse import quote

import requests

from .errors import DictionaryError, DictionaryErrorKind, ValidationCancelled

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://api.dictionaryapi.dev/api/v2/entries/en'
DEFAULT_TIMEOUT = 5.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_CACHE_SIZE = 1000
DEFAULT_WORKERS = 8


def normalize_word(word: str) -> str:
    return word.strip().lower()


class DictionaryCache:
    """Bounded word -> validity memo, evicting the oldest inserted entry first.

    Dictionary membership does not change at runtime, so entries never expire;
    they only leave the cache through eviction.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_SIZE):
        if capacity < 1:
            raise ValueError('cache capacity must be at least 1')
        self.capacity = capacity
        self._entries: 'OrderedDict[str, bool]' = OrderedDict()
        # Eviction + insert must stay atomic once lookups run on worker threads
        self._lock = threading.Lock()

    def get(self, word: str) -> Optional[bool]:
        with self._lock:
            return self._entries.get(normalize_word(word))

    def put(self, word: str, is_valid: bool) -> None:
        key = normalize_word(word)
        with self._lock:
            if key in self._entries:
                self._entries[key] = is_valid
                return
            if len(self._entries) >= self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug('Cache full, evicted "%s"', evicted)
            self._entries[key] = is_valid
        logger.debug('Cached "%s" -> %s', key, is_valid)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list:
        with self._lock:
            return list(self._entries)

    def __contains__(self, word: str) -> bool:
        with self._lock:
            return normalize_word(word) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CancellationToken:
    """One-way flag a newer submission uses to abandon an older lookup."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ValidationCancelled()

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        # Returns after `delay` unless cancelled first
        if delay > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        self.raise_if_cancelled()


def _notify(loop: asyncio.AbstractEventLoop, callback, *args) -> None:
    try:
        loop.call_soon_threadsafe(callback, *args)
    except RuntimeError:
        # Loop already closed, nobody is waiting any more
        pass


class LookupSlot:
    """The one outbound request a validator is allowed to have running.

    A `requests` call cannot be interrupted once sent, so an abandoned lookup
    keeps its slot until the worker returns. The next lookup waits for that
    before sending.
    """

    def __init__(self):
        self._future: Optional[Future] = None

    @property
    def busy(self) -> bool:
        return self._future is not None and not self._future.done()

    def claim(self, future: Future) -> None:
        self._future = future

    async def wait_idle(self, token: CancellationToken) -> None:
        while self.busy:
            previous = asyncio.wrap_future(self._future)
            abandoned = asyncio.ensure_future(token.wait())
            try:
                await asyncio.wait({previous, abandoned}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                abandoned.cancel()
                if not previous.done():
                    # Only drops a request still queued; a running one is left to finish
                    previous.cancel()
                elif not previous.cancelled():
                    previous.exception()
            token.raise_if_cancelled()


class DictionaryClient:
    def __init__(
        self,
        cache: DictionaryCache,
        session: Optional[requests.Session] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_workers: int = DEFAULT_WORKERS,
    ):
        self.cache = cache
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        # Own pool so lookups never queue behind unrelated blocking work
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='dictionary')

    async def check(self, word: str, token: Optional[CancellationToken] = None,
                    slot: Optional[LookupSlot] = None) -> bool:
        """Look `word` up remotely, retrying transient failures.

        Raises DictionaryError once retries are exhausted or on a non-retryable
        failure, and ValidationCancelled if `token` fires first. Definitive
        answers are written to the cache before returning. With a `slot`, no
        request is sent while the slot's previous request is still running.
        """
        word = normalize_word(word)
        token = token or CancellationToken()
        attempts = self.max_retries + 1
        attempt = 0
        while True:
            attempt += 1
            token.raise_if_cancelled()
            try:
                is_valid = await self._attempt(word, token, attempt, slot)
            except ValidationCancelled:
                logger.debug('Lookup for "%s" abandoned on attempt %d', word, attempt)
                raise
            except DictionaryError as exc:
                if not exc.retryable or attempt == attempts:
                    logger.warning('Lookup for "%s" failed after %d attempt(s): %s', word, attempt, exc.kind.value)
                    raise
                logger.info('Retrying "%s" in %.1fs after %s', word, self.retry_delay, exc.kind.value)
                await token.sleep(self.retry_delay)
                continue
            self.cache.put(word, is_valid)
            return is_valid

    async def _attempt(self, word: str, token: CancellationToken, attempt: int,
                       slot: Optional[LookupSlot] = None) -> bool:
        if slot is not None:
            await slot.wait_idle(token)
        token.raise_if_cancelled()
        logger.info('Looking up "%s" (attempt %d)', word, attempt)
        loop = asyncio.get_running_loop()
        sent = asyncio.Event()
        sent_at = []

        def send():
            sent_at.append(time.monotonic())
            _notify(loop, sent.set)
            return self._get(word)

        future = self._executor.submit(send)
        if slot is not None:
            slot.claim(future)
        request = asyncio.wrap_future(future)
        started = asyncio.ensure_future(sent.wait())
        abandoned = asyncio.ensure_future(token.wait())
        finished = False
        try:
            # Waiting for a free worker does not count against the timeout
            await asyncio.wait({request, started, abandoned}, return_when=asyncio.FIRST_COMPLETED)
            if not token.cancelled and not request.done():
                remaining = self.timeout - (time.monotonic() - sent_at[0])
                await asyncio.wait({request, abandoned}, timeout=max(remaining, 0),
                                   return_when=asyncio.FIRST_COMPLETED)
            finished = request.done()
        finally:
            started.cancel()
            abandoned.cancel()
            if not request.done():
                # A queued request is dropped; a sent one finishes unread
                request.cancel()
        if token.cancelled:
            if finished and not request.cancelled():
                request.exception()
            raise ValidationCancelled()
        if not finished:
            raise DictionaryError(DictionaryErrorKind.TIMEOUT, f'no response within {self.timeout}s')
        return self._interpret(request.result())

    def _get(self, word: str) -> requests.Response:
        url = f'{self.base_url}/{quote(word)}'
        try:
            return self.session.get(url, timeout=self.timeout)
        except requests.Timeout as exc:
            raise DictionaryError(DictionaryErrorKind.TIMEOUT, str(exc)) from exc
        except requests.RequestException as exc:
            raise DictionaryError(DictionaryErrorKind.NETWORK_UNAVAILABLE, str(exc)) from exc

    @staticmethod
    def _interpret(response: requests.Response) -> bool:
        status = response.status_code
        if status == 404:
            return False
        if status == 429:
            raise DictionaryError(DictionaryErrorKind.RATE_LIMITED, 'rate limited', status)
        if status >= 500:
            raise DictionaryError(DictionaryErrorKind.UPSTREAM_UNAVAILABLE, f'upstream returned {status}', status)
        if status >= 400:
            raise DictionaryError(DictionaryErrorKind.MALFORMED_RESPONSE, f'unexpected status {status}', status)
        try:
            data = response.json()
        except ValueError as exc:
            raise DictionaryError(DictionaryErrorKind.MALFORMED_RESPONSE, 'response is not JSON', status) from exc
        if not isinstance(data, list):
            raise DictionaryError(DictionaryErrorKind.MALFORMED_RESPONSE, 'response is not a list', status)
        return bool(data) and isinstance(data[0], dict) and data[0].get('word') is not None
