import asyncio
import threading
from typing import Dict, List, Optional

import pytest

from trivia_tiles.dictionary import DictionaryCache, DictionaryClient
from trivia_tiles.progress import ProgressTracker
from trivia_tiles.telemetry import MemorySink, Telemetry
from trivia_tiles.validator import WordValidator

NOT_JSON = object()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._payload is NOT_JSON:
            raise ValueError('Expecting value')
        return self._payload


def found(word: str) -> FakeResponse:
    return FakeResponse(200, [{'word': word, 'meanings': []}])


def not_found() -> FakeResponse:
    return FakeResponse(404, {'title': 'No Definitions Found'})


class FakeSession:
    """Stands in for requests.Session; scripted per word, last result repeats."""

    def __init__(self, script: Optional[Dict[str, list]] = None, default=None):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.default = default if default is not None else not_found()
        self.calls: List[str] = []
        self.gates: Dict[str, threading.Event] = {}
        self.started: Dict[str, threading.Event] = {}
        self.delay = 0.0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def hold(self, word: str):
        self.gates[word] = threading.Event()
        self.started[word] = threading.Event()

    def release(self, word: str):
        self.gates[word].set()

    def get(self, url, timeout=None):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            return self._respond(url.rsplit('/', 1)[-1])
        finally:
            with self._lock:
                self.active -= 1

    def _respond(self, word: str):
        self.calls.append(word)
        if word in self.gates:
            self.started[word].set()
            self.gates[word].wait(5)
        if self.delay:
            threading.Event().wait(self.delay)
        queue = self.script.get(word)
        if queue:
            result = queue.pop(0) if len(queue) > 1 else queue[0]
        else:
            result = self.default
        if isinstance(result, Exception):
            raise result
        return result


async def wait_started(session: FakeSession, word: str):
    while not session.started[word].is_set():
        await asyncio.sleep(0.005)


class FakeSio:
    def __init__(self):
        self.emitted = []
        self._sessions = {}

    async def emit(self, event, data=None, to=None, room=None):
        self.emitted.append((event, data, to))

    async def save_session(self, sid, data):
        self._sessions[sid] = data

    async def get_session(self, sid):
        return self._sessions.get(sid)

    def events(self, name):
        return [data for event, data, _ in self.emitted if event == name]


def make_client(session, cache=None, **kwargs) -> DictionaryClient:
    kwargs.setdefault('retry_delay', 0)
    return DictionaryClient(cache if cache is not None else DictionaryCache(), session=session, **kwargs)


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def make_validator(sink):
    def _make(session, total_words=10, center='a', cache=None, thresholds=(0.25, 0.40, 0.60, 0.80), **kwargs):
        telemetry = Telemetry([sink])
        tracker = ProgressTracker(total_words, clue_thresholds=thresholds, telemetry=telemetry)
        client = make_client(session, cache)
        return WordValidator(center, tracker, client, telemetry=telemetry, **kwargs)
    return _make
