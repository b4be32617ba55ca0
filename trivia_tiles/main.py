from __future__ import annotations
import logging
import time
from typing import Dict

import socketio
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .config import Settings, setup_logging
from .credits import CreditLedger, InMemoryStore
from .dictionary import DictionaryCache, DictionaryClient, normalize_word
from .errors import DictionaryError, DictionaryErrorKind, SessionError
from .managers.session import SessionManager
from .puzzles import PuzzleProvider
from .schemas import FinalAnswer, TelemetryEvent, WordSubmission
from .telemetry import Telemetry

settings = Settings.from_env()
setup_logging(settings.logLevel)
logger = logging.getLogger(__name__)

# Socket.IO server (ASGI)
# engineio only treats a bare '*' string as a wildcard
sio_origins = '*' if settings.corsOrigins == ['*'] else settings.corsOrigins
sio = socketio.AsyncServer(async_mode='asgi', cors_allowed_origins=sio_origins)
app = FastAPI(title="Trivia Tiles Server", version="1.0.0")

# Mount Socket.IO ASGI application
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)

# CORS for REST
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.corsOrigins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

# One cache and client for the whole process, shared by every session
cache = DictionaryCache(settings.cacheSize)
dictionary = DictionaryClient(
    cache,
    base_url=settings.dictionaryUrl,
    timeout=settings.requestTimeout,
    max_retries=settings.maxRetries,
    retry_delay=settings.retryDelay,
    max_workers=settings.lookupWorkers,
)
telemetry = Telemetry()
credits = CreditLedger(InMemoryStore(), settings.freePuzzleLimit, settings.creditsPerPurchase)
puzzles = PuzzleProvider(settings.puzzlePath)
sessions = SessionManager(sio, dictionary, puzzles, settings, telemetry, credits)

ERROR_STATUS = {
    DictionaryErrorKind.RATE_LIMITED: 429,
    DictionaryErrorKind.TIMEOUT: 504,
    DictionaryErrorKind.MALFORMED_RESPONSE: 502,
}

# REST Endpoints
@app.get('/')
async def index() -> Dict:
    return {
        'name': 'Trivia Tiles API',
        'version': app.version,
        'endpoints': {'health': '/health', 'puzzle': '/api/puzzle', 'analytics': '/api/analytics'},
        'status': 'online',
        'timestamp': time.time(),
    }

@app.get('/health')
async def health() -> Dict:
    return {'status': 'healthy', 'timestamp': time.time(), 'cachedWords': len(cache), 'sessions': len(sessions.sessions)}

@app.get('/api/puzzle')
async def get_puzzle():
    return puzzles.get_puzzle().model_dump()

@app.post('/api/analytics')
async def record_event(event: TelemetryEvent):
    telemetry.emit(event)
    return {'success': True}

# Dictionary validation REST endpoint
@app.get('/dict/validate')
async def validate_word(word: str):
    normalized = normalize_word(word)
    if not normalized:
        raise HTTPException(status_code=400, detail='word is required')
    cached = cache.get(normalized)
    if cached is not None:
        return {'word': normalized, 'valid': cached, 'fromCache': True}
    try:
        valid = await dictionary.check(normalized)
    except DictionaryError as exc:
        raise HTTPException(status_code=ERROR_STATUS.get(exc.kind, 503), detail=exc.user_message)
    return {'word': normalized, 'valid': valid, 'fromCache': False}

@app.get('/credits/{player_id}')
async def get_credits(player_id: str):
    return credits.state(player_id).model_dump()

@app.post('/credits/{player_id}/purchase-success')
async def purchase_success(player_id: str):
    return credits.add_purchase(player_id).model_dump()

async def _emit_error(sid, message: str):
    await sio.emit('session:error', {'message': message}, to=sid)

async def _player_id(sid) -> str:
    sess = await sio.get_session(sid) or {}
    return sess.get('name') or sid

# Socket.IO Events
@sio.event
async def connect(sid, environ, auth):
    # Client sends its player id as the auth token
    username = None
    if isinstance(auth, dict):
        token = auth.get('token')
        if isinstance(token, str) and token.strip():
            username = token.strip()
    await sio.save_session(sid, {'name': username})
    await sio.emit('pong', to=sid)

@sio.event
async def disconnect(sid):
    sessions.remove(sid)

@sio.on('ping')
async def on_ping(sid):
    await sio.emit('pong', to=sid)

@sio.on('puzzle:load')
async def puzzle_load(sid):
    try:
        await sessions.load_puzzle(sid, await _player_id(sid))
    except (OSError, ValueError) as exc:
        # Missing file, bad JSON or a puzzle failing validation
        logger.error('Could not load puzzle for %s: %s', sid, exc)
        await _emit_error(sid, 'Could not load puzzle')
    except SessionError as exc:
        await _emit_error(sid, str(exc))

@sio.on('state:get')
async def state_get(sid):
    try:
        await sessions.get(sid).emit_state()
    except SessionError as exc:
        await _emit_error(sid, str(exc))

@sio.on('word:submit')
async def word_submit(sid, payload):
    try:
        if isinstance(payload, str):
            payload = {'word': payload}
        submission = WordSubmission.model_validate(payload)
        await sessions.get(sid).submit_word(submission.word)
    except ValidationError:
        await _emit_error(sid, 'Invalid word submission')
    except SessionError as exc:
        await _emit_error(sid, str(exc))

@sio.on('final:answer')
async def final_answer(sid, payload):
    try:
        if isinstance(payload, str):
            payload = {'answer': payload}
        answer = FinalAnswer.model_validate(payload)
        await sessions.get(sid).answer_final(answer.answer)
    except ValidationError:
        await _emit_error(sid, 'Invalid answer')
    except SessionError as exc:
        await _emit_error(sid, str(exc))

@sio.on('final:dismiss')
async def final_dismiss(sid):
    try:
        await sessions.get(sid).dismiss_final()
    except SessionError as exc:
        await _emit_error(sid, str(exc))

# Export ASGI app for uvicorn
application = asgi_app

# For local running: uvicorn trivia_tiles.main:application --reload --host 0.0.0.0 --port 4000
