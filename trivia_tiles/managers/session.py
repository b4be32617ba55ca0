from __future__ import annotations
import logging
from typing import Dict, Optional

from ..config import Settings
from ..credits import CreditLedger
from ..dictionary import DictionaryClient
from ..errors import SessionError
from ..progress import ProgressTracker
from ..puzzles import PuzzleProvider, check_final_answer
from ..schemas import FoundWord, PuzzleDefinition, PuzzleState, ValidationOutcome
from ..telemetry import FINAL_WRONG, PUZZLE_LOADED, Telemetry
from ..validator import WordValidator

logger = logging.getLogger(__name__)


class PuzzleSession:
    def __init__(self, sid: str, player_id: str, sio, client: DictionaryClient, settings: Settings,
                 telemetry: Telemetry, credits: CreditLedger):
        self.sid = sid
        self.player_id = player_id
        self.sio = sio
        self.client = client
        self.settings = settings
        self.telemetry = telemetry
        self.credits = credits
        self.puzzle: Optional[PuzzleDefinition] = None
        self.tracker = ProgressTracker(
            0,
            clue_thresholds=settings.clueThresholds,
            final_threshold=settings.finalThreshold,
            telemetry=telemetry,
        )
        self.validator: Optional[WordValidator] = None
        self.final_attempts = 0

    def load(self, puzzle: PuzzleDefinition):
        self.puzzle = puzzle
        self.tracker.reset(puzzle.total_words)
        if self.validator is None:
            self.validator = WordValidator(
                puzzle.center,
                self.tracker,
                self.client,
                min_length=self.settings.minWordLength,
                telemetry=self.telemetry,
                letters=puzzle.letters,
            )
        else:
            self.validator.reset(puzzle.center, puzzle.letters)
        self.final_attempts = 0
        logger.info('Session %s loaded puzzle %s (%d words)', self.sid, puzzle.id, puzzle.total_words)
        self.telemetry.track(PUZZLE_LOADED, puzzle.pangram or puzzle.id)

    def close(self):
        if self.validator is not None:
            self.validator.cancel()

    def _require_puzzle(self) -> PuzzleDefinition:
        if self.puzzle is None or self.validator is None:
            raise SessionError('No puzzle loaded')
        return self.puzzle

    def to_state(self) -> PuzzleState:
        puzzle = self._require_puzzle()
        unlocked = self.tracker.unlocked_clue_count()
        show_final = self.tracker.final_visible and not self.tracker.final_completed
        return PuzzleState(
            puzzleId=puzzle.id,
            center=puzzle.center,
            outer=puzzle.outer,
            foundWords=[FoundWord(word=w, isPangram=self.validator.is_pangram(w)) for w in self.tracker.found_words],
            totalWords=puzzle.total_words,
            progress=self.tracker.progress(),
            unlockedClueCount=unlocked,
            unlockedClues=puzzle.triviaClues[:unlocked],
            showFinalChallenge=show_final,
            finalQuestion=puzzle.finalTrivia.question if show_final and puzzle.finalTrivia else None,
            finalCompleted=self.tracker.final_completed,
            isValidating=self.validator.is_validating,
            errorMessage=self.validator.error_message,
        )

    async def emit_state(self):
        await self.sio.emit('puzzle:state', self.to_state().model_dump(), to=self.sid)

    async def _emit_loading(self, outcome: ValidationOutcome):
        await self.sio.emit('word:validating', outcome.model_dump(mode='json'), to=self.sid)

    async def submit_word(self, candidate: str) -> Optional[ValidationOutcome]:
        puzzle = self._require_puzzle()
        outcome = await self.validator.validate_word(candidate, on_loading=self._emit_loading)
        if outcome is None:
            # Superseded by a newer submission
            return None
        await self.sio.emit('word:result', outcome.model_dump(mode='json'), to=self.sid)
        if outcome.accepted:
            for number in outcome.newClues:
                clue = puzzle.triviaClues[number - 1] if number <= len(puzzle.triviaClues) else None
                await self.sio.emit('clue:unlocked', {'number': number, 'clue': clue}, to=self.sid)
            if outcome.finalChallenge and puzzle.finalTrivia:
                await self.sio.emit('final:show', {'question': puzzle.finalTrivia.question}, to=self.sid)
            await self.emit_state()
        return outcome

    async def answer_final(self, answer: str) -> bool:
        puzzle = self._require_puzzle()
        if puzzle.finalTrivia is None:
            raise SessionError('This puzzle has no final challenge')
        if self.tracker.final_completed:
            raise SessionError('Final challenge already completed')
        if not self.tracker.should_show_final_challenge():
            raise SessionError('Final challenge is still locked')
        self.final_attempts += 1
        correct = check_final_answer(puzzle, answer)
        if correct:
            self.tracker.complete_final_challenge()
            self.credits.consume(self.player_id)
        else:
            self.telemetry.track(FINAL_WRONG, answer.strip(), self.final_attempts)
        await self.sio.emit('final:result', {'correct': correct, 'attempts': self.final_attempts}, to=self.sid)
        await self.emit_state()
        return correct

    async def dismiss_final(self):
        self._require_puzzle()
        self.tracker.dismiss_final_challenge()
        await self.emit_state()


class SessionManager:
    def __init__(self, sio, client: DictionaryClient, provider: PuzzleProvider, settings: Settings,
                 telemetry: Telemetry, credits: CreditLedger):
        self.sio = sio
        self.client = client
        self.provider = provider
        self.settings = settings
        self.telemetry = telemetry
        self.credits = credits
        self.sessions: Dict[str, PuzzleSession] = {}

    def get_or_create(self, sid: str, player_id: Optional[str] = None) -> PuzzleSession:
        if sid not in self.sessions:
            self.sessions[sid] = PuzzleSession(
                sid, player_id or sid, self.sio, self.client, self.settings, self.telemetry, self.credits
            )
        return self.sessions[sid]

    def get(self, sid: str) -> PuzzleSession:
        session = self.sessions.get(sid)
        if session is None:
            raise SessionError('Unknown session')
        return session

    def remove(self, sid: str):
        session = self.sessions.pop(sid, None)
        if session is not None:
            session.close()

    async def load_puzzle(self, sid: str, player_id: Optional[str] = None) -> Optional[PuzzleSession]:
        session = self.get_or_create(sid, player_id)
        credits = self.credits.state(session.player_id)
        if not credits.hasAccess:
            await self.sio.emit('paywall', credits.model_dump(), to=sid)
            return None
        session.load(self.provider.get_puzzle())
        await session.emit_state()
        return session
