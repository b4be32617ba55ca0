from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Optional

from .schemas import PuzzleDefinition

logger = logging.getLogger(__name__)

SAMPLE_PUZZLE = {
    'id': 'sample',
    'center': 'A',
    'outer': ['B', 'C', 'D', 'E', 'F', 'G'],
    'validWords': ['FACE', 'AGED', 'BADGE', 'FADED'],
    'pangram': None,
    'triviaClues': [
        "This city is famously known as the 'City of Light.'",
        'This city is home to the Louvre museum.',
        'You can visit the Eiffel Tower here.',
        "It's the capital city of France.",
    ],
    'finalTrivia': {
        'question': 'What city do these clues describe?',
        'answer': 'Paris',
    },
}


class PuzzleProvider:
    """Supplies the active puzzle: a JSON file when configured, else the built-in sample."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._cached: Optional[PuzzleDefinition] = None

    def get_puzzle(self) -> PuzzleDefinition:
        if self._cached is None:
            self._cached = self.load()
        return self._cached

    def load(self) -> PuzzleDefinition:
        if self.path is None:
            return PuzzleDefinition.model_validate(SAMPLE_PUZZLE)
        data = json.loads(self.path.read_text(encoding='utf-8'))
        puzzle = PuzzleDefinition.model_validate(data)
        logger.info('Loaded puzzle %s from %s (%d words)', puzzle.id, self.path, puzzle.total_words)
        return puzzle

    def reload(self) -> PuzzleDefinition:
        self._cached = None
        return self.get_puzzle()


def check_final_answer(puzzle: PuzzleDefinition, answer: str) -> bool:
    if puzzle.finalTrivia is None:
        return False
    given = answer.strip().lower()
    return bool(given) and given == puzzle.finalTrivia.answer.strip().lower()
