from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence

from .dictionary import normalize_word
from .telemetry import CLUE_UNLOCKED, FINAL_COMPLETED, FINAL_SHOWN, Telemetry

logger = logging.getLogger(__name__)

DEFAULT_CLUE_THRESHOLDS = (0.25, 0.40, 0.60, 0.80)
DEFAULT_FINAL_THRESHOLD = 0.90


class FoundWords:
    """Accepted words in discovery order; membership is case-insensitive."""

    def __init__(self, words: Iterable[str] = ()):
        self._order: List[str] = []
        self._seen: set = set()
        for w in words:
            self.add(w)

    def add(self, word: str) -> bool:
        key = normalize_word(word)
        if not key or key in self._seen:
            return False
        self._seen.add(key)
        self._order.append(key)
        return True

    def as_list(self) -> List[str]:
        return list(self._order)

    def __contains__(self, word: str) -> bool:
        return normalize_word(word) in self._seen

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._order))

    def __len__(self) -> int:
        return len(self._order)


@dataclass
class Milestones:
    # 1-based clue numbers unlocked by the latest word
    new_clues: List[int] = field(default_factory=list)
    final_challenge: bool = False


def _validate_thresholds(thresholds: Iterable[float]) -> List[float]:
    out = sorted(float(t) for t in thresholds)
    for t in out:
        if not 0.0 <= t <= 1.0:
            raise ValueError(f'threshold {t} outside [0, 1]')
    return out


class ProgressTracker:
    def __init__(
        self,
        total_words: int,
        clue_thresholds: Sequence[float] = DEFAULT_CLUE_THRESHOLDS,
        final_threshold: float = DEFAULT_FINAL_THRESHOLD,
        telemetry: Optional[Telemetry] = None,
    ):
        self.clue_thresholds = _validate_thresholds(clue_thresholds)
        self.final_threshold = _validate_thresholds([final_threshold])[0]
        self.telemetry = telemetry or Telemetry([])
        self.reset(total_words)

    def reset(self, total_words: int) -> None:
        if total_words < 0:
            raise ValueError('total_words must not be negative')
        self.total_words = total_words
        self.found_words = FoundWords()
        self._unlocked = 0
        self.final_visible = False
        self.final_completed = False

    def progress(self) -> float:
        if self.total_words <= 0:
            return 0.0
        # The dictionary can accept words outside the puzzle's list
        return min(1.0, len(self.found_words) / self.total_words)

    def unlocked_clue_count(self, thresholds: Optional[Sequence[float]] = None) -> int:
        if thresholds is not None:
            current = self.progress()
            return sum(1 for t in _validate_thresholds(thresholds) if t <= current)
        return self._unlocked

    def should_show_final_challenge(self, final_threshold: Optional[float] = None) -> bool:
        threshold = self.final_threshold if final_threshold is None else final_threshold
        return self.progress() >= threshold and not self.final_completed

    def record(self, word: str) -> Milestones:
        """Add an accepted word and report the milestones it crossed."""
        milestones = Milestones()
        if not self.found_words.add(word):
            return milestones

        current = self.progress()
        reached = sum(1 for t in self.clue_thresholds if t <= current)
        for number in range(self._unlocked + 1, reached + 1):
            milestones.new_clues.append(number)
            self.telemetry.track(CLUE_UNLOCKED, f'Clue {number}', number)
        # Unlocks never go backwards
        self._unlocked = max(self._unlocked, reached)

        if self.should_show_final_challenge() and not self.final_visible:
            self.final_visible = True
            milestones.final_challenge = True
            self.telemetry.track(FINAL_SHOWN)
            logger.info('Final challenge unlocked at %.0f%%', current * 100)
        return milestones

    def dismiss_final_challenge(self) -> None:
        # Hidden until the next accepted word while still eligible
        self.final_visible = False

    def complete_final_challenge(self) -> bool:
        if self.final_completed:
            return False
        self.final_completed = True
        self.final_visible = False
        self.telemetry.track(FINAL_COMPLETED)
        return True
