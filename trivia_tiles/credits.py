from __future__ import annotations
import logging
import threading
from typing import Dict, Optional, Protocol

from .schemas import CreditsState

logger = logging.getLogger(__name__)

FREE_PUZZLE_LIMIT = 3
CREDITS_PER_PURCHASE = 3


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value


class CreditLedger:
    """First puzzles free, then purchased credits; purchased credits are spent first."""

    def __init__(self, store: KeyValueStore, free_limit: int = FREE_PUZZLE_LIMIT, per_purchase: int = CREDITS_PER_PURCHASE):
        self.store = store
        self.free_limit = free_limit
        self.per_purchase = per_purchase

    def _read(self, key: str) -> int:
        raw = self.store.get(key)
        if raw is None:
            return 0
        try:
            return max(0, int(raw))
        except ValueError:
            logger.warning('Ignoring corrupt credit value %r for %s', raw, key)
            return 0

    def state(self, player_id: str) -> CreditsState:
        played = self._read(f'playedPuzzles:{player_id}')
        purchased = self._read(f'purchasedCredits:{player_id}')
        return CreditsState(
            playerId=player_id,
            playedPuzzles=played,
            purchasedCredits=purchased,
            freePuzzlesRemaining=max(0, self.free_limit - played),
            hasAccess=played < self.free_limit or purchased > 0,
        )

    def has_access(self, player_id: str) -> bool:
        return self.state(player_id).hasAccess

    def consume(self, player_id: str) -> CreditsState:
        current = self.state(player_id)
        if current.purchasedCredits > 0:
            self.store.set(f'purchasedCredits:{player_id}', str(current.purchasedCredits - 1))
        elif current.playedPuzzles < self.free_limit:
            self.store.set(f'playedPuzzles:{player_id}', str(current.playedPuzzles + 1))
        return self.state(player_id)

    def add_purchase(self, player_id: str) -> CreditsState:
        current = self.state(player_id)
        self.store.set(f'purchasedCredits:{player_id}', str(current.purchasedCredits + self.per_purchase))
        logger.info('Granted %d credits to %s', self.per_purchase, player_id)
        return self.state(player_id)
