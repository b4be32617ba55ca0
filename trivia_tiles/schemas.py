from __future__ import annotations
import time
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional

from .errors import DictionaryErrorKind, RejectionReason


class FinalTrivia(BaseModel):
    question: str
    answer: str


class PuzzleDefinition(BaseModel):
    id: str = 'sample'
    center: str
    outer: List[str]
    validWords: List[str] = []
    # Explicit total when the full word list is not shipped to the session
    totalWords: Optional[int] = Field(default=None, ge=0)
    pangram: Optional[str] = None
    triviaClues: List[str] = []
    finalTrivia: Optional[FinalTrivia] = None

    @field_validator('center')
    @classmethod
    def _single_letter(cls, v: str) -> str:
        v = v.strip()
        if len(v) != 1 or not v.isalpha():
            raise ValueError('center must be a single letter')
        return v.upper()

    @field_validator('outer')
    @classmethod
    def _letters(cls, v: List[str]) -> List[str]:
        out = []
        for letter in v:
            letter = letter.strip()
            if len(letter) != 1 or not letter.isalpha():
                raise ValueError('outer letters must be single letters')
            out.append(letter.upper())
        return out

    @property
    def total_words(self) -> int:
        if self.totalWords is not None:
            return self.totalWords
        return len(self.validWords)

    @property
    def letters(self) -> set:
        return {self.center.lower(), *(l.lower() for l in self.outer)}


ValidationStatus = Literal['accepted', 'rejected', 'loading', 'errored']


class ValidationOutcome(BaseModel):
    word: str
    status: ValidationStatus
    reason: Optional[RejectionReason] = None
    errorKind: Optional[DictionaryErrorKind] = None
    message: Optional[str] = None
    fromCache: bool = False
    isPangram: bool = False
    # Milestones crossed by an accepted word
    newClues: List[int] = []
    finalChallenge: bool = False

    @property
    def accepted(self) -> bool:
        return self.status == 'accepted'


class WordSubmission(BaseModel):
    word: str = Field(..., max_length=64)


class FinalAnswer(BaseModel):
    answer: str = Field(..., max_length=200)


class FoundWord(BaseModel):
    word: str
    isPangram: bool = False


class PuzzleState(BaseModel):
    puzzleId: str
    center: str
    outer: List[str]
    foundWords: List[FoundWord] = []
    totalWords: int
    progress: float = 0.0
    unlockedClueCount: int = 0
    unlockedClues: List[str] = []
    showFinalChallenge: bool = False
    finalQuestion: Optional[str] = None
    finalCompleted: bool = False
    isValidating: bool = False
    errorMessage: Optional[str] = None


class TelemetryEvent(BaseModel):
    category: str
    action: str
    label: Optional[str] = None
    value: Optional[float] = None
    timestamp: float = Field(default_factory=time.time)


class CreditsState(BaseModel):
    playerId: str
    playedPuzzles: int = 0
    purchasedCredits: int = 0
    freePuzzlesRemaining: int = 0
    hasAccess: bool = True
