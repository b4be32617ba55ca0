from __future__ import annotations
import logging
import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from .dictionary import (
    DEFAULT_BASE_URL, DEFAULT_CACHE_SIZE, DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, DEFAULT_TIMEOUT,
    DEFAULT_WORKERS,
)
from .progress import DEFAULT_CLUE_THRESHOLDS, DEFAULT_FINAL_THRESHOLD
from .validator import DEFAULT_MIN_LENGTH

ENV_PREFIX = 'TRIVIA_TILES_'
LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


class Settings(BaseModel):
    dictionaryUrl: str = DEFAULT_BASE_URL
    requestTimeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    maxRetries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retryDelay: float = Field(default=DEFAULT_RETRY_DELAY, ge=0)
    cacheSize: int = Field(default=DEFAULT_CACHE_SIZE, ge=1)
    lookupWorkers: int = Field(default=DEFAULT_WORKERS, ge=1)
    minWordLength: int = Field(default=DEFAULT_MIN_LENGTH, ge=1)
    clueThresholds: List[float] = list(DEFAULT_CLUE_THRESHOLDS)
    finalThreshold: float = Field(default=DEFAULT_FINAL_THRESHOLD, ge=0, le=1)
    puzzlePath: Optional[str] = None
    freePuzzleLimit: int = Field(default=3, ge=0)
    creditsPerPurchase: int = Field(default=3, ge=1)
    corsOrigins: List[str] = ['*']
    logLevel: str = 'INFO'

    @field_validator('clueThresholds')
    @classmethod
    def _ratios(cls, v: List[float]) -> List[float]:
        for t in v:
            if not 0.0 <= t <= 1.0:
                raise ValueError(f'threshold {t} outside [0, 1]')
        return sorted(v)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Read TRIVIA_TILES_* variables, e.g. TRIVIA_TILES_REQUEST_TIMEOUT=2.5.

        List settings are comma separated.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name, field in cls.model_fields.items():
            raw = environ.get(ENV_PREFIX + _env_name(name))
            if raw is None:
                continue
            if field.annotation in (List[float], List[str]):
                values[name] = [part.strip() for part in raw.split(',') if part.strip()]
            else:
                values[name] = raw
        return cls.model_validate(values)


def _env_name(field_name: str) -> str:
    out = []
    for ch in field_name:
        if ch.isupper():
            out.append('_')
        out.append(ch.upper())
    return ''.join(out)


def setup_logging(level: str = 'INFO') -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
