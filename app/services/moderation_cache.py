# app/services/moderation_cache.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from app.core.errors import InvalidInput
from app.schemas.moderation import FlaggedPosition, ModerationResult, ModerationStatistics
from app.services.profanity import ScanResult, scan

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_SWEEP_THRESHOLD = 1000

SUGGESTIONS = (
    "Use professional vocabulary",
    "Avoid offensive expressions",
    "Be respectful to other users",
)


@dataclass(frozen=True)
class _Flags:
    """
    The cached part of a moderation result. Statistics that depend on the
    caller's exact input are never stored here.
    """
    is_clean: bool
    errors: Optional[Tuple[str, ...]]
    positions: Optional[Tuple[FlaggedPosition, ...]]
    suggestions: Optional[Tuple[str, ...]]


@dataclass
class _Entry:
    flags: _Flags
    timestamp: float


def normalize_key(text: str) -> str:
    return text.strip().lower()


def _word_count(text: str) -> int:
    stripped = text.strip()
    return len(stripped.split()) if stripped else 0


class ModerationCache:
    """
    TTL memoization over the profanity scanner.

    - key: text.strip().lower()
    - a live entry (age < ttl) is served without rescanning
    - after an insert that pushes the map past sweep_threshold, every expired
      entry is dropped; live entries are kept, so the threshold is a soft
      trigger rather than a cap
    """

    def __init__(
        self,
        scanner: Callable[[str], ScanResult] = scan,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_threshold: int = DEFAULT_SWEEP_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._scanner = scanner
        self._ttl = float(ttl_seconds)
        self._sweep_threshold = int(sweep_threshold)
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def check(self, text: str) -> ModerationResult:
        if not isinstance(text, str):
            raise InvalidInput("Text must be a string.")

        key = normalize_key(text)

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None and now - entry.timestamp < self._ttl:
                flags = entry.flags
            else:
                flags = self._flags_for(text)
                self._entries[key] = _Entry(flags=flags, timestamp=now)
                if len(self._entries) > self._sweep_threshold:
                    self._sweep(now)

        return self._build(flags, text)

    # -----------------------------------------------------------------
    # internals
    # -----------------------------------------------------------------

    def _flags_for(self, text: str) -> _Flags:
        result = self._scanner(text)
        if not result.spans:
            return _Flags(is_clean=True, errors=None, positions=None, suggestions=None)
        return _Flags(
            is_clean=False,
            errors=tuple(result.unique_terms),
            positions=tuple(
                FlaggedPosition(word=s.word, start=s.start, end=s.end)
                for s in result.spans
            ),
            suggestions=SUGGESTIONS,
        )

    def _sweep(self, now: float) -> None:
        # caller holds the lock
        expired = [k for k, e in self._entries.items() if now - e.timestamp > self._ttl]
        for k in expired:
            del self._entries[k]
        logger.info(
            "moderation cache sweep removed=%d remaining=%d", len(expired), len(self._entries)
        )

    @staticmethod
    def _build(flags: _Flags, text: str) -> ModerationResult:
        positions: Optional[List[FlaggedPosition]] = list(flags.positions) if flags.positions else None
        errors = list(flags.errors) if flags.errors else None
        return ModerationResult(
            is_clean=flags.is_clean,
            errors=errors,
            positions=positions,
            suggestions=list(flags.suggestions) if flags.suggestions else None,
            statistics=ModerationStatistics(
                total_words=_word_count(text),
                bad_words_count=len(positions or ()),
                unique_bad_words=len(errors or ()),
                text_length=len(text),
            ),
        )
