# app/services/profanity.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence


# ---------------------------------------------------------------------
# lexicon
# ---------------------------------------------------------------------

CATEGORY_CORE = "core"
CATEGORY_COMBINED = "combined"
CATEGORY_MILD = "mild"
CATEGORY_FOREIGN = "foreign"

SEVERITY = {
    CATEGORY_CORE: "high",
    CATEGORY_COMBINED: "high",
    CATEGORY_MILD: "medium",
    CATEGORY_FOREIGN: "medium",
}

LEXICON: Dict[str, Sequence[str]] = {
    CATEGORY_CORE: (
        "хуй", "хуё", "хуя", "хуе", "хую", "хуев", "хуёв", "хуём",
        "пидор", "педик", "пидарас", "пидр", "пидар", "пидрила", "пидрило",
        "педераст", "пидорюга",
        "бля", "бляд", "блять", "блядь", "блядина", "блядский", "блядство",
        "блядун", "блядунья",
        "ебан", "ебать", "ебаш", "ебал", "ёбан", "ёбаный", "ебаный", "ёбну",
        "ёбн", "ебли", "ебл", "ёбли", "ёбля",
        "xyй", "xуй", "пизд", "пиздё", "пизда", "пизде", "пизду", "пизды",
    ),
    CATEGORY_MILD: (
        "говн", "говё", "гавн", "дерьм", "дерьмо",
        "залуп", "залупа", "залупе", "залупу",
        "муда", "муде", "мудо", "мудак", "мудозвон", "мудоеб", "мудил", "мудень",
        "падл", "падло", "падла", "падле", "падлу",
        "сучк", "сука", "суке", "суки", "сучень", "сучон", "сучка", "сучье", "сучар",
        "шлюх", "шлюха", "шлюхи", "шлюхе", "шлюху",
        "уёб", "уеб", "уёбищ", "уебищ", "ёбтв",
        "жоп", "жопа", "жопе", "жопу", "жопы", "жопн", "жополиз", "жопочник",
    ),
    CATEGORY_COMBINED: (
        "охуе", "охуеть", "охуен", "охуенно", "охуительн", "охрен", "охереть",
        "охерит", "похуй", "похую", "похуизм", "нахуй", "нахуя", "нахер", "нихуя",
        "хуесос", "хуеплет", "хуеглот", "хуемразь", "хуйло", "хуйня", "хуила",
        "хуило", "ебанут", "ёбанут", "ебонуть", "ёбонуть",
        "пиздец", "пиздабол", "пиздобол", "пиздюк", "пиздюли", "пиздень",
        "пиздош", "пиздюга",
    ),
    CATEGORY_FOREIGN: (
        "fuck", "fucking", "fucker", "motherfucker", "shit", "bitch", "asshole",
        "dick", "cock", "pussy", "cunt", "bastard", "whore", "slut",
        "douchebag", "scumbag", "jerk", "retard",
    ),
}

# words that legitimately contain a lexicon stem
SAFE_WORDS = (
    "соединение", "эвотор", "облачный", "сервис", "прямой", "основной",
    "личный", "кабинет", "управление", "номенклатура", "установка",
    "приложение", "обмен", "удаленный", "доступ",
)

MIN_TERM_LENGTH = 3


# ---------------------------------------------------------------------
# results
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class Span:
    word: str
    start: int
    end: int
    category: str
    severity: str


@dataclass(frozen=True)
class ScanResult:
    spans: List[Span] = field(default_factory=list)
    unique_terms: List[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.spans


# ---------------------------------------------------------------------
# scanner
# ---------------------------------------------------------------------


class ProfanityScanner:
    """
    Whole-word, case-insensitive lexicon matcher.

    Longer terms are tried first, so "motherfucker" wins over "fucker" at
    the same position. Stateless after construction; scan() is pure.
    """

    def __init__(
        self,
        lexicon: Mapping[str, Iterable[str]] = LEXICON,
        safe_words: Iterable[str] = SAFE_WORDS,
    ):
        self._category_of: Dict[str, str] = {}
        for category, terms in lexicon.items():
            for term in terms:
                t = term.lower()
                if len(t) >= MIN_TERM_LENGTH:
                    # first category wins for terms listed twice
                    self._category_of.setdefault(t, category)

        self._safe_words = tuple(w.lower() for w in safe_words)

        ordered = sorted(self._category_of, key=len, reverse=True)
        if ordered:
            alternation = "|".join(re.escape(t) for t in ordered)
            self._pattern = re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)
        else:
            self._pattern = None

    def _is_false_positive(self, found: str) -> bool:
        lowered = found.lower()
        return any(safe in lowered for safe in self._safe_words)

    def scan(self, text: str) -> ScanResult:
        if not text or not text.strip() or self._pattern is None:
            return ScanResult()

        spans: List[Span] = []
        seen = set()
        unique_terms: List[str] = []

        for m in self._pattern.finditer(text):
            found = m.group(0)
            if self._is_false_positive(found):
                continue
            key = (m.start(), m.end())
            if key in seen:
                continue
            seen.add(key)

            lowered = found.lower()
            category = self._category_of.get(lowered, CATEGORY_MILD)
            spans.append(
                Span(
                    word=found,
                    start=m.start(),
                    end=m.end(),
                    category=category,
                    severity=SEVERITY[category],
                )
            )
            if lowered not in unique_terms:
                unique_terms.append(lowered)

        spans.sort(key=lambda s: s.start)
        return ScanResult(spans=spans, unique_terms=unique_terms)

    def mask(self, text: str) -> str:
        """
        Replace every flagged span with asterisks of the same length.
        """
        result = self.scan(text)
        if result.is_clean:
            return text
        chars = list(text)
        for span in result.spans:
            chars[span.start:span.end] = "*" * (span.end - span.start)
        return "".join(chars)


default_scanner = ProfanityScanner()


def scan(text: str) -> ScanResult:
    return default_scanner.scan(text)


def mask(text: str) -> str:
    return default_scanner.mask(text)
