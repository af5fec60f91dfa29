"""Keyword-pattern bot: the first responder tier."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from support_relay.core.clock import Clock
from support_relay.core.errors import NotFound, ValidationError
from support_relay.core.types import Feedback, PatternSource
from support_relay.log import get_logger
from support_relay.storage.models import Pattern
from support_relay.storage.pattern_repo import PatternRepository

logger = get_logger(__name__)

USAGE_CONFIDENCE_STEP = 0.05
LEARN_CONFIDENCE_STEP = 0.02
LEARN_SUCCESS_STEP = 0.05
MAX_LEARNED_KEYWORDS = 5

_NON_WORD = re.compile(r"[^\w\s]")

DEFAULT_PATTERNS: list[tuple[list[str], str, float]] = [
    (
        ["merhaba", "selam", "hey", "hi"],
        "Merhaba! HayDay Malzemeleri destek ekibine hoş geldiniz. Size nasıl yardımcı olabilirim?",
        0.9,
    ),
    (
        ["altın", "para", "transfer"],
        'Altın transferi hakkında detaylı bilgi için "Sorular & İletişim" sayfamızı ziyaret '
        "edebilirsiniz. Size yardımcı olmak için buradayım!",
        0.8,
    ),
    (
        ["fiyat", "ücret", "ne kadar"],
        'Ürün fiyatları için "Ürün Listenizi Oluşturun" sayfasını inceleyebilirsiniz. '
        "Güncel fiyatlarımız orada yer almaktadır.",
        0.8,
    ),
    (
        ["depolama", "ağıl", "ambar"],
        'Depolama hesaplamaları için özel hesaplayıcımızı kullanabilirsiniz: "Depolama '
        'Hesaplayıcısı" sayfamızı ziyaret edin.',
        0.8,
    ),
    (
        ["makine", "üretim", "seviye"],
        'Makine bilgileri ve seviyeleri hakkında "Makineler" sayfamızdan detaylı bilgi alabilirsiniz.',
        0.8,
    ),
]


@dataclass(frozen=True)
class MatchResult:
    pattern: Optional[Pattern]
    confidence: float
    should_escalate: bool


def normalize_keywords(keywords: Iterable[str]) -> list[str]:
    """Trim, drop blanks and duplicates, keep first-seen order."""
    seen: dict[str, None] = {}
    for keyword in keywords:
        cleaned = keyword.strip()
        if cleaned and cleaned.lower() not in seen:
            seen[cleaned.lower()] = None
    return list(seen)


def extract_keywords(text: str, limit: int = MAX_LEARNED_KEYWORDS) -> list[str]:
    """Lower-cased words longer than two characters, punctuation stripped."""
    words = _NON_WORD.sub("", text.lower()).split()
    return [w for w in words if len(w) > 2][:limit]


def score_pattern(text: str, pattern: Pattern) -> float:
    """Fraction of the pattern's keywords found in ``text``, weighted by its confidence."""
    if not pattern.keywords:
        return 0.0
    lowered = text.lower()
    hits = sum(1 for keyword in pattern.keywords if keyword.lower() in lowered)
    return (hits / len(pattern.keywords)) * pattern.confidence


class KnowledgeMatcher:
    """Scores messages against an in-memory, insertion-ordered copy of the pattern table.

    Reads are lock-free and side-effect free. Every mutation goes to the
    database first as a single atomic statement, then the in-memory copy is
    refreshed from the stored row under ``_lock``.
    """

    def __init__(self, repo: PatternRepository, clock: Clock, threshold: float = 0.7):
        self._repo = repo
        self._clock = clock
        self.threshold = threshold
        self._patterns: list[Pattern] = []
        self._lock = asyncio.Lock()

    async def load(self, seed_defaults: bool = True) -> None:
        if seed_defaults and await self._repo.count() == 0:
            now = self._clock.now_ms()
            for keywords, response, confidence in DEFAULT_PATTERNS:
                await self._repo.insert(
                    Pattern(
                        keywords=keywords,
                        response=response,
                        confidence=confidence,
                        created_at=now,
                    )
                )
            logger.info("patterns_seeded", count=len(DEFAULT_PATTERNS))
        self._patterns = await self._repo.all()
        logger.info("patterns_loaded", count=len(self._patterns), threshold=self.threshold)

    @property
    def patterns(self) -> list[Pattern]:
        return list(self._patterns)

    def analyze(self, text: str) -> MatchResult:
        best: Optional[Pattern] = None
        best_score = 0.0
        for pattern in self._patterns:
            score = score_pattern(text, pattern)
            # Strictly greater: on ties the earlier pattern wins
            if score > best_score:
                best, best_score = pattern, score
        return MatchResult(
            pattern=best,
            confidence=best_score,
            should_escalate=best_score < self.threshold,
        )

    async def record_usage(self, pattern: Pattern, feedback: Feedback) -> Pattern:
        """Count a use of ``pattern`` and nudge its confidence by the feedback polarity."""
        delta = {
            Feedback.POSITIVE: USAGE_CONFIDENCE_STEP,
            Feedback.NEGATIVE: -USAGE_CONFIDENCE_STEP,
            Feedback.NEUTRAL: 0.0,
        }[feedback]
        return await self._adjust(pattern, usage_delta=1, confidence_delta=delta)

    async def train(
        self,
        keywords: Iterable[str],
        response: str,
        confidence: float = 0.8,
        admin_id: Optional[str] = None,
    ) -> Pattern:
        """Add an admin-authored pattern."""
        cleaned = normalize_keywords(keywords)
        if not cleaned:
            raise ValidationError("keywords", "at least one non-empty keyword is required")
        response = response.strip()
        if not 1 <= len(response) <= 1000:
            raise ValidationError("response", "must be 1-1000 characters")
        if not 0.0 <= confidence <= 1.0:
            raise ValidationError("confidence", "must be between 0 and 1")

        pattern = await self._insert(
            Pattern(
                keywords=cleaned,
                response=response,
                confidence=confidence,
                source=PatternSource.ADMIN,
                created_at=self._clock.now_ms(),
                created_by=admin_id,
            )
        )
        logger.info("pattern_trained", pattern_id=pattern.id, keywords=cleaned, admin_id=admin_id)
        return pattern

    async def learn(
        self, user_message: str, ai_response: Optional[str], feedback: Feedback
    ) -> Optional[Pattern]:
        """Learn from a rated interaction.

        Reinforces an existing pattern sharing a keyword with the message, or
        on positive feedback turns the AI answer into a new pattern.
        """
        keywords = extract_keywords(user_message)
        if len(keywords) < 2:
            return None

        existing = next(
            (p for p in self._patterns if any(k in keywords for k in p.keywords)), None
        )
        if existing is not None:
            sign = {Feedback.POSITIVE: 1, Feedback.NEGATIVE: -1, Feedback.NEUTRAL: 0}[feedback]
            return await self._adjust(
                existing,
                usage_delta=1,
                confidence_delta=sign * LEARN_CONFIDENCE_STEP,
                success_rate_delta=sign * LEARN_SUCCESS_STEP,
            )

        if feedback is Feedback.POSITIVE and ai_response:
            pattern = await self._insert(
                Pattern(
                    keywords=keywords,
                    response=ai_response,
                    confidence=0.7,
                    usage=1,
                    source=PatternSource.LEARNED,
                    created_at=self._clock.now_ms(),
                )
            )
            logger.info("pattern_learned", pattern_id=pattern.id, keywords=keywords)
            return pattern
        return None

    async def find_by_response(self, response: str) -> Optional[Pattern]:
        return next((p for p in self._patterns if p.response == response), None)

    def stats(self) -> dict[str, float]:
        count = len(self._patterns)
        return {
            "totalPatterns": count,
            "avgConfidence": sum(p.confidence for p in self._patterns) / count if count else 0.0,
            "totalUsage": sum(p.usage for p in self._patterns),
            "avgSuccessRate": sum(p.success_rate for p in self._patterns) / count if count else 0.0,
        }

    async def _insert(self, pattern: Pattern) -> Pattern:
        async with self._lock:
            stored = await self._repo.insert(pattern)
            self._patterns.append(stored)
        return stored

    async def _adjust(
        self,
        pattern: Pattern,
        usage_delta: int = 0,
        confidence_delta: float = 0.0,
        success_rate_delta: float = 0.0,
    ) -> Pattern:
        if pattern.id is None:
            raise NotFound("Pattern has not been stored")
        async with self._lock:
            updated = await self._repo.adjust(
                pattern.id,
                usage_delta=usage_delta,
                confidence_delta=confidence_delta,
                success_rate_delta=success_rate_delta,
            )
            if updated is None:
                raise NotFound(f"Pattern {pattern.id} not found")
            for index, current in enumerate(self._patterns):
                if current.id == updated.id:
                    self._patterns[index] = updated
                    break
        return updated
