"""Deterministic lexicon scoring of text against the brand DNA themes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class BrandTheme:
    name: str
    keywords: tuple[str, ...]
    emotional_indicators: tuple[str, ...]
    strength_indicators: tuple[str, ...]
    weight: float


BRAND_THEMES: tuple[BrandTheme, ...] = (
    BrandTheme(
        name="potential_first",
        keywords=("potential", "capability", "opportunity", "possibility", "able", "can", "will"),
        emotional_indicators=("hope", "optimism", "confidence", "belief", "trust"),
        strength_indicators=("achieved", "accomplished", "succeeded", "overcame", "transformed"),
        weight=1.2,
    ),
    BrandTheme(
        name="cultural_strength",
        keywords=(
            "culture",
            "indigenous",
            "traditional",
            "community",
            "family",
            "connection",
            "belonging",
        ),
        emotional_indicators=("pride", "belonging", "identity", "strength", "grounded"),
        strength_indicators=("cultural knowledge", "traditional ways", "mob", "country", "elders"),
        weight=1.1,
    ),
    BrandTheme(
        name="commercial_excellence",
        keywords=(
            "business",
            "work",
            "employment",
            "productive",
            "quality",
            "professional",
            "successful",
        ),
        emotional_indicators=("pride", "accomplishment", "satisfaction", "confidence"),
        strength_indicators=("delivered", "exceeded", "productive", "reliable", "quality"),
        weight=1.0,
    ),
    BrandTheme(
        name="reciprocity",
        keywords=("give back", "support", "help", "mentor", "share", "community", "together"),
        emotional_indicators=("gratitude", "responsibility", "connection", "caring"),
        strength_indicators=("mentoring", "supporting", "helping", "giving back", "sharing"),
        weight=0.9,
    ),
    BrandTheme(
        name="transformation",
        keywords=("change", "different", "before", "after", "journey", "growth", "development"),
        emotional_indicators=("hope", "determination", "resilience", "growth"),
        strength_indicators=("changed", "transformed", "improved", "developed", "overcame"),
        weight=1.3,
    ),
)

POSITIVE_WORDS = (
    "good",
    "great",
    "amazing",
    "wonderful",
    "proud",
    "happy",
    "successful",
    "achieved",
    "transformed",
)
NEGATIVE_WORDS = (
    "bad",
    "terrible",
    "difficult",
    "hard",
    "struggled",
    "failed",
    "problems",
    "issues",
)

THEME_CEILING = 10.0


@lru_cache(maxsize=512)
def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(phrase)}\b", re.IGNORECASE)


def count_phrases(text: str, phrases: tuple[str, ...]) -> int:
    """Number of distinct phrases present as whole words."""
    return sum(1 for phrase in phrases if _phrase_pattern(phrase).search(text))


@dataclass(frozen=True)
class TextBrandScore:
    """Lexicon scores for one text, each on a 0..100 scale."""

    overall: float
    authenticity: float
    cultural: float
    commercial: float
    theme_scores: dict[str, float]


def score_text(text: str) -> TextBrandScore:
    theme_scores: dict[str, float] = {}
    emotional_hits = 0
    strength_hits = 0
    for theme in BRAND_THEMES:
        keywords = count_phrases(text, theme.keywords)
        emotional = count_phrases(text, theme.emotional_indicators)
        strength = count_phrases(text, theme.strength_indicators)
        emotional_hits += emotional
        strength_hits += strength
        raw = (keywords + emotional * 1.5 + strength * 2.0) * theme.weight
        theme_scores[theme.name] = min(THEME_CEILING, raw)
    overall = min(100.0, sum(theme_scores.values()) * 4.0)
    return TextBrandScore(
        overall=round(overall, 2),
        authenticity=round(min(100.0, emotional_hits * 15.0 + strength_hits * 10.0), 2),
        cultural=round(theme_scores["cultural_strength"] * 10.0, 2),
        commercial=round(theme_scores["commercial_excellence"] * 10.0, 2),
        theme_scores=theme_scores,
    )


def emotional_tone(text: str) -> float:
    """50 is neutral; each positive word adds 10 and each negative subtracts 10."""
    positive = count_phrases(text, POSITIVE_WORDS)
    negative = count_phrases(text, NEGATIVE_WORDS)
    return float(max(0, min(100, 50 + 10 * (positive - negative))))


def message_clarity(messages: list[str]) -> float:
    """Shorter messages read clearer; each word past twelve costs five points."""
    lengths = [len(message.split()) for message in messages if message.strip()]
    if not lengths:
        return 0.0
    average = sum(lengths) / len(lengths)
    return round(max(0.0, min(100.0, 100.0 - max(0.0, average - 12.0) * 5.0)), 2)
