"""Brand messaging variants: lifecycle, analysis snapshots, and comparison."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from statistics import fmean, pstdev
from typing import Literal

from custodian_portal.core.activity_log import ActivityLog, new_record_id
from custodian_portal.core.brand_lexicon import (
    TextBrandScore,
    emotional_tone,
    message_clarity,
    score_text,
)
from custodian_portal.core.errors import NotFoundError, StateTransitionError, ValidationError
from custodian_portal.core.metrics import MetricsAggregator
from custodian_portal.core.persistence import PersistenceAdapter
from custodian_portal.core.search import BRAND_TESTS_COLLECTION, STORIES_COLLECTION
from custodian_portal.core.validation import parse_timestamp, sanitize_text, utc_now_iso
from custodian_portal.domain.models import WORKSPACE_OWNER

BRAND_RESULTS_COLLECTION = "brandTestResults"

VariantStatus = Literal["draft", "active", "completed"]
VARIANT_STATUSES: tuple[VariantStatus, ...] = ("draft", "active", "completed")
MESSAGE_FIELDS = ("headlines", "taglines", "keyMessages", "valuePropositions", "toneAdjustments")
MESSAGE_CONTEXTS = ("headline", "tagline", "value_prop", "cta")
_TRANSITIONS: dict[str, str] = {"draft": "active", "active": "completed"}

METRIC_WEIGHTS: dict[str, float] = {
    "brandDnaAlignment": 0.25,
    "authenticResonance": 0.20,
    "culturalAlignment": 0.20,
    "commercialViability": 0.15,
    "emotionalImpact": 0.15,
    "messageClarity": 0.05,
}
SIGNIFICANT_CONFIDENCE = 70.0

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BrandTestConfig:
    test_duration_days: int = 30
    min_sample_size: int = 10
    significance_threshold: float = 0.05

    def to_document(self) -> dict[str, object]:
        return {
            "testDurationDays": self.test_duration_days,
            "minSampleSize": self.min_sample_size,
            "significanceThreshold": self.significance_threshold,
        }

    @classmethod
    def from_document(cls, payload: object) -> BrandTestConfig:
        if not isinstance(payload, Mapping):
            return cls()
        defaults = cls()
        return cls(
            test_duration_days=int(payload.get("testDurationDays", defaults.test_duration_days)),
            min_sample_size=int(payload.get("minSampleSize", defaults.min_sample_size)),
            significance_threshold=float(
                payload.get("significanceThreshold", defaults.significance_threshold)
            ),
        )


@dataclass(frozen=True)
class BrandTestVariant:
    """One messaging variant under test."""

    variant_id: str
    name: str
    description: str
    content: dict[str, list[str]]
    target_audiences: tuple[str, ...]
    config: BrandTestConfig
    status: VariantStatus
    created_at_utc: str
    author_id: str
    start_date_utc: str | None = None
    end_date_utc: str | None = None

    @property
    def messages(self) -> list[str]:
        return [message for name in MESSAGE_FIELDS for message in self.content.get(name, [])]

    def to_document(self) -> dict[str, object]:
        return {
            "id": self.variant_id,
            "name": self.name,
            "description": self.description,
            "content": {name: list(values) for name, values in self.content.items()},
            "targetAudiences": list(self.target_audiences),
            "config": self.config.to_document(),
            "status": self.status,
            "createdAt": self.created_at_utc,
            "startDate": self.start_date_utc,
            "endDate": self.end_date_utc,
            "authorId": self.author_id,
        }

    @classmethod
    def from_document(cls, payload: Mapping[str, object]) -> BrandTestVariant:
        raw_content = payload.get("content")
        content: dict[str, list[str]] = {}
        if isinstance(raw_content, Mapping):
            for name in MESSAGE_FIELDS:
                values = raw_content.get(name)
                if isinstance(values, list):
                    content[name] = [str(value) for value in values]
        audiences = payload.get("targetAudiences")
        status = str(payload.get("status", "draft"))
        start = payload.get("startDate")
        end = payload.get("endDate")
        return cls(
            variant_id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            description=str(payload.get("description") or ""),
            content=content,
            target_audiences=(
                tuple(str(a) for a in audiences) if isinstance(audiences, list) else ()
            ),
            config=BrandTestConfig.from_document(payload.get("config")),
            status=status if status in VARIANT_STATUSES else "draft",  # type: ignore[arg-type]
            created_at_utc=str(payload.get("createdAt", "")),
            author_id=str(payload.get("authorId", WORKSPACE_OWNER)),
            start_date_utc=str(start) if start else None,
            end_date_utc=str(end) if end else None,
        )


@dataclass(frozen=True)
class AudienceFeedback:
    audience: str
    engagement_score: float
    sentiment_score: float
    key_responses: tuple[str, ...]


@dataclass(frozen=True)
class BrandTestResult:
    """Immutable analysis snapshot for one variant."""

    result_id: str
    variant_id: str
    period_start_utc: str
    period_end_utc: str
    metrics: dict[str, float]
    audience_feedback: tuple[AudienceFeedback, ...]
    stories_analyzed: int
    average_brand_score: float
    top_performing_messages: tuple[str, ...]
    improvement_areas: tuple[str, ...]
    recommendations: tuple[str, ...]
    confidence_level: float

    @property
    def overall_score(self) -> float:
        return weighted_overall_score(self.metrics)

    def to_document(self) -> dict[str, object]:
        return {
            "id": self.result_id,
            "variantId": self.variant_id,
            "testPeriod": {"start": self.period_start_utc, "end": self.period_end_utc},
            "metrics": dict(self.metrics),
            "audienceFeedback": [
                {
                    "audience": item.audience,
                    "engagementScore": item.engagement_score,
                    "sentimentScore": item.sentiment_score,
                    "keyResponses": list(item.key_responses),
                }
                for item in self.audience_feedback
            ],
            "contentPerformance": {
                "storiesAnalyzed": self.stories_analyzed,
                "averageBrandScore": self.average_brand_score,
                "topPerformingMessages": list(self.top_performing_messages),
                "improvementAreas": list(self.improvement_areas),
            },
            "recommendations": list(self.recommendations),
            "confidenceLevel": self.confidence_level,
        }


@dataclass(frozen=True)
class ComparisonResult:
    winner: str
    comparison_matrix: dict[str, dict[str, float]]
    overall_scores: dict[str, float]
    statistical_significance: bool
    recommendations: list[str]


@dataclass(frozen=True)
class MessageScore:
    message: str
    score: float


@dataclass(frozen=True)
class MessagingTestResult:
    winning_message: str
    performance_scores: list[MessageScore]
    insights: list[str] = field(default_factory=list)


def weighted_overall_score(metrics: Mapping[str, float]) -> float:
    return round(
        sum(float(metrics.get(name, 0.0)) * weight for name, weight in METRIC_WEIGHTS.items()), 4
    )


def confidence_level(sample_size: int, consistency: float, min_sample_size: int) -> float:
    """Confidence grows with sample size up to 50 points plus half the consistency."""
    sample_confidence = min(100.0, sample_size / max(1, min_sample_size) * 50.0)
    return round(min(100.0, sample_confidence + consistency * 0.5), 2)


def consistency_score(scores: list[float]) -> float:
    if not scores:
        return 0.0
    return max(0.0, 100.0 - pstdev(scores))


def threshold_recommendations(
    alignment: float, emotional_impact: float, clarity: float
) -> list[str]:
    recommendations: list[str] = []
    if alignment < 70:
        recommendations.append("Consider adjusting messaging to better align with brand DNA themes")
    if emotional_impact < 60:
        recommendations.append("Strengthen emotional storytelling elements")
    if clarity < 65:
        recommendations.append("Simplify and clarify key messages for better understanding")
    return recommendations


def _first_max(scores: Iterable[tuple[str, float]]) -> str:
    winner: tuple[str, float] | None = None
    for key, score in scores:
        if winner is None or score > winner[1]:
            winner = (key, score)
    if winner is None:
        raise ValidationError(["nothing to compare"])
    return winner[0]


class BrandTestEngine:
    """Create, run, analyze, and compare brand messaging variants.

    Analysis is a deterministic lexicon score over stories published into the
    workspace during the test period plus the variant's own messages.
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        activity_log: ActivityLog,
        metrics: MetricsAggregator,
    ) -> None:
        self._persistence = persistence
        self._activity_log = activity_log
        self._metrics = metrics

    def list_variants(self, status: str | None = None) -> list[BrandTestVariant]:
        documents = self._persistence.get_list(BRAND_TESTS_COLLECTION, WORKSPACE_OWNER)
        variants = [BrandTestVariant.from_document(document) for document in documents]
        if status is None:
            return variants
        return [variant for variant in variants if variant.status == status]

    def get_variant(self, variant_id: str) -> BrandTestVariant:
        for variant in self.list_variants():
            if variant.variant_id == variant_id:
                return variant
        raise NotFoundError(f"Test variant {variant_id} not found")

    def create_variant(
        self,
        *,
        name: str,
        description: str,
        content: Mapping[str, Iterable[str]],
        target_audiences: Iterable[str],
        author_id: str,
        config: BrandTestConfig | None = None,
    ) -> BrandTestVariant:
        errors: list[str] = []
        clean_name = sanitize_text(name)
        audiences = tuple(
            dict.fromkeys(sanitize_text(a) for a in target_audiences if sanitize_text(a))
        )
        if not clean_name:
            errors.append("name must not be empty")
        if not audiences:
            errors.append("at least one target audience is required")
        unknown = sorted(set(content) - set(MESSAGE_FIELDS))
        if unknown:
            errors.append(f"unknown content fields: {', '.join(unknown)}")
        effective_config = config or BrandTestConfig()
        if effective_config.test_duration_days <= 0:
            errors.append("testDurationDays must be positive")
        if effective_config.min_sample_size <= 0:
            errors.append("minSampleSize must be positive")
        if errors:
            raise ValidationError(errors)
        variant = BrandTestVariant(
            variant_id=new_record_id("test"),
            name=clean_name,
            description=sanitize_text(description),
            content={
                key: [sanitize_text(m) for m in messages if sanitize_text(m)]
                for key, messages in content.items()
            },
            target_audiences=audiences,
            config=effective_config,
            status="draft",
            created_at_utc=utc_now_iso(),
            author_id=author_id,
        )
        self._persistence.update_list(
            BRAND_TESTS_COLLECTION,
            WORKSPACE_OWNER,
            lambda items: items.append(variant.to_document()),
        )
        self._activity_log.log_brand("Created", variant.variant_id, variant.name, author_id)
        return variant

    def start(self, variant_id: str, *, actor_id: str) -> BrandTestVariant:
        """Move a draft variant to active and stamp its start date."""
        variant = self._transition(variant_id, "active", start_date_utc=utc_now_iso())
        self._activity_log.log_brand("Started", variant_id, variant.name, actor_id)
        self._metrics.set_active_brand_tests(len(self.active_tests()), actor_id)
        return variant

    def complete(self, variant_id: str, *, actor_id: str) -> BrandTestVariant:
        variant = self._transition(variant_id, "completed", end_date_utc=utc_now_iso())
        self._activity_log.log_brand("Completed", variant_id, variant.name, actor_id)
        self._metrics.set_active_brand_tests(len(self.active_tests()), actor_id)
        return variant

    def active_tests(self) -> list[BrandTestVariant]:
        return self.list_variants(status="active")

    def analyze(self, variant_id: str) -> BrandTestResult:
        """Score a variant and append a new result snapshot."""
        variant = self.get_variant(variant_id)
        period_start = variant.start_date_utc or variant.created_at_utc
        period_end = variant.end_date_utc or utc_now_iso()
        stories = self._stories_between(period_start, period_end)
        messages = variant.messages
        texts = [*stories, " ".join(messages)] if messages else list(stories)
        scores = [score_text(text) for text in texts]
        overall_scores = [score.overall for score in scores]

        alignment = fmean(overall_scores) if scores else 0.0
        authenticity = fmean(score.authenticity for score in scores) if scores else 0.0
        cultural = fmean(score.cultural for score in scores) if scores else 0.0
        commercial = fmean(score.commercial for score in scores) if scores else 0.0
        emotional = emotional_tone(" ".join(texts))
        clarity = message_clarity(messages)
        metrics = {
            "brandDnaAlignment": round(alignment, 2),
            "authenticResonance": round(authenticity, 2),
            "culturalAlignment": round(cultural, 2),
            "commercialViability": round(commercial, 2),
            "emotionalImpact": round(emotional, 2),
            "messageClarity": round(clarity, 2),
        }
        result = BrandTestResult(
            result_id=new_record_id("result"),
            variant_id=variant_id,
            period_start_utc=period_start,
            period_end_utc=period_end,
            metrics=metrics,
            audience_feedback=tuple(
                self._audience_feedback(variant, stories, alignment, emotional)
            ),
            stories_analyzed=len(stories),
            average_brand_score=round(alignment, 2),
            top_performing_messages=tuple(_top_messages(messages)),
            improvement_areas=tuple(_improvement_areas(scores)),
            recommendations=tuple(threshold_recommendations(alignment, emotional, clarity)),
            confidence_level=confidence_level(
                len(stories), consistency_score(overall_scores), variant.config.min_sample_size
            ),
        )
        self._persistence.update_list(
            BRAND_RESULTS_COLLECTION,
            WORKSPACE_OWNER,
            lambda items: items.append(result.to_document()),
        )
        logger.info(
            "brand_test.analyzed variant=%s stories=%s overall=%.2f confidence=%.2f",
            variant_id,
            len(stories),
            result.overall_score,
            result.confidence_level,
        )
        return result

    def compare(self, variant_ids: list[str]) -> ComparisonResult:
        """Analyze every variant and pick the highest weighted overall score.

        Ties go to the first id in the given order.
        """
        unique_ids = list(dict.fromkeys(variant_ids))
        if len(unique_ids) < 2:
            raise ValidationError(["at least two variant ids are required to compare"])
        results = [self.analyze(variant_id) for variant_id in unique_ids]
        overall = {result.variant_id: result.overall_score for result in results}
        winner = _first_max(overall.items())
        winner_result = next(result for result in results if result.variant_id == winner)
        return ComparisonResult(
            winner=winner,
            comparison_matrix={result.variant_id: dict(result.metrics) for result in results},
            overall_scores=overall,
            statistical_significance=all(
                result.confidence_level > SIGNIFICANT_CONFIDENCE for result in results
            ),
            recommendations=[
                f"Implement {winner} as primary brand messaging",
                *winner_result.recommendations,
            ],
        )

    def ab_test_messaging(
        self,
        original: str,
        variants: list[str],
        context: str,
        audience: str,
    ) -> MessagingTestResult:
        """Score an original message against alternatives; first max wins."""
        errors: list[str] = []
        if not original.strip():
            errors.append("original message must not be empty")
        if not [message for message in variants if message.strip()]:
            errors.append("at least one variant message is required")
        if context not in MESSAGE_CONTEXTS:
            errors.append(f"context must be one of {', '.join(MESSAGE_CONTEXTS)}")
        if errors:
            raise ValidationError(errors)
        messages = [original.strip(), *[m.strip() for m in variants if m.strip()]]
        scored: list[MessageScore] = []
        authenticity: dict[str, float] = {}
        for message in messages:
            brand = score_text(f"{message}. Test content incorporating {context}: {message}")
            bonus = 5.0 if audience.strip() and audience.lower() in message.lower() else 0.0
            scored.append(
                MessageScore(message=message, score=round(brand.overall + bonus, 2))
            )
            authenticity.setdefault(message, brand.authenticity)
        winner = _first_max((item.message, item.score) for item in scored)
        strength = "authenticity" if authenticity[winner] > 80 else "brand alignment"
        insights = [f"Highest scoring message demonstrates strong {strength}"]
        if max(item.score for item in scored) < 50:
            insights.append("Optimize messaging alignment")
        return MessagingTestResult(
            winning_message=winner, performance_scores=scored, insights=insights
        )

    def history(self, variant_id: str | None = None) -> list[dict[str, object]]:
        """Stored result snapshots, newest period first."""
        documents = self._persistence.get_list(BRAND_RESULTS_COLLECTION, WORKSPACE_OWNER)
        if variant_id is not None:
            return [doc for doc in documents if doc.get("variantId") == variant_id]

        def period_start(document: dict[str, object]) -> str:
            period = document.get("testPeriod")
            return str(period.get("start", "")) if isinstance(period, Mapping) else ""

        return sorted(documents, key=period_start, reverse=True)

    def _transition(
        self, variant_id: str, target: VariantStatus, **stamps: str
    ) -> BrandTestVariant:
        current = self.get_variant(variant_id)
        if _TRANSITIONS.get(current.status) != target:
            raise StateTransitionError(current=current.status, target=target)
        updated = replace(current, status=target, **stamps)

        def swap(items: list[dict[str, object]]) -> None:
            for index, item in enumerate(items):
                if item.get("id") == variant_id:
                    items[index] = updated.to_document()

        _, saved = self._persistence.update_list(BRAND_TESTS_COLLECTION, WORKSPACE_OWNER, swap)
        if not saved:
            logger.error("brand_test.persist_failed variant=%s status=%s", variant_id, target)
        return updated

    def _stories_between(self, start: str, end: str) -> list[str]:
        start_at = parse_timestamp(start)
        end_at = parse_timestamp(end)
        texts: list[str] = []
        for story in self._persistence.get_list(STORIES_COLLECTION, WORKSPACE_OWNER):
            created = parse_timestamp(story.get("createdAt"))
            if created is None:
                continue
            if start_at is not None and created < start_at:
                continue
            if end_at is not None and created > end_at:
                continue
            texts.append(f"{story.get('title') or ''} {story.get('content') or ''}".strip())
        return texts

    @staticmethod
    def _audience_feedback(
        variant: BrandTestVariant, stories: list[str], alignment: float, emotional: float
    ) -> list[AudienceFeedback]:
        feedback: list[AudienceFeedback] = []
        for audience in variant.target_audiences:
            mentions = [text for text in stories if audience.lower() in text.lower()]
            if mentions:
                engagement = fmean(score_text(text).overall for text in mentions)
            else:
                engagement = alignment * 0.8
            feedback.append(
                AudienceFeedback(
                    audience=audience,
                    engagement_score=round(engagement, 2),
                    sentiment_score=round(emotional, 2),
                    key_responses=(
                        f"Response to {variant.name} messaging",
                        f"{len(mentions)} stories mention the {audience} audience",
                    ),
                )
            )
        return feedback


def _top_messages(messages: list[str], limit: int = 5) -> list[str]:
    ranked = sorted(messages, key=lambda message: score_text(message).overall, reverse=True)
    return ranked[:limit]


def _improvement_areas(scores: list[TextBrandScore]) -> list[str]:
    if not scores:
        return ["Create initial content for analysis"]
    totals: dict[str, float] = {}
    for score in scores:
        for theme, value in score.theme_scores.items():
            totals[theme] = totals.get(theme, 0.0) + value
    weakest = sorted(totals.items(), key=lambda item: item[1])[:3]
    return [f"Strengthen {theme.replace('_', ' ')}" for theme, _ in weakest]
