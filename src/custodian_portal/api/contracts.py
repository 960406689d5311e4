"""Typed contracts shared by API handlers and the Python client."""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ActivityTypeName = Literal["content", "brand", "analytics", "system"]
ContentTypeName = Literal["story", "media", "test", "activity"]
RoleName = Literal["staff", "admin"]


class ContractModel(BaseModel):
    """Base model config used by all API contracts."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Email must be a valid address.")
    return normalized


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(value.strip() for value in values if value.strip()))


class AuthRegisterRequest(ContractModel):
    """Register a staff account."""

    email: str = Field(min_length=5, max_length=320)
    password: SecretStr = Field(min_length=8, max_length=200)
    display_name: str = Field(min_length=1, max_length=120)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: SecretStr) -> SecretStr:
        raw = value.get_secret_value()
        if raw.strip() != raw:
            raise ValueError("Password must not start or end with whitespace.")
        if not any(char.isalpha() for char in raw) or not any(char.isdigit() for char in raw):
            raise ValueError("Password must include at least one letter and one number.")
        return value


class AuthLoginRequest(ContractModel):
    email: str = Field(min_length=5, max_length=320)
    password: SecretStr = Field(min_length=8, max_length=200)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class AuthTokenResponse(ContractModel):
    """Bearer token payload used by web and Python clients."""

    access_token: str
    token_type: str = Field(default="bearer", pattern=r"^bearer$")
    expires_at_utc: str


class UserResponse(ContractModel):
    user_id: str
    email: str
    display_name: str
    role: RoleName
    created_at_utc: str


class RoleUpdateRequest(ContractModel):
    role: RoleName


class MetricsResponse(ContractModel):
    owner_id: str
    stories_analyzed: int
    brand_tests_active: int
    content_items: int
    brand_score: float
    last_updated_utc: str


class ActivityResponse(ContractModel):
    activity_id: str
    type: ActivityTypeName
    message: str
    timestamp_utc: str
    user_id: str | None = None


class ActivityCreateRequest(ContractModel):
    type: ActivityTypeName
    message: str = Field(min_length=1, max_length=2000)


class MetricIncrementRequest(ContractModel):
    amount: float = 1


class MetricValueRequest(ContractModel):
    value: float


class MetricChangeResponse(ContractModel):
    metrics: MetricsResponse
    activity: ActivityResponse
    persisted: bool


class StoryCreateRequest(ContractModel):
    title: str = Field(min_length=1, max_length=300)
    content: str = Field(default="", max_length=100_000)
    summary: str | None = Field(default=None, max_length=2000)
    tags: list[str] = Field(default_factory=list)
    status: Literal["draft", "published", "archived"] = "draft"
    location: str | None = Field(default=None, max_length=300)
    brand_score: float | None = Field(default=None, ge=0.0, le=100.0)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, values: list[str]) -> list[str]:
        return _dedupe(values)


class StoryUpdateRequest(ContractModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    content: str | None = Field(default=None, max_length=100_000)
    summary: str | None = Field(default=None, max_length=2000)
    tags: list[str] | None = None
    status: Literal["draft", "published", "archived"] | None = None
    location: str | None = Field(default=None, max_length=300)
    brand_score: float | None = Field(default=None, ge=0.0, le=100.0)


class StoryResponse(ContractModel):
    story_id: str
    title: str
    content: str
    summary: str | None = None
    author_id: str
    tags: list[str]
    status: str
    location: str | None = None
    brand_score: float | None = None
    created_at_utc: str
    updated_at_utc: str


class MediaCreateRequest(ContractModel):
    filename: str = Field(min_length=1, max_length=300)
    media_type: Literal["image", "video", "audio", "document"]
    url: str = Field(min_length=1, max_length=2000)
    name: str | None = Field(default=None, max_length=300)
    description: str | None = Field(default=None, max_length=2000)
    alt_text: str | None = Field(default=None, max_length=500)
    size: int = Field(default=0, ge=0)
    tags: list[str] = Field(default_factory=list)


class MediaResponse(ContractModel):
    media_id: str
    filename: str
    name: str | None = None
    description: str | None = None
    alt_text: str | None = None
    media_type: str
    url: str
    size: int
    tags: list[str]
    uploaded_at_utc: str
    uploaded_by: str


class SearchFiltersModel(ContractModel):
    content_types: list[ContentTypeName] = Field(default_factory=list)
    date_start: str | None = None
    date_end: str | None = None
    authors: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    status: list[str] = Field(default_factory=list)
    brand_score_min: float | None = None
    brand_score_max: float | None = None


class SearchRequest(ContractModel):
    query: str = Field(default="", max_length=500)
    filters: SearchFiltersModel = Field(default_factory=SearchFiltersModel)
    sort_by: Literal["relevance", "date", "title", "score"] = "relevance"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = 50
    offset: int = 0
    include_highlights: bool = True
    facets: list[str] = Field(default_factory=lambda: ["contentTypes", "authors", "tags", "status"])


class SearchHitResponse(ContractModel):
    id: str
    type: ContentTypeName
    title: str
    summary: str
    content: str
    score: float
    highlights: dict[str, list[str]] | None = None
    author: str | None = None
    date_utc: str | None = None
    tags: list[str] = Field(default_factory=list)
    status: str | None = None
    brand_score: float | None = None


class FacetValue(ContractModel):
    value: str
    count: int


class SearchResponseModel(ContractModel):
    results: list[SearchHitResponse]
    total: int
    facets: dict[str, list[FacetValue]]
    suggestions: list[str]
    search_time_ms: float
    warnings: list[str]


class SavedSearchCreateRequest(ContractModel):
    name: str = Field(min_length=1, max_length=200)
    query: str = Field(default="", max_length=500)
    filters: SearchFiltersModel = Field(default_factory=SearchFiltersModel)


class SavedSearchResponse(ContractModel):
    search_id: str
    name: str
    query: str
    filters: dict[str, Any]
    user_id: str
    created_at_utc: str
    last_used_utc: str
    use_count: int


class BrandContentBlock(ContractModel):
    headlines: list[str] = Field(default_factory=list)
    taglines: list[str] = Field(default_factory=list)
    key_messages: list[str] = Field(default_factory=list)
    value_propositions: list[str] = Field(default_factory=list)
    tone_adjustments: list[str] = Field(default_factory=list)


class BrandVariantCreateRequest(ContractModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=4000)
    content: BrandContentBlock = Field(default_factory=BrandContentBlock)
    target_audiences: list[str] = Field(default_factory=list)
    test_duration_days: int = Field(default=30, ge=1, le=3650)
    min_sample_size: int = Field(default=10, ge=1, le=100_000)
    significance_threshold: float = Field(default=0.05, gt=0.0, lt=1.0)


class BrandVariantResponse(ContractModel):
    variant_id: str
    name: str
    description: str
    content: dict[str, list[str]]
    target_audiences: list[str]
    status: Literal["draft", "active", "completed"]
    created_at_utc: str
    start_date_utc: str | None = None
    end_date_utc: str | None = None
    author_id: str
    test_duration_days: int
    min_sample_size: int
    significance_threshold: float


class BrandTestResultResponse(ContractModel):
    result_id: str
    variant_id: str
    period_start_utc: str
    period_end_utc: str
    metrics: dict[str, float]
    overall_score: float
    stories_analyzed: int
    average_brand_score: float
    top_performing_messages: list[str]
    improvement_areas: list[str]
    recommendations: list[str]
    confidence_level: float
    audience_feedback: list[dict[str, Any]]


class CompareRequest(ContractModel):
    variant_ids: list[str]


class ComparisonResponse(ContractModel):
    winner: str
    comparison_matrix: dict[str, dict[str, float]]
    overall_scores: dict[str, float]
    statistical_significance: bool
    recommendations: list[str]


class MessagingTestRequest(ContractModel):
    original: str = Field(min_length=1, max_length=1000)
    variants: list[str] = Field(default_factory=list)
    context: Literal["headline", "tagline", "value_prop", "cta"]
    audience: str = Field(default="", max_length=200)


class MessageScoreResponse(ContractModel):
    message: str
    score: float


class MessagingTestResponse(ContractModel):
    winning_message: str
    performance_scores: list[MessageScoreResponse]
    insights: list[str]


class BackupCreateRequest(ContractModel):
    description: str | None = Field(default=None, max_length=500)


class BackupOutcomeResponse(ContractModel):
    success: bool
    backup_id: str | None = None
    error: str | None = None


class BackupMetadataResponse(ContractModel):
    backup_id: str
    timestamp_utc: str
    size: int
    checksum: str
    data_types: list[str]
    version: str
    encoding: str
    status: Literal["creating", "completed", "failed", "corrupted"]
    created_by: str
    description: str | None = None
    error: str | None = None


class VerificationResponse(ContractModel):
    valid: bool
    errors: list[str]


class RestoreRequest(ContractModel):
    backup_id: str = Field(min_length=1)
    data_types: list[str] | None = None
    date_start: str | None = None
    date_end: str | None = None
    validate_first: bool = True
    create_safety_backup_first: bool = False
    dry_run: bool = False


class DataTypeReportResponse(ContractModel):
    data_type: str
    restored: int
    failed: int
    errors: list[str]


class RecoveryReportResponse(ContractModel):
    backup_id: str
    started_at_utc: str
    finished_at_utc: str
    status: Literal["success", "partial", "failed"]
    items: list[DataTypeReportResponse]
    total_items: int
    successful_items: int
    failed_items: int
    warnings: list[str]
    errors: list[str]


class BackupConfigUpdateRequest(ContractModel):
    enabled: bool | None = None
    frequency: Literal["daily", "weekly", "monthly"] | None = None
    retention_days: int | None = Field(default=None, ge=1, le=3650)
    included_data_types: list[str] | None = None
    encryption_enabled: bool | None = None
    notify_on_success: bool | None = None
    notify_on_failure: bool | None = None


class BackupConfigResponse(ContractModel):
    enabled: bool
    frequency: str
    retention_days: int
    included_data_types: list[str]
    encryption_enabled: bool
    notify_on_success: bool
    notify_on_failure: bool
    encoding: str


class ExportRequest(ContractModel):
    type: Literal["csv", "json", "pdf"] = "json"
    date_range: Literal["all", "last_week", "last_month", "last_quarter"] = "all"
    include_metrics: bool = True
    include_activities: bool = True
    include_content: bool = True
    include_test_results: bool = False
    template: Literal["executive", "technical", "marketing"] = "executive"


class ExportResponse(ContractModel):
    success: bool
    filename: str
    download_url: str | None = None
    error: str | None = None


class ClearDataResponse(ContractModel):
    cleared: bool
    owner_id: str | None = None
