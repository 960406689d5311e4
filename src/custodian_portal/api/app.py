"""FastAPI application for the staff dashboard, search, brand testing, and backups."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Literal, cast

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from custodian_portal.adapters.environment import csv_env, env_flag, str_env
from custodian_portal.adapters.file_exporter import DEFAULT_EXPORT_DIR, FileExporter
from custodian_portal.adapters.notifications import create_notifier
from custodian_portal.adapters.sqlite_account_store import SQLiteAccountStore, StaffAccount
from custodian_portal.adapters.storage_factory import (
    create_backup_orchestrator,
    create_persistence,
    resolve_db_path,
)
from custodian_portal.api.contracts import (
    ActivityCreateRequest,
    ActivityResponse,
    AuthLoginRequest,
    AuthRegisterRequest,
    AuthTokenResponse,
    BackupConfigResponse,
    BackupConfigUpdateRequest,
    BackupCreateRequest,
    BackupMetadataResponse,
    BackupOutcomeResponse,
    BrandTestResultResponse,
    BrandVariantCreateRequest,
    BrandVariantResponse,
    ClearDataResponse,
    CompareRequest,
    ComparisonResponse,
    DataTypeReportResponse,
    ExportRequest,
    ExportResponse,
    FacetValue,
    MediaCreateRequest,
    MediaResponse,
    MessageScoreResponse,
    MessagingTestRequest,
    MessagingTestResponse,
    MetricChangeResponse,
    MetricIncrementRequest,
    MetricsResponse,
    MetricValueRequest,
    RecoveryReportResponse,
    RestoreRequest,
    RoleUpdateRequest,
    SavedSearchCreateRequest,
    SavedSearchResponse,
    SearchFiltersModel,
    SearchHitResponse,
    SearchRequest,
    SearchResponseModel,
    StoryCreateRequest,
    StoryResponse,
    StoryUpdateRequest,
    UserResponse,
    VerificationResponse,
)
from custodian_portal.core.activity_log import ActivityLog
from custodian_portal.core.backup import BackupOrchestrator, RecoveryReport, RestoreOptions
from custodian_portal.core.brand_testing import (
    BrandTestConfig,
    BrandTestEngine,
    BrandTestResult,
    BrandTestVariant,
)
from custodian_portal.core.content import ContentCatalog
from custodian_portal.core.errors import AuthorizationError, NotFoundError, ValidationError
from custodian_portal.core.metrics import MetricChange, MetricsAggregator
from custodian_portal.core.persistence import PersistenceAdapter
from custodian_portal.core.scheduler import BackupScheduler
from custodian_portal.core.search import (
    SearchEngine,
    SearchFilters,
    SearchHit,
    SearchOptions,
    SearchResponse,
)
from custodian_portal.domain.models import (
    ActivityItem,
    BackupMetadata,
    DashboardMetrics,
    ExportOptions,
    SavedSearch,
)
from custodian_portal.domain.ports import Notifier

TOKEN_TTL_HOURS = 24
PBKDF2_ITERATIONS = 310_000
_CONTENT_FIELD_NAMES = {
    "key_messages": "keyMessages",
    "value_propositions": "valuePropositions",
    "tone_adjustments": "toneAdjustments",
}

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Simple health payload for liveness checks."""

    status: Literal["ok"] = "ok"
    service: str = "custodian_portal"


class ApiRootResponse(BaseModel):
    """Describes currently available API capabilities and runtime mode."""

    name: str = "custodian_portal"
    auth: Literal["bearer-token"] = "bearer-token"
    endpoints: list[str] = Field(
        default_factory=lambda: [
            "/healthz",
            "/api/v1",
            "/api/v1/system/status",
            "/api/v1/auth/register",
            "/api/v1/auth/login",
            "/api/v1/me",
            "/api/v1/admin/users/{user_id}/role",
            "/api/v1/admin/data",
            "/api/v1/metrics",
            "/api/v1/metrics/stories-analyzed",
            "/api/v1/metrics/{counter}",
            "/api/v1/metrics/{counter}/increment",
            "/api/v1/activities",
            "/api/v1/content/stories",
            "/api/v1/content/stories/{story_id}",
            "/api/v1/content/media",
            "/api/v1/content/media/{media_id}",
            "/api/v1/search",
            "/api/v1/search/quick",
            "/api/v1/search/suggestions",
            "/api/v1/search/recent",
            "/api/v1/search/similar/{content_id}",
            "/api/v1/search/history",
            "/api/v1/search/saved",
            "/api/v1/search/saved/{search_id}",
            "/api/v1/search/saved/{search_id}/run",
            "/api/v1/brand-tests",
            "/api/v1/brand-tests/{variant_id}/start",
            "/api/v1/brand-tests/{variant_id}/complete",
            "/api/v1/brand-tests/{variant_id}/analyze",
            "/api/v1/brand-tests/compare",
            "/api/v1/brand-tests/ab-messaging",
            "/api/v1/brand-tests/history",
            "/api/v1/backups",
            "/api/v1/backups/statistics",
            "/api/v1/backups/config",
            "/api/v1/backups/restore",
            "/api/v1/backups/{backup_id}",
            "/api/v1/backups/{backup_id}/verify",
            "/api/v1/exports",
            "/api/v1/exports/{filename}",
        ]
    )


class SystemStatusResponse(BaseModel):
    """Storage backend, scheduler, and backup encoding currently in effect."""

    storage: dict[str, Any]
    backup_scheduler_running: bool
    backup_encoding: str
    notifier: str


def _cors_origins() -> list[str]:
    configured = csv_env("CUSTODIAN_CORS_ORIGINS")
    if configured:
        return configured
    return ["http://127.0.0.1:5173", "http://localhost:5173"]


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt_hex, digest_hex = password_hash.split("$", maxsplit=3)
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    recomputed = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        bytes.fromhex(salt_hex),
        int(iterations),
    )
    return hmac.compare_digest(recomputed.hex(), digest_hex)


def _text(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


def _number(value: object) -> float | None:
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _strings(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def _user_response(account: StaffAccount) -> UserResponse:
    return UserResponse(
        user_id=account.user_id,
        email=account.email,
        display_name=account.display_name,
        role=account.role,
        created_at_utc=account.created_at_utc,
    )


def _metrics_response(metrics: DashboardMetrics) -> MetricsResponse:
    return MetricsResponse(
        owner_id=metrics.owner_id,
        stories_analyzed=metrics.stories_analyzed,
        brand_tests_active=metrics.brand_tests_active,
        content_items=metrics.content_items,
        brand_score=metrics.brand_score,
        last_updated_utc=metrics.last_updated_utc,
    )


def _activity_response(item: ActivityItem) -> ActivityResponse:
    return ActivityResponse(
        activity_id=item.activity_id,
        type=item.type,
        message=item.message,
        timestamp_utc=item.timestamp_utc,
        user_id=item.user_id,
    )


def _change_response(change: MetricChange) -> MetricChangeResponse:
    return MetricChangeResponse(
        metrics=_metrics_response(change.metrics),
        activity=_activity_response(change.activity),
        persisted=change.persisted,
    )


def _story_response(story: dict[str, object]) -> StoryResponse:
    return StoryResponse(
        story_id=str(story.get("id", "")),
        title=str(story.get("title") or ""),
        content=str(story.get("content") or ""),
        summary=_text(story.get("summary")),
        author_id=str(story.get("authorId", "")),
        tags=_strings(story.get("tags")),
        status=str(story.get("status", "draft")),
        location=_text(story.get("location")),
        brand_score=_number(story.get("brandScore")),
        created_at_utc=str(story.get("createdAt", "")),
        updated_at_utc=str(story.get("updatedAt", "")),
    )


def _media_response(media: dict[str, object]) -> MediaResponse:
    size = media.get("size")
    return MediaResponse(
        media_id=str(media.get("id", "")),
        filename=str(media.get("filename", "")),
        name=_text(media.get("name")),
        description=_text(media.get("description")),
        alt_text=_text(media.get("altText")),
        media_type=str(media.get("mediaType", "")),
        url=str(media.get("url", "")),
        size=int(size) if isinstance(size, (int, float)) else 0,
        tags=_strings(media.get("tags")),
        uploaded_at_utc=str(media.get("uploadedAt", "")),
        uploaded_by=str(media.get("uploadedBy", "")),
    )


def _filters(model: SearchFiltersModel) -> SearchFilters:
    return SearchFilters(
        content_types=tuple(model.content_types),
        date_start=model.date_start,
        date_end=model.date_end,
        authors=tuple(model.authors),
        tags=tuple(model.tags),
        status=tuple(model.status),
        brand_score_min=model.brand_score_min,
        brand_score_max=model.brand_score_max,
    )


def _hit_response(hit: SearchHit) -> SearchHitResponse:
    record = hit.record
    return SearchHitResponse(
        id=record.record_id,
        type=record.type,
        title=record.title,
        summary=record.summary,
        content=record.content,
        score=round(hit.score, 3),
        highlights=hit.highlights,
        author=record.metadata.author,
        date_utc=record.metadata.date_utc,
        tags=list(record.metadata.tags),
        status=record.metadata.status,
        brand_score=record.metadata.brand_score,
    )


def _search_response(response: SearchResponse) -> SearchResponseModel:
    return SearchResponseModel(
        results=[_hit_response(hit) for hit in response.results],
        total=response.total,
        facets={
            name: [
                FacetValue(value=str(item["value"]), count=cast(int, item["count"]))
                for item in values
            ]
            for name, values in response.facets.items()
        },
        suggestions=response.suggestions,
        search_time_ms=response.search_time_ms,
        warnings=response.warnings,
    )


def _saved_search_response(saved: SavedSearch) -> SavedSearchResponse:
    return SavedSearchResponse(
        search_id=saved.search_id,
        name=saved.name,
        query=saved.query,
        filters=saved.filters,
        user_id=saved.user_id,
        created_at_utc=saved.created_at_utc,
        last_used_utc=saved.last_used_utc,
        use_count=saved.use_count,
    )


def _variant_response(variant: BrandTestVariant) -> BrandVariantResponse:
    return BrandVariantResponse(
        variant_id=variant.variant_id,
        name=variant.name,
        description=variant.description,
        content=variant.content,
        target_audiences=list(variant.target_audiences),
        status=variant.status,
        created_at_utc=variant.created_at_utc,
        start_date_utc=variant.start_date_utc,
        end_date_utc=variant.end_date_utc,
        author_id=variant.author_id,
        test_duration_days=variant.config.test_duration_days,
        min_sample_size=variant.config.min_sample_size,
        significance_threshold=variant.config.significance_threshold,
    )


def _result_response(result: BrandTestResult) -> BrandTestResultResponse:
    document = result.to_document()
    feedback = document["audienceFeedback"]
    return BrandTestResultResponse(
        result_id=result.result_id,
        variant_id=result.variant_id,
        period_start_utc=result.period_start_utc,
        period_end_utc=result.period_end_utc,
        metrics=dict(result.metrics),
        overall_score=round(result.overall_score, 2),
        stories_analyzed=result.stories_analyzed,
        average_brand_score=result.average_brand_score,
        top_performing_messages=list(result.top_performing_messages),
        improvement_areas=list(result.improvement_areas),
        recommendations=list(result.recommendations),
        confidence_level=result.confidence_level,
        audience_feedback=feedback if isinstance(feedback, list) else [],
    )


def _backup_response(metadata: BackupMetadata) -> BackupMetadataResponse:
    return BackupMetadataResponse(
        backup_id=metadata.backup_id,
        timestamp_utc=metadata.timestamp_utc,
        size=metadata.size,
        checksum=metadata.checksum,
        data_types=list(metadata.data_types),
        version=metadata.version,
        encoding=metadata.encoding,
        status=metadata.status,
        created_by=metadata.created_by,
        description=metadata.description,
        error=metadata.error,
    )


def _recovery_response(report: RecoveryReport) -> RecoveryReportResponse:
    return RecoveryReportResponse(
        backup_id=report.backup_id,
        started_at_utc=report.started_at_utc,
        finished_at_utc=report.finished_at_utc,
        status=report.status,
        items=[
            DataTypeReportResponse(
                data_type=item.data_type,
                restored=item.restored,
                failed=item.failed,
                errors=list(item.errors),
            )
            for item in report.items
        ],
        total_items=report.total_items,
        successful_items=report.successful_items,
        failed_items=report.failed_items,
        warnings=list(report.warnings),
        errors=list(report.errors),
    )


def _config_response(orchestrator: BackupOrchestrator) -> BackupConfigResponse:
    configuration = orchestrator.configuration
    return BackupConfigResponse(
        enabled=configuration.enabled,
        frequency=configuration.frequency,
        retention_days=configuration.retention_days,
        included_data_types=list(configuration.included_data_types),
        encryption_enabled=configuration.encryption_enabled,
        notify_on_success=configuration.notify_on_success,
        notify_on_failure=configuration.notify_on_failure,
        encoding=orchestrator.encoding,
    )


def create_app(
    db_path: Path | None = None,
    *,
    persistence: PersistenceAdapter | None = None,
    notifier: Notifier | None = None,
    export_dir: Path | None = None,
) -> FastAPI:
    """Create the API application.

    Every collaborator defaults to the environment-driven factories; tests pass
    their own persistence or notifier.
    """
    effective_db_path = resolve_db_path(db_path)
    accounts = SQLiteAccountStore(db_path=effective_db_path)
    store = persistence or create_persistence(db_path=effective_db_path)
    effective_notifier = notifier or create_notifier()
    activity_log = ActivityLog(store)
    metrics = MetricsAggregator(store, activity_log)
    catalog = ContentCatalog(store, activity_log, metrics)
    search_engine = SearchEngine(store, activity_log=activity_log)
    brand_tests = BrandTestEngine(store, activity_log, metrics)
    backups = create_backup_orchestrator(store, activity_log, notifier=effective_notifier)
    scheduler = BackupScheduler(backups)
    raw_export_dir = str_env("CUSTODIAN_EXPORT_DIR")
    if export_dir is None:
        export_dir = Path(raw_export_dir) if raw_export_dir else DEFAULT_EXPORT_DIR
    exporter = FileExporter(
        export_dir=export_dir,
        metrics=metrics,
        activity_log=activity_log,
        catalog=catalog,
        brand_tests=brand_tests,
        url_prefix="/api/v1/exports",
    )
    admin_emails = {email.lower() for email in csv_env("CUSTODIAN_ADMIN_EMAILS")}
    scheduler_enabled = env_flag("CUSTODIAN_BACKUP_SCHEDULER")
    bearer = HTTPBearer(auto_error=False)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        removed = accounts.prune_expired_tokens(now_utc=_utc_now().isoformat())
        logger.info("auth.prune_tokens removed=%s", removed)
        if scheduler_enabled:
            scheduler.start()
        try:
            yield
        finally:
            if scheduler.running:
                await scheduler.stop()

    app = FastAPI(
        title="custodian_portal API",
        version="0.1.0",
        description=(
            "Staff portal API for dashboard metrics, content search, brand message "
            "testing, and backup/recovery."
        ),
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {"name": "system", "description": "Service health and runtime metadata."},
            {"name": "api", "description": "API discovery and root-level capability listing."},
            {"name": "auth", "description": "Registration, login, and profile lookups."},
            {"name": "admin", "description": "Role management and data clearing."},
            {"name": "metrics", "description": "Dashboard counters and the activity feed."},
            {"name": "content", "description": "Workspace stories and media."},
            {"name": "search", "description": "Cross-collection search and saved searches."},
            {"name": "brand-tests", "description": "Brand messaging variants and comparisons."},
            {"name": "backups", "description": "Backup creation, verification, and restore."},
            {"name": "exports", "description": "Dashboard report exports."},
        ],
        swagger_ui_parameters={
            "displayRequestDuration": True,
            "defaultModelsExpandDepth": -1,
        },
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info(
        "api.start db_path=%s storage=%s backup_encoding=%s scheduler=%s",
        effective_db_path,
        store.connection_status().get("type"),
        backups.encoding,
        scheduler_enabled,
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(_: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "errors": exc.errors},
        )

    @app.exception_handler(AuthorizationError)
    async def authorization_error_handler(_: Request, exc: AuthorizationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(_: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    def current_user(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    ) -> StaffAccount:
        if credentials is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing bearer token",
            )
        account = accounts.get_account_by_token(
            token_value=credentials.credentials, now_utc=_utc_now().isoformat()
        )
        if account is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
            )
        return account

    def admin_user(user: StaffAccount = Depends(current_user)) -> StaffAccount:
        if user.role != "admin":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
            )
        return user

    @app.get("/healthz", response_model=HealthResponse, tags=["system"])
    def healthz() -> HealthResponse:
        return HealthResponse()

    @app.get("/api/v1", response_model=ApiRootResponse, tags=["api"])
    def api_v1_root() -> ApiRootResponse:
        return ApiRootResponse()

    @app.get("/api/v1/system/status", response_model=SystemStatusResponse, tags=["system"])
    def system_status(_: StaffAccount = Depends(current_user)) -> SystemStatusResponse:
        return SystemStatusResponse(
            storage=store.connection_status(),
            backup_scheduler_running=scheduler.running,
            backup_encoding=backups.encoding,
            notifier=type(effective_notifier).__name__,
        )

    @app.post("/api/v1/auth/register", response_model=UserResponse, tags=["auth"], status_code=201)
    def register(payload: AuthRegisterRequest) -> UserResponse:
        created = accounts.create_account(
            email=payload.email,
            display_name=payload.display_name.strip(),
            password_hash=_hash_password(payload.password.get_secret_value()),
            role="admin" if payload.email in admin_emails else "staff",
        )
        if created is None:
            raise HTTPException(status_code=409, detail="Email already registered")
        logger.info("auth.registered user=%s role=%s", created.user_id, created.role)
        return _user_response(created)

    @app.post("/api/v1/auth/login", response_model=AuthTokenResponse, tags=["auth"])
    def login(payload: AuthLoginRequest) -> AuthTokenResponse:
        account = accounts.get_account_by_email(email=payload.email)
        if account is None or not _verify_password(
            payload.password.get_secret_value(), account.password_hash
        ):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        expires_at = _utc_now() + timedelta(hours=TOKEN_TTL_HOURS)
        token = accounts.create_token(
            user_id=account.user_id,
            token_value=secrets.token_urlsafe(32),
            expires_at_utc=expires_at.isoformat(),
        )
        return AuthTokenResponse(
            access_token=token.token_value, expires_at_utc=token.expires_at_utc
        )

    @app.get("/api/v1/me", response_model=UserResponse, tags=["auth"])
    def me(user: StaffAccount = Depends(current_user)) -> UserResponse:
        return _user_response(user)

    @app.put("/api/v1/admin/users/{user_id}/role", response_model=UserResponse, tags=["admin"])
    def update_role(
        user_id: str,
        payload: RoleUpdateRequest,
        admin: StaffAccount = Depends(admin_user),
    ) -> UserResponse:
        updated = accounts.set_role(user_id=user_id, role=payload.role)
        if updated is None:
            raise HTTPException(status_code=404, detail="User not found")
        activity_log.log_system(f"Role for {user_id} set to {payload.role}", admin.user_id)
        return _user_response(updated)

    @app.delete("/api/v1/admin/data", response_model=ClearDataResponse, tags=["admin"])
    def clear_data(
        owner_id: str | None = Query(default=None),
        user: StaffAccount = Depends(current_user),
    ) -> ClearDataResponse:
        cleared = store.clear(user.as_actor(), owner_id)
        return ClearDataResponse(cleared=cleared, owner_id=owner_id)

    @app.get("/api/v1/metrics", response_model=MetricsResponse, tags=["metrics"])
    def get_metrics(user: StaffAccount = Depends(current_user)) -> MetricsResponse:
        return _metrics_response(metrics.get(user.user_id))

    @app.post(
        "/api/v1/metrics/stories-analyzed", response_model=MetricChangeResponse, tags=["metrics"]
    )
    def story_analyzed(user: StaffAccount = Depends(current_user)) -> MetricChangeResponse:
        return _change_response(metrics.increment_stories_analyzed(user.user_id))

    @app.post(
        "/api/v1/metrics/{counter}/increment",
        response_model=MetricChangeResponse,
        tags=["metrics"],
    )
    def increment_metric(
        counter: str,
        payload: MetricIncrementRequest,
        user: StaffAccount = Depends(current_user),
    ) -> MetricChangeResponse:
        return _change_response(metrics.increment(counter, user.user_id, payload.amount))

    @app.put("/api/v1/metrics/{counter}", response_model=MetricChangeResponse, tags=["metrics"])
    def set_metric(
        counter: str,
        payload: MetricValueRequest,
        user: StaffAccount = Depends(current_user),
    ) -> MetricChangeResponse:
        if counter == "brandScore":
            return _change_response(metrics.update_brand_score(payload.value, user.user_id))
        return _change_response(metrics.set_value(counter, payload.value, user.user_id))

    @app.get("/api/v1/activities", response_model=list[ActivityResponse], tags=["metrics"])
    def list_activities(
        limit: int = Query(default=50, ge=1, le=50),
        user: StaffAccount = Depends(current_user),
    ) -> list[ActivityResponse]:
        return [_activity_response(item) for item in activity_log.list(user.user_id, limit)]

    @app.post(
        "/api/v1/activities", response_model=ActivityResponse, tags=["metrics"], status_code=201
    )
    def create_activity(
        payload: ActivityCreateRequest,
        user: StaffAccount = Depends(current_user),
    ) -> ActivityResponse:
        return _activity_response(activity_log.record(payload.type, payload.message, user.user_id))

    @app.get("/api/v1/content/stories", response_model=list[StoryResponse], tags=["content"])
    def list_stories(
        status_filter: str | None = Query(default=None, alias="status"),
        _: StaffAccount = Depends(current_user),
    ) -> list[StoryResponse]:
        return [_story_response(story) for story in catalog.list_stories(status_filter)]

    @app.post(
        "/api/v1/content/stories", response_model=StoryResponse, tags=["content"], status_code=201
    )
    def create_story(
        payload: StoryCreateRequest,
        user: StaffAccount = Depends(current_user),
    ) -> StoryResponse:
        story = catalog.create_story(
            title=payload.title,
            content=payload.content,
            author_id=user.user_id,
            summary=payload.summary,
            tags=payload.tags,
            status=payload.status,
            location=payload.location,
            brand_score=payload.brand_score,
        )
        return _story_response(story)

    @app.put(
        "/api/v1/content/stories/{story_id}", response_model=StoryResponse, tags=["content"]
    )
    def update_story(
        story_id: str,
        payload: StoryUpdateRequest,
        user: StaffAccount = Depends(current_user),
    ) -> StoryResponse:
        changes = payload.model_dump(exclude_unset=True)
        if "brand_score" in changes:
            changes["brandScore"] = changes.pop("brand_score")
        return _story_response(catalog.update_story(story_id, changes, actor_id=user.user_id))

    @app.delete("/api/v1/content/stories/{story_id}", tags=["content"], status_code=204)
    def delete_story(story_id: str, user: StaffAccount = Depends(current_user)) -> None:
        catalog.delete_story(story_id, actor_id=user.user_id)

    @app.get("/api/v1/content/media", response_model=list[MediaResponse], tags=["content"])
    def list_media(
        media_type: str | None = Query(default=None),
        _: StaffAccount = Depends(current_user),
    ) -> list[MediaResponse]:
        return [_media_response(item) for item in catalog.list_media(media_type)]

    @app.post(
        "/api/v1/content/media", response_model=MediaResponse, tags=["content"], status_code=201
    )
    def add_media(
        payload: MediaCreateRequest,
        user: StaffAccount = Depends(current_user),
    ) -> MediaResponse:
        item = catalog.add_media(
            filename=payload.filename,
            media_type=payload.media_type,
            url=payload.url,
            uploaded_by=user.user_id,
            name=payload.name,
            description=payload.description,
            alt_text=payload.alt_text,
            size=payload.size,
            tags=payload.tags,
        )
        return _media_response(item)

    @app.delete("/api/v1/content/media/{media_id}", tags=["content"], status_code=204)
    def delete_media(media_id: str, user: StaffAccount = Depends(current_user)) -> None:
        catalog.delete_media(media_id, actor_id=user.user_id)

    @app.post("/api/v1/search", response_model=SearchResponseModel, tags=["search"])
    def search(
        payload: SearchRequest,
        user: StaffAccount = Depends(current_user),
    ) -> SearchResponseModel:
        response = search_engine.search(
            SearchOptions(
                query=payload.query,
                filters=_filters(payload.filters),
                sort_by=payload.sort_by,
                sort_order=payload.sort_order,
                limit=payload.limit,
                offset=payload.offset,
                include_highlights=payload.include_highlights,
                facets=tuple(payload.facets),
            ),
            user.user_id,
        )
        return _search_response(response)

    @app.get("/api/v1/search/quick", response_model=list[SearchHitResponse], tags=["search"])
    def quick_search(
        q: str = Query(default="", max_length=500),
        limit: int = Query(default=5, ge=1, le=50),
        user: StaffAccount = Depends(current_user),
    ) -> list[SearchHitResponse]:
        return [_hit_response(hit) for hit in search_engine.quick_search(q, limit, user.user_id)]

    @app.get("/api/v1/search/suggestions", response_model=list[str], tags=["search"])
    def search_suggestions(
        q: str = Query(default="", max_length=500),
        user: StaffAccount = Depends(current_user),
    ) -> list[str]:
        return search_engine.suggestions_for(q, user.user_id)

    @app.get("/api/v1/search/recent", response_model=list[str], tags=["search"])
    def recent_searches(user: StaffAccount = Depends(current_user)) -> list[str]:
        return search_engine.recent_searches(user.user_id)

    @app.delete("/api/v1/search/history", tags=["search"], status_code=204)
    def clear_search_history(user: StaffAccount = Depends(current_user)) -> None:
        search_engine.clear_history(user.user_id)

    @app.get(
        "/api/v1/search/similar/{content_id}",
        response_model=list[SearchHitResponse],
        tags=["search"],
    )
    def similar_content(
        content_id: str,
        limit: int = Query(default=10, ge=1, le=100),
        _: StaffAccount = Depends(current_user),
    ) -> list[SearchHitResponse]:
        return [_hit_response(hit) for hit in search_engine.find_similar(content_id, limit)]

    @app.get("/api/v1/search/saved", response_model=list[SavedSearchResponse], tags=["search"])
    def list_saved_searches(
        user: StaffAccount = Depends(current_user),
    ) -> list[SavedSearchResponse]:
        return [
            _saved_search_response(saved)
            for saved in search_engine.list_saved_searches(user.user_id)
        ]

    @app.post(
        "/api/v1/search/saved",
        response_model=SavedSearchResponse,
        tags=["search"],
        status_code=201,
    )
    def save_search(
        payload: SavedSearchCreateRequest,
        user: StaffAccount = Depends(current_user),
    ) -> SavedSearchResponse:
        saved = search_engine.save_search(
            payload.name, payload.query, _filters(payload.filters), user.user_id
        )
        return _saved_search_response(saved)

    @app.post(
        "/api/v1/search/saved/{search_id}/run",
        response_model=SearchResponseModel,
        tags=["search"],
    )
    def run_saved_search(
        search_id: str,
        user: StaffAccount = Depends(current_user),
    ) -> SearchResponseModel:
        return _search_response(search_engine.execute_saved_search(search_id, user.user_id))

    @app.delete("/api/v1/search/saved/{search_id}", tags=["search"], status_code=204)
    def delete_saved_search(search_id: str, user: StaffAccount = Depends(current_user)) -> None:
        search_engine.delete_saved_search(search_id, user.user_id)

    @app.get(
        "/api/v1/brand-tests", response_model=list[BrandVariantResponse], tags=["brand-tests"]
    )
    def list_brand_tests(
        status_filter: str | None = Query(default=None, alias="status"),
        _: StaffAccount = Depends(current_user),
    ) -> list[BrandVariantResponse]:
        return [_variant_response(variant) for variant in brand_tests.list_variants(status_filter)]

    @app.post(
        "/api/v1/brand-tests",
        response_model=BrandVariantResponse,
        tags=["brand-tests"],
        status_code=201,
    )
    def create_brand_test(
        payload: BrandVariantCreateRequest,
        user: StaffAccount = Depends(current_user),
    ) -> BrandVariantResponse:
        content = {
            _CONTENT_FIELD_NAMES.get(name, name): messages
            for name, messages in payload.content.model_dump().items()
            if messages
        }
        variant = brand_tests.create_variant(
            name=payload.name,
            description=payload.description,
            content=content,
            target_audiences=payload.target_audiences,
            author_id=user.user_id,
            config=BrandTestConfig(
                test_duration_days=payload.test_duration_days,
                min_sample_size=payload.min_sample_size,
                significance_threshold=payload.significance_threshold,
            ),
        )
        return _variant_response(variant)

    @app.get(
        "/api/v1/brand-tests/history",
        response_model=list[dict[str, Any]],
        tags=["brand-tests"],
    )
    def brand_test_history(
        variant_id: str | None = Query(default=None),
        _: StaffAccount = Depends(current_user),
    ) -> list[dict[str, Any]]:
        return brand_tests.history(variant_id)

    @app.post(
        "/api/v1/brand-tests/compare", response_model=ComparisonResponse, tags=["brand-tests"]
    )
    def compare_brand_tests(
        payload: CompareRequest,
        _: StaffAccount = Depends(current_user),
    ) -> ComparisonResponse:
        result = brand_tests.compare(payload.variant_ids)
        return ComparisonResponse(
            winner=result.winner,
            comparison_matrix=result.comparison_matrix,
            overall_scores={key: round(value, 2) for key, value in result.overall_scores.items()},
            statistical_significance=result.statistical_significance,
            recommendations=result.recommendations,
        )

    @app.post(
        "/api/v1/brand-tests/ab-messaging",
        response_model=MessagingTestResponse,
        tags=["brand-tests"],
    )
    def ab_test_messaging(
        payload: MessagingTestRequest,
        _: StaffAccount = Depends(current_user),
    ) -> MessagingTestResponse:
        result = brand_tests.ab_test_messaging(
            payload.original, payload.variants, payload.context, payload.audience
        )
        return MessagingTestResponse(
            winning_message=result.winning_message,
            performance_scores=[
                MessageScoreResponse(message=item.message, score=item.score)
                for item in result.performance_scores
            ],
            insights=result.insights,
        )

    @app.post(
        "/api/v1/brand-tests/{variant_id}/start",
        response_model=BrandVariantResponse,
        tags=["brand-tests"],
    )
    def start_brand_test(
        variant_id: str,
        user: StaffAccount = Depends(current_user),
    ) -> BrandVariantResponse:
        return _variant_response(brand_tests.start(variant_id, actor_id=user.user_id))

    @app.post(
        "/api/v1/brand-tests/{variant_id}/complete",
        response_model=BrandVariantResponse,
        tags=["brand-tests"],
    )
    def complete_brand_test(
        variant_id: str,
        user: StaffAccount = Depends(current_user),
    ) -> BrandVariantResponse:
        return _variant_response(brand_tests.complete(variant_id, actor_id=user.user_id))

    @app.post(
        "/api/v1/brand-tests/{variant_id}/analyze",
        response_model=BrandTestResultResponse,
        tags=["brand-tests"],
    )
    def analyze_brand_test(
        variant_id: str,
        _: StaffAccount = Depends(current_user),
    ) -> BrandTestResultResponse:
        return _result_response(brand_tests.analyze(variant_id))

    @app.get("/api/v1/backups", response_model=list[BackupMetadataResponse], tags=["backups"])
    def list_backups(
        include_all: bool = Query(default=False),
        _: StaffAccount = Depends(current_user),
    ) -> list[BackupMetadataResponse]:
        return [_backup_response(item) for item in backups.list_history(include_all)]

    @app.post(
        "/api/v1/backups", response_model=BackupOutcomeResponse, tags=["backups"], status_code=201
    )
    def create_backup(
        payload: BackupCreateRequest,
        user: StaffAccount = Depends(current_user),
    ) -> BackupOutcomeResponse:
        outcome = backups.create_backup(payload.description, user.display_name, user.user_id)
        return BackupOutcomeResponse(
            success=outcome.success, backup_id=outcome.backup_id, error=outcome.error
        )

    @app.get("/api/v1/backups/statistics", response_model=dict[str, Any], tags=["backups"])
    def backup_statistics(_: StaffAccount = Depends(current_user)) -> dict[str, Any]:
        return backups.storage_statistics()

    @app.get("/api/v1/backups/config", response_model=BackupConfigResponse, tags=["backups"])
    def get_backup_config(_: StaffAccount = Depends(current_user)) -> BackupConfigResponse:
        return _config_response(backups)

    @app.put("/api/v1/backups/config", response_model=BackupConfigResponse, tags=["backups"])
    def update_backup_config(
        payload: BackupConfigUpdateRequest,
        admin: StaffAccount = Depends(admin_user),
    ) -> BackupConfigResponse:
        changes = payload.model_dump(exclude_none=True)
        backups.update_configuration(**changes)
        activity_log.log_system("Backup configuration updated", admin.user_id)
        return _config_response(backups)

    @app.post("/api/v1/backups/restore", response_model=RecoveryReportResponse, tags=["backups"])
    def restore_backup(
        payload: RestoreRequest,
        admin: StaffAccount = Depends(admin_user),
    ) -> RecoveryReportResponse:
        report = backups.restore(
            RestoreOptions(
                backup_id=payload.backup_id,
                data_types=tuple(payload.data_types) if payload.data_types else None,
                date_start=payload.date_start,
                date_end=payload.date_end,
                validate_first=payload.validate_first,
                create_safety_backup_first=payload.create_safety_backup_first,
                dry_run=payload.dry_run,
            ),
            admin.user_id,
        )
        return _recovery_response(report)

    @app.get(
        "/api/v1/backups/{backup_id}/verify",
        response_model=VerificationResponse,
        tags=["backups"],
    )
    def verify_backup(
        backup_id: str,
        _: StaffAccount = Depends(current_user),
    ) -> VerificationResponse:
        result = backups.verify(backup_id)
        return VerificationResponse(valid=result.valid, errors=result.errors)

    @app.delete("/api/v1/backups/{backup_id}", tags=["backups"], status_code=204)
    def delete_backup(backup_id: str, admin: StaffAccount = Depends(admin_user)) -> None:
        backups.delete_backup(backup_id, admin.user_id)

    @app.post("/api/v1/exports", response_model=ExportResponse, tags=["exports"])
    def create_export(
        payload: ExportRequest,
        user: StaffAccount = Depends(current_user),
    ) -> ExportResponse:
        result = exporter.export(ExportOptions(**payload.model_dump()), user.user_id)
        return ExportResponse(
            success=result.success,
            filename=result.filename,
            download_url=result.download_url,
            error=result.error,
        )

    @app.get("/api/v1/exports/{filename}", tags=["exports"])
    def download_export(filename: str, _: StaffAccount = Depends(current_user)) -> FileResponse:
        path = exporter.export_dir / filename
        if Path(filename).name != filename or not path.is_file():
            raise HTTPException(status_code=404, detail="Export not found")
        return FileResponse(path, filename=filename)

    return app


app = create_app()
