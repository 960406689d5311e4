"""Python-first interface for portal API interactions."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from custodian_portal.api.contracts import (
    ActivityResponse,
    BackupOutcomeResponse,
    BrandVariantCreateRequest,
    BrandVariantResponse,
    ComparisonResponse,
    MetricChangeResponse,
    MetricsResponse,
    RecoveryReportResponse,
    RestoreRequest,
    SearchRequest,
    SearchResponseModel,
    StoryCreateRequest,
    StoryResponse,
)


@dataclass(frozen=True)
class AuthSession:
    """Authenticated client session."""

    access_token: str
    api_base_url: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


class PortalApiClient:
    """Tiny typed API client for Python users."""

    def __init__(self, api_base_url: str = "http://127.0.0.1:8000") -> None:
        self._api_base_url = api_base_url.rstrip("/")

    @property
    def api_base_url(self) -> str:
        """Return normalized API base URL."""
        return self._api_base_url

    def register(self, *, email: str, password: str, display_name: str) -> None:
        """Create a staff account."""
        response = httpx.post(
            f"{self._api_base_url}/api/v1/auth/register",
            json={"email": email, "password": password, "display_name": display_name},
            timeout=30.0,
        )
        response.raise_for_status()

    def login(self, *, email: str, password: str) -> AuthSession:
        """Authenticate and return a reusable auth session."""
        response = httpx.post(
            f"{self._api_base_url}/api/v1/auth/login",
            json={"email": email, "password": password},
            timeout=30.0,
        )
        response.raise_for_status()
        payload = response.json()
        return AuthSession(
            access_token=str(payload["access_token"]), api_base_url=self._api_base_url
        )

    def get_metrics(self, *, session: AuthSession) -> MetricsResponse:
        response = httpx.get(
            f"{self._api_base_url}/api/v1/metrics", headers=session.headers, timeout=30.0
        )
        response.raise_for_status()
        return MetricsResponse.model_validate(response.json())

    def increment_metric(
        self, *, session: AuthSession, counter: str, amount: float = 1
    ) -> MetricChangeResponse:
        response = httpx.post(
            f"{self._api_base_url}/api/v1/metrics/{counter}/increment",
            json={"amount": amount},
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return MetricChangeResponse.model_validate(response.json())

    def list_activities(self, *, session: AuthSession, limit: int = 50) -> list[ActivityResponse]:
        response = httpx.get(
            f"{self._api_base_url}/api/v1/activities",
            params={"limit": limit},
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return [ActivityResponse.model_validate(item) for item in response.json()]

    def create_story(self, *, session: AuthSession, story: StoryCreateRequest) -> StoryResponse:
        response = httpx.post(
            f"{self._api_base_url}/api/v1/content/stories",
            json=story.model_dump(),
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return StoryResponse.model_validate(response.json())

    def search(self, *, session: AuthSession, request: SearchRequest) -> SearchResponseModel:
        """Run a full search with filters, sorting, and pagination."""
        response = httpx.post(
            f"{self._api_base_url}/api/v1/search",
            json=request.model_dump(),
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return SearchResponseModel.model_validate(response.json())

    def create_brand_test(
        self, *, session: AuthSession, variant: BrandVariantCreateRequest
    ) -> BrandVariantResponse:
        response = httpx.post(
            f"{self._api_base_url}/api/v1/brand-tests",
            json=variant.model_dump(),
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return BrandVariantResponse.model_validate(response.json())

    def compare_brand_tests(
        self, *, session: AuthSession, variant_ids: list[str]
    ) -> ComparisonResponse:
        response = httpx.post(
            f"{self._api_base_url}/api/v1/brand-tests/compare",
            json={"variant_ids": variant_ids},
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return ComparisonResponse.model_validate(response.json())

    def create_backup(
        self, *, session: AuthSession, description: str | None = None
    ) -> BackupOutcomeResponse:
        response = httpx.post(
            f"{self._api_base_url}/api/v1/backups",
            json={"description": description},
            headers=session.headers,
            timeout=120.0,
        )
        response.raise_for_status()
        return BackupOutcomeResponse.model_validate(response.json())

    def restore_backup(
        self, *, session: AuthSession, request: RestoreRequest
    ) -> RecoveryReportResponse:
        """Restore from a backup; requires an admin session."""
        response = httpx.post(
            f"{self._api_base_url}/api/v1/backups/restore",
            json=request.model_dump(),
            headers=session.headers,
            timeout=120.0,
        )
        response.raise_for_status()
        return RecoveryReportResponse.model_validate(response.json())
