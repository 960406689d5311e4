"""Cross-collection search with filters, facets, highlights, and history."""

from __future__ import annotations

import logging
import re
import time
from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal

from custodian_portal.core.activity_log import ActivityLog, new_record_id
from custodian_portal.core.errors import NotFoundError, PortalError, ValidationError
from custodian_portal.core.persistence import PersistenceAdapter
from custodian_portal.core.relevance import WeightedTermScorer, query_terms
from custodian_portal.core.validation import parse_timestamp, sanitize_text, utc_now_iso
from custodian_portal.domain.models import (
    ANONYMOUS_OWNER,
    CONTENT_TYPES,
    WORKSPACE_OWNER,
    ContentRecord,
    SavedSearch,
)
from custodian_portal.domain.ports import RelevanceScorer

STORIES_COLLECTION = "content"
MEDIA_COLLECTION = "media"
BRAND_TESTS_COLLECTION = "brandTests"
SEARCH_HISTORY_COLLECTION = "searchHistory"
SAVED_SEARCHES_COLLECTION = "savedSearches"

DEFAULT_SEARCH_TYPES = ("story", "media", "test")
FACET_FIELDS = ("contentTypes", "authors", "tags", "status")
SortField = Literal["relevance", "date", "title", "score"]
SORT_FIELDS: tuple[SortField, ...] = ("relevance", "date", "title", "score")

HISTORY_LIMIT = 100
RECENT_LIMIT = 10
MAX_PAGE_SIZE = 1000
HIGHLIGHT_MIN_TERM = 3
HIGHLIGHT_WINDOW = 150

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchFilters:
    """Filters combined with AND semantics."""

    content_types: tuple[str, ...] = ()
    date_start: str | None = None
    date_end: str | None = None
    authors: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    status: tuple[str, ...] = ()
    brand_score_min: float | None = None
    brand_score_max: float | None = None

    def to_document(self) -> dict[str, object]:
        document: dict[str, object] = {}
        if self.content_types:
            document["contentTypes"] = list(self.content_types)
        if self.date_start or self.date_end:
            document["dateRange"] = {"start": self.date_start, "end": self.date_end}
        if self.authors:
            document["authors"] = list(self.authors)
        if self.tags:
            document["tags"] = list(self.tags)
        if self.status:
            document["status"] = list(self.status)
        if self.brand_score_min is not None or self.brand_score_max is not None:
            document["brandScoreRange"] = {
                "min": self.brand_score_min,
                "max": self.brand_score_max,
            }
        return document

    @classmethod
    def from_document(cls, payload: Mapping[str, object]) -> SearchFilters:
        def strings(key: str) -> tuple[str, ...]:
            value = payload.get(key)
            if not isinstance(value, list):
                return ()
            return tuple(str(item) for item in value if str(item).strip())

        date_range = payload.get("dateRange")
        score_range = payload.get("brandScoreRange")
        dates = date_range if isinstance(date_range, Mapping) else {}
        scores = score_range if isinstance(score_range, Mapping) else {}
        return cls(
            content_types=strings("contentTypes"),
            date_start=_optional_str(dates.get("start")),
            date_end=_optional_str(dates.get("end")),
            authors=strings("authors"),
            tags=strings("tags"),
            status=strings("status"),
            brand_score_min=_optional_float(scores.get("min")),
            brand_score_max=_optional_float(scores.get("max")),
        )


@dataclass(frozen=True)
class SearchOptions:
    query: str = ""
    filters: SearchFilters = field(default_factory=SearchFilters)
    sort_by: SortField = "relevance"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = 50
    offset: int = 0
    include_highlights: bool = True
    facets: tuple[str, ...] = FACET_FIELDS


@dataclass(frozen=True)
class SearchHit:
    """A scored record plus optional highlight fragments."""

    record: ContentRecord
    score: float
    highlights: dict[str, list[str]] | None = None


@dataclass(frozen=True)
class SearchResponse:
    results: list[SearchHit]
    total: int
    facets: dict[str, list[dict[str, object]]]
    suggestions: list[str]
    search_time_ms: float
    warnings: list[str] = field(default_factory=list)


def sanitize_query(query: str) -> str:
    return sanitize_text(query)


def highlight_text(text: str, terms: list[str], max_length: int | None = None) -> str:
    """Wrap terms longer than two characters in <mark> tags.

    With `max_length`, the text is first cut to a window around the first match.
    """
    marked_terms = sorted(
        {term for term in terms if len(term) >= HIGHLIGHT_MIN_TERM}, key=len, reverse=True
    )
    if max_length is not None and len(text) > max_length:
        text = _window(text, marked_terms, max_length)
    if not marked_terms:
        return text
    pattern = re.compile("|".join(re.escape(term) for term in marked_terms), re.IGNORECASE)
    return pattern.sub(lambda match: f"<mark>{match.group(0)}</mark>", text)


def _window(text: str, terms: list[str], max_length: int) -> str:
    lowered = text.lower()
    positions = [lowered.find(term) for term in terms if term in lowered]
    first = min(positions) if positions else 0
    start = max(0, first - max_length // 4)
    end = min(len(text), start + max_length)
    snippet = text[start:end]
    if end < len(text):
        cut = snippet.rfind(" ")
        if cut > 0:
            snippet = snippet[:cut]
        snippet = f"{snippet}..."
    if start > 0:
        snippet = f"...{snippet.lstrip()}"
    return snippet


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_float(value: object) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


class SearchEngine:
    """Search stories, media, brand tests, and (on request) activities."""

    def __init__(
        self,
        persistence: PersistenceAdapter,
        *,
        scorer: RelevanceScorer | None = None,
        activity_log: ActivityLog | None = None,
    ) -> None:
        self._persistence = persistence
        self._scorer: RelevanceScorer = scorer or WeightedTermScorer()
        self._activity_log = activity_log
        self._loaders: dict[str, Callable[[str | None], list[ContentRecord]]] = {
            "story": lambda _: self._load(STORIES_COLLECTION, ContentRecord.from_story),
            "media": lambda _: self._load(MEDIA_COLLECTION, ContentRecord.from_media),
            "test": lambda _: self._load(BRAND_TESTS_COLLECTION, ContentRecord.from_brand_test),
            "activity": self._load_activities,
        }

    def search(self, options: SearchOptions, owner_id: str | None = None) -> SearchResponse:
        """Run one search and record it in the caller's history."""
        self._validate(options)
        query = sanitize_query(options.query)
        response = self._execute(replace(options, query=query), owner_id)
        if query:
            self._remember(query, owner_id)
        if self._activity_log is not None:
            self._activity_log.log_system(
                f'Search performed: "{query}" - {response.total} results', owner_id
            )
        logger.info(
            "search.performed owner=%s total=%s warnings=%s",
            owner_id or ANONYMOUS_OWNER,
            response.total,
            len(response.warnings),
        )
        return response

    def quick_search(
        self, query: str, limit: int = 5, owner_id: str | None = None
    ) -> list[SearchHit]:
        """Autocomplete search; empty for very short queries or on failure."""
        if len(query.strip()) < 2:
            return []
        try:
            response = self.search(
                SearchOptions(query=query, limit=limit, include_highlights=False, facets=()),
                owner_id,
            )
        except PortalError as exc:
            logger.warning("search.quick_failed error=%s", exc)
            return []
        return response.results

    def search_content_type(
        self,
        content_type: str,
        query: str,
        filters: SearchFilters | None = None,
        owner_id: str | None = None,
    ) -> SearchResponse:
        base = filters or SearchFilters()
        return self.search(
            SearchOptions(query=query, filters=replace(base, content_types=(content_type,))),
            owner_id,
        )

    def find_similar(self, content_id: str, limit: int = 10) -> list[SearchHit]:
        """Records of the same type sharing tags with `content_id`."""
        original = self._find_record(content_id)
        if original is None:
            return []
        options = SearchOptions(
            query=" ".join(original.metadata.tags),
            filters=SearchFilters(content_types=(original.type,)),
            limit=limit + 1,
            include_highlights=False,
            facets=(),
        )
        hits = self._execute(options).results
        return [hit for hit in hits if hit.record.record_id != content_id][:limit]

    def suggestions_for(self, query: str, owner_id: str | None = None) -> list[str]:
        """Suggest previous searches containing `query`."""
        history, recent = self._history(owner_id)
        if not query.strip():
            return recent[:5]
        needle = query.strip().lower()
        matches: list[str] = []
        for term in history:
            if needle in term.lower() and term not in matches:
                matches.append(term)
            if len(matches) == 10:
                break
        return matches

    def recent_searches(self, owner_id: str | None = None) -> list[str]:
        return self._history(owner_id)[1]

    def clear_history(self, owner_id: str | None = None) -> bool:
        return self._persistence.delete(SEARCH_HISTORY_COLLECTION, owner_id)

    def save_search(
        self,
        name: str,
        query: str,
        filters: SearchFilters | None = None,
        owner_id: str | None = None,
    ) -> SavedSearch:
        clean_name = sanitize_text(name)
        if not clean_name:
            raise ValidationError(["name must not be empty"])
        owner = owner_id or ANONYMOUS_OWNER
        now = utc_now_iso()
        saved = SavedSearch(
            search_id=new_record_id("search"),
            name=clean_name,
            query=sanitize_query(query),
            filters=(filters or SearchFilters()).to_document(),
            user_id=owner,
            created_at_utc=now,
            last_used_utc=now,
        )
        _, persisted = self._persistence.update_list(
            SAVED_SEARCHES_COLLECTION, owner, lambda items: items.append(saved.to_document())
        )
        if not persisted:
            logger.error("search.saved_persist_failed owner=%s id=%s", owner, saved.search_id)
        return saved

    def list_saved_searches(self, owner_id: str | None = None) -> list[SavedSearch]:
        """Saved searches, most recently used first."""
        documents = self._persistence.get_list(SAVED_SEARCHES_COLLECTION, owner_id)
        saved = [SavedSearch.from_document(document) for document in documents]
        return sorted(saved, key=lambda item: item.last_used_utc, reverse=True)

    def execute_saved_search(self, search_id: str, owner_id: str | None = None) -> SearchResponse:
        now = utc_now_iso()

        def touch(items: list[dict[str, object]]) -> SavedSearch | None:
            for index, document in enumerate(items):
                if document.get("id") == search_id:
                    current = SavedSearch.from_document(document)
                    updated = replace(
                        current, last_used_utc=now, use_count=current.use_count + 1
                    )
                    items[index] = updated.to_document()
                    return updated
            return None

        saved, _ = self._persistence.update_list(SAVED_SEARCHES_COLLECTION, owner_id, touch)
        if saved is None:
            raise NotFoundError(f"Saved search not found: {search_id}")
        return self.search(
            SearchOptions(
                query=saved.query, filters=SearchFilters.from_document(saved.filters)
            ),
            owner_id,
        )

    def delete_saved_search(self, search_id: str, owner_id: str | None = None) -> None:
        def drop(items: list[dict[str, object]]) -> bool:
            for index, document in enumerate(items):
                if document.get("id") == search_id:
                    del items[index]
                    return True
            return False

        removed, _ = self._persistence.update_list(SAVED_SEARCHES_COLLECTION, owner_id, drop)
        if not removed:
            raise NotFoundError(f"Saved search not found: {search_id}")

    @staticmethod
    def _validate(options: SearchOptions) -> None:
        errors: list[str] = []
        if not 1 <= options.limit <= MAX_PAGE_SIZE:
            errors.append(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if options.offset < 0:
            errors.append("offset must be non-negative")
        if options.sort_by not in SORT_FIELDS:
            errors.append(f"sort_by must be one of {', '.join(SORT_FIELDS)}")
        if options.sort_order not in ("asc", "desc"):
            errors.append("sort_order must be asc or desc")
        unknown_types = [t for t in options.filters.content_types if t not in CONTENT_TYPES]
        if unknown_types:
            errors.append(f"unknown content types: {', '.join(unknown_types)}")
        unknown_facets = [f for f in options.facets if f not in FACET_FIELDS]
        if unknown_facets:
            errors.append(f"unknown facets: {', '.join(unknown_facets)}")
        if errors:
            raise ValidationError(errors)

    def _execute(self, options: SearchOptions, owner_id: str | None = None) -> SearchResponse:
        started = time.perf_counter()
        requested = options.filters.content_types or DEFAULT_SEARCH_TYPES
        warnings: list[str] = []
        scored: list[SearchHit] = []
        for content_type in CONTENT_TYPES:
            if content_type not in requested:
                continue
            try:
                records = self._loaders[content_type](owner_id)
                for record in records:
                    score = self._scorer.score(record, options.query)
                    if score > 0:
                        scored.append(SearchHit(record=record, score=score))
            except Exception as exc:
                logger.warning("search.collection_failed type=%s error=%s", content_type, exc)
                warnings.append(f"{content_type} search failed: {exc}")

        filtered = [hit for hit in scored if _matches(hit.record, options.filters)]
        ordered = _sort(filtered, options.sort_by, options.sort_order)
        facets = _facets(filtered, options.facets)
        page = ordered[options.offset : options.offset + options.limit]
        if options.include_highlights and options.query:
            terms = query_terms(options.query)
            page = [replace(hit, highlights=_highlights(hit.record, terms)) for hit in page]
        return SearchResponse(
            results=page,
            total=len(filtered),
            facets=facets,
            suggestions=_suggestions(options.query),
            search_time_ms=round((time.perf_counter() - started) * 1000, 3),
            warnings=warnings,
        )

    def _load(
        self,
        collection: str,
        convert: Callable[[Mapping[str, object]], ContentRecord],
    ) -> list[ContentRecord]:
        documents = self._persistence.get_list(collection, WORKSPACE_OWNER)
        return [convert(document) for document in documents]

    def _load_activities(self, owner_id: str | None) -> list[ContentRecord]:
        if self._activity_log is None:
            return []
        return [ContentRecord.from_activity(item) for item in self._activity_log.list(owner_id)]

    def _find_record(self, content_id: str) -> ContentRecord | None:
        for content_type in DEFAULT_SEARCH_TYPES:
            for record in self._loaders[content_type](None):
                if record.record_id == content_id:
                    return record
        return None

    def _history(self, owner_id: str | None) -> tuple[list[str], list[str]]:
        document = self._persistence.get(SEARCH_HISTORY_COLLECTION, owner_id)
        if not isinstance(document, Mapping):
            return [], []
        history = document.get("history")
        recent = document.get("recent")
        return (
            [str(item) for item in history] if isinstance(history, list) else [],
            [str(item) for item in recent] if isinstance(recent, list) else [],
        )

    def _remember(self, query: str, owner_id: str | None) -> None:
        history, recent = self._history(owner_id)
        history = [query, *[item for item in history if item != query]][:HISTORY_LIMIT]
        recent = [query, *[item for item in recent if item != query]][:RECENT_LIMIT]
        saved = self._persistence.save(
            SEARCH_HISTORY_COLLECTION, {"history": history, "recent": recent}, owner_id
        )
        if not saved:
            logger.warning("search.history_persist_failed owner=%s", owner_id or ANONYMOUS_OWNER)


def _matches(record: ContentRecord, filters: SearchFilters) -> bool:
    metadata = record.metadata
    if filters.date_start or filters.date_end:
        item_date = parse_timestamp(metadata.date_utc)
        if item_date is not None:
            start = parse_timestamp(filters.date_start)
            end = parse_timestamp(filters.date_end)
            if start is not None and item_date < start:
                return False
            if end is not None and item_date > end:
                return False
    if filters.authors and metadata.author not in filters.authors:
        return False
    if filters.status and metadata.status not in filters.status:
        return False
    if filters.tags:
        wanted = [tag.lower() for tag in filters.tags]
        have = [tag.lower() for tag in metadata.tags]
        if not any(want in tag for want in wanted for tag in have):
            return False
    if metadata.brand_score is not None:
        if filters.brand_score_min is not None and metadata.brand_score < filters.brand_score_min:
            return False
        if filters.brand_score_max is not None and metadata.brand_score > filters.brand_score_max:
            return False
    return True


def _sort(hits: list[SearchHit], sort_by: str, sort_order: str) -> list[SearchHit]:
    def key(hit: SearchHit) -> float | str:
        if sort_by == "date":
            parsed = parse_timestamp(hit.record.metadata.date_utc)
            return parsed.timestamp() if isinstance(parsed, datetime) else 0.0
        if sort_by == "title":
            return hit.record.title.casefold()
        if sort_by == "score":
            return hit.record.metadata.brand_score or 0.0
        return hit.score

    return sorted(hits, key=key, reverse=sort_order == "desc")


def _facets(hits: list[SearchHit], fields: tuple[str, ...]) -> dict[str, list[dict[str, object]]]:
    facets: dict[str, list[dict[str, object]]] = {}
    for name in fields:
        counts: Counter[str] = Counter()
        for hit in hits:
            metadata = hit.record.metadata
            if name == "contentTypes":
                counts[hit.record.type] += 1
            elif name == "authors" and metadata.author:
                counts[metadata.author] += 1
            elif name == "tags":
                counts.update(metadata.tags)
            elif name == "status" and metadata.status:
                counts[metadata.status] += 1
        facets[name] = [{"value": value, "count": count} for value, count in counts.most_common()]
    return facets


def _highlights(record: ContentRecord, terms: list[str]) -> dict[str, list[str]]:
    highlights: dict[str, list[str]] = {"title": [highlight_text(record.title, terms)]}
    if record.content:
        highlights["content"] = [highlight_text(record.content, terms, HIGHLIGHT_WINDOW)]
    highlights["tags"] = [
        tag for tag in record.metadata.tags if any(term in tag.lower() for term in terms)
    ]
    return highlights


def _suggestions(query: str) -> list[str]:
    if len(query) < 3:
        return []
    return [
        f"{query} stories",
        f"{query} analysis",
        f"{query} brand test",
        f"recent {query}",
        f"{query} by author",
    ]
