"""Term-weighted relevance scoring for content records."""

from __future__ import annotations

from dataclasses import dataclass

from custodian_portal.domain.models import ContentRecord


def query_terms(query: str) -> list[str]:
    """Lowercase whitespace-separated terms of a query."""
    return [term for term in query.lower().split() if term]


@dataclass(frozen=True)
class WeightedTermScorer:
    """Additive per-term scoring over title, content, tags, and description.

    An empty query matches everything with a score of 1 so that browsing
    without a query returns the whole filtered set.
    """

    title_exact: float = 10.0
    title_prefix: float = 5.0
    title_substring: float = 2.0
    content_match: float = 1.0
    tag_match: float = 3.0
    description_match: float = 1.5

    def score(self, record: ContentRecord, query: str) -> float:
        terms = query_terms(query)
        if not terms:
            return 1.0
        total = 0.0
        title = record.title.lower()
        content = record.content.lower()
        description = record.description.lower()
        tags = [tag.lower() for tag in record.metadata.tags]
        for term in terms:
            if title and term in title:
                if title == term:
                    total += self.title_exact
                elif title.startswith(term):
                    total += self.title_prefix
                else:
                    total += self.title_substring
            if content and term in content:
                total += self.content_match
            total += self.tag_match * sum(1 for tag in tags if term in tag)
            if description and term in description:
                total += self.description_match
        return total
