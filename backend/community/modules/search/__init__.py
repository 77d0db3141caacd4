"""
Search Module - topic search behind a pluggable provider.

Features:
- PostgreSQL full-text search with ts_rank ordering
- Substring search for SQLite and other databases
"""

from community.modules.search.provider import (
    IndexableDocument,
    LikeSearchProvider,
    PostgresSearchProvider,
    SearchParams,
    SearchProvider,
    SearchResult,
    get_search_provider,
    search_topics,
)

__all__ = [
    "IndexableDocument",
    "LikeSearchProvider",
    "PostgresSearchProvider",
    "SearchParams",
    "SearchProvider",
    "SearchResult",
    "get_search_provider",
    "search_topics",
]
