"""Elasticsearch 쿼리 빌더 (Query Session Layer).

must/should 조건, 정렬(필드/geo 거리), collapse(inner hits), 페이지네이션을
누적한 뒤 하나의 bool 쿼리로 컴파일해 실행합니다. 삭제/bulk/저장도 같은 세션에서
refresh("wait_for") 일관성으로 수행합니다.

Usage:
    >>> from esquery import ESConfig, new_session
    >>> from esquery import BulkIndex, BulkDelete, FieldSort
    >>>
    >>> session = new_session(ESConfig())
    >>> session.add_required("shop_id", ["CX0013"])
    >>> session.add_optional("product_name", "apple", exact_match=True, weight=3)
    >>> session.add_collapse_sort(FieldSort("price"))
    >>> session.set_collapse("cheapest", "sku", 2)
    >>> result = session.search("channel_product", page_index=1, page_size=10)
    >>>
    >>> new_session().bulk([BulkDelete("channel_product", "1000000")])
"""

from esquery.bulk import BulkDelete, BulkIndex, BulkOperation, BulkUpdate
from esquery.client import check_connection, create_es_client, get_es_client, reset_es_client
from esquery.config import ESConfig
from esquery.errors import (
    DeletionFailedError,
    DocumentNotFoundError,
    EmptyBulkError,
    ESConnectionError,
    ESError,
    SearchError,
    WriteError,
)
from esquery.factory import new_session
from esquery.query import Boosted, MatchAll, MatchField, Predicate, TermsField, compile_bool_query
from esquery.results import BulkItemResult, BulkResult, SearchHit, SearchResult
from esquery.session import QuerySession, resolve_page
from esquery.sort import CollapseSpec, FieldSort, GeoDistanceSort, GeoPoint, SortSpec

__all__ = [
    # Config
    "ESConfig",
    # Client
    "create_es_client",
    "check_connection",
    "get_es_client",
    "reset_es_client",
    # Session
    "new_session",
    "QuerySession",
    "resolve_page",
    # Predicates
    "Predicate",
    "MatchAll",
    "MatchField",
    "TermsField",
    "Boosted",
    "compile_bool_query",
    # Sort / Collapse
    "SortSpec",
    "FieldSort",
    "GeoDistanceSort",
    "GeoPoint",
    "CollapseSpec",
    # Bulk
    "BulkOperation",
    "BulkIndex",
    "BulkUpdate",
    "BulkDelete",
    # Results
    "SearchHit",
    "SearchResult",
    "BulkItemResult",
    "BulkResult",
    # Errors
    "ESError",
    "ESConnectionError",
    "SearchError",
    "DeletionFailedError",
    "DocumentNotFoundError",
    "EmptyBulkError",
    "WriteError",
]
