"""Query session: 조건/정렬/collapse 누적 후 단일 bool 쿼리로 컴파일.

세션은 요청 단위로 생성하는 일회용 객체입니다.
setter들은 순서와 무관하게 누적되며, 종료 작업(search, count, mget_by_id,
delete, bulk, save)을 한 번 호출하면 세션은 닫힙니다.

Usage:
    >>> session = new_session()
    >>> (
    ...     session.add_required("status", ["on_sale"])
    ...     .add_optional("name", "apple", weight=2.0)
    ...     .set_sort("price", ascending=True)
    ... )
    >>> result = session.search("products", page_index=1, page_size=20)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from datetime import timedelta
from typing import Any

from elasticsearch import ApiError, Elasticsearch, NotFoundError, TransportError

from esquery.bulk import BulkOperation, build_bulk_body, to_document
from esquery.config import DEFAULT_PAGE_SIZE, ESConfig
from esquery.errors import (
    DeletionFailedError,
    DocumentNotFoundError,
    EmptyBulkError,
    ESError,
    SearchError,
    WriteError,
)
from esquery.query import Boosted, MatchField, Predicate, compile_bool_query, predicate_for_values
from esquery.results import BulkResult, SearchResult
from esquery.sort import CollapseSpec, FieldSort, GeoDistanceSort, GeoPoint, SortSpec, sort_to_list

logger = logging.getLogger(__name__)

# 쓰기 직후 조회 가능하도록 refresh 완료까지 대기
REFRESH_POLICY = "wait_for"

_BACKEND_ERRORS = (ApiError, TransportError)


def resolve_page(
    page_index: int,
    page_size: int,
    default_size: int = DEFAULT_PAGE_SIZE,
) -> tuple[int, int]:
    """1부터 시작하는 페이지 번호를 (offset, size)로 변환.

    page_index <= 0 이면 1페이지, page_size <= 0 이면 default_size를 사용합니다.
    """
    if page_index <= 0:
        page_index = 1
    if page_size <= 0:
        page_size = default_size
    return (page_index - 1) * page_size, page_size


class QuerySession:
    """Elasticsearch 쿼리 누적 세션.

    스레드 안전하지 않습니다. 요청마다 새 세션을 만들어 사용하세요.
    공유 클라이언트(`es`)는 여러 세션이 동시에 사용해도 됩니다.
    """

    def __init__(self, es: Elasticsearch, cfg: ESConfig | None = None):
        self.es = es
        self.cfg = cfg

        self._required: list[Predicate] = []
        self._optional: list[Predicate] = []
        self._sorts: list[SortSpec] = []
        self._collapse_sorts: list[SortSpec] = []
        self._collapse: CollapseSpec | None = None
        self._deadline: float | None = None
        self._closed = False

    # =========================================================================
    # State (read-only views)
    # =========================================================================

    @property
    def required(self) -> tuple[Predicate, ...]:
        return tuple(self._required)

    @property
    def optional(self) -> tuple[Predicate, ...]:
        return tuple(self._optional)

    @property
    def sorts(self) -> tuple[SortSpec, ...]:
        return tuple(self._sorts)

    @property
    def collapse(self) -> CollapseSpec | None:
        return self._collapse

    @property
    def deadline(self) -> float | None:
        """time.monotonic() 기준 deadline."""
        return self._deadline

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def default_page_size(self) -> int:
        if self.cfg is not None and self.cfg.default_page_size > 0:
            return self.cfg.default_page_size
        return DEFAULT_PAGE_SIZE

    # =========================================================================
    # Predicates
    # =========================================================================

    def add_required(self, name: str, values: Iterable[Any] | str = ()) -> QuerySession:
        """must 조건 추가 (SQL의 AND).

        값이 없으면 전체 매칭, 1개면 match, 여러 개면 terms(SQL의 IN)로 추가합니다.
        문자열 하나를 넘기면 값 1개로 취급합니다.
        """
        return self.add_required_predicate(predicate_for_values(name, values))

    def add_required_predicate(self, predicate: Predicate) -> QuerySession:
        self._ensure_open()
        self._required.append(predicate)
        return self

    def add_optional(
        self,
        name: str,
        value: Any,
        *,
        exact_match: bool = False,
        weight: float | None = None,
    ) -> QuerySession:
        """should 조건 추가 (SQL의 OR).

        Args:
            name: 필드명
            value: 매칭 값
            exact_match: True이면 TF/IDF를 무시하고 constant_score로 감쌈
            weight: 점수 가중치 (boost)
        """
        predicate: Predicate = MatchField(name, value)
        if exact_match:
            predicate = Boosted(predicate, exact_match=True)
        return self.add_optional_predicate(predicate, weight=weight)

    def add_optional_predicate(
        self,
        predicate: Predicate,
        *,
        weight: float | None = None,
    ) -> QuerySession:
        """should 조건 추가. weight는 MatchField/Boosted에만 적용되고 나머지는 무시됩니다."""
        self._ensure_open()
        if weight is not None:
            predicate = predicate.with_weight(float(weight))
        self._optional.append(predicate)
        return self

    # =========================================================================
    # Sort / Collapse
    # =========================================================================

    def set_sort(self, field: str, ascending: bool = True) -> QuerySession:
        """정렬 조건 추가. 먼저 추가한 조건이 우선합니다."""
        return self.add_sort(FieldSort(field, ascending))

    def set_geo_distance_sort(
        self,
        field: str,
        lat_lon: str,
        unit: str = "km",
        ascending: bool = True,
    ) -> QuerySession:
        """geo 거리 정렬 추가. lat_lon은 "위도,경도" 문자열."""
        return self.add_sort(GeoDistanceSort(field, GeoPoint.from_string(lat_lon), unit, ascending))

    def add_sort(self, sort: SortSpec) -> QuerySession:
        self._ensure_open()
        self._sorts.append(sort)
        return self

    def add_collapse_sort(self, sort: SortSpec) -> QuerySession:
        """collapse 그룹 내부(inner hits) 정렬 추가.

        set_collapse 호출 시점의 목록이 적용되므로, 이미 설정된 collapse에는
        다음 set_collapse 호출 전까지 반영되지 않습니다.
        """
        self._ensure_open()
        if self._collapse is not None:
            logger.debug(
                f"collapse가 이미 설정되어 정렬({sort})은 다음 set_collapse부터 적용됩니다"
            )
        self._collapse_sorts.append(sort)
        return self

    def set_collapse(self, inner_hit_name: str, field: str, size: int) -> QuerySession:
        """collapse 설정. 다시 호출하면 이전 설정을 덮어씁니다."""
        self._ensure_open()
        self._collapse = CollapseSpec(
            field=field,
            inner_hit_name=inner_hit_name,
            inner_hit_size=size,
            inner_hit_sort=tuple(self._collapse_sorts),
        )
        return self

    # =========================================================================
    # Timeout
    # =========================================================================

    def set_timeout(self, timeout: float | timedelta) -> QuerySession:
        """지금부터 timeout 이후를 deadline으로 설정."""
        self._ensure_open()
        seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)
        self._deadline = time.monotonic() + seconds
        return self

    # =========================================================================
    # Compilation
    # =========================================================================

    def compile(self) -> dict[str, Any]:
        """누적된 상태를 search 요청 body로 변환. 상태는 변경하지 않습니다."""
        body: dict[str, Any] = {"query": compile_bool_query(self._required, self._optional)}
        if self._sorts:
            body["sort"] = sort_to_list(self._sorts)
        collapse = self._collapse
        if collapse is not None:
            body["collapse"] = collapse.to_dict()
        return body

    # =========================================================================
    # Terminal operations
    # =========================================================================

    def search(
        self,
        index: str,
        page_index: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> SearchResult:
        """검색.

        Args:
            index: 대상 인덱스명
            page_index: 1부터 시작하는 페이지 번호
            page_size: 페이지 크기

        Raises:
            SearchError: 백엔드 실패, 타임아웃, deadline 초과
        """
        self._finish()
        offset, size = resolve_page(page_index, page_size, self.default_page_size)
        body = self.compile()
        logger.debug(f"search {index} from={offset} size={size} body={body}")

        backend = self._backend(SearchError)
        try:
            resp = backend.search(index=index, from_=offset, size=size, **body)
        except _BACKEND_ERRORS as e:
            logger.warning(f"검색 실패 ({index}): {e}")
            raise SearchError(f"검색 실패 ({index}): {e}") from e

        return SearchResult.from_response(resp)

    def count(self, index: str) -> int:
        """컴파일된 쿼리에 매칭되는 문서 수."""
        self._finish()
        query = self.compile()["query"]

        backend = self._backend(SearchError)
        try:
            resp = backend.count(index=index, query=query)
        except _BACKEND_ERRORS as e:
            logger.warning(f"count 실패 ({index}): {e}")
            raise SearchError(f"count 실패 ({index}): {e}") from e

        return int(resp["count"])

    def mget_by_id(self, ids_by_index: Mapping[str, Sequence[str]]) -> dict[str, dict[str, Any]]:
        """인덱스별 ID 목록으로 문서 일괄 조회.

        Returns:
            {index: {id: source}}. 찾은 문서만 포함.
        """
        self._finish()
        docs = [
            {"_index": index, "_id": doc_id}
            for index, doc_ids in ids_by_index.items()
            for doc_id in doc_ids
        ]
        if not docs:
            return {}

        backend = self._backend(SearchError)
        try:
            resp = backend.mget(docs=docs)
        except _BACKEND_ERRORS as e:
            logger.warning(f"mget 실패: {e}")
            raise SearchError(f"mget 실패: {e}") from e

        out: dict[str, dict[str, Any]] = {}
        for d in resp.get("docs", []):
            if d.get("found"):
                out.setdefault(d["_index"], {})[d["_id"]] = d["_source"]
        return out

    def delete(self, index: str, doc_id: str) -> None:
        """문서 삭제. refresh 완료 후 반환합니다.

        Raises:
            DocumentNotFoundError: 문서가 존재하지 않는 경우
            DeletionFailedError: 결과가 "deleted"가 아니거나 백엔드 실패
        """
        self._finish()
        backend = self._backend(DeletionFailedError)
        try:
            resp = backend.delete(index=index, id=doc_id, refresh=REFRESH_POLICY)
        except NotFoundError as e:
            raise DocumentNotFoundError(f"문서가 없습니다 ({index}/{doc_id})") from e
        except _BACKEND_ERRORS as e:
            logger.warning(f"삭제 실패 ({index}/{doc_id}): {e}")
            raise DeletionFailedError(f"삭제 실패 ({index}/{doc_id}): {e}") from e

        result = resp.get("result")
        if result == "not_found":
            raise DocumentNotFoundError(f"문서가 없습니다 ({index}/{doc_id})")
        if result != "deleted":
            raise DeletionFailedError(f"삭제 실패 ({index}/{doc_id}): result={result}")

    def bulk(self, operations: Sequence[BulkOperation]) -> BulkResult:
        """bulk 작업. refresh 완료 후 반환합니다.

        항목별 성공/실패는 반환된 BulkResult에서 확인해야 합니다.

        Raises:
            EmptyBulkError: 작업이 하나도 없는 경우 (요청 전 실패)
            WriteError: 요청 자체가 실패한 경우
        """
        self._ensure_open()
        if not operations:
            raise EmptyBulkError("no bulk data")
        self._closed = True

        lines = build_bulk_body(operations)
        backend = self._backend(WriteError)
        try:
            resp = backend.bulk(operations=lines, refresh=REFRESH_POLICY)
        except _BACKEND_ERRORS as e:
            logger.warning(f"bulk 실패 ({len(operations)}건): {e}")
            raise WriteError(f"bulk 실패 ({len(operations)}건): {e}") from e

        result = BulkResult.from_response(resp)
        if result.errors:
            logger.warning(f"bulk 일부 실패: {len(result.failed)}/{len(result.items)}건")
        return result

    def save(self, index: str, doc_id: str, document: Any) -> None:
        """문서 저장 (없으면 생성, 있으면 전체 교체). refresh 완료 후 반환합니다."""
        self._finish()
        source = to_document(document)

        backend = self._backend(WriteError)
        try:
            backend.index(index=index, id=doc_id, document=source, refresh=REFRESH_POLICY)
        except _BACKEND_ERRORS as e:
            logger.warning(f"저장 실패 ({index}/{doc_id}): {e}")
            raise WriteError(f"저장 실패 ({index}/{doc_id}): {e}") from e

    # =========================================================================
    # Internal
    # =========================================================================

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("이미 실행된 세션입니다. 새 세션을 생성하세요.")

    def _finish(self) -> None:
        self._ensure_open()
        self._closed = True

    def _backend(self, error_cls: type[ESError]) -> Elasticsearch:
        """deadline이 있으면 남은 시간을 request_timeout으로 전달하는 클라이언트 반환."""
        if self._deadline is None:
            return self.es
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise error_cls("deadline exceeded")
        return self.es.options(request_timeout=remaining)
