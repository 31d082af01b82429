"""검색/bulk 결과 타입."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class SearchHit:
    """검색 결과 히트.

    collapse가 적용된 경우 inner_hits에 {inner_hit_name: [SearchHit, ...]}가 담깁니다.
    """

    id: str
    index: str | None
    score: float | None
    source: dict[str, Any]
    sort: list[Any] | None = None
    inner_hits: dict[str, list[SearchHit]] = field(default_factory=dict)

    @classmethod
    def from_es(cls, hit: Mapping[str, Any]) -> SearchHit:
        inner: dict[str, list[SearchHit]] = {}
        for name, group in (hit.get("inner_hits") or {}).items():
            inner[name] = [cls.from_es(h) for h in group["hits"]["hits"]]
        return cls(
            id=hit["_id"],
            index=hit.get("_index"),
            score=hit.get("_score"),
            source=hit.get("_source") or {},
            sort=hit.get("sort"),
            inner_hits=inner,
        )


def _total_value(total: Any) -> int:
    # track_total_hits 응답은 {"value": n, "relation": "eq"}, 구버전은 정수
    if isinstance(total, Mapping):
        return int(total.get("value", 0))
    return int(total or 0)


@dataclass
class SearchResult:
    """검색 결과 컨테이너."""

    total: int
    hits: list[SearchHit]
    max_score: float | None = None
    took_ms: int = 0

    @classmethod
    def from_response(cls, resp: Mapping[str, Any]) -> SearchResult:
        hits_obj = resp.get("hits") or {}
        return cls(
            total=_total_value(hits_obj.get("total")),
            hits=[SearchHit.from_es(h) for h in hits_obj.get("hits", [])],
            max_score=hits_obj.get("max_score"),
            took_ms=int(resp.get("took", 0)),
        )

    def sources(self) -> list[dict[str, Any]]:
        return [h.source for h in self.hits]


@dataclass
class BulkItemResult:
    """bulk 개별 작업 결과."""

    op_type: str
    index: str | None
    id: str | None
    status: int
    result: str | None = None
    error: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status < 300


@dataclass
class BulkResult:
    """bulk 전체 결과. 성공/실패는 항목별로 확인해야 합니다."""

    items: list[BulkItemResult]
    took_ms: int = 0

    @classmethod
    def from_response(cls, resp: Mapping[str, Any]) -> BulkResult:
        items: list[BulkItemResult] = []
        for entry in resp.get("items", []):
            # 각 항목은 {"index": {...}} 처럼 op_type 하나를 키로 가짐
            for op_type, info in entry.items():
                items.append(
                    BulkItemResult(
                        op_type=op_type,
                        index=info.get("_index"),
                        id=info.get("_id"),
                        status=int(info.get("status", 0)),
                        result=info.get("result"),
                        error=info.get("error"),
                    )
                )
        return cls(items=items, took_ms=int(resp.get("took", 0)))

    @property
    def errors(self) -> bool:
        return any(not item.ok for item in self.items)

    @property
    def failed(self) -> list[BulkItemResult]:
        return [item for item in self.items if not item.ok]

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.ok)
