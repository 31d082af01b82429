"""Bulk operation types.

각 작업은 helpers 스타일 action dict(`_op_type`, `_index`, `_id`, `_source`)로 변환되고,
`elasticsearch.helpers.expand_action`으로 bulk API의 action/source 라인 쌍이 됩니다.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass, is_dataclass
from typing import Any, Union

from elasticsearch.helpers import expand_action


def to_document(data: Any) -> dict[str, Any]:
    """dataclass/dict 문서를 ES용 dict로 변환. None 값은 넣지 않음."""
    if is_dataclass(data) and not isinstance(data, type):
        data = asdict(data)
    if not isinstance(data, dict):
        raise TypeError(f"문서는 dict 또는 dataclass 여야 합니다: {type(data)}")
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class BulkIndex:
    """문서 생성 또는 전체 교체."""

    index: str
    id: str
    document: Any

    def to_action(self) -> dict[str, Any]:
        return {
            "_op_type": "index",
            "_index": self.index,
            "_id": self.id,
            "_source": to_document(self.document),
        }


@dataclass(frozen=True)
class BulkUpdate:
    """부분 업데이트. upsert=True이면 문서가 없을 때 생성."""

    index: str
    id: str
    document: Any
    upsert: bool = False

    def to_action(self) -> dict[str, Any]:
        source: dict[str, Any] = {"doc": to_document(self.document)}
        if self.upsert:
            source["doc_as_upsert"] = True
        return {
            "_op_type": "update",
            "_index": self.index,
            "_id": self.id,
            "_source": source,
        }


@dataclass(frozen=True)
class BulkDelete:
    index: str
    id: str

    def to_action(self) -> dict[str, Any]:
        return {"_op_type": "delete", "_index": self.index, "_id": self.id}


BulkOperation = Union[BulkIndex, BulkUpdate, BulkDelete]


def build_bulk_body(operations: Sequence[BulkOperation]) -> list[dict[str, Any]]:
    """bulk API `operations` 인자(action/source 라인 목록) 생성."""
    lines: list[dict[str, Any]] = []
    for op in operations:
        action, source = expand_action(op.to_action())
        lines.append(action)
        if source is not None:
            lines.append(source)
    return lines
