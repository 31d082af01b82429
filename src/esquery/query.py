"""Query predicates and bool query compilation.

Predicate는 닫힌 variant 집합(MatchAll, MatchField, TermsField, Boosted)이며
각 variant가 자신의 ES DSL 변환(`to_dict`)과 가중치 적용(`with_weight`)을 구현합니다.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Any, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchAll:
    """조건 없음. 모든 문서와 매칭."""

    boost: float | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.boost is not None:
            return {"match_all": {"boost": self.boost}}
        return {"match_all": {}}

    def with_weight(self, weight: float) -> MatchAll:
        logger.debug(f"match_all에는 가중치를 적용하지 않습니다 (weight={weight})")
        return self


@dataclass(frozen=True)
class MatchField:
    """단일 필드 단일 값 매칭."""

    name: str
    value: Any
    boost: float | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.boost is not None:
            return {"match": {self.name: {"query": self.value, "boost": self.boost}}}
        return {"match": {self.name: self.value}}

    def with_weight(self, weight: float) -> MatchField:
        return replace(self, boost=weight)


@dataclass(frozen=True)
class TermsField:
    """단일 필드 다중 값 매칭 (SQL의 IN)."""

    name: str
    values: tuple[Any, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"terms": {self.name: list(self.values)}}

    def with_weight(self, weight: float) -> TermsField:
        logger.debug(f"terms 조건({self.name})에는 가중치를 적용하지 않습니다 (weight={weight})")
        return self


@dataclass(frozen=True)
class Boosted:
    """다른 조건을 감싸 점수 가중치를 적용.

    exact_match=True이면 TF/IDF를 무시하고 constant_score 필터로 동작합니다.
    """

    inner: Predicate
    weight: float | None = None
    exact_match: bool = False

    def to_dict(self) -> dict[str, Any]:
        if self.exact_match:
            body: dict[str, Any] = {"filter": self.inner.to_dict()}
            key = "constant_score"
        else:
            body = {"must": [self.inner.to_dict()]}
            key = "bool"
        if self.weight is not None:
            body["boost"] = self.weight
        return {key: body}

    def with_weight(self, weight: float) -> Boosted:
        return replace(self, weight=weight)


Predicate = Union[MatchAll, MatchField, TermsField, Boosted]


def predicate_for_values(name: str, values: Iterable[Any] | str | bytes) -> Predicate:
    """값 개수에 따라 Predicate variant 선택.

    0개 -> MatchAll, 1개 -> MatchField, 2개 이상 -> TermsField
    str/bytes는 문자 단위로 쪼개지 않고 값 하나로 취급합니다.
    """
    if isinstance(values, (str, bytes)):
        return MatchField(name, values)
    values = tuple(values)
    if len(values) == 0:
        return MatchAll()
    if len(values) == 1:
        return MatchField(name, values[0])
    return TermsField(name, values)


def compile_bool_query(
    required: Sequence[Predicate],
    optional: Sequence[Predicate],
) -> dict[str, Any]:
    """must/should 조건을 하나의 bool 쿼리로 합성.

    must가 없으면 should 중 하나 이상이 매칭되어야 하고,
    must가 있으면 should는 점수에만 영향을 줍니다 (ES bool 쿼리 기본 동작).
    두 목록이 모두 비어 있으면 match_all로 대체합니다.
    """
    if not required and not optional:
        return {"match_all": {}}

    bool_body: dict[str, Any] = {}
    if required:
        bool_body["must"] = [p.to_dict() for p in required]
    if optional:
        bool_body["should"] = [p.to_dict() for p in optional]
    return {"bool": bool_body}
