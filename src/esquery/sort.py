"""Sort and collapse directives."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Union


def _order(ascending: bool) -> str:
    return "asc" if ascending else "desc"


@dataclass(frozen=True)
class GeoPoint:
    """위경도 좌표."""

    lat: float
    lon: float

    @classmethod
    def from_string(cls, lat_lon: str) -> GeoPoint:
        """'lat,lon' 문자열 파싱 (위도가 앞).

        Raises:
            ValueError: 형식이 잘못되었거나 범위를 벗어난 경우.
        """
        parts = [p.strip() for p in lat_lon.split(",")]
        if len(parts) != 2:
            raise ValueError(f"좌표 형식은 'lat,lon' 이어야 합니다: {lat_lon!r}")
        lat, lon = float(parts[0]), float(parts[1])
        if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
            raise ValueError(f"좌표 범위를 벗어났습니다: {lat_lon!r}")
        return cls(lat=lat, lon=lon)

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class FieldSort:
    field: str
    ascending: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {self.field: {"order": _order(self.ascending)}}


@dataclass(frozen=True)
class GeoDistanceSort:
    """기준 좌표로부터의 거리 정렬."""

    field: str
    origin: GeoPoint
    unit: str = "km"
    ascending: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "_geo_distance": {
                self.field: self.origin.to_dict(),
                "order": _order(self.ascending),
                "unit": self.unit,
            }
        }


SortSpec = Union[FieldSort, GeoDistanceSort]


@dataclass(frozen=True)
class CollapseSpec:
    """필드 기준 결과 접기 + 그룹별 inner hits.

    Attributes:
        field: 접기 기준 필드 (keyword/numeric)
        inner_hit_name: 그룹별 대표 문서 목록 이름
        inner_hit_size: 그룹별 최대 문서 수
        inner_hit_sort: 그룹 내부 정렬 (바깥 정렬과 독립)
    """

    field: str
    inner_hit_name: str
    inner_hit_size: int
    inner_hit_sort: tuple[SortSpec, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        inner_hits: dict[str, Any] = {
            "name": self.inner_hit_name,
            "size": self.inner_hit_size,
        }
        if self.inner_hit_sort:
            inner_hits["sort"] = sort_to_list(self.inner_hit_sort)
        return {"field": self.field, "inner_hits": inner_hits}


def sort_to_list(sorts: Sequence[SortSpec]) -> list[dict[str, Any]]:
    """정렬 조건을 입력 순서 그대로 ES sort 배열로 변환."""
    return [s.to_dict() for s in sorts]
