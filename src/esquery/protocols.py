"""esquery Protocol(인터페이스) 정의.

이 모듈은 Elasticsearch에 의존하지 않습니다.

Protocol은 구조적 서브타이핑(Structural Subtyping)을 지원합니다.
구현체가 이 Protocol을 상속하지 않아도, 시그니처만 맞으면 호환됩니다.
"""

from __future__ import annotations

from typing import Any, Protocol


class ConfigSourceProtocol(Protocol):
    """읽기 전용 설정 소스 인터페이스.

    dict, 펼쳐진 YAML 설정 등 `get(key)`만 있으면 호환됩니다.

    Example:
        >>> source = {
        ...     "elasticsearch": "http://localhost:9200",
        ...     "elasticsearch.LoginName": "elastic",
        ...     "elasticsearch.Password": "changeme",
        ... }
        >>> cfg = ESConfig.from_source(source)
    """

    def get(self, key: str) -> Any: ...

