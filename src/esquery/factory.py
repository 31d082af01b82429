"""
QuerySession 팩토리.

설정을 한 번 읽고 공유 클라이언트로 세션을 생성합니다.
"""

from __future__ import annotations

from esquery.client import get_es_client
from esquery.config import ESConfig
from esquery.session import QuerySession


def new_session(config: ESConfig | None = None) -> QuerySession:
    """
    요청 단위 QuerySession을 생성합니다.

    Args:
        config: ES 설정 (None이면 환경변수 기본값 사용)

    Returns:
        새 QuerySession

    Raises:
        ValueError: ES_URL이 설정되지 않은 경우
        ESConnectionError: 클라이언트 생성에 실패한 경우
    """
    cfg = config or ESConfig()
    es = get_es_client(cfg)
    return QuerySession(es, cfg)
