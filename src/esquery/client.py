"""Elasticsearch 클라이언트 팩토리.

프로세스 전역에서 공유하는 클라이언트를 ping 기반으로 재사용합니다.
"""

from __future__ import annotations

import logging
import threading

from elasticsearch import Elasticsearch

from esquery.config import ESConfig
from esquery.errors import ESConnectionError

logger = logging.getLogger(__name__)

_client: Elasticsearch | None = None
_client_lock = threading.Lock()


def create_es_client(cfg: ESConfig | None = None) -> Elasticsearch:
    """Elasticsearch 클라이언트 생성.

    요청마다 정확히 한 번만 왕복하도록 재시도는 끕니다.

    Args:
        cfg: ES 설정. None이면 기본 설정 사용.

    Returns:
        Elasticsearch 클라이언트 인스턴스.

    Raises:
        ValueError: ES_URL이 설정되지 않은 경우.
        ESConnectionError: 클라이언트 생성에 실패한 경우.
    """
    if cfg is None:
        cfg = ESConfig()

    if not cfg.es_url:
        raise ValueError("ES_URL 환경변수를 설정하세요.")

    kwargs = {
        "hosts": [cfg.es_url],
        "verify_certs": cfg.verify_certs,
        "request_timeout": cfg.request_timeout_s,
        "max_retries": 0,
        "retry_on_timeout": False,
    }
    # Basic Auth 사용
    if cfg.es_username and cfg.es_password:
        kwargs["basic_auth"] = (cfg.es_username, cfg.es_password)

    try:
        return Elasticsearch(**kwargs)
    except (ValueError, TypeError) as e:
        raise ESConnectionError(f"클라이언트 생성 실패 ({cfg.es_url}): {e}") from e


def check_connection(es: Elasticsearch) -> bool:
    """ES 연결 상태 확인.

    Returns:
        연결 성공 여부.
    """
    try:
        return bool(es.ping())
    except Exception:
        return False


def get_es_client(cfg: ESConfig | None = None) -> Elasticsearch:
    """공유 클라이언트 반환.

    캐시된 클라이언트가 ping에 응답하면 그대로 재사용하고,
    없거나 응답하지 않으면 새로 생성해 교체합니다.
    """
    global _client

    with _client_lock:
        if _client is not None:
            if check_connection(_client):
                return _client
            logger.warning("캐시된 ES 클라이언트가 ping에 응답하지 않아 재생성합니다.")
            _close_quietly(_client)
            _client = None

        _client = create_es_client(cfg)
        logger.info("ES 클라이언트 생성 완료")
        return _client


def reset_es_client() -> None:
    """캐시된 클라이언트 폐기."""
    global _client

    with _client_lock:
        if _client is not None:
            _close_quietly(_client)
        _client = None


def _close_quietly(es: Elasticsearch) -> None:
    try:
        es.close()
    except Exception as e:
        logger.warning(f"ES 클라이언트 종료 실패: {e}")
