"""Elasticsearch 설정 관리.

기본은 환경변수(.env 포함)로 설정을 관리합니다.
`elasticsearch`, `elasticsearch.LoginName`, `elasticsearch.Password` 키를 제공하는
설정 소스(dict, YAML 파일 등)에서도 생성할 수 있습니다.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from esquery.protocols import ConfigSourceProtocol

load_dotenv()

# 설정 소스 키
ENDPOINT_KEY = "elasticsearch"
USERNAME_KEY = "elasticsearch.LoginName"
PASSWORD_KEY = "elasticsearch.Password"

DEFAULT_PAGE_SIZE = 10


def _flatten_config(config: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """중첩된 config를 점(.) 구분 키로 펼침.

    예: {"elasticsearch": {"LoginName": "u"}} -> {"elasticsearch.LoginName": "u"}
    """
    flat: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten_config(value, full_key))
        else:
            flat[full_key] = value
    return flat


@dataclass(frozen=True)
class ESConfig:
    """Elasticsearch 연결 및 세션 기본값 설정.

    Attributes:
        es_url: Elasticsearch 서버 URL (예: http://localhost:9200)
        es_username: HTTP Basic Auth 사용자명 (선택)
        es_password: HTTP Basic Auth 비밀번호 (선택)
        verify_certs: SSL 인증서 검증 여부
        request_timeout_s: 요청 타임아웃 (초)
        default_page_size: page_size가 0 이하일 때 사용할 페이지 크기
    """

    # Connection
    es_url: str = field(default_factory=lambda: os.getenv("ES_URL", ""))
    es_username: str | None = field(default_factory=lambda: os.getenv("ES_USERNAME"))
    es_password: str | None = field(default_factory=lambda: os.getenv("ES_PASSWORD"))

    verify_certs: bool = field(
        default_factory=lambda: os.getenv("ES_VERIFY_CERTS", "true").lower() == "true"
    )
    request_timeout_s: int = field(
        default_factory=lambda: int(os.getenv("ES_REQUEST_TIMEOUT_S", "30"))
    )

    # Session
    default_page_size: int = field(
        default_factory=lambda: int(os.getenv("ES_DEFAULT_PAGE_SIZE", str(DEFAULT_PAGE_SIZE)))
    )

    @classmethod
    def from_source(cls, source: ConfigSourceProtocol, **overrides: Any) -> ESConfig:
        """설정 소스에서 연결 정보를 읽어 생성.

        Args:
            source: `get(key)`를 제공하는 읽기 전용 설정 소스
            **overrides: 나머지 필드 직접 지정

        Returns:
            ESConfig 인스턴스. 소스에 없는 값은 환경변수 기본값을 따름.
        """
        kwargs: dict[str, Any] = {}

        endpoint = source.get(ENDPOINT_KEY) or source.get(f"{ENDPOINT_KEY}.url")
        if endpoint:
            kwargs["es_url"] = str(endpoint)

        username = source.get(USERNAME_KEY)
        if username is not None:
            kwargs["es_username"] = str(username)

        password = source.get(PASSWORD_KEY)
        if password is not None:
            kwargs["es_password"] = str(password)

        kwargs.update(overrides)
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, config_path: str | Path, **overrides: Any) -> ESConfig:
        """YAML 설정 파일에서 생성.

        flat(`elasticsearch.LoginName: u`)과 nested(`elasticsearch: {LoginName: u}`)
        두 형태 모두 허용합니다.
        """
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return cls.from_source(_flatten_config(raw), **overrides)
