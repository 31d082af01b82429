"""esquery 예외 정의.

모든 백엔드 유래 예외는 고정 prefix(`<elasticsearch error>`)를 달고 나가므로
호출 측은 내부 구현을 보지 않고도 이 서브시스템의 오류인지 구분할 수 있습니다.
원인 예외는 `raise ... from e`로 체이닝됩니다.
"""

from __future__ import annotations

ERROR_PREFIX = "<elasticsearch error>"


class ESError(Exception):
    """esquery 예외의 공통 베이스."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{ERROR_PREFIX} {self.message}"


class ESConnectionError(ESError):
    """클라이언트 생성 또는 재사용 실패."""


class SearchError(ESError):
    """검색/조회 실패 (타임아웃 포함)."""


class DeletionFailedError(ESError):
    """삭제 결과가 "deleted"가 아님."""


class DocumentNotFoundError(ESError):
    """삭제 대상 문서가 존재하지 않음."""


class EmptyBulkError(ESError):
    """bulk 요청에 작업이 하나도 없음."""


class WriteError(ESError):
    """save/bulk 쓰기 실패."""
