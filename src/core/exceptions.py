"""도메인 예외 계층

서비스는 비즈니스 규칙 위반 시 이 예외들을 발생시킨다.
API 계층은 kind별로 HTTP 상태 코드를 매핑한다.

- NotFoundError: 플레이어/상인/아이템/업적 없음
- PreconditionFailedError: 면허, 재고, 용량, 잔액, 거리, 스탯 포인트 등
- ConflictError: 동일 거래 중복 진행, 업적 보상 중복 수령
- InternalError: 저장소 오류 등 예상치 못한 실패 (상세 내용은 로그에만)
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class GameError(Exception):
    """모든 도메인 예외의 기반.

    Args:
        message: 사용자에게 보여줄 사유 (내부 상태 노출 금지)
        details: 구조화된 부가 정보 (예: 필요 면허 등급, 부족 금액)
        error_code: 프로그램 처리용 안정 식별자
    """

    kind: str = "internal"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details: Dict[str, Any] = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(message)

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"


class NotFoundError(GameError):
    kind = "not_found"


class PreconditionFailedError(GameError):
    kind = "precondition_failed"


class ConflictError(GameError):
    kind = "conflict"


class InternalError(GameError):
    """원인 예외는 __cause__로 보존하고, 메시지는 일반 문구만 사용."""

    kind = "internal"

    def __init__(self, message: str = "요청 처리 중 오류가 발생했습니다.") -> None:
        super().__init__(message)
