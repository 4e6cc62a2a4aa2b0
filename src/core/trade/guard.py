"""중복 거래 가드

같은 (행위자, 상대, 아이템, 종류) 거래가 진행 중이면 즉시 거절한다.
대기/재시도 없음. 프로세스 로컬 권고 락이며, 정합성 최종 보장은 DB 트랜잭션 몫.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from src.core.exceptions import ConflictError
from src.core.logging import get_logger

logger = get_logger(__name__)


def make_trade_key(
    actor_id: str, counterparty_id: str, item_ref: str, kind: str
) -> str:
    return f"{kind}:{actor_id}:{counterparty_id}:{item_ref}"


class TradeGuard:
    """trade key 단위 진행 중 표시.

    사용 패턴:
        with guard.hold(key):
            ...  # 성공/실패/예외 어떤 경로로 나가도 key 해제
    """

    def __init__(self) -> None:
        self._active: set[str] = set()
        self._lock = threading.Lock()

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._lock:
            if key in self._active:
                logger.info("Duplicate trade rejected: %s", key)
                raise ConflictError("이미 진행 중인 거래입니다.", {"trade_key": key})
            self._active.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(key)

    def is_active(self, key: str) -> bool:
        with self._lock:
            return key in self._active

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)
