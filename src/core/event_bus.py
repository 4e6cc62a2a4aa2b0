"""EventBus - 거래 코어 → 실시간 알림 협력자 신호 전달

규칙:
- 서비스는 커밋이 끝난 뒤에만 발행한다
- 이벤트는 식별자(ID)와 가벼운 요약만 전달한다
- 전파 깊이 최대 MAX_DEPTH 단계
- 하나의 발행 체인 안에서 동일 이벤트 중복 발행 금지

요청 스레드와 스케줄러 스레드가 동시에 발행할 수 있으므로
전파 깊이/체인 추적은 스레드별로 유지한다.
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Set

from src.core.logging import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 5  # 한 체인 내 이벤트 전파 최대 깊이


@dataclass
class GameEvent:
    """이벤트 데이터 컨테이너

    Args:
        event_type: 이벤트 유형 (예: "prices_updated", "player_moved")
        data: 이벤트 데이터 (ID 위주, 무거운 객체 금지)
        source: 발행한 서비스 이름
    """

    event_type: str
    data: Dict[str, Any]
    source: str

    # 내부 추적용 (외부에서 설정하지 않음)
    _depth: int = field(default=0, repr=False)


# 핸들러 타입: GameEvent를 받는 callable
EventHandler = Callable[[GameEvent], None]


class EventBus:
    """동기식 이벤트 버스

    사용 패턴:
        bus = EventBus()
        bus.subscribe("prices_updated", push_gateway.broadcast_prices)
        bus.emit(GameEvent(event_type="prices_updated", data={...}, source="market_service"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()
        self._local = threading.local()

    # ── 스레드별 체인 상태 ──────────────────────────────────

    @property
    def _current_depth(self) -> int:
        return getattr(self._local, "depth", 0)

    @_current_depth.setter
    def _current_depth(self, value: int) -> None:
        self._local.depth = value

    @property
    def _emitted_in_chain(self) -> Set[str]:
        chain = getattr(self._local, "chain", None)
        if chain is None:
            chain = set()
            self._local.chain = chain
        return chain

    # ── 구독 ─────────────────────────────────────────────

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """이벤트 구독 등록"""
        with self._lock:
            self._handlers[event_type].append(handler)
        logger.debug(f"EventBus 구독: {event_type} → {handler.__qualname__}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """이벤트 구독 해제"""
        with self._lock:
            handlers = self._handlers.get(event_type)
            if handlers is None or handler not in handlers:
                logger.warning(f"핸들러 미등록: {event_type} → {handler.__qualname__}")
                return
            handlers.remove(handler)
        logger.debug(f"EventBus 구독 해제: {event_type} → {handler.__qualname__}")

    # ── 발행 ─────────────────────────────────────────────

    def emit(self, event: GameEvent) -> None:
        """이벤트 발행. 등록된 핸들러를 동기 호출.

        안전장치:
        1. 전파 깊이 MAX_DEPTH 초과 시 무시
        2. 같은 체인에서 동일 source:event_type 중복 발행 시 무시
        핸들러 예외는 로그만 남기고 발행자에게 전파하지 않는다.
        """
        if self._current_depth >= MAX_DEPTH:
            logger.warning(
                f"EventBus 전파 깊이 초과 ({MAX_DEPTH}): "
                f"{event.source}:{event.event_type} 무시됨"
            )
            return

        chain_key = f"{event.source}:{event.event_type}"
        if chain_key in self._emitted_in_chain:
            logger.warning(f"EventBus 중복 이벤트 차단: {chain_key}")
            return

        with self._lock:
            handlers = list(self._handlers.get(event.event_type, []))

        if not handlers:
            logger.debug(f"EventBus: {event.event_type} 구독자 없음")
            return

        self._emitted_in_chain.add(chain_key)
        event._depth = self._current_depth

        logger.info(
            f"EventBus 전파: {event.event_type} (source={event.source}, "
            f"depth={self._current_depth}, handlers={len(handlers)})"
        )

        self._current_depth += 1
        try:
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        f"EventBus 핸들러 에러: {handler.__qualname__} "
                        f"(event={event.event_type})"
                    )
        finally:
            self._current_depth -= 1
            if self._current_depth == 0:
                # 최상위 발행이 끝나면 체인 종료
                self._emitted_in_chain.clear()

    def clear(self) -> None:
        """모든 구독 해제 (테스트용)"""
        with self._lock:
            self._handlers.clear()
        self._emitted_in_chain.clear()
        self._current_depth = 0

    @property
    def handler_count(self) -> int:
        """등록된 총 핸들러 수"""
        with self._lock:
            return sum(len(h) for h in self._handlers.values())
