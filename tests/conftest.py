"""Shared test fixtures.

인메모리 SQLite + 고정 시각 + 중앙값 난수.
가격/경험치가 결정적이므로 수치를 그대로 검증할 수 있다.

기준 시나리오 (강남구 김테크, IT부품 (커먼) 단가 5000, 수요일 14시):
    구매가 = floor(5000 × 1.3 × 1.10 × 1.0 × 1.0) = 7150
    구매 경험치 = 7150 // 1000 + 5 = 12
"""

import random
from datetime import datetime
from types import SimpleNamespace
from typing import Callable, List

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.config import settings
from src.core.event_bus import EventBus, GameEvent
from src.core.scheduler import PriceBroadcastScheduler
from src.db.database import create_db_engine, get_db, session_scope
from src.db.models import Base, PlayerModel
from src.main import app, build_services, sync_catalogs

FIXED_NOW = datetime(2025, 3, 12, 14, 0)  # 수요일, 업무시간

GANGNAM_MERCHANT = "merchant_gangnam_1"
GANGNAM_LAT = 37.5173
GANGNAM_LNG = 126.9735
IT_PART = "IT부품 (커먼)"

HONGDAE_MERCHANT = "merchant_hongdae_1"
DRAGON_MERCHANT = "merchant_dragon_1"


class MidpointRandom(random.Random):
    """구간 중앙값만 돌려주는 난수원."""

    def uniform(self, a: float, b: float) -> float:
        return (a + b) / 2

    def randint(self, a: int, b: int) -> int:
        return (a + b) // 2


def fixed_clock() -> datetime:
    return FIXED_NOW


def auth_headers(user_id: str) -> dict[str, str]:
    """외부 Auth 서비스가 발급하는 것과 같은 형식의 토큰."""
    token = jwt.encode({"sub": user_id}, settings.JWT_SECRET, algorithm=settings.JWT_ALG)
    return {"Authorization": f"Bearer {token}"}


# ── DB ──


@pytest.fixture()
def engine():
    db_engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture()
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


# ── 서비스 ──


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def captured(bus) -> Callable[[str], List[GameEvent]]:
    """이벤트 유형별 수신 기록. captured("trade_completed") → 받은 이벤트 리스트"""
    received: dict[str, List[GameEvent]] = {}

    def _listen(event_type: str) -> List[GameEvent]:
        if event_type not in received:
            received[event_type] = []
            bus.subscribe(event_type, received[event_type].append)
        return received[event_type]

    return _listen


@pytest.fixture()
def services(session_factory, bus) -> SimpleNamespace:
    """카탈로그가 채워진 전체 서비스 묶음 (고정 시각, 중앙값 난수)."""
    holder = FastAPI()
    build_services(holder, session_factory, bus, clock=fixed_clock, rng=MidpointRandom())
    sync_catalogs(holder)
    state = holder.state
    return SimpleNamespace(
        player=state.player_service,
        trade=state.trade_service,
        progression=state.progression_service,
        achievement=state.achievement_service,
        relationship=state.relationship_service,
        cosmetic=state.cosmetic_service,
        market=state.market_service,
        bus=bus,
        session_factory=session_factory,
    )


@pytest.fixture()
def make_player(services):
    """플레이어 생성 후 좌표 지정. 기본 위치는 강남 상인 바로 앞."""

    def _make(
        user_id: str = "user-1",
        name: str = "테스터",
        lat: float | None = GANGNAM_LAT,
        lng: float | None = GANGNAM_LNG,
    ) -> dict:
        player = services.player.create_player(user_id, name)
        if lat is not None and lng is not None:
            services.player.update_location(user_id, lat, lng)
        return player

    return _make


@pytest.fixture()
def patch_player(session_factory):
    """플레이어 행 직접 수정 (잔액, 면허, 용량 등 전제조건 구성용)."""

    def _patch(user_id: str, **values) -> None:
        with session_scope(session_factory) as db:
            db.execute(
                update(PlayerModel).where(PlayerModel.user_id == user_id).values(**values)
            )

    return _patch


@pytest.fixture()
def in_db(session_factory):
    """직접 조회/수정용. StaticPool은 연결 하나를 공유하므로 호출마다 세션을 닫는다.

    in_db(lambda db: db.get(Model, pk).money)
    """

    def _run(work: Callable[[Session], object]):
        with session_scope(session_factory) as db:
            return work(db)

    return _run


# ── API ──


@pytest.fixture()
def client(session_factory, bus) -> TestClient:
    """FastAPI TestClient wired to an in-memory SQLite database.

    lifespan은 실행하지 않는다. 서비스와 카탈로그는 여기서 직접 준비.
    """
    build_services(app, session_factory, bus, clock=fixed_clock, rng=MidpointRandom())
    sync_catalogs(app)
    app.state.price_scheduler = PriceBroadcastScheduler(
        refresh=app.state.market_service.refresh_market_prices,
        interval_minutes=settings.PRICE_BROADCAST_INTERVAL_MINUTES,
    )

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
