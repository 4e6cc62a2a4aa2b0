"""FastAPI application entrypoint."""

import random
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from sqlalchemy.orm import sessionmaker

from src.api.deps import game_error_handler
from src.api.game import router as game_router
from src.api.health import router as health_router
from src.config import settings
from src.core.clock import Clock
from src.core.event_bus import EventBus
from src.core.exceptions import GameError
from src.core.logging import get_logger, setup_logging
from src.core.scheduler import PriceBroadcastScheduler
from src.core.trade import TradeGuard
from src.db.database import SessionLocal, engine as db_engine
from src.db.models import Base
from src.services.achievement_service import AchievementService
from src.services.cosmetic_service import CosmeticService
from src.services.market_service import MarketService
from src.services.player_service import PlayerService
from src.services.progression_service import ProgressionService
from src.services.relationship_service import RelationshipService
from src.services.trade_service import TradeService

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)

DATA_DIR = Path(__file__).parent / "data"


def build_services(
    app: FastAPI,
    session_factory: sessionmaker,
    event_bus: EventBus,
    clock: Optional[Clock] = None,
    rng: Optional[random.Random] = None,
) -> None:
    """서비스 조립 → app.state 등록. clock/rng는 테스트에서 고정값 주입."""
    progression = ProgressionService(session_factory, event_bus, clock=clock)
    achievements = AchievementService(
        session_factory, event_bus, progression, clock=clock
    )
    relationships = RelationshipService(
        session_factory, event_bus, clock=clock, rng=rng
    )

    app.state.event_bus = event_bus
    app.state.progression_service = progression
    app.state.achievement_service = achievements
    app.state.relationship_service = relationships
    app.state.cosmetic_service = CosmeticService(session_factory)
    app.state.player_service = PlayerService(session_factory, event_bus, clock=clock)
    app.state.market_service = MarketService(
        session_factory, event_bus, clock=clock, rng=rng
    )
    app.state.trade_service = TradeService(
        session_factory,
        event_bus,
        progression=progression,
        achievements=achievements,
        relationships=relationships,
        guard=TradeGuard(),
        clock=clock,
        rng=rng,
    )


def sync_catalogs(app: FastAPI, data_dir: Path = DATA_DIR) -> None:
    """정적 카탈로그 동기화 (없는 행만 추가)"""
    app.state.progression_service.sync_level_thresholds(
        data_dir / "level_thresholds.json"
    )
    app.state.achievement_service.sync_catalog(data_dir / "achievements.json")
    app.state.market_service.sync_world(data_dir / "world.json")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # DB 테이블 생성
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=db_engine)
    logger.info("Database tables created.")

    build_services(app, SessionLocal, EventBus())
    sync_catalogs(app)

    # 시세 브로드캐스트 스케줄러
    price_scheduler = PriceBroadcastScheduler(
        refresh=app.state.market_service.refresh_market_prices,
        interval_minutes=settings.PRICE_BROADCAST_INTERVAL_MINUTES,
    )
    app.state.price_scheduler = price_scheduler
    if settings.SCHEDULER_ENABLED:
        price_scheduler.start()

    logger.info("Services initialized.")

    yield

    # 종료 시 정리
    logger.info("Shutting down...")
    price_scheduler.stop()


app = FastAPI(title="Seoul Trade Game", lifespan=lifespan)

app.add_exception_handler(GameError, game_error_handler)
app.include_router(health_router)
app.include_router(game_router)
