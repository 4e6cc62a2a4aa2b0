"""API 의존성: 인증, 서비스 주입, 에러 응답 변환"""

from fastapi import Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from src.config import settings
from src.core.exceptions import GameError
from src.services.achievement_service import AchievementService
from src.services.cosmetic_service import CosmeticService
from src.services.market_service import MarketService
from src.services.player_service import PlayerService
from src.services.progression_service import ProgressionService
from src.services.relationship_service import RelationshipService
from src.services.trade_service import TradeService

bearer = HTTPBearer()

STATUS_BY_KIND = {
    "not_found": 404,
    "precondition_failed": 400,
    "conflict": 409,
    "internal": 500,
}


def get_current_user_id(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> str:
    """Bearer 토큰의 sub 클레임 = user_id. 토큰 발급은 외부 Auth 서비스 담당."""
    try:
        payload = jwt.decode(
            creds.credentials, settings.JWT_SECRET, algorithms=[settings.JWT_ALG]
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return str(user_id)


def error_response(kind: str, message: str) -> JSONResponse:
    """도메인 실패 → {"success": false, "error": ...}"""
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(kind, 500),
        content={"success": False, "error": message},
    )


def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    return error_response(exc.kind, exc.message)


def get_player_service(request: Request) -> PlayerService:
    """PlayerService 인스턴스 반환 (의존성 주입)"""
    service: PlayerService = request.app.state.player_service
    return service


def get_trade_service(request: Request) -> TradeService:
    """TradeService 인스턴스 반환 (의존성 주입)"""
    service: TradeService = request.app.state.trade_service
    return service


def get_progression_service(request: Request) -> ProgressionService:
    service: ProgressionService = request.app.state.progression_service
    return service


def get_relationship_service(request: Request) -> RelationshipService:
    service: RelationshipService = request.app.state.relationship_service
    return service


def get_achievement_service(request: Request) -> AchievementService:
    service: AchievementService = request.app.state.achievement_service
    return service


def get_market_service(request: Request) -> MarketService:
    service: MarketService = request.app.state.market_service
    return service


def get_cosmetic_service(request: Request) -> CosmeticService:
    service: CosmeticService = request.app.state.cosmetic_service
    return service
