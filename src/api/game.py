"""Game API endpoints.

얇은 전송 계층: 입력 검증 → 서비스 호출 → 응답 포장.
도메인 예외(GameError)는 앱 전역 핸들러가 상태 코드로 변환한다.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from src.api.deps import (
    error_response,
    get_achievement_service,
    get_cosmetic_service,
    get_current_user_id,
    get_market_service,
    get_player_service,
    get_progression_service,
    get_relationship_service,
    get_trade_service,
)
from src.api.schemas import (
    ApiResponse,
    BuyRequest,
    CreatePlayerRequest,
    EquipCosmeticRequest,
    InteractRequest,
    LocationUpdateRequest,
    SellRequest,
    StatAllocationRequest,
)
from src.core.trade import TradeOutcome
from src.services.achievement_service import AchievementService
from src.services.cosmetic_service import CosmeticService
from src.services.market_service import MarketService
from src.services.player_service import PlayerService
from src.services.progression_service import ProgressionService
from src.services.relationship_service import RelationshipService
from src.services.trade_service import TradeService

router = APIRouter(prefix="/game", tags=["game"])


def _trade_response(outcome: TradeOutcome, message: str) -> ApiResponse | JSONResponse:
    if not outcome.success:
        return error_response(outcome.error_kind or "internal", outcome.error or "")
    return ApiResponse(data=outcome.data, message=message)


# ── 플레이어 ─────────────────────────────────────────────


@router.post("/player", response_model=ApiResponse, status_code=201)
def create_player(
    request: CreatePlayerRequest,
    user_id: str = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> ApiResponse:
    """캐릭터 생성"""
    return ApiResponse(data=service.create_player(user_id, request.name))


@router.get("/player/data", response_model=ApiResponse)
def get_player_data(
    user_id: str = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> ApiResponse:
    """프로필 + 최근 인벤토리"""
    return ApiResponse(data=service.get_player_data(user_id))


@router.put("/player/location", response_model=ApiResponse)
def update_location(
    request: LocationUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> ApiResponse:
    """위치 갱신 후 주변 상인 반환"""
    return ApiResponse(data=service.update_location(user_id, request.lat, request.lng))


@router.get("/player/merchant-relations", response_model=ApiResponse)
def list_merchant_relations(
    user_id: str = Depends(get_current_user_id),
    service: RelationshipService = Depends(get_relationship_service),
) -> ApiResponse:
    return ApiResponse(data=service.list_relationships(user_id))


# ── 시세 / 상인 ───────────────────────────────────────────


@router.get("/market/prices", response_model=ApiResponse)
def get_market_prices(
    user_id: str = Depends(get_current_user_id),
    service: MarketService = Depends(get_market_service),
) -> ApiResponse:
    return ApiResponse(data=service.get_market_prices())


@router.get("/merchants", response_model=ApiResponse)
def list_merchants(
    user_id: str = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> ApiResponse:
    return ApiResponse(data=service.list_merchants())


@router.get("/merchants/nearby", response_model=ApiResponse)
def find_nearby_merchants(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, le=20),
    user_id: str = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> ApiResponse:
    return ApiResponse(data=service.find_nearby_merchants(lat, lng, radius_km))


@router.get("/merchants/{merchant_id}", response_model=ApiResponse)
def get_merchant(
    merchant_id: str,
    user_id: str = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> ApiResponse:
    return ApiResponse(data=service.get_merchant_detail(merchant_id))


@router.post("/merchants/{merchant_id}/interact", response_model=ApiResponse)
def interact_with_merchant(
    merchant_id: str,
    request: InteractRequest,
    user_id: str = Depends(get_current_user_id),
    service: RelationshipService = Depends(get_relationship_service),
) -> ApiResponse:
    return ApiResponse(
        data=service.interact(user_id, merchant_id, request.interaction_type)
    )


@router.get("/merchants/{merchant_id}/relationship", response_model=ApiResponse)
def get_merchant_relationship(
    merchant_id: str,
    user_id: str = Depends(get_current_user_id),
    service: RelationshipService = Depends(get_relationship_service),
) -> ApiResponse:
    return ApiResponse(data=service.get_relationship(user_id, merchant_id))


# ── 거래 ────────────────────────────────────────────────


@router.post("/trade/buy", response_model=ApiResponse)
def buy_item(
    request: BuyRequest,
    user_id: str = Depends(get_current_user_id),
    service: TradeService = Depends(get_trade_service),
) -> ApiResponse | JSONResponse:
    """구매. 수량 값과 무관하게 1개씩 거래된다."""
    outcome = service.buy(user_id, request.merchant_id, request.item_name)
    return _trade_response(outcome, "구매 완료")


@router.post("/trade/sell", response_model=ApiResponse)
def sell_item(
    request: SellRequest,
    user_id: str = Depends(get_current_user_id),
    service: TradeService = Depends(get_trade_service),
) -> ApiResponse | JSONResponse:
    outcome = service.sell(user_id, request.item_id, request.merchant_id)
    return _trade_response(outcome, "판매 완료")


@router.get("/trade/history", response_model=ApiResponse)
def get_trade_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> ApiResponse:
    return ApiResponse(data=service.get_trade_history(user_id, limit, offset))


# ── 캐릭터 ──────────────────────────────────────────────


@router.get("/character/stats", response_model=ApiResponse)
def get_character_stats(
    user_id: str = Depends(get_current_user_id),
    service: ProgressionService = Depends(get_progression_service),
) -> ApiResponse:
    return ApiResponse(data=service.get_stats(user_id))


@router.put("/character/stats", response_model=ApiResponse)
def allocate_character_stats(
    request: StatAllocationRequest,
    user_id: str = Depends(get_current_user_id),
    service: ProgressionService = Depends(get_progression_service),
) -> ApiResponse:
    return ApiResponse(data=service.allocate_stats(user_id, request.requested()))


@router.post("/character/levelup", response_model=ApiResponse)
def level_up(
    user_id: str = Depends(get_current_user_id),
    service: ProgressionService = Depends(get_progression_service),
) -> ApiResponse:
    return ApiResponse(data=service.level_up(user_id))


@router.get("/character/cosmetics", response_model=ApiResponse)
def list_cosmetics(
    user_id: str = Depends(get_current_user_id),
    service: CosmeticService = Depends(get_cosmetic_service),
) -> ApiResponse:
    return ApiResponse(data=service.list_cosmetics(user_id))


@router.put("/character/cosmetics/{cosmetic_id}/equip", response_model=ApiResponse)
def equip_cosmetic(
    cosmetic_id: str,
    request: EquipCosmeticRequest,
    user_id: str = Depends(get_current_user_id),
    service: CosmeticService = Depends(get_cosmetic_service),
) -> ApiResponse:
    data = service.set_equipped(user_id, cosmetic_id, request.is_equipped)
    message = "코스메틱을 장착했습니다." if request.is_equipped else "코스메틱을 해제했습니다."
    return ApiResponse(data=data, message=message)


# ── 업적 ────────────────────────────────────────────────


@router.get("/achievements", response_model=ApiResponse)
def list_achievements(
    user_id: str = Depends(get_current_user_id),
    service: AchievementService = Depends(get_achievement_service),
) -> ApiResponse:
    return ApiResponse(data=service.list_achievements())


@router.get("/achievements/progress", response_model=ApiResponse)
def get_achievement_progress(
    user_id: str = Depends(get_current_user_id),
    service: AchievementService = Depends(get_achievement_service),
) -> ApiResponse:
    return ApiResponse(data=service.get_progress(user_id))


@router.post("/achievements/check", response_model=ApiResponse)
def check_achievements(
    user_id: str = Depends(get_current_user_id),
    service: AchievementService = Depends(get_achievement_service),
) -> ApiResponse:
    return ApiResponse(data=service.check_achievements(user_id))


@router.post("/achievements/{achievement_id}/claim", response_model=ApiResponse)
def claim_achievement_reward(
    achievement_id: str,
    user_id: str = Depends(get_current_user_id),
    service: AchievementService = Depends(get_achievement_service),
) -> ApiResponse:
    return ApiResponse(data=service.claim_reward(user_id, achievement_id))
