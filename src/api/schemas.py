"""API request/response schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field


# === Request Schemas ===


class CreatePlayerRequest(BaseModel):
    """캐릭터 생성 요청"""

    name: str = Field(..., min_length=1, max_length=30, description="캐릭터 이름")


class LocationUpdateRequest(BaseModel):
    """위치 갱신 요청"""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class BuyRequest(BaseModel):
    """구매 요청. 거래는 1개 단위로 처리된다."""

    merchant_id: str = Field(..., min_length=1)
    item_name: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=10)


class SellRequest(BaseModel):
    """판매 요청"""

    item_id: str = Field(..., min_length=1, description="인벤토리 아이템 ID")
    merchant_id: str = Field(..., min_length=1)


class StatAllocationRequest(BaseModel):
    """스탯 분배 요청. 값은 증가 후 목표치, 생략 시 유지."""

    strength: Optional[int] = Field(None, ge=0)
    intelligence: Optional[int] = Field(None, ge=0)
    charisma: Optional[int] = Field(None, ge=0)
    luck: Optional[int] = Field(None, ge=0)

    def requested(self) -> dict[str, int]:
        return {k: v for k, v in self.model_dump().items() if v is not None}


class InteractRequest(BaseModel):
    """상인 상호작용 요청"""

    interaction_type: str = Field(
        ...,
        min_length=1,
        description="chat, compliment, gift, ask_about_district (그 외는 친밀도 +1)",
    )


class EquipCosmeticRequest(BaseModel):
    """코스메틱 장착/해제 요청"""

    is_equipped: bool = True


# === Response Schemas ===


class ApiResponse(BaseModel):
    """공통 성공 응답"""

    success: bool = True
    data: Optional[Any] = None
    message: Optional[str] = None
