"""SQLAlchemy declarative base for all ORM models."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""


# ── 정적 카탈로그 ─────────────────────────────────────────


class LevelThresholdModel(Base):
    """레벨별 누적 경험치 요구량과 보상 포인트."""

    __tablename__ = "level_thresholds"

    level: Mapped[int] = mapped_column(Integer, primary_key=True)
    required_exp: Mapped[int] = mapped_column(Integer, nullable=False)
    stat_points_reward: Mapped[int] = mapped_column(Integer, default=1)
    skill_points_reward: Mapped[int] = mapped_column(Integer, default=1)


class ItemModel(Base):
    """아이템 마스터."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    rarity: Mapped[str] = mapped_column(String, nullable=False, default="common")
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    required_license: Mapped[int] = mapped_column(Integer, default=1)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class AchievementModel(Base):
    """업적 정의. reward_value는 JSON 문자열."""

    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String, nullable=False)
    condition_type: Mapped[str] = mapped_column(String, nullable=False)
    condition_value: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_type: Mapped[str | None] = mapped_column(String, nullable=True)
    reward_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon_id: Mapped[int] = mapped_column(Integer, default=1)
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False)


# ── 플레이어 ─────────────────────────────────────────────


class PlayerModel(Base):
    """플레이어 프로필. 삭제 시 소유 레코드 전부 cascade."""

    __tablename__ = "players"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    money: Mapped[int] = mapped_column(Integer, nullable=False, default=50000)
    trust_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_license: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_inventory_size: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    title: Mapped[str | None] = mapped_column(String, nullable=True)
    last_active: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    progress: Mapped["CharacterProgressModel"] = relationship(
        "CharacterProgressModel",
        back_populates="player",
        uselist=False,
        cascade="all, delete-orphan",
    )
    inventory: Mapped[list["InventoryItemModel"]] = relationship(
        "InventoryItemModel",
        back_populates="player",
        cascade="all, delete-orphan",
    )
    merchant_relations: Mapped[list["PlayerMerchantRelationModel"]] = relationship(
        "PlayerMerchantRelationModel",
        cascade="all, delete-orphan",
    )
    trades: Mapped[list["TradeModel"]] = relationship(
        "TradeModel",
        cascade="all, delete-orphan",
    )
    achievements: Mapped[list["PlayerAchievementModel"]] = relationship(
        "PlayerAchievementModel",
        cascade="all, delete-orphan",
    )
    cosmetics: Mapped[list["PlayerCosmeticModel"]] = relationship(
        "PlayerCosmeticModel",
        cascade="all, delete-orphan",
    )

    __table_args__ = (CheckConstraint("money >= 0", name="ck_player_money"),)


class CharacterProgressModel(Base):
    """캐릭터 성장 (Player 1:1). player_id PK가 중복 생성 방지."""

    __tablename__ = "character_progress"

    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.id", ondelete="CASCADE"), primary_key=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stat_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skill_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    strength: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    intelligence: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    charisma: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    luck: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    trading_skill: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    negotiation_skill: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    appraisal_skill: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    player: Mapped["PlayerModel"] = relationship(
        "PlayerModel", back_populates="progress"
    )


class InventoryItemModel(Base):
    """플레이어 보유 아이템 인스턴스. 구매 시 생성, 판매 시 삭제."""

    __tablename__ = "inventory_items"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    item_id: Mapped[str] = mapped_column(
        String, ForeignKey("items.id"), nullable=False
    )
    item_name: Mapped[str] = mapped_column(String, nullable=False)
    item_category: Mapped[str] = mapped_column(String, nullable=False)
    grade: Mapped[str] = mapped_column(String, nullable=False, default="common")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    purchase_price: Mapped[int] = mapped_column(Integer, nullable=False)
    current_price: Mapped[int] = mapped_column(Integer, nullable=False)
    required_license: Mapped[int] = mapped_column(Integer, default=1)
    is_equipped: Mapped[bool] = mapped_column(Boolean, default=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    player: Mapped["PlayerModel"] = relationship(
        "PlayerModel", back_populates="inventory"
    )

    __table_args__ = (Index("idx_inventory_player", "player_id"),)


class PlayerCosmeticModel(Base):
    """업적 보상 등으로 획득한 꾸미기 아이템."""

    __tablename__ = "player_cosmetics"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    cosmetic_id: Mapped[int] = mapped_column(Integer, nullable=False)
    cosmetic_type: Mapped[str] = mapped_column(String, nullable=False, default="accessory")
    cosmetic_name: Mapped[str] = mapped_column(String, nullable=False)
    rarity: Mapped[str] = mapped_column(String, nullable=False, default="common")
    is_equipped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source: Mapped[str] = mapped_column(String, nullable=False, default="achievement")
    acquired_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("player_id", "cosmetic_id", name="uq_player_cosmetic"),
    )


# ── 상인 ────────────────────────────────────────────────


class MerchantModel(Base):
    """NPC 상인. 재고는 merchant_stock 자식 테이블."""

    __tablename__ = "merchants"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str | None] = mapped_column(String, nullable=True)
    merchant_type: Mapped[str] = mapped_column(String, nullable=False, default="general")
    personality: Mapped[str] = mapped_column(String, nullable=False, default="neutral")
    mood: Mapped[str] = mapped_column(String, nullable=False, default="neutral")
    district: Mapped[str] = mapped_column(String, nullable=False)
    location_lat: Mapped[float] = mapped_column(Float, nullable=False)
    location_lng: Mapped[float] = mapped_column(Float, nullable=False)
    required_license: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price_modifier: Mapped[float] = mapped_column(Float, default=1.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_restocked: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    stock: Mapped[list["MerchantStockModel"]] = relationship(
        "MerchantStockModel",
        back_populates="merchant",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_merchant_location", "location_lat", "location_lng"),
    )


class MerchantStockModel(Base):
    """상인 재고 라인. 재고 감소는 행 단위 조건부 UPDATE로 처리."""

    __tablename__ = "merchant_stock"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    merchant_id: Mapped[str] = mapped_column(
        String, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False
    )
    item_id: Mapped[str] = mapped_column(
        String, ForeignKey("items.id"), nullable=False
    )
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    merchant: Mapped["MerchantModel"] = relationship(
        "MerchantModel", back_populates="stock"
    )
    item: Mapped["ItemModel"] = relationship("ItemModel", lazy="joined")

    __table_args__ = (
        UniqueConstraint("merchant_id", "item_id", name="uq_merchant_item"),
        CheckConstraint("stock >= 0", name="ck_stock_non_negative"),
    )


class PlayerMerchantRelationModel(Base):
    """플레이어-상인 관계. 첫 상호작용 시 생성."""

    __tablename__ = "player_merchant_relations"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    merchant_id: Mapped[str] = mapped_column(
        String, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False
    )
    friendship_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reputation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_interaction: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    relationship_status: Mapped[str] = mapped_column(
        String, nullable=False, default="stranger"
    )

    merchant: Mapped["MerchantModel"] = relationship("MerchantModel")

    __table_args__ = (
        UniqueConstraint("player_id", "merchant_id", name="uq_player_merchant"),
    )


# ── 거래 / 업적 / 시세 ─────────────────────────────────────


class TradeModel(Base):
    """거래 기록. append-only."""

    __tablename__ = "trades"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    merchant_id: Mapped[str] = mapped_column(
        String, ForeignKey("merchants.id"), nullable=False
    )
    item_id: Mapped[str] = mapped_column(String, nullable=False)
    item_name: Mapped[str] = mapped_column(String, nullable=False)
    item_category: Mapped[str] = mapped_column(String, nullable=False)
    item_grade: Mapped[str | None] = mapped_column(String, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    final_price: Mapped[int] = mapped_column(Integer, nullable=False)
    price_modifier: Mapped[float] = mapped_column(Float, default=1.0)
    negotiation_discount: Mapped[float] = mapped_column(Float, default=0.0)
    trade_type: Mapped[str] = mapped_column(String, nullable=False)
    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    district: Mapped[str | None] = mapped_column(String, nullable=True)
    experience_gained: Mapped[int] = mapped_column(Integer, default=0)
    reputation_change: Mapped[int] = mapped_column(Integer, default=0)
    relationship_change: Mapped[int] = mapped_column(Integer, default=0)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("idx_trade_player_time", "player_id", "timestamp"),)


class PlayerAchievementModel(Base):
    """플레이어별 업적 진행도."""

    __tablename__ = "player_achievements"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    achievement_id: Mapped[str] = mapped_column(
        String, ForeignKey("achievements.id"), nullable=False
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("player_id", "achievement_id", name="uq_player_achievement"),
    )


class MarketPriceModel(Base):
    """시장 시세 테이블 (주기적 갱신 + 브로드캐스트)."""

    __tablename__ = "market_prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    current_price: Mapped[int] = mapped_column(Integer, nullable=False)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
