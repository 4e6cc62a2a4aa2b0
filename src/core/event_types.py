"""이벤트 유형 상수

Notification 협력자(실시간 푸시)에게 전달되는 신호.
"""


class EventTypes:
    """이벤트 유형 문자열 상수"""

    # market
    PRICES_UPDATED = "prices_updated"

    # player
    PLAYER_MOVED = "player_moved"

    # trade
    TRADE_COMPLETED = "trade_completed"

    # relationship
    RELATIONSHIP_CHANGED = "relationship_changed"

    # progression
    LEVEL_UP = "level_up"
    ACHIEVEMENT_COMPLETED = "achievement_completed"
