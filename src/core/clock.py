"""게임 시각

가격 계수(시간대/요일)는 서울 현지 시각 기준.
DB에는 tz 정보 없는 현지 시각으로 저장한다.
"""

from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from src.config import settings

Clock = Callable[[], datetime]


def game_now() -> datetime:
    return datetime.now(ZoneInfo(settings.TIMEZONE)).replace(tzinfo=None)
