"""주기 작업 스케줄러

- 시장 시세 갱신 + prices_updated 브로드캐스트 (기본 3시간)
"""

from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.core.logging import get_logger

logger = get_logger(__name__)

PRICE_BROADCAST_JOB_ID = "market_price_broadcast"


class PriceBroadcastScheduler:
    """BackgroundScheduler 래퍼. 작업은 1개, 겹쳐 실행하지 않는다."""

    def __init__(
        self,
        refresh: Callable[[], object],
        interval_minutes: int,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self._refresh = refresh
        self._interval_minutes = interval_minutes
        self._scheduler = scheduler or BackgroundScheduler()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def _run_job(self) -> None:
        try:
            self._refresh()
        except Exception:
            # 다음 주기에 다시 시도
            logger.exception("[Scheduler] 시세 갱신 실패")

    def setup_jobs(self) -> None:
        self._scheduler.add_job(
            self._run_job,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id=PRICE_BROADCAST_JOB_ID,
            name="시장 시세 갱신 및 브로드캐스트",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(
            f"[Scheduler] 작업 등록: {PRICE_BROADCAST_JOB_ID} "
            f"({self._interval_minutes}분 간격)"
        )

    def start(self) -> None:
        """이미 실행 중이면 아무것도 하지 않는다."""
        if self._scheduler.running:
            return
        self.setup_jobs()
        self._scheduler.start()
        logger.info("[Scheduler] 시작")

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("[Scheduler] 종료")
