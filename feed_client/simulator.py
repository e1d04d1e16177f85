"""로컬 가격 시뮬레이터 - 연결 중 TEST 외 심볼에 랜덤워크 시세 주입"""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Callable

from feed_client.models import MarketDataUpdate
from feed_client.symbol_store import ADDED_SYMBOL_PRICE, PROTECTED_SYMBOL

if TYPE_CHECKING:
    from feed_client.ingest import IngestPipeline
    from feed_client.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

HALF_SPREAD = 0.05


class PriceSimulator:
    def __init__(self, pipeline: IngestPipeline, scheduler: Scheduler,
                 is_connected: Callable[[], bool], interval: float = 2,
                 rng: random.Random | None = None):
        self.pipeline = pipeline
        self.scheduler = scheduler
        self.is_connected = is_connected
        self.interval_ms = interval * 1000
        self.rng = rng or random.Random()
        self._handle: TimerHandle | None = None

    def start(self) -> None:
        if self._handle is None:
            self._handle = self.scheduler.call_every(self.interval_ms, self.step)
            logger.info(f"[시뮬레이터] 시작 ({self.interval_ms / 1000:g}초 주기)")

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def step(self) -> int:
        """심볼별 한 스텝 이동, 갱신한 심볼 수 반환"""
        if not self.is_connected():
            return 0
        store = self.pipeline.state.store
        updated = 0
        for symbol in store.symbols():
            if symbol == PROTECTED_SYMBOL:
                continue
            record = store.get(symbol)
            base = record.last or ADDED_SYMBOL_PRICE
            price = base + (self.rng.random() - 0.5) * 2
            self.pipeline.apply_market_data(MarketDataUpdate(
                symbol=symbol,
                bid=price - HALF_SPREAD,
                ask=price + HALF_SPREAD,
                last=price,
                volume=self.rng.randrange(1000, 11000),
                timestamp=self.scheduler.now(),
            ))
            updated += 1
        return updated
