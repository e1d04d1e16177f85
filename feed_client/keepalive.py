"""연결 유지 타이머 - 하트비트, 메트릭 폴링 (Connected 상태에서만 동작)"""

from __future__ import annotations

import logging
from typing import Callable

from feed_client.models import GetMetrics, Heartbeat, OutboundMessage
from feed_client.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 30  # 초
METRICS_INTERVAL = 5     # 초


class PeriodicTask:
    """주기적으로 메시지를 만들어 전송하는 타이머"""

    name = "periodic"

    def __init__(self, scheduler: Scheduler, send: Callable[[OutboundMessage], None],
                 interval: float):
        self.scheduler = scheduler
        self.send = send
        self.interval_ms = interval * 1000
        self._handle: TimerHandle | None = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        self.stop()
        self._handle = self.scheduler.call_every(self.interval_ms, self.tick)
        logger.debug(f"[{self.name}] 시작 ({self.interval_ms / 1000:g}초 주기)")

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            logger.debug(f"[{self.name}] 중지")

    def build_message(self) -> OutboundMessage:
        raise NotImplementedError

    def tick(self) -> None:
        self.send(self.build_message())


class HeartbeatScheduler(PeriodicTask):
    name = "하트비트"

    def __init__(self, scheduler: Scheduler, send: Callable[[OutboundMessage], None],
                 interval: float = HEARTBEAT_INTERVAL):
        super().__init__(scheduler, send, interval)

    def build_message(self) -> Heartbeat:
        return Heartbeat(timestamp=int(self.scheduler.now()))


class MetricsPoller(PeriodicTask):
    """메트릭 주기 요청 + 연결 직후 1회 요청"""

    name = "메트릭폴링"

    def __init__(self, scheduler: Scheduler, send: Callable[[OutboundMessage], None],
                 interval: float = METRICS_INTERVAL, initial_delay: float = 1):
        super().__init__(scheduler, send, interval)
        self.initial_delay_ms = initial_delay * 1000
        self._initial: TimerHandle | None = None

    @property
    def running(self) -> bool:
        return self._handle is not None or self._initial is not None

    def start(self) -> None:
        super().start()
        self._initial = self.scheduler.call_later(self.initial_delay_ms, self._initial_tick)

    def stop(self) -> None:
        super().stop()
        if self._initial is not None:
            self._initial.cancel()
            self._initial = None

    def _initial_tick(self) -> None:
        self._initial = None
        self.tick()

    def build_message(self) -> GetMetrics:
        return GetMetrics(timestamp=int(self.scheduler.now()))
