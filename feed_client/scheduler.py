"""타이머 스케줄러 - 취소 가능한 one-shot/주기 타이머와 시계 (단위: ms)

AsyncioScheduler는 실행 중인 이벤트 루프의 call_later 위에서 동작하고,
VirtualScheduler는 advance()로 가상 시간을 직접 진행시킨다 (테스트/리플레이용).
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class TimerHandle:
    """취소 가능한 타이머 핸들"""

    def __init__(self) -> None:
        self._cancelled = False
        self._asyncio_handle: asyncio.TimerHandle | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._asyncio_handle is not None:
            self._asyncio_handle.cancel()
            self._asyncio_handle = None


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle: ...

    def call_every(self, interval_ms: float, callback: Callback) -> TimerHandle: ...


def _run_callback(callback: Callback) -> None:
    """타이머 콜백 예외가 다른 타이머를 멈추지 않도록 로깅만"""
    try:
        callback()
    except Exception:
        logger.exception("[타이머] 콜백 실행 중 예외")


class AsyncioScheduler:
    """asyncio 이벤트 루프 기반 스케줄러"""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.time() * 1000

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle()

        def fire() -> None:
            handle._asyncio_handle = None
            if not handle.cancelled:
                _run_callback(callback)

        handle._asyncio_handle = self.loop.call_later(max(delay_ms, 0) / 1000, fire)
        return handle

    def call_every(self, interval_ms: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle()

        def fire() -> None:
            if handle.cancelled:
                return
            _run_callback(callback)
            # 콜백 안에서 취소됐을 수 있음
            if not handle.cancelled:
                handle._asyncio_handle = self.loop.call_later(interval_ms / 1000, fire)

        handle._asyncio_handle = self.loop.call_later(interval_ms / 1000, fire)
        return handle


class VirtualScheduler:
    """가상 시간 스케줄러 - advance(ms) 호출 시 만기 타이머를 순서대로 실행"""

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms
        self._queue: list[tuple[float, int, TimerHandle, Callback, float | None]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle()
        self._push(self._now + max(delay_ms, 0), handle, callback, None)
        return handle

    def call_every(self, interval_ms: float, callback: Callback) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError("interval_ms는 양수여야 함")
        handle = TimerHandle()
        self._push(self._now + interval_ms, handle, callback, interval_ms)
        return handle

    def _push(self, due: float, handle: TimerHandle, callback: Callback,
              interval: float | None) -> None:
        heapq.heappush(self._queue, (due, next(self._seq), handle, callback, interval))

    @property
    def pending(self) -> int:
        """취소되지 않은 대기 타이머 수"""
        return sum(1 for _, _, h, _, _ in self._queue if not h.cancelled)

    def advance(self, delta_ms: float) -> None:
        """가상 시간을 delta_ms만큼 진행"""
        target = self._now + delta_ms
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback, interval = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            _run_callback(callback)
            if interval is not None and not handle.cancelled:
                self._push(due + interval, handle, callback, interval)
        self._now = target
