"""연결 관리 모듈 - WebSocket 채널, 연결 상태 머신, 지수 백오프 재연결"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Protocol

import websockets
from websockets.exceptions import ConnectionClosed

from feed_client.errors import (
    ExhaustedRetries, FeedClientError, PolicyViolation, TransportFailure,
)
from feed_client.keepalive import HeartbeatScheduler, MetricsPoller
from feed_client.models import (
    ConnectionSession, ConnectionState, OutboundMessage, Severity, Subscribe,
    generate_connection_id,
)
from feed_client.protocol import encode

if TYPE_CHECKING:
    from feed_client.config import Config
    from feed_client.notifier import NotificationSink
    from feed_client.scheduler import Scheduler, TimerHandle
    from feed_client.state import ClientState
    from feed_client.stats_logger import StatsLogger

logger = logging.getLogger(__name__)


# ── 백오프 ──

@dataclass(frozen=True)
class BackoffPolicy:
    """재연결 딜레이 = base * growth^(attempt-1) (ms)"""
    base_delay_ms: float = 3000
    growth_factor: float = 1.5

    def delay(self, attempt: int) -> float:
        if attempt < 1:
            raise ValueError(f"attempt는 1 이상이어야 함: {attempt}")
        return self.base_delay_ms * self.growth_factor ** (attempt - 1)


# ── 채널 ──

class ChannelListener(Protocol):
    def on_open(self) -> None: ...

    def on_message(self, raw: str | bytes) -> None: ...

    def on_close(self, reason: str) -> None: ...

    def on_error(self, exc: BaseException) -> None: ...


class Channel(Protocol):
    def send(self, text: str) -> None: ...

    def close(self) -> None: ...


# 팩토리는 채널을 반환하기 전에 리스너 콜백을 호출하면 안 됨
ChannelFactory = Callable[[str, ChannelListener], Channel]


class WebSocketChannel:
    """websockets 클라이언트 - 연결 1회당 하나의 수신 태스크"""

    def __init__(self, url: str, listener: ChannelListener, ping_interval: float = 20):
        self.url = url
        self.listener = listener
        self.ping_interval = ping_interval
        self._ws = None
        self._closed = False
        self._send_failure: BaseException | None = None
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        reason = "원격 종료"
        try:
            async with websockets.connect(self.url, ping_interval=self.ping_interval) as ws:
                self._ws = ws
                self.listener.on_open()
                # 메시지는 하나씩 끝까지 처리한 뒤 다음 메시지 수신
                async for raw in ws:
                    self.listener.on_message(raw)
        except ConnectionClosed as e:
            reason = f"비정상 종료 ({e})"
        except Exception as e:
            reason = str(e) or type(e).__name__
            self.listener.on_error(e)
        finally:
            self._ws = None
        if self._send_failure is not None:
            reason = f"전송 실패 ({self._send_failure})"
        if not self._closed:
            self.listener.on_close(reason)

    def send(self, text: str) -> None:
        ws = self._ws
        if ws is None or self._closed:
            raise TransportFailure("채널이 열려 있지 않음")
        task = asyncio.get_running_loop().create_task(ws.send(text))
        task.add_done_callback(self._on_sent)

    def _on_sent(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        exc = task.exception()
        logger.warning(f"[송신] 전송 실패: {exc}")
        if self._closed or self._send_failure is not None:
            return
        # 오류 보고 후 소켓을 닫아 on_close → 재연결 경로로 진입
        self._send_failure = exc
        self.listener.on_error(exc)
        ws = self._ws
        if ws is not None:
            asyncio.get_running_loop().create_task(ws.close())

    def close(self) -> None:
        self._closed = True
        self._task.cancel()


def websocket_channel_factory(ping_interval: float = 20) -> ChannelFactory:
    return functools.partial(WebSocketChannel, ping_interval=ping_interval)


class _BoundListener:
    """채널 세대(generation)에 묶인 리스너 - 오래된 채널의 콜백은 무시됨"""

    def __init__(self, manager: ConnectionManager, generation: int):
        self.manager = manager
        self.generation = generation

    def on_open(self) -> None:
        self.manager._handle_open(self.generation)

    def on_message(self, raw: str | bytes) -> None:
        self.manager._handle_message(self.generation, raw)

    def on_close(self, reason: str) -> None:
        self.manager._handle_close(self.generation, reason)

    def on_error(self, exc: BaseException) -> None:
        self.manager._handle_error(self.generation, exc)


# ── 상태 머신 ──

class ConnectionManager:
    """채널 소유, 연결 상태 전이, 백오프 재연결, 연결 유지 타이머 관리"""

    def __init__(self, config: Config, state: ClientState, scheduler: Scheduler,
                 channel_factory: ChannelFactory, on_message: Callable[[str | bytes], None],
                 sink: NotificationSink, stats_logger: StatsLogger | None = None):
        self.url = config.ws_url
        self.max_attempts = config.max_reconnect_attempts
        self.backoff = BackoffPolicy(config.reconnect_base_delay_ms, config.reconnect_backoff_factor)
        self.client_state = state
        self.scheduler = scheduler
        self.channel_factory = channel_factory
        self.on_message = on_message
        self.sink = sink
        self.stats_logger = stats_logger
        self.heartbeat = HeartbeatScheduler(scheduler, self.try_send, config.heartbeat_interval)
        self.metrics_poller = MetricsPoller(scheduler, self.try_send, config.metrics_interval,
                                            config.initial_metrics_delay)

        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self.session: ConnectionSession | None = None
        self.last_error: FeedClientError | None = None
        self._channel: Channel | None = None
        self._generation = 0
        self._retry: TimerHandle | None = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def channel(self) -> Channel | None:
        return self._channel

    # ── 공개 API ──

    def connect(self) -> None:
        if self.state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            logger.debug(f"[연결] 이미 {self.state.value} 상태, connect() 무시")
            return
        self._cancel_retry()
        self._set_state(ConnectionState.CONNECTING)
        self.sink.notify(f"WebSocket 서버 연결 중... ({self.url})", Severity.INFO)
        self._generation += 1
        try:
            self._channel = self.channel_factory(self.url, _BoundListener(self, self._generation))
        except Exception as e:
            self._channel = None
            self._generation += 1
            self._report(TransportFailure(f"연결 실패: {e}"))
            self._handle_failure(str(e))

    def disconnect(self) -> None:
        """수동 해제 - 시도 횟수를 최대로 고정해 자동 재연결 차단"""
        self._cancel_retry()
        channel = self._channel
        self._teardown()
        self.attempts = self.max_attempts
        if channel is not None:
            try:
                channel.close()
            except Exception as e:
                self._report(TransportFailure(f"채널 종료 실패: {e}"))
        self._set_state(ConnectionState.DISCONNECTED)
        self.sink.notify("서버와의 연결을 수동으로 해제함", Severity.INFO)

    def reconnect(self) -> None:
        self.attempts = 0
        self._cancel_retry()
        self.connect()

    def send(self, message: OutboundMessage) -> None:
        """메시지 전송. 미연결 시 PolicyViolation, 채널 오류 시 재연결 경로 진입 후 TransportFailure"""
        if not self.connected or self._channel is None:
            raise PolicyViolation(f"연결되지 않은 상태에서 {message.type} 전송 불가")
        try:
            self._channel.send(encode(message))
        except Exception as e:
            failure = e if isinstance(e, TransportFailure) else TransportFailure(f"전송 실패: {e}")
            self._fail_channel(str(failure))
            raise failure from e

    def try_send(self, message: OutboundMessage) -> bool:
        """전송 후 실패는 싱크에 보고 (타이머/내부 경로용)"""
        try:
            self.send(message)
        except FeedClientError as e:
            self._report(e)
            return False
        return True

    # ── 채널 콜백 ──

    def _is_current(self, generation: int) -> bool:
        if generation != self._generation:
            logger.debug(f"[연결] 오래된 채널 콜백 무시 (gen={generation})")
            return False
        return True

    def _handle_open(self, generation: int) -> None:
        if not self._is_current(generation) or self.state is not ConnectionState.CONNECTING:
            return
        self.attempts = 0
        self.session = ConnectionSession(
            connection_id=generate_connection_id(), started_at=self.scheduler.now(),
        )
        self._set_state(ConnectionState.CONNECTED)
        self.sink.notify(f"WebSocket 연결 성공 ({self.session.connection_id})", Severity.SUCCESS)
        self.heartbeat.start()
        self.metrics_poller.start()
        self.try_send(Subscribe(symbol=self.client_state.store.selected))

    def _handle_message(self, generation: int, raw: str | bytes) -> None:
        if self._is_current(generation):
            self.on_message(raw)

    def _handle_error(self, generation: int, exc: BaseException) -> None:
        if self._is_current(generation):
            self._report(TransportFailure(f"WebSocket 오류: {exc or type(exc).__name__}"))

    def _handle_close(self, generation: int, reason: str) -> None:
        if not self._is_current(generation):
            return
        self._teardown()
        self.sink.notify(f"WebSocket 연결 종료: {reason}", Severity.WARNING)
        self._handle_failure(reason)

    # ── 내부 ──

    def _teardown(self) -> None:
        # 상태가 Connected를 벗어나기 전에 타이머부터 취소
        self.heartbeat.stop()
        self.metrics_poller.stop()
        self._channel = None
        self.session = None
        self._generation += 1

    def _fail_channel(self, reason: str) -> None:
        channel = self._channel
        self._teardown()
        if channel is not None:
            try:
                channel.close()
            except Exception as e:
                logger.debug(f"[연결] 실패한 채널 종료 중 예외: {e}")
        self._handle_failure(reason)

    def _handle_failure(self, reason: str) -> None:
        if self.attempts >= self.max_attempts:
            self._set_state(ConnectionState.DISCONNECTED)
            self._report(ExhaustedRetries(
                f"최대 재연결 시도 횟수({self.max_attempts}) 초과 - reconnect() 필요"
            ))
            return
        self.attempts += 1
        delay = self.backoff.delay(self.attempts)
        self._set_state(ConnectionState.RECONNECTING)
        if self.stats_logger:
            self.stats_logger.record_reconnect(self.scheduler.now(), reason)
        self.sink.notify(
            f"{delay / 1000:g}초 후 재연결 (시도 {self.attempts}/{self.max_attempts})",
            Severity.INFO,
        )
        self._retry = self.scheduler.call_later(delay, self._retry_due)

    def _retry_due(self) -> None:
        self._retry = None
        if self.state is ConnectionState.RECONNECTING:
            self.connect()

    def _cancel_retry(self) -> None:
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None

    def _set_state(self, new: ConnectionState) -> None:
        if new is self.state:
            return
        logger.info(f"[연결] {self.state.value} → {new.value}")
        self.state = new

    def _report(self, error: FeedClientError) -> None:
        self.last_error = error
        severity = Severity.WARNING if isinstance(error, PolicyViolation) else Severity.ERROR
        self.sink.notify(str(error), severity)
