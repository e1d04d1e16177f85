"""알림 싱크 - (text, severity) 이벤트 수신: 로깅 + 시스템 메시지 로그, 텔레그램 알림"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import TYPE_CHECKING, Protocol

import aiohttp

from feed_client.models import Severity, SystemMessage

if TYPE_CHECKING:
    from feed_client.config import Config

logger = logging.getLogger(__name__)

_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class NotificationSink(Protocol):
    def notify(self, text: str, severity: Severity = Severity.INFO) -> None: ...


class LoggingSink:
    """모든 알림을 로깅하고 최근 N개를 시스템 메시지 로그로 보관"""

    def __init__(self, max_messages: int = 100):
        self.messages: deque[SystemMessage] = deque(maxlen=max_messages)

    def notify(self, text: str, severity: Severity = Severity.INFO) -> None:
        logger.log(_LEVELS[severity], f"[{severity.value}] {text}")
        self.messages.append(SystemMessage(time=time.time() * 1000, text=text, severity=severity))

    def clear(self) -> None:
        self.messages.clear()


class TelegramSink:
    """error 알림을 텔레그램으로 전달 (실패 시 로깅만, 클라이언트에 영향 없음)"""

    ALERT_SEVERITIES = frozenset({Severity.ERROR})

    def __init__(self, config: Config, inner: NotificationSink | None = None):
        self.bot_token = config.telegram_bot_token
        self.chat_id = config.telegram_chat_id
        self.enabled = bool(self.bot_token and self.chat_id)
        self.inner = inner or LoggingSink(config.message_log_size)
        self._pending: set[asyncio.Task] = set()

    def notify(self, text: str, severity: Severity = Severity.INFO) -> None:
        self.inner.notify(text, severity)
        if not self.enabled or severity not in self.ALERT_SEVERITIES:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("[텔레그램] 실행 중인 이벤트 루프 없음, 전송 생략")
            return
        task = loop.create_task(self.send_message(f"🚨 {text}"))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def send_message(self, text: str) -> None:
        """텔레그램 메시지 전송"""
        if not self.enabled:
            return
        try:
            url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
            payload = {"chat_id": self.chat_id, "text": text}
            async with aiohttp.ClientSession() as session:
                async with session.post(url, json=payload, timeout=aiohttp.ClientTimeout(total=10)) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        logger.warning("텔레그램 전송 실패 (status=%d): %s", resp.status, body)
        except Exception:
            logger.warning("텔레그램 메시지 전송 중 예외 발생", exc_info=True)

    def clear(self) -> None:
        clear = getattr(self.inner, "clear", None)
        if clear:
            clear()
