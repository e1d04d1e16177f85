"""메인 애플리케이션 - 클라이언트 초기화, 자동 연결, 주기 통계 로그, 종료 처리"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

from feed_client.client import DashboardClient
from feed_client.config import Config
from feed_client.connection import websocket_channel_factory
from feed_client.notifier import LoggingSink, TelegramSink
from feed_client.scheduler import AsyncioScheduler
from feed_client.stats_logger import StatsLogger

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)
logger = logging.getLogger(__name__)


async def main(config_path: str = "config.yaml") -> None:
    """클라이언트 실행 - 종료 신호까지 대기"""
    config = Config.from_yaml(config_path)

    # 디렉토리 생성 (로깅 FileHandler보다 먼저)
    Path(config.log_dir).mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(Path(config.log_dir) / "client.log", encoding="utf-8")
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    logging.getLogger().addHandler(file_handler)

    scheduler = AsyncioScheduler(asyncio.get_running_loop())
    stats_logger = StatsLogger(config.log_dir)
    sink = TelegramSink(config, LoggingSink(config.message_log_size))
    client = DashboardClient(
        config, scheduler, websocket_channel_factory(config.ping_interval),
        sink=sink, stats_logger=stats_logger,
    )

    logger.info("=== 마켓 데이터 클라이언트 시작 ===")
    logger.info(f"서버: {config.ws_url}")
    logger.info(f"심볼: {client.state.store.symbols()} (선택: {client.selected_symbol})")

    # 자동 연결
    scheduler.call_later(config.auto_connect_delay * 1000, client.connect)

    async def periodic_log():
        while True:
            await asyncio.sleep(config.stats_interval)
            await stats_logger.write_periodic_log(client.status())

    log_task = asyncio.create_task(periodic_log())

    # graceful shutdown
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler():
        logger.info("종료 신호 수신, 연결 해제 중...")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    await shutdown_event.wait()

    client.close()
    log_task.cancel()
    try:
        await stats_logger.write_periodic_log(client.status())
    except OSError as e:
        logger.error(f"마지막 통계 로그 실패: {e}")

    logger.info("=== 클라이언트 종료 ===")


def run() -> None:
    config_file = sys.argv[1] if len(sys.argv) > 1 else "config.yaml"
    asyncio.run(main(config_file))


if __name__ == "__main__":
    run()
