"""메시지 코덱 - 수신 페이로드 파싱(실패 시 ProtocolError) 및 송신 JSON 인코딩"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import asdict
from typing import Any

from feed_client.errors import ProtocolError
from feed_client.models import (
    ConnectionNotice, InboundMessage, MarketDataUpdate, MetricsUpdate,
    OutboundMessage, UnknownMessage,
)


def _number(payload: Mapping, key: str) -> float | None:
    """숫자 필드 추출. 누락/null → None, 숫자가 아니면 ProtocolError"""
    value = payload.get(key)
    if value is None:
        return None
    # bool은 int의 서브클래스라 명시적으로 제외
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolError(f"'{key}' 필드가 숫자가 아님: {value!r}")
    # NaN, Infinity, float 범위를 넘는 정수도 거부
    try:
        finite = math.isfinite(value)
    except OverflowError:
        finite = False
    if not finite:
        raise ProtocolError(f"'{key}' 필드가 유한한 숫자가 아님: {value!r:.40}")
    return value


def _decode(payload: Any) -> Mapping:
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError(f"UTF-8 디코딩 실패: {e}") from e
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            # JSONDecodeError 및 정수 자릿수 제한 초과
            raise ProtocolError(f"JSON 파싱 실패: {e}") from e
    if not isinstance(payload, Mapping):
        raise ProtocolError(f"객체가 아닌 페이로드: {type(payload).__name__}")
    return payload


def parse_inbound(payload: str | bytes | Mapping) -> InboundMessage:
    """수신 페이로드를 태그 변형 메시지로 변환"""
    data = _decode(payload)
    msg_type = data.get("type")
    if not isinstance(msg_type, str):
        raise ProtocolError(f"type 판별자 누락 또는 문자열 아님: {msg_type!r}")

    if msg_type == MetricsUpdate.type:
        return MetricsUpdate(
            connections=_number(data, "connections"),
            total_orders=_number(data, "totalOrders"),
            total_trades=_number(data, "totalTrades"),
            avg_latency=_number(data, "avgLatency"),
        )

    if msg_type == MarketDataUpdate.type:
        symbol = data.get("symbol")
        if not isinstance(symbol, str) or not symbol.strip():
            raise ProtocolError(f"market_data에 symbol 없음: {symbol!r}")
        return MarketDataUpdate(
            symbol=symbol.strip().upper(),
            bid=_number(data, "bid"),
            ask=_number(data, "ask"),
            last=_number(data, "last"),
            volume=_number(data, "volume"),
            timestamp=_number(data, "timestamp"),
        )

    if msg_type == ConnectionNotice.type:
        message = data.get("message")
        if not isinstance(message, str):
            raise ProtocolError("connection 메시지에 message 없음")
        status = data.get("status")
        return ConnectionNotice(message=message, status=status if isinstance(status, str) else None)

    return UnknownMessage(type=msg_type)


def to_payload(message: OutboundMessage) -> dict:
    return {"type": message.type, **asdict(message)}


def encode(message: OutboundMessage) -> str:
    """송신 메시지를 compact JSON 문자열로 변환"""
    return json.dumps(to_payload(message), separators=(",", ":"))
