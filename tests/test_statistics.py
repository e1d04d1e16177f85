"""StatisticsEngine 테스트
Feature: market-data-client
Property 7: 변동성 = 모표준편차 / 평균 * 100 (20개 미만이면 0)
Property 8: 메시지율은 최근 1000ms 이내 항목 수
"""

import math

import pytest
from hypothesis import given, strategies as st, settings

from feed_client.models import SymbolRecord
from feed_client.statistics import MessageRateWindow, StatisticsEngine, format_duration


# ── Property 7: 변동성 ──

class TestVolatility:

    @given(prices=st.lists(st.floats(min_value=1, max_value=1e4), max_size=19))
    @settings(max_examples=50)
    def test_fewer_than_twenty_is_zero(self, prices):
        assert StatisticsEngine.volatility(prices) == 0.0

    def test_identical_prices_zero(self):
        assert StatisticsEngine.volatility([150.0] * 20) == 0.0

    def test_matches_manual_computation(self):
        prices = [100, 102, 98, 101, 99, 103, 97, 100, 104, 96,
                  100, 102, 98, 101, 99, 103, 97, 100, 104, 96]
        mean = sum(prices) / 20
        std = math.sqrt(sum((p - mean) ** 2 for p in prices) / 20)
        assert StatisticsEngine.volatility(prices) == pytest.approx(std / mean * 100)

    def test_uses_last_twenty_only(self):
        prices = [1000.0] * 30 + [100.0] * 20
        assert StatisticsEngine.volatility(prices) == 0.0

    def test_zero_mean_guarded(self):
        assert StatisticsEngine.volatility([0.0] * 20) == 0.0


# ── Property 8: 메시지율 ──

class TestMessageRate:

    def test_three_recent_of_sixty(self):
        now = 100_000.0
        window = MessageRateWindow()
        for i in range(57):
            window.record(now - 5000 - i)
        for offset in (0, 500, 1000):
            window.record(now - offset)
        assert len(window) == 60
        assert StatisticsEngine.message_rate(window, now) == 3

    def test_window_bounded(self):
        window = MessageRateWindow(size=60)
        for i in range(100):
            window.record(float(i))
        assert len(window) == 60
        assert window.rate(99.0) == 60

    def test_data_rate_estimate(self):
        assert StatisticsEngine().data_rate_kb(1024) == 100.0
        assert StatisticsEngine(bytes_per_message=50).data_rate_kb(2048) == 100.0


# ── 스프레드 ──

class TestSpread:

    def test_spread_and_percent(self):
        record = SymbolRecord(symbol="AAPL", bid=149.9, ask=150.1, last=150)
        spread, percent = StatisticsEngine.spread(record)
        assert spread == pytest.approx(0.2)
        assert percent == pytest.approx(0.2 / 150 * 100)

    def test_percent_zero_without_last(self):
        record = SymbolRecord(symbol="AAPL", bid=1, ask=2, last=0)
        assert StatisticsEngine.spread(record)[1] == 0.0

    def test_change_percent(self):
        record = SymbolRecord(symbol="AAPL", last=110, previous_last=100)
        assert StatisticsEngine.change_percent(record) == pytest.approx(10.0)
        assert StatisticsEngine.change_percent(SymbolRecord(symbol="X", last=5)) == 0.0

    def test_summary_reports_finite_day_low(self):
        stats = StatisticsEngine().summary(SymbolRecord(symbol="AAPL"))
        assert stats.day_low == 0.0
        assert stats.volatility == 0.0


class TestFormatDuration:

    def test_format(self):
        assert format_duration(0) == "00:00:00"
        assert format_duration(3725) == "01:02:05"
