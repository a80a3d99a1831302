from __future__ import annotations

import math
from typing import List

import pytest

from rxtx import (
    HISTORY_LENGTH,
    CounterRecord,
    RateEngine,
    ReceiveCounters,
    SpeedLimit,
    SpeedLimits,
    TransmitCounters,
    counter_delta,
    load_fraction,
    parse_speed_limit,
)


def snapshot(**interfaces: tuple) -> List[CounterRecord]:
    return [
        CounterRecord(name=name, receive=ReceiveCounters(bytes=rx), transmit=TransmitCounters(bytes=tx))
        for name, (rx, tx) in interfaces.items()
    ]


def test_first_observation_emits_nothing() -> None:
    engine = RateEngine()
    assert engine.observe(None, snapshot(eth0=(1000, 0)), 0.0) == {}
    assert engine.history("eth0", "rx") == []
    assert engine.current_rate("eth0", "rx") == 0.0


def test_rate_then_counter_regression() -> None:
    engine = RateEngine()
    first = snapshot(eth0=(1000, 0))
    second = snapshot(eth0=(1500, 0))
    third = snapshot(eth0=(1200, 0))
    engine.observe(None, first, 0.0)
    updates = engine.observe(first, second, 1.0)
    rx_point, tx_point = updates["eth0"]
    assert rx_point.rate == 500.0
    assert rx_point.timestamp == 1.0
    assert tx_point.rate == 0.0
    updates = engine.observe(second, third, 2.0)
    assert updates["eth0"][0].rate == 0.0
    assert [point.rate for point in engine.history("eth0", "rx")] == [500.0, 0.0]


def test_rate_divides_by_elapsed_time() -> None:
    engine = RateEngine()
    first = snapshot(eth0=(0, 1000))
    second = snapshot(eth0=(3000, 4000))
    engine.observe(None, first, 10.0)
    engine.observe(first, second, 12.0)
    assert engine.current_rate("eth0", "rx") == 1500.0
    assert engine.current_rate("eth0", "tx") == 1500.0


def test_new_interface_waits_for_second_sample() -> None:
    engine = RateEngine()
    first = snapshot(eth0=(0, 0))
    second = snapshot(eth0=(100, 100), wlan0=(50, 50))
    engine.observe(None, first, 0.0)
    updates = engine.observe(first, second, 1.0)
    assert set(updates) == {"eth0"}
    assert engine.current_rate("wlan0", "rx") == 0.0


def test_vanished_interface_keeps_history() -> None:
    engine = RateEngine()
    first = snapshot(eth0=(0, 0), usb0=(0, 0))
    second = snapshot(eth0=(10, 10), usb0=(20, 20))
    third = snapshot(eth0=(20, 20))
    engine.observe(None, first, 0.0)
    engine.observe(first, second, 1.0)
    engine.observe(second, third, 2.0)
    assert len(engine.history("usb0", "rx")) == 1
    assert engine.current_rate("usb0", "rx") == 20.0
    assert "usb0" in engine.interfaces()


def test_non_positive_elapsed_time_is_ignored() -> None:
    engine = RateEngine()
    first = snapshot(eth0=(0, 0))
    engine.observe(None, first, 5.0)
    assert engine.observe(first, snapshot(eth0=(10, 10)), 5.0) == {}
    assert engine.history("eth0", "rx") == []


def test_history_is_bounded_and_fifo() -> None:
    engine = RateEngine()
    previous = None
    for tick in range(HISTORY_LENGTH + 25):
        current = snapshot(eth0=(tick * 100, tick * 10))
        engine.observe(previous, current, float(tick))
        previous = current
    history = engine.history("eth0", "rx")
    assert len(history) == HISTORY_LENGTH
    timestamps = [point.timestamp for point in history]
    assert timestamps == sorted(timestamps)
    assert timestamps[-1] == float(HISTORY_LENGTH + 24)
    assert timestamps[0] == 25.0


def test_peak_tracks_maximum_and_never_drops() -> None:
    engine = RateEngine()
    rates = [10.0, 250.0, 30.0, 0.0, 249.0]
    peaks = []
    for rate in rates:
        peaks.append(engine.update_stats("eth0", "tx", rate).peak)
    assert peaks == sorted(peaks)
    assert engine.stats("eth0", "tx").peak == max(rates)
    assert engine.stats("eth0", "rx").peak == 0.0


def test_average_is_exponential() -> None:
    engine = RateEngine()
    engine.update_stats("eth0", "rx", 100.0)
    engine.update_stats("eth0", "rx", 100.0)
    expected = (0.0 * 0.95 + 100.0 * 0.05) * 0.95 + 100.0 * 0.05
    assert engine.stats("eth0", "rx").average == pytest.approx(expected)
    assert engine.stats("eth0", "rx").updates == 2


@pytest.mark.parametrize("rate", [-1.0, math.nan])
def test_update_stats_rejects_bad_rates(rate: float) -> None:
    with pytest.raises(ValueError):
        RateEngine().update_stats("eth0", "rx", rate)


def test_refresh_stats_uses_current_rates() -> None:
    engine = RateEngine()
    first = snapshot(eth0=(0, 0))
    second = snapshot(eth0=(2000, 1000))
    engine.observe(None, first, 0.0)
    engine.observe(first, second, 1.0)
    engine.refresh_stats(["eth0", "wlan0"])
    assert engine.stats("eth0", "rx").peak == 2000.0
    assert engine.stats("eth0", "tx").average == pytest.approx(50.0)
    assert engine.stats("wlan0", "rx").updates == 1
    assert engine.total_rate("rx") == 2000.0


def test_unknown_direction() -> None:
    with pytest.raises(ValueError):
        RateEngine().current_rate("eth0", "both")


def test_counter_delta_clamps() -> None:
    assert counter_delta(10, 15) == 5
    assert counter_delta(15, 10) == 0


def test_load_fraction() -> None:
    assert load_fraction(125_000.0, 1.0) == pytest.approx(1.0)
    assert load_fraction(62_500.0, 1.0) == pytest.approx(0.5)
    assert load_fraction(10**12, 1.0) == 1.0
    assert load_fraction(125_000_000.0, None) == pytest.approx(1.0)


def test_speed_limits_prefer_configured() -> None:
    limits = SpeedLimits(
        configured={"eth0": SpeedLimit(100.0, 10.0)},
        discovered={"eth0": SpeedLimit(1000.0, 1000.0), "wlan0": SpeedLimit(8.0, 8.0)},
    )
    assert limits.get("eth0") == SpeedLimit(100.0, 10.0)
    assert limits.load("eth0", "tx", 625_000.0) == pytest.approx(0.5)
    assert limits.load("wlan0", "rx", 500_000.0) == pytest.approx(0.5)
    assert limits.get("missing") is None
    assert limits.load("missing", "rx", 0.0) == 0.0


def test_parse_speed_limit() -> None:
    assert parse_speed_limit("eth0=100") == ("eth0", SpeedLimit(100.0, 100.0))
    assert parse_speed_limit("wlan0=300:50") == ("wlan0", SpeedLimit(300.0, 50.0))
    with pytest.raises(ValueError):
        parse_speed_limit("eth0")
    with pytest.raises(ValueError):
        parse_speed_limit("eth0=0")
