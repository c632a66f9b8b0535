from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta

import pytest

from pysquadz.config import WatchOptions
from pysquadz.exceptions import SensorError, SensorErrorCode
from pysquadz.models import GeoPoint, LocationSample
from pysquadz.position import IteratorPositionSource, ManualPositionSource, PositionFix

ME = "member-a"


class _Collector:
    def __init__(self) -> None:
        self.samples: list[LocationSample] = []
        self.errors: list[SensorError] = []

    def on_sample(self, sample: LocationSample) -> None:
        self.samples.append(sample)

    def on_error(self, error: SensorError) -> None:
        self.errors.append(error)


async def _wait_until(predicate, timeout: float = 1.0) -> None:  # type: ignore[no-untyped-def]
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


# ------------------------------------------------------------------
# ManualPositionSource
# ------------------------------------------------------------------


def test_manual_source_delivers_samples_for_local_member() -> None:
    source = ManualPositionSource(ME)
    collector = _Collector()
    source.start_watching(collector.on_sample, collector.on_error)

    source.feed(GeoPoint(latitude=1, longitude=2, accuracy=5))

    assert len(collector.samples) == 1
    sample = collector.samples[0]
    assert sample.member_id == ME
    assert sample.location.accuracy == 5


def test_manual_source_stop_is_exactly_once() -> None:
    source = ManualPositionSource(ME)
    collector = _Collector()
    handle = source.start_watching(collector.on_sample, collector.on_error)

    source.stop_watching(handle)
    source.stop_watching(handle)
    source.feed(GeoPoint(latitude=1, longitude=2))
    source.fail(SensorError("gone"))

    assert handle.released
    assert source.acquisitions == 1
    assert source.releases == 1
    assert collector.samples == []
    assert collector.errors == []


def test_manual_source_drops_fixes_older_than_max_age() -> None:
    now = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)
    source = ManualPositionSource(ME, WatchOptions(max_sample_age_ms=5000), clock=lambda: now)
    collector = _Collector()
    source.start_watching(collector.on_sample, collector.on_error)

    source.feed(GeoPoint(latitude=1, longitude=1), captured_at=now - timedelta(seconds=6))
    source.feed(GeoPoint(latitude=2, longitude=2), captured_at=now - timedelta(seconds=5))

    assert [s.location.as_tuple() for s in collector.samples] == [(2, 2)]
    assert collector.samples[0].captured_at == now - timedelta(seconds=5)


def test_manual_source_survives_failing_consumer() -> None:
    source = ManualPositionSource(ME)
    calls: list[LocationSample] = []

    def broken(sample: LocationSample) -> None:
        calls.append(sample)
        raise RuntimeError("consumer bug")

    source.start_watching(broken, lambda _error: None)
    source.feed(GeoPoint(latitude=1, longitude=1))
    source.feed(GeoPoint(latitude=2, longitude=2))

    assert len(calls) == 2


# ------------------------------------------------------------------
# IteratorPositionSource
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_iterator_source_streams_fixes_until_stopped() -> None:
    async def stream(_options: WatchOptions) -> AsyncIterator[PositionFix]:
        lat = 0.0
        while True:
            lat += 1.0
            yield PositionFix(location=GeoPoint(latitude=lat, longitude=0.0))
            await asyncio.sleep(0.01)

    source = IteratorPositionSource(ME, stream)
    collector = _Collector()
    handle = source.start_watching(collector.on_sample, collector.on_error)

    await _wait_until(lambda: len(collector.samples) >= 3)
    source.stop_watching(handle)
    seen = len(collector.samples)
    await asyncio.sleep(0.05)

    assert len(collector.samples) == seen
    assert [s.location.latitude for s in collector.samples[:3]] == [1.0, 2.0, 3.0]
    assert source.releases == 1
    assert collector.errors == []


@pytest.mark.asyncio
async def test_iterator_source_reports_timeout_and_keeps_waiting() -> None:
    async def slow_stream(_options: WatchOptions) -> AsyncIterator[PositionFix]:
        await asyncio.sleep(0.08)
        yield PositionFix(location=GeoPoint(latitude=1.0, longitude=1.0))
        await asyncio.Event().wait()

    source = IteratorPositionSource(ME, slow_stream, WatchOptions(timeout_ms=30))
    collector = _Collector()
    handle = source.start_watching(collector.on_sample, collector.on_error)

    await _wait_until(lambda: len(collector.samples) == 1)
    source.stop_watching(handle)

    assert collector.errors
    assert all(error.code is SensorErrorCode.TIMEOUT for error in collector.errors)


@pytest.mark.asyncio
async def test_iterator_source_forwards_stream_errors() -> None:
    async def flaky_stream(_options: WatchOptions) -> AsyncIterator[PositionFix | SensorError]:
        yield SensorError("no satellites", code=SensorErrorCode.POSITION_UNAVAILABLE)
        yield PositionFix(location=GeoPoint(latitude=1.0, longitude=1.0))
        await asyncio.Event().wait()

    source = IteratorPositionSource(ME, flaky_stream)
    collector = _Collector()
    handle = source.start_watching(collector.on_sample, collector.on_error)

    await _wait_until(lambda: len(collector.samples) == 1)
    source.stop_watching(handle)

    assert [str(error) for error in collector.errors] == ["no satellites"]


@pytest.mark.asyncio
async def test_iterator_source_reports_end_of_stream() -> None:
    async def short_stream(_options: WatchOptions) -> AsyncIterator[PositionFix]:
        yield PositionFix(location=GeoPoint(latitude=1.0, longitude=1.0))

    source = IteratorPositionSource(ME, short_stream)
    collector = _Collector()
    handle = source.start_watching(collector.on_sample, collector.on_error)

    await _wait_until(lambda: len(collector.errors) == 1)

    assert len(collector.samples) == 1
    assert collector.errors[0].code is SensorErrorCode.POSITION_UNAVAILABLE
    # The sensor lock is still held until the consumer stops the watch.
    assert source.active_watches == 1
    source.stop_watching(handle)
    assert source.active_watches == 0


@pytest.mark.asyncio
async def test_iterator_source_reports_crashing_stream() -> None:
    async def broken_stream(_options: WatchOptions) -> AsyncIterator[PositionFix]:
        raise OSError("serial port vanished")
        yield  # pragma: no cover

    source = IteratorPositionSource(ME, broken_stream)
    collector = _Collector()
    handle = source.start_watching(collector.on_sample, collector.on_error)

    await _wait_until(lambda: len(collector.errors) == 1)
    source.stop_watching(handle)

    assert "serial port vanished" in str(collector.errors[0])


@pytest.mark.asyncio
async def test_iterator_source_receives_watch_options() -> None:
    received: list[WatchOptions] = []
    options = WatchOptions(high_accuracy=False, timeout_ms=1000, max_sample_age_ms=0)

    async def stream(opts: WatchOptions) -> AsyncIterator[PositionFix]:
        received.append(opts)
        await asyncio.Event().wait()
        yield PositionFix(location=GeoPoint(latitude=0.0, longitude=0.0))  # pragma: no cover

    source = IteratorPositionSource(ME, stream, options)
    handle = source.start_watching(lambda _s: None, lambda _e: None)
    await _wait_until(lambda: len(received) == 1)
    source.stop_watching(handle)

    assert received == [options]
