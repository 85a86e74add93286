"""Historical sync tests: backfill-once, synthetic updates, batch pacing"""

import random

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from conftest import DAY_MS, FakeMarketDataClient
from marketsync.ingestion.errors import ProviderError, RateLimitError
from marketsync.models.history import Timeframe
from marketsync.models.runs import SyncRun
from marketsync.services.history_sync import UPDATE_VARIATION, HistoricalSyncer, samples_to_points
from marketsync.services.store import MarketDataStore

NOW = 1_700_000_000_000

ALL_SPANS = [tf.span_ms for tf in Timeframe]


def _series(code, span):
    """Three evenly spaced samples across the requested window."""
    step = span // 2
    return [{"date": NOW - span + i * step, "rate": 100.0 + i, "volume": 10.0, "cap": 1000.0} for i in range(3)]


def _syncer(client, session_factory, sleep, **kwargs):
    kwargs.setdefault("clock", lambda: NOW)
    return HistoricalSyncer(client, session_factory, sleep=sleep, **kwargs)


def _seed(session_factory, snapshot_row, *codes, rate=100.0):
    with session_factory() as db:
        store = MarketDataStore(db)
        for rank, code in enumerate(codes):
            store.upsert_snapshot(snapshot_row(code, rate=rate, cap=float(1000 - rank)))


def _points(session_factory, code, timeframe):
    with session_factory() as db:
        return MarketDataStore(db).query_history(code, timeframe)


class TestSampleMapping:
    def test_maps_samples_and_drops_malformed(self):
        points = samples_to_points(
            "BTC",
            Timeframe.ONE_DAY,
            [
                {"date": 1, "rate": 10.0, "volume": 5.0, "cap": 50.0},
                {"date": 2},
                {"rate": 3.0},
                {"date": 3, "rate": 11.0},
            ],
        )
        assert [p["timestamp"] for p in points] == [1, 3]
        assert points[0]["timeframe"] == "1D"
        assert points[0]["market_cap"] == 50.0
        assert points[1]["volume"] is None
        assert all(p["synthetic"] is False for p in points)


class TestBackfill:
    """One-time population of each (code, timeframe) series"""

    @pytest.mark.asyncio
    async def test_backfills_every_empty_timeframe(self, session_factory, no_sleep):
        client = FakeMarketDataClient(history=_series)
        syncer = _syncer(client, session_factory, no_sleep)

        inserted = await syncer.backfill("BTC")

        assert inserted == 12
        assert client.spans_for("BTC") == ALL_SPANS
        for timeframe in Timeframe:
            points = _points(session_factory, "BTC", timeframe.value)
            assert len(points) == 3
            assert points[0].timestamp == NOW - timeframe.span_ms

    @pytest.mark.asyncio
    async def test_thirty_day_window(self, session_factory, no_sleep):
        client = FakeMarketDataClient()
        await _syncer(client, session_factory, no_sleep).backfill("ETH")
        assert 30 * DAY_MS in client.spans_for("ETH")

    @pytest.mark.asyncio
    async def test_skips_timeframe_that_already_has_points(self, session_factory, no_sleep):
        with session_factory() as db:
            MarketDataStore(db).insert_history_points(
                [{"token_code": "ETH", "timestamp": NOW, "timeframe": "1D", "price": 3000.0}]
            )
        client = FakeMarketDataClient(history=_series)

        await _syncer(client, session_factory, no_sleep).backfill("ETH")

        assert Timeframe.ONE_DAY.span_ms not in client.spans_for("ETH")
        assert sorted(client.spans_for("ETH")) == sorted(
            [Timeframe.ONE_HOUR.span_ms, Timeframe.SEVEN_DAYS.span_ms, Timeframe.THIRTY_DAYS.span_ms]
        )
        # The pre-existing series is left alone
        assert len(_points(session_factory, "ETH", "1D")) == 1

    @pytest.mark.asyncio
    async def test_second_backfill_only_retries_empty_timeframes(self, session_factory, no_sleep):
        def only_daily(code, span):
            return _series(code, span) if span == Timeframe.ONE_DAY.span_ms else []

        client = FakeMarketDataClient(history=only_daily)
        syncer = _syncer(client, session_factory, no_sleep)

        await syncer.backfill("SOL")
        first_calls = list(client.spans_for("SOL"))
        await syncer.backfill("SOL")
        second_calls = client.spans_for("SOL")[len(first_calls):]

        assert first_calls == ALL_SPANS
        assert Timeframe.ONE_DAY.span_ms not in second_calls
        assert len(second_calls) == 3
        assert len(_points(session_factory, "SOL", "1D")) == 3

    @pytest.mark.asyncio
    async def test_provider_error_is_contained_per_timeframe(self, session_factory, no_sleep):
        calls = []

        def fail_hourly(code, span):
            calls.append(span)
            if span == Timeframe.ONE_HOUR.span_ms:
                raise RateLimitError()
            return _series(code, span)

        client = FakeMarketDataClient(history=fail_hourly)
        inserted = await _syncer(client, session_factory, no_sleep).backfill("BTC")

        assert inserted == 9
        assert calls == ALL_SPANS
        assert _points(session_factory, "BTC", "1H") == []

    @pytest.mark.asyncio
    async def test_store_error_is_contained_per_timeframe(self, session_factory, no_sleep, monkeypatch):
        original = MarketDataStore.insert_history_points

        def flaky(self, points):
            if points and points[0]["timeframe"] == "7D":
                raise OperationalError("INSERT", {}, Exception("disk full"))
            return original(self, points)

        monkeypatch.setattr(MarketDataStore, "insert_history_points", flaky)
        client = FakeMarketDataClient(history=_series)

        inserted = await _syncer(client, session_factory, no_sleep).backfill("BTC")

        assert inserted == 9
        assert _points(session_factory, "BTC", "7D") == []
        assert len(_points(session_factory, "BTC", "30D")) == 3

    @pytest.mark.asyncio
    async def test_pauses_between_provider_calls(self, session_factory, no_sleep):
        client = FakeMarketDataClient(history=_series)
        await _syncer(client, session_factory, no_sleep, timeframe_delay_seconds=1.0).backfill("BTC")

        # Four calls, a pause before each one except the first
        assert no_sleep.pauses == [1.0, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_no_pause_when_nothing_to_fetch(self, session_factory, no_sleep):
        client = FakeMarketDataClient(history=_series)
        syncer = _syncer(client, session_factory, no_sleep)
        await syncer.backfill("BTC")
        no_sleep.pauses.clear()

        assert await syncer.backfill("BTC") == 0
        assert no_sleep.pauses == []
        assert len(client.history_calls) == 4


class TestSyncAll:
    """Batch backfill over the tracked universe"""

    @pytest.mark.asyncio
    async def test_one_failing_code_does_not_stop_the_batch(self, session_factory, snapshot_row, no_sleep, monkeypatch):
        codes = ["AAA", "BBB", "CCC", "DDD", "EEE"]
        _seed(session_factory, snapshot_row, *codes)
        client = FakeMarketDataClient(history=_series)
        syncer = _syncer(client, session_factory, no_sleep)

        original = syncer.backfill

        async def backfill(code):
            if code == "CCC":
                raise RuntimeError("unexpected payload")
            return await original(code)

        monkeypatch.setattr(syncer, "backfill", backfill)

        result = await syncer.sync_all()

        assert result["codes"] == 5
        assert result["succeeded"] == 4
        assert result["failed"] == 1
        for code in ["AAA", "BBB", "DDD", "EEE"]:
            assert len(_points(session_factory, code, "1D")) == 3
        assert _points(session_factory, "CCC", "1D") == []

    @pytest.mark.asyncio
    async def test_provider_errors_for_one_code_are_contained(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, "AAA", "BBB")
        client = FakeMarketDataClient(history=_series, history_errors={"AAA": ProviderError("boom")})

        result = await _syncer(client, session_factory, no_sleep).sync_all()

        assert result["succeeded"] == 2
        assert _points(session_factory, "AAA", "1H") == []
        assert len(_points(session_factory, "BBB", "1H")) == 3

    @pytest.mark.asyncio
    async def test_universe_is_ordered_by_cap(self, session_factory, snapshot_row, no_sleep):
        with session_factory() as db:
            store = MarketDataStore(db)
            store.upsert_snapshot(snapshot_row("SMALL", cap=1.0))
            store.upsert_snapshot(snapshot_row("BIG", cap=100.0))
            store.upsert_snapshot(snapshot_row("NOCAP", cap=None))
        client = FakeMarketDataClient()

        await _syncer(client, session_factory, no_sleep, timeframe_delay_seconds=0).sync_all()

        seen = []
        for code, _ in client.history_calls:
            if code not in seen:
                seen.append(code)
        assert seen == ["BIG", "SMALL"]

    @pytest.mark.asyncio
    async def test_pauses_every_backfill_batch(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, *[f"C{i:02d}" for i in range(25)])
        client = FakeMarketDataClient()

        await _syncer(client, session_factory, no_sleep, timeframe_delay_seconds=0).sync_all()

        assert no_sleep.pauses == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_no_trailing_pause_after_last_batch(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, *[f"C{i:02d}" for i in range(10)])
        client = FakeMarketDataClient()

        await _syncer(client, session_factory, no_sleep, timeframe_delay_seconds=0).sync_all()

        assert no_sleep.pauses == []

    @pytest.mark.asyncio
    async def test_records_backfill_run(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, "BTC")
        client = FakeMarketDataClient(history=_series)

        await _syncer(client, session_factory, no_sleep).sync_all()

        with session_factory() as db:
            run = db.execute(select(SyncRun).where(SyncRun.job_name == "backfill")).scalar_one()
        assert run.status == "success"
        assert run.records_processed == 12
        assert run.meta == {"codes": 1, "succeeded": 1}


def _backfilled(session_factory, code, timeframes=tuple(Timeframe)):
    """One provider point per timeframe, an hour before NOW."""
    with session_factory() as db:
        MarketDataStore(db).insert_history_points(
            [
                {"token_code": code, "timestamp": NOW - 3_600_000, "timeframe": tf.value, "price": 100.0}
                for tf in timeframes
            ]
        )


class TestUpdate:
    """Approximate per-timeframe points derived from the snapshot rate"""

    @pytest.mark.asyncio
    async def test_appends_one_synthetic_point_per_timeframe(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, "BTC", rate=65000.0)
        _backfilled(session_factory, "BTC")
        syncer = _syncer(FakeMarketDataClient(), session_factory, no_sleep, rng=random.Random(7))

        assert await syncer.update("BTC") == 4

        for timeframe in Timeframe:
            (point,) = [p for p in _points(session_factory, "BTC", timeframe.value) if p.synthetic]
            assert point.timestamp == NOW
            half_width = UPDATE_VARIATION[timeframe] / 2
            assert 65000.0 * (1 - half_width) <= point.price <= 65000.0 * (1 + half_width)

    @pytest.mark.asyncio
    async def test_leaves_unbackfilled_timeframes_alone(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, "BTC")
        _backfilled(session_factory, "BTC", timeframes=(Timeframe.ONE_DAY,))
        syncer = _syncer(FakeMarketDataClient(), session_factory, no_sleep)

        assert await syncer.update("BTC") == 1
        assert _points(session_factory, "BTC", "1H") == []
        assert len(_points(session_factory, "BTC", "1D")) == 2

    @pytest.mark.asyncio
    async def test_never_backfilled_code_gets_no_synthetic_points(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, "NEW")
        syncer = _syncer(FakeMarketDataClient(), session_factory, no_sleep)

        assert await syncer.update("NEW") == 0
        for timeframe in Timeframe:
            assert _points(session_factory, "NEW", timeframe.value) == []

    @pytest.mark.asyncio
    async def test_does_not_call_provider(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, "BTC")
        _backfilled(session_factory, "BTC")
        client = FakeMarketDataClient()

        await _syncer(client, session_factory, no_sleep).update("BTC")

        assert client.history_calls == []
        assert client.top_calls == []

    @pytest.mark.asyncio
    async def test_skips_code_without_snapshot(self, session_factory, no_sleep):
        syncer = _syncer(FakeMarketDataClient(), session_factory, no_sleep)
        assert await syncer.update("NOPE") == 0
        assert _points(session_factory, "NOPE", "1H") == []

    @pytest.mark.asyncio
    async def test_same_timestamp_twice_is_ignored(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, "BTC")
        _backfilled(session_factory, "BTC")
        syncer = _syncer(FakeMarketDataClient(), session_factory, no_sleep)

        await syncer.update("BTC")
        assert await syncer.update("BTC") == 0

    @pytest.mark.asyncio
    async def test_update_all_pauses_every_twenty_codes(self, session_factory, snapshot_row, no_sleep):
        codes = [f"C{i:02d}" for i in range(41)]
        _seed(session_factory, snapshot_row, *codes)
        for code in codes:
            _backfilled(session_factory, code)
        syncer = _syncer(FakeMarketDataClient(), session_factory, no_sleep)

        result = await syncer.update_all()

        assert result["codes"] == 41
        assert result["records_processed"] == 41 * 4
        assert no_sleep.pauses == [2.0, 2.0]


class TestUpdateThenBackfill:
    """Synthetic points never stand in for provider history"""

    @pytest.mark.asyncio
    async def test_update_before_backfill_still_fetches_every_timeframe(self, session_factory, snapshot_row, no_sleep):
        with session_factory() as db:
            MarketDataStore(db).upsert_snapshot(snapshot_row("NEW", rate=10.0, cap=1e9))
        client = FakeMarketDataClient(history=_series)
        syncer = _syncer(client, session_factory, no_sleep)

        await syncer.update_all()
        await syncer.sync_all()

        assert client.spans_for("NEW") == ALL_SPANS
        for timeframe in Timeframe:
            points = _points(session_factory, "NEW", timeframe.value)
            assert len(points) == 3
            assert not any(p.synthetic for p in points)

    @pytest.mark.asyncio
    async def test_synthetic_points_do_not_block_backfill(self, session_factory, no_sleep):
        with session_factory() as db:
            MarketDataStore(db).insert_history_points(
                [{"token_code": "ETH", "timestamp": NOW - 5, "timeframe": "30D", "price": 1.0, "synthetic": True}]
            )
        client = FakeMarketDataClient(history=_series)

        await _syncer(client, session_factory, no_sleep).backfill("ETH")

        assert Timeframe.THIRTY_DAYS.span_ms in client.spans_for("ETH")
        assert len([p for p in _points(session_factory, "ETH", "30D") if not p.synthetic]) == 3

    @pytest.mark.asyncio
    async def test_failed_timeframe_is_retried_after_updates(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, "BTC")
        calls = {"n": 0}

        def hourly_fails_once(code, span):
            if span == Timeframe.ONE_HOUR.span_ms and calls["n"] == 0:
                calls["n"] += 1
                raise ProviderError("timeout")
            return _series(code, span)

        client = FakeMarketDataClient(history=hourly_fails_once)
        syncer = _syncer(client, session_factory, no_sleep)

        await syncer.sync_all()
        await syncer.update_all()
        assert _points(session_factory, "BTC", "1H") == []

        await syncer.sync_all()
        assert client.spans_for("BTC").count(Timeframe.ONE_HOUR.span_ms) == 2
        assert len(_points(session_factory, "BTC", "1H")) == 3

    @pytest.mark.asyncio
    async def test_run_pass_backfills_then_updates(self, session_factory, snapshot_row, no_sleep):
        _seed(session_factory, snapshot_row, "BTC")
        client = FakeMarketDataClient(history=lambda code, span: [{"date": NOW - span, "rate": 1.0}])

        result = await _syncer(client, session_factory, no_sleep).run_pass()

        assert result["success"] is True
        assert result["backfill"]["records_processed"] == 4
        assert result["update"]["records_processed"] == 4


class TestLedgerUnavailable:
    @pytest.mark.asyncio
    async def test_batch_returns_failure_when_run_cannot_be_recorded(self, session_factory, snapshot_row, no_sleep, monkeypatch):
        _seed(session_factory, snapshot_row, "BTC")

        def refuse(self, job_name):
            raise OperationalError("INSERT", {}, Exception("could not connect to server"))

        monkeypatch.setattr(MarketDataStore, "begin_run", refuse)
        client = FakeMarketDataClient(history=_series)

        result = await _syncer(client, session_factory, no_sleep).sync_all()

        assert result["success"] is False
        assert "could not connect" in result["error"]
        assert client.history_calls == []
