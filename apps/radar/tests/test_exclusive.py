import asyncio
import time
import unittest
from unittest.mock import AsyncMock

from apps.radar.catalog import InMemoryCatalog, MemoryCache
from apps.radar.config import Settings
from apps.radar.errors import PolicyError, UpstreamError
from apps.radar.exclusive import MutexRegistry, is_fresh, load_spec, run_exclusive, store_spec
from apps.radar.specs import SourceSpec, StateSpec, now_ms
from apps.radar.stages.base import Stage, StageContext

MINUTE_MS = 60 * 1000


def _settings() -> Settings:
    return Settings(
        app_name='chainradar-test',
        cache_ttl_minutes=120,
        request_delay_seconds=0.0,
        exclusive_retries=3,
        http_timeout_seconds=1.0
    )


class RunExclusiveTests(unittest.IsolatedAsyncioTestCase):
    async def test_same_stage_never_overlaps(self) -> None:
        mutexes = MutexRegistry()
        windows: list[tuple[float, float]] = []

        def fetch(delay: float):
            async def _call() -> str:
                started = time.monotonic()
                await asyncio.sleep(delay)
                windows.append((started, time.monotonic()))
                return 'ok'

            return _call

        results = await asyncio.gather(
            run_exclusive(mutexes, 'contract', 'deployment-source-fetch', 'a.near', fetch(0.03), delay_seconds=0),
            run_exclusive(mutexes, 'contract', 'deployment-state-fetch', 'b.near', fetch(0.01), delay_seconds=0),
            run_exclusive(mutexes, 'contract', 'deployment-source-fetch', 'c.near', fetch(0.02), delay_seconds=0)
        )

        self.assertEqual(results, ['ok', 'ok', 'ok'])
        windows.sort()
        for (_, previous_end), (next_start, _) in zip(windows, windows[1:]):
            self.assertLessEqual(previous_end, next_start)
        self.assertEqual(len(mutexes), 1)

    async def test_different_stages_run_concurrently(self) -> None:
        mutexes = MutexRegistry()
        running = 0
        peak = 0

        async def fetch() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await asyncio.gather(
            run_exclusive(mutexes, 'contract', 'deployment-source-fetch', 'a.near', fetch, delay_seconds=0),
            run_exclusive(mutexes, 'multisig', 'multisig-owners-fetch', 'b.near', fetch, delay_seconds=0)
        )

        self.assertEqual(peak, 2)
        self.assertIn('contract', mutexes)
        self.assertIn('multisig', mutexes)

    async def test_retries_then_succeeds(self) -> None:
        callback = AsyncMock(side_effect=[UpstreamError('rate limited'), UpstreamError('rate limited'), 'done'])

        result = await run_exclusive(MutexRegistry(), 'signer', 'signer-info-fetch', '0x1', callback, delay_seconds=0)

        self.assertEqual(result, 'done')
        self.assertEqual(callback.await_count, 3)

    async def test_exhausted_retries_return_none(self) -> None:
        callback = AsyncMock(side_effect=UpstreamError('down'))

        with self.assertLogs('chainradar.exclusive', level='WARNING') as logs:
            result = await run_exclusive(
                MutexRegistry(), 'signer', 'signer-info-fetch', '0x1', callback, retries=3, delay_seconds=0
            )

        self.assertIsNone(result)
        self.assertEqual(callback.await_count, 4)
        self.assertTrue(any('signer-info-fetch failed' in line for line in logs.output))

    async def test_policy_errors_are_not_retried(self) -> None:
        callback = AsyncMock(side_effect=PolicyError('council role has different vote policies'))

        with self.assertRaises(PolicyError):
            await run_exclusive(MutexRegistry(), 'multisig', 'multisig-info-fetch', 'dao.near', callback, delay_seconds=0)
        self.assertEqual(callback.await_count, 1)


class FreshnessTests(unittest.TestCase):
    def test_ttl_boundaries(self) -> None:
        now = now_ms()
        stale = SourceSpec(fetch_date=now - 121 * MINUTE_MS)
        fresh = SourceSpec(fetch_date=now - 1 * MINUTE_MS)

        self.assertFalse(is_fresh(stale, 120, now))
        self.assertTrue(is_fresh(fresh, 120, now))
        self.assertFalse(is_fresh(None, 120, now))


class _CountingStage(Stage):
    name = 'counting'


class RefreshTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.stage = _CountingStage(StageContext(store=InMemoryCatalog(), settings=_settings()))
        self.cache = MemoryCache()

    async def test_fresh_spec_skips_network(self) -> None:
        await store_spec(self.cache, 'deployment-state-fetch', StateSpec(fetch_date=now_ms() - MINUTE_MS, methods={'a': '1'}))
        fetch = AsyncMock(return_value=StateSpec(methods={'a': '2'}))

        spec = await self.stage.refresh(self.cache, 'deployment-state-fetch', StateSpec, 'a.near', fetch)

        fetch.assert_not_awaited()
        self.assertEqual(spec.methods, {'a': '1'})

    async def test_stale_spec_is_refetched_and_stored(self) -> None:
        await store_spec(
            self.cache, 'deployment-state-fetch', StateSpec(fetch_date=now_ms() - 121 * MINUTE_MS, methods={'a': '1'})
        )
        fetch = AsyncMock(return_value=StateSpec(methods={'a': '2'}))

        spec = await self.stage.refresh(self.cache, 'deployment-state-fetch', StateSpec, 'a.near', fetch)

        fetch.assert_awaited_once()
        self.assertEqual(spec.methods, {'a': '2'})
        cached = await load_spec(self.cache, 'deployment-state-fetch', StateSpec)
        self.assertEqual(cached.methods, {'a': '2'})

    async def test_failed_fetch_keeps_stale_spec(self) -> None:
        stale = StateSpec(fetch_date=now_ms() - 121 * MINUTE_MS, methods={'a': '1'})
        await store_spec(self.cache, 'deployment-state-fetch', stale)
        fetch = AsyncMock(side_effect=UpstreamError('down'))

        spec = await self.stage.refresh(self.cache, 'deployment-state-fetch', StateSpec, 'a.near', fetch)

        self.assertEqual(spec, stale)
        self.assertEqual(fetch.await_count, 4)

    async def test_cached_payload_uses_camel_case(self) -> None:
        await store_spec(self.cache, 'deployment-source-fetch', SourceSpec(contract_name='Bridge', start_block=7))

        payload = await self.cache.get('deployment-source-fetch')

        self.assertEqual(payload['contractName'], 'Bridge')
        self.assertEqual(payload['startBlock'], 7)
        self.assertIn('fetchDate', payload)

    async def test_malformed_cache_entry_is_ignored(self) -> None:
        await self.cache.set('deployment-source-fetch', {'fetchDate': 'yesterday'})

        self.assertIsNone(await load_spec(self.cache, 'deployment-source-fetch', SourceSpec))


if __name__ == '__main__':
    unittest.main()
