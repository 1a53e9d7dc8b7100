from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from pydantic import ValidationError
from tenacity import AsyncRetrying, RetryCallState, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from .errors import NON_RETRYABLE_ERRORS
from .metrics import FETCH_RUNS_TOTAL
from .specs import CacheableSpec, now_ms

LOGGER = logging.getLogger('chainradar.exclusive')

S = TypeVar('S', bound=CacheableSpec)
T = TypeVar('T')


class CacheHandle(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...


class MutexRegistry:
    """Process-wide table of named locks, one per discovery stage.

    Locks are created lazily on first use and never torn down.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[name] = lock
            LOGGER.info('created mutex name=%s', name)
        return lock

    def __contains__(self, name: str) -> bool:
        return name in self._locks

    def __len__(self) -> int:
        return len(self._locks)


def _log_retry(stage: str, action: str, address: str) -> Callable[[RetryCallState], None]:
    def _before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome is not None else None
        LOGGER.warning(
            'attempt failed stage=%s action=%s addr=%s attempt=%s error=%s',
            stage,
            action,
            address,
            state.attempt_number,
            error
        )

    return _before_sleep


async def run_exclusive(
    mutexes: MutexRegistry,
    stage: str,
    action: str,
    address: str,
    callback: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    delay_seconds: float = 1.0
) -> T | None:
    """Run callback while holding the stage mutex, retrying failures.

    Returns None once every attempt has failed; the failure is logged and
    counted but never raised. Malformed on-chain data and invalid input are
    raised on the first attempt so the stage can report them.
    """
    lock = mutexes.get(stage)
    async with lock:
        started = time.monotonic()
        LOGGER.debug('%s start stage=%s addr=%s', action, stage, address)
        result: T | None = None
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(retries + 1),
                wait=wait_exponential(multiplier=delay_seconds * 1.5),
                retry=retry_if_not_exception_type(NON_RETRYABLE_ERRORS),
                before_sleep=_log_retry(stage, action, address),
                reraise=True
            ):
                with attempt:
                    result = await callback()
        except NON_RETRYABLE_ERRORS:
            FETCH_RUNS_TOTAL.labels(stage=stage, action=action, outcome='failed').inc()
            raise
        except Exception as exc:
            FETCH_RUNS_TOTAL.labels(stage=stage, action=action, outcome='failed').inc()
            LOGGER.warning(
                '%s failed stage=%s addr=%s attempts=%s elapsed=%.1fs error=%s',
                action,
                stage,
                address,
                retries + 1,
                time.monotonic() - started,
                exc
            )
            return None

        FETCH_RUNS_TOTAL.labels(stage=stage, action=action, outcome='ok').inc()
        LOGGER.debug('%s end stage=%s addr=%s elapsed=%.1fs', action, stage, address, time.monotonic() - started)
        return result


def is_fresh(spec: CacheableSpec | None, ttl_minutes: int, now: int | None = None) -> bool:
    if spec is None:
        return False
    current = now_ms() if now is None else now
    return (current - spec.fetch_date) / 1000 / 60 < ttl_minutes


async def load_spec(cache: CacheHandle, key: str, model: type[S]) -> S | None:
    payload = await cache.get(key)
    if not payload:
        return None
    try:
        return model.model_validate(payload)
    except ValidationError:
        LOGGER.warning('discarding malformed cached spec key=%s', key)
        return None


async def store_spec(cache: CacheHandle, key: str, spec: CacheableSpec) -> None:
    await cache.set(key, spec.model_dump(mode='json', by_alias=True))
