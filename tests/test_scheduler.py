import asyncio

from fraudit.lib.scheduler import AsyncioScheduler


async def test_call_later_runs_sync_and_async_callbacks():
    scheduler = AsyncioScheduler()
    fired = []

    async def async_callback():
        fired.append("async")

    scheduler.call_later(0, lambda: fired.append("sync"))
    scheduler.call_later(0.01, async_callback)

    await asyncio.sleep(0.05)
    await scheduler.aclose()

    assert fired == ["sync", "async"]
    assert scheduler.pending_tasks == 0


async def test_cancelled_call_never_fires():
    scheduler = AsyncioScheduler()
    fired = []

    call = scheduler.call_later(0.01, lambda: fired.append(True))
    call.cancel()
    call.cancel()

    await asyncio.sleep(0.05)
    assert call.cancelled
    assert fired == []


async def test_failing_callback_does_not_break_loop():
    scheduler = AsyncioScheduler()
    fired = []

    async def broken():
        raise RuntimeError("tick failed")

    scheduler.call_later(0, lambda: 1 / 0)
    scheduler.call_later(0, broken)
    scheduler.call_later(0.01, lambda: fired.append(True))

    await asyncio.sleep(0.05)
    await scheduler.aclose()
    assert fired == [True]
