import asyncio, threading
from app.services.refresh_service import RefreshCoordinator


def test_concurrent_loads_are_coalesced():
    coordinator = RefreshCoordinator()
    calls = []

    async def loader():
        calls.append(1)
        await asyncio.sleep(0.01)
        return len(calls)

    async def scenario():
        return await asyncio.gather(*(coordinator.run("park-1", "conversations", loader) for _ in range(5)))

    results = asyncio.run(scenario())

    assert calls == [1]
    assert results == [1, 1, 1, 1, 1]
    assert coordinator.inflight_count() == 0


def test_different_tenants_and_views_load_separately():
    coordinator = RefreshCoordinator()
    calls = []

    async def loader():
        calls.append(1)
        await asyncio.sleep(0.01)
        return "ok"

    async def scenario():
        await asyncio.gather(
            coordinator.run("park-1", "conversations", loader),
            coordinator.run("park-2", "conversations", loader),
            coordinator.run("park-1", "dashboard", loader),
        )

    asyncio.run(scenario())
    assert len(calls) == 3


def test_invalidate_forces_a_fresh_load():
    coordinator = RefreshCoordinator()
    calls = []

    async def loader():
        calls.append(1)
        await asyncio.sleep(0.02)
        return len(calls)

    async def scenario():
        first = asyncio.ensure_future(coordinator.run("park-1", "conversations", loader))
        await asyncio.sleep(0)
        coordinator.invalidate("park-1")
        second = await coordinator.run("park-1", "conversations", loader)
        return await first, second

    first, second = asyncio.run(scenario())

    assert len(calls) == 2
    assert first == 2 or first == 1
    assert second == 2


def test_sequential_loads_are_not_cached():
    coordinator = RefreshCoordinator()
    calls = []

    async def loader():
        calls.append(1)
        return len(calls)

    async def scenario():
        a = await coordinator.run("park-1", "dashboard", loader)
        b = await coordinator.run("park-1", "dashboard", loader)
        return a, b

    assert asyncio.run(scenario()) == (1, 2)


def test_failed_load_propagates_to_every_caller():
    coordinator = RefreshCoordinator()

    async def loader():
        await asyncio.sleep(0.01)
        raise RuntimeError("store down")

    async def scenario():
        return await asyncio.gather(
            coordinator.run("park-1", "dashboard", loader),
            coordinator.run("park-1", "dashboard", loader),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())
    assert all(isinstance(r, RuntimeError) for r in results)
    assert coordinator.inflight_count() == 0


def test_invalidate_from_many_threads():
    coordinator = RefreshCoordinator()

    def invalidate_many():
        for _ in range(1000):
            coordinator.invalidate("park-1")

    threads = [threading.Thread(target=invalidate_many) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert coordinator.generation("park-1") == 8000
