import asyncio, logging, threading
from typing import Any, Awaitable, Callable, Dict, Tuple

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """
    Coalesces overlapping loads of the same view for the same tenant.

    Callers asking for a view while a load is already running join that load
    instead of starting another one. A write bumps the tenant's generation,
    and a load started before the bump is never shared with later callers.
    """

    def __init__(self):
        # invalidate is called from the threadpool that runs sync write routes
        self._generations_lock = threading.Lock()
        self._generations: Dict[str, int] = {}
        self._inflight: Dict[Tuple[str, str], Tuple[int, asyncio.Future]] = {}

    def generation(self, tenant_id: str) -> int:
        with self._generations_lock:
            return self._generations.get(tenant_id, 0)

    def invalidate(self, tenant_id: str):
        with self._generations_lock:
            self._generations[tenant_id] = self._generations.get(tenant_id, 0) + 1
        logger.debug(f"Invalidated views for tenant {tenant_id}")

    def inflight_count(self) -> int:
        return len(self._inflight)

    async def run(self, tenant_id: str, view: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        key = (tenant_id, view)
        generation = self.generation(tenant_id)

        entry = self._inflight.get(key)
        if entry is not None and entry[0] == generation and not entry[1].done():
            logger.debug(f"Joining in-flight load of {view} for tenant {tenant_id}")
            return await asyncio.shield(entry[1])

        task = asyncio.ensure_future(loader())
        self._inflight[key] = (generation, task)
        task.add_done_callback(lambda finished: self._forget(key, finished))

        # shield so one cancelled caller does not cancel the load for the others
        return await asyncio.shield(task)

    def _forget(self, key: Tuple[str, str], task: asyncio.Future):
        entry = self._inflight.get(key)
        if entry is not None and entry[1] is task:
            del self._inflight[key]

        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Load of {key[1]} for tenant {key[0]} failed: {task.exception()}")


refresh_coordinator = RefreshCoordinator()
