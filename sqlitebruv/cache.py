import asyncio
from typing import Any, Awaitable, Callable


class HotCache:
    """Name-keyed results of read queries.

    Entries are tasks, so concurrent readers of a name share one query in
    flight. Entries are advisory: a miss only means the query runs again.
    """

    def __init__(self):
        self._entries: dict[str, asyncio.Task] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def fetch(self, name: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        task = self._entries.get(name)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._entries[name] = task
            task.add_done_callback(lambda t: self._evict_unsuccessful(name, t))
        # a cancelled reader must not cancel the query other readers share
        return await asyncio.shield(task)

    def _evict_unsuccessful(self, name: str, task: asyncio.Task):
        if self._entries.get(name) is not task:
            return
        if task.cancelled() or task.exception() is not None:
            del self._entries[name]

    def invalidate(self, name: str):
        self._entries.pop(name, None)

    def clear(self):
        self._entries.clear()
