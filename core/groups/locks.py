import asyncio
from typing import Dict


class GroupLocks:
    """
    One asyncio.Lock per group ID, so read-modify-write of a group's
    `members` array is serialized inside this process.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def for_group(self, group_id: str) -> asyncio.Lock:
        lock = self._locks.get(group_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[group_id] = lock
        return lock

    def discard(self, group_id: str) -> None:
        lock = self._locks.get(group_id)
        if lock is not None and not lock.locked():
            del self._locks[group_id]


group_locks = GroupLocks()
