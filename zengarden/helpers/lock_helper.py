import asyncio
import time
from typing import Any, Dict, Optional


class LockHelper:
    """
    Manages all non-persistent, in-memory user locks for the cog.

    Two kinds of lock live here: informational pending-action locks (shown to the user by the
    is_not_locked check) and one asyncio.Lock per owner, which serializes every mutation of
    that owner's inventory, stores and garden onto a single logical thread of control.
    """

    def __init__(self):
        self._locks: Dict[str, Dict[str, Any]] = {}
        self._owner_locks: Dict[str, asyncio.Lock] = {}

    def get_user_lock(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Retrieves the lock object for a user if they are locked."""
        return self._locks.get(str(user_id))

    def add_lock(self, user_id: str, lock_type: str, message: str):
        """
        Applies a lock to a user, including a timestamp.
        Does nothing if the user is already locked.
        """
        if str(user_id) not in self._locks:
            self._locks[str(user_id)] = {
                "user_id": str(user_id),
                "type": lock_type,
                "message": message,
                "timestamp": time.time()
            }

    def remove_lock_for_user(self, user_id: str):
        """Removes a lock from a specific user."""
        self._locks.pop(str(user_id), None)

    def owner_lock(self, owner_id: str) -> asyncio.Lock:
        """The mutex for one owner's game state. Use as `async with lock_helper.owner_lock(uid):`."""
        lock = self._owner_locks.get(str(owner_id))
        if lock is None:
            lock = asyncio.Lock()
            self._owner_locks[str(owner_id)] = lock
        return lock

    def clear_all_locks(self):
        """Removes all active locks. To be used on cog unload."""
        self._locks.clear()
        self._owner_locks.clear()
