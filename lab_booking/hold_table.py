# hold_table.py
import asyncio
import contextlib
import heapq
import itertools
import logging
import weakref
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

from lab_booking.data_models import Hold, HoldKey

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HoldTable:
    """In-process registry of active holds, grouped by HoldKey.

    The table never awaits while mutating, so single operations are atomic on
    the event loop. Callers that check and then mutate (capacity check then
    insert, hold lookup then ledger write then remove) must do so inside
    ``lock(key)``; the expiry reaper takes the same lock before removing.

    Holds whose expiry time has passed are invisible to every lookup at once,
    and are physically dropped by a single reaper task that drains a
    heap-ordered expiry queue.
    """

    def __init__(self, duration: timedelta, clock: Callable[[], datetime] = utcnow):
        self.duration = duration
        self.clock = clock
        self._groups: Dict[HoldKey, Dict[str, Hold]] = {}
        self._user_keys: Dict[str, Set[HoldKey]] = {}
        # Locks live as long as someone is using or waiting on them
        self._key_locks = weakref.WeakValueDictionary()
        self._user_locks = weakref.WeakValueDictionary()
        self._expiry_queue: List[Tuple[datetime, int, Hold]] = []
        self._sequence = itertools.count()
        self._wakeup: Optional[asyncio.Event] = None
        self._reaper: Optional[asyncio.Task] = None

    # Locking

    def lock(self, key: HoldKey) -> asyncio.Lock:
        lock = self._key_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._key_locks[key] = lock
        return lock

    def user_lock(self, user_id: str) -> asyncio.Lock:
        """Serializes one user's block attempts so the per-user ceiling holds across keys."""
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    # Queries

    def find_by_user(self, key: HoldKey, user_id: str) -> Optional[Hold]:
        hold = self._groups.get(key, {}).get(user_id)
        if hold is None or hold.is_expired(self.clock()):
            return None
        return hold

    def total_qty(self, key: HoldKey) -> int:
        now = self.clock()
        return sum(
            hold.resource_qty
            for hold in self._groups.get(key, {}).values()
            if not hold.is_expired(now)
        )

    def count_for_user(self, user_id: str) -> int:
        return len(self.holds_for_user(user_id))

    def holds_for_user(self, user_id: str) -> List[Hold]:
        now = self.clock()
        holds = []
        for key in self._user_keys.get(user_id, ()):
            hold = self._groups[key][user_id]
            if not hold.is_expired(now):
                holds.append(hold)
        return sorted(holds, key=lambda hold: hold.start_time)

    def __len__(self):
        return sum(len(group) for group in self._groups.values())

    # Mutation

    def insert(self, hold: Hold):
        """Add a hold and schedule its expiry. Preconditions are the caller's job."""
        group = self._groups.setdefault(hold.key, {})
        existing = group.get(hold.user_id)
        if existing is not None and not existing.is_expired(self.clock()):
            raise ValueError(f"user {hold.user_id} already holds {hold.key}")

        group[hold.user_id] = hold
        self._user_keys.setdefault(hold.user_id, set()).add(hold.key)
        heapq.heappush(self._expiry_queue, (hold.expiry_time, next(self._sequence), hold))
        if self._wakeup is not None:
            self._wakeup.set()

    def remove(self, key: HoldKey, user_id: str) -> Optional[Hold]:
        """Drop the user's hold on ``key``. Removing a missing hold is a no-op."""
        group = self._groups.get(key)
        if group is None:
            return None
        hold = group.pop(user_id, None)
        if not group:
            del self._groups[key]

        user_keys = self._user_keys.get(user_id)
        if user_keys is not None:
            user_keys.discard(key)
            if not user_keys:
                del self._user_keys[user_id]
        return hold

    def _discard(self, hold: Hold) -> bool:
        # Only the exact hold that was scheduled; a newer hold on the same key survives
        if self._groups.get(hold.key, {}).get(hold.user_id) is not hold:
            return False
        self.remove(hold.key, hold.user_id)
        return True

    # Expiry

    async def expire_due(self) -> int:
        """Remove every hold whose expiry time has passed. Returns how many were removed."""
        expired = 0
        while self._expiry_queue and self._expiry_queue[0][0] <= self.clock():
            _, _, hold = heapq.heappop(self._expiry_queue)
            async with self.lock(hold.key):
                if self._discard(hold):
                    expired += 1
                    logger.info("Hold expired: user=%s key=%s qty=%s", hold.user_id, hold.key, hold.resource_qty)
        return expired

    def _seconds_until_next_expiry(self) -> Optional[float]:
        if not self._expiry_queue:
            return None
        return max((self._expiry_queue[0][0] - self.clock()).total_seconds(), 0.0)

    async def _run_reaper(self):
        while True:
            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), self._seconds_until_next_expiry())
            except asyncio.TimeoutError:
                pass
            try:
                await self.expire_due()
            except Exception:
                logger.exception("Hold reaper failed; retrying on next wakeup")

    async def start(self):
        if self._reaper is None:
            self._wakeup = asyncio.Event()
            self._reaper = asyncio.create_task(self._run_reaper())

    async def close(self):
        if self._reaper is not None:
            self._reaper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper
            self._reaper = None
            self._wakeup = None
