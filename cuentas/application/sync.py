"""
Cache & sync layer: scope version counters plus an in-process memo.

Versions live in ``scope_versions`` as one counter per (user, group) and one
user-wide counter (group_id = 0). The version of a scope is the sum of the two,
so bumping either strictly increases it. Counters are bumped with an atomic
``UPDATE ... SET version = version + 1`` inside the caller's transaction, so
the new version becomes visible exactly when the write it guards commits.

Month views are memoized in ``ScopeCache`` keyed by scope, view and "today";
an entry is reused only while its stored version equals the current one.
"""
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Hashable

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from cuentas.config import get_settings
from cuentas.infrastructure.db.models import GroupMembership, ScopeVersion

logger = logging.getLogger(__name__)

USER_WIDE_GROUP_ID = 0


@dataclass(frozen=True)
class ScopeKey:
    user_id: int
    group_id: int | None = None
    year: int | None = None
    month: int | None = None


class ScopeVersionService:
    """
    Version counters per (user, group). Never commits: the caller's use case
    commits the bump together with the write that caused it.
    """

    def __init__(self, db: Session):
        self.db = db

    def _bump(self, user_id: int, group_key: int) -> None:
        result = self.db.execute(
            update(ScopeVersion)
            .where(ScopeVersion.user_id == user_id, ScopeVersion.group_id == group_key)
            .values(version=ScopeVersion.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.add(ScopeVersion(user_id=user_id, group_id=group_key, version=1))
            self.db.flush()

    def invalidate(self, user_id: int, group_id: int | None = None) -> int:
        """
        Bump the (user, group) counter, or the user-wide one when group_id is None.

        Returns:
            new version of the affected scope
        """
        group_key = USER_WIDE_GROUP_ID if group_id is None else group_id
        self._bump(user_id, group_key)
        version = self.current_version(ScopeKey(user_id=user_id, group_id=group_id))
        logger.info("Scope invalidated: user=%s group=%s version=%s", user_id, group_id, version)
        return version

    def invalidate_group(self, group_id: int, extra_user_ids: tuple[int, ...] = ()) -> list[int]:
        """
        Invalidate the scope of every member row of the group (any status).

        ``extra_user_ids`` covers users whose rows are being removed by the
        same write.

        Returns:
            sorted user ids that were invalidated
        """
        rows = (
            self.db.query(GroupMembership.user_id)
            .filter(GroupMembership.group_id == group_id)
            .all()
        )
        user_ids = sorted({r[0] for r in rows} | set(extra_user_ids))
        for user_id in user_ids:
            self._bump(user_id, group_id)
        logger.info("Group %s invalidated for %d users", group_id, len(user_ids))
        return user_ids

    def current_version(self, key: ScopeKey) -> int:
        group_keys = [USER_WIDE_GROUP_ID]
        if key.group_id is not None:
            group_keys.append(key.group_id)
        total = (
            self.db.query(func.coalesce(func.sum(ScopeVersion.version), 0))
            .filter(ScopeVersion.user_id == key.user_id, ScopeVersion.group_id.in_(group_keys))
            .scalar()
        )
        return int(total)


class ScopeCache:
    """
    Bounded LRU memo of computed views.

    get_or_compute() recomputes when the entry is missing, was stored at a
    different version, or ``force`` is set.
    """

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._entries: OrderedDict[Hashable, tuple[int, Any]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_compute(
        self,
        key: ScopeKey,
        view: str,
        today: date,
        version: int,
        compute: Callable[[], Any],
        force: bool = False,
    ) -> Any:
        cache_key = (key, view, today)
        if not force:
            with self._lock:
                entry = self._entries.get(cache_key)
                if entry is not None and entry[0] == version:
                    self._entries.move_to_end(cache_key)
                    self.hits += 1
                    return entry[1]

        value = compute()
        with self._lock:
            self.misses += 1
            self._entries[cache_key] = (version, value)
            self._entries.move_to_end(cache_key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)


_scope_cache: ScopeCache | None = None


def get_scope_cache() -> ScopeCache:
    """Process-wide cache (singleton)"""
    global _scope_cache
    if _scope_cache is None:
        _scope_cache = ScopeCache(max_entries=get_settings().SCOPE_CACHE_MAX_ENTRIES)
    return _scope_cache
