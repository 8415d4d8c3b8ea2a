# ditakeys/cache/cache.py
"""
Process-local caches for key spaces and root map lookups.
Also tracks in-flight builds so concurrent callers share one traversal.
"""

from typing import Awaitable, Callable, Dict, List, Mapping, Optional
import asyncio
import logging
import os
import time

from ..event_manager import EventManager, EventType
from ..models.types import (
    CacheStats,
    KeySpace,
    KeySpaceSettings,
    RootMapEntry,
    ROOT_MAP_CACHE_TTL,
)
from ..utils.logger import DITALogger

BuildFactory = Callable[[], Awaitable[KeySpace]]


class KeySpaceCache:
    """
    Owns the key space cache, the root map cache and the pending build registry.

    Key spaces expire after the configured TTL and are evicted oldest-built-first
    when the cache is full. Root map lookups, including negative ones, have
    their own shorter TTL.
    """

    def __init__(
        self,
        settings: Optional[KeySpaceSettings] = None,
        event_manager: Optional[EventManager] = None,
        logger: Optional[DITALogger] = None,
        clock: Callable[[], float] = time.time,
        root_map_ttl: float = ROOT_MAP_CACHE_TTL
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.settings = settings or KeySpaceSettings()
        self.event_manager = event_manager or EventManager(logger=self.logger)
        self.clock = clock
        self.root_map_ttl = root_map_ttl

        self._key_spaces: Dict[str, KeySpace] = {}
        self._root_maps: Dict[str, RootMapEntry] = {}
        self._pending_builds: Dict[str, "asyncio.Task[KeySpace]"] = {}
        self._stats = CacheStats()
        self._sweep_task: Optional["asyncio.Task[None]"] = None
        # Bumped by clear(); results of builds started earlier are not cached
        self._generation = 0

    def __len__(self) -> int:
        return len(self._key_spaces)

    def __contains__(self, root_map: object) -> bool:
        return root_map in self._key_spaces

    @property
    def stats(self) -> CacheStats:
        return self._stats

    @property
    def key_spaces(self) -> Mapping[str, KeySpace]:
        return dict(self._key_spaces)

    @property
    def pending_builds(self) -> Mapping[str, "asyncio.Task[KeySpace]"]:
        return dict(self._pending_builds)

    ### CONFIGURATION ###

    def configure(self, settings: KeySpaceSettings) -> None:
        """Apply new settings and drop entries already expired under them."""
        self.settings = settings
        removed = self.purge_expired()
        if removed:
            self.logger.debug(f"Config reload expired {removed} key spaces")

    ### KEY SPACES ###

    def is_fresh(self, key_space: KeySpace) -> bool:
        return (self.clock() - key_space.build_time) < self.settings.ttl_seconds

    def get_key_space(self, root_map: str) -> Optional[KeySpace]:
        """Return a fresh cached key space, or None."""
        self.ensure_sweeper()
        key_space = self._key_spaces.get(root_map)
        if key_space is not None and self.is_fresh(key_space):
            self._stats.hits += 1
            return key_space
        self._stats.misses += 1
        return None

    async def get_or_build(self, root_map: str, factory: BuildFactory) -> KeySpace:
        """
        Serve a fresh cached key space, join an in-flight build, or start one.

        The build task is registered before this coroutine first suspends, so
        at most one traversal per root map runs at any time.
        """
        if (cached := self.get_key_space(root_map)) is not None:
            return cached

        if (pending := self._pending_builds.get(root_map)) is not None:
            self._stats.joined_builds += 1
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._run_build(root_map, factory))
        self._pending_builds[root_map] = task
        self._stats.builds += 1
        return await asyncio.shield(task)

    async def _run_build(self, root_map: str, factory: BuildFactory) -> KeySpace:
        generation = self._generation
        try:
            key_space = await factory()
            if generation != self._generation:
                self.logger.debug(f"Cache cleared during build of {root_map}, result not cached")
                return key_space

            self.put_key_space(key_space)
            self.event_manager.emit(
                EventType.KEY_SPACE_BUILT,
                root_map=root_map,
                key_count=len(key_space.keys),
                map_count=len(key_space.map_hierarchy)
            )
            return key_space
        finally:
            if self._pending_builds.get(root_map) is asyncio.current_task():
                del self._pending_builds[root_map]

    def put_key_space(self, key_space: KeySpace) -> None:
        """Insert a key space, evicting the oldest-built entries when full."""
        self.purge_expired()
        self._key_spaces.pop(key_space.root_map, None)

        while self._key_spaces and len(self._key_spaces) >= self.settings.max_key_spaces:
            oldest = min(self._key_spaces.values(), key=lambda ks: ks.build_time)
            self.evict(oldest.root_map, reason="capacity")

        self._key_spaces[key_space.root_map] = key_space

    def evict(self, root_map: str, reason: str) -> bool:
        if self._key_spaces.pop(root_map, None) is None:
            return False

        if reason == "expired":
            self._stats.expirations += 1
        else:
            self._stats.evictions += 1

        self.logger.debug(f"Evicted key space {root_map} ({reason})")
        self.event_manager.emit(EventType.KEY_SPACE_EVICTED, root_map=root_map, reason=reason)
        return True

    def purge_expired(self) -> int:
        expired = [
            root_map for root_map, key_space in self._key_spaces.items()
            if not self.is_fresh(key_space)
        ]
        for root_map in expired:
            self.evict(root_map, reason="expired")
        return len(expired)

    ### ROOT MAPS ###

    def get_root_map(self, directory: str) -> Optional[RootMapEntry]:
        """Return a fresh root map lookup for a directory, or None if not cached."""
        self.ensure_sweeper()
        entry = self._root_maps.get(directory)
        if entry is not None and (self.clock() - entry.timestamp) < self.root_map_ttl:
            return entry
        return None

    def put_root_map(self, directory: str, root_map: Optional[str]) -> RootMapEntry:
        entry = RootMapEntry(root_map=root_map, timestamp=self.clock())
        self._root_maps[directory] = entry
        return entry

    def drop_root_map(self, directory: str) -> bool:
        return self._root_maps.pop(directory, None) is not None

    def purge_expired_root_maps(self) -> int:
        now = self.clock()
        expired = [
            directory for directory, entry in self._root_maps.items()
            if (now - entry.timestamp) >= self.root_map_ttl
        ]
        for directory in expired:
            del self._root_maps[directory]
        return len(expired)

    ### INVALIDATION ###

    def invalidate_file(self, changed_file: str) -> List[str]:
        """
        Drop everything a changed map file can affect.

        Returns:
            Root maps whose key spaces were evicted
        """
        normalized = os.path.normpath(changed_file)
        self.drop_root_map(os.path.dirname(normalized))

        affected = [
            root_map for root_map, key_space in self._key_spaces.items()
            if key_space.includes_map(normalized)
        ]
        for root_map in affected:
            self.evict(root_map, reason="invalidated")

        self._stats.invalidations += 1
        self.event_manager.emit(EventType.CACHE_INVALIDATED, path=normalized, evicted=affected)
        return affected

    def clear(self) -> None:
        """Clear both caches. In-flight builds finish but their results are dropped."""
        self._generation += 1
        self._key_spaces.clear()
        self._root_maps.clear()
        # New requests start a fresh build instead of joining a stale one
        self._pending_builds.clear()

    ### SWEEPER ###

    def ensure_sweeper(self) -> None:
        """Start the periodic sweep if running inside an event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._sweep_task = loop.create_task(self._sweep_loop())

    async def _sweep_loop(self) -> None:
        while True:
            # Interval follows the current TTL so config reloads apply
            await asyncio.sleep(self.settings.cleanup_interval_seconds)
            self.sweep()

    def sweep(self) -> None:
        """Remove expired key spaces and root map lookups."""
        if not self._key_spaces and not self._root_maps:
            return
        removed = self.purge_expired() + self.purge_expired_root_maps()
        if removed:
            self.logger.debug(f"Cache sweep removed {removed} expired entries")

    def stop_sweeper(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None
