"""Key reference management for DITA language tooling."""

from typing import Callable, Dict, Iterable, Optional
import os
import time

from .cache import InvalidationQueue, KeySpaceCache
from .config_manager import ConfigManager
from .event_manager import EventManager, EventType
from .key_extractor import KeyDefinitionExtractor
from .key_space_builder import KeySpaceBuilder
from .models.types import (
    CacheStats,
    KeyDefinition,
    KeySpace,
    KeySpaceSettings,
    PathLike,
    ProcessingError,
    ResolvedKeyReference,
)
from .root_map_locator import RootMapLocator
from .utils.filesystem import FileSystem
from .utils.logger import DITALogger, log_operation
from .utils.paths import WorkspaceFolders, normalize_path


class KeyManager:
    """
    Resolves DITA keys for editor features.

    Finds the root map governing a document, builds (or reuses) the key space
    for that map and looks keys up in it. One instance owns all caches and
    timers; call shutdown() when the server stops.
    """

    def __init__(
        self,
        workspace_folders: Optional[Iterable[PathLike]] = None,
        config_manager: Optional[ConfigManager] = None,
        event_manager: Optional[EventManager] = None,
        logger: Optional[DITALogger] = None,
        file_system: Optional[FileSystem] = None,
        clock: Callable[[], float] = time.time
    ):
        self.logger = logger or DITALogger(name=__name__)
        self.workspace_folders = WorkspaceFolders(workspace_folders)
        self.config_manager = config_manager or ConfigManager(logger=self.logger)
        self.event_manager = event_manager or EventManager(logger=self.logger)
        self.file_system = file_system or FileSystem()

        # Components
        self.extractor = KeyDefinitionExtractor(self.workspace_folders, logger=self.logger)
        self.locator = RootMapLocator(self.workspace_folders, self.file_system, logger=self.logger)
        self.builder = KeySpaceBuilder(self.extractor, self.file_system, logger=self.logger, clock=clock)

        # Static settings now; provider settings on first use
        self.cache = KeySpaceCache(
            self.config_manager.load_static(),
            self.event_manager,
            logger=self.logger,
            clock=clock
        )
        self.invalidations = InvalidationQueue(self.cache.invalidate_file, logger=self.logger)
        self._settings_loaded = self.config_manager.settings_provider is None

    @property
    def settings(self) -> KeySpaceSettings:
        return self.cache.settings

    @property
    def stats(self) -> CacheStats:
        return self.cache.stats

    ### RESOLUTION ###

    async def resolve_key(self, key_name: str, context_file_path: PathLike) -> Optional[KeyDefinition]:
        """
        Resolve a key name for the document at context_file_path.

        Returns:
            The winning KeyDefinition, or None when the document has no root
            map or the key is not defined anywhere in its key space
        """
        key_space = await self.get_key_space(context_file_path)
        if key_space is None:
            return None
        return key_space.keys.get(key_name)

    async def get_all_keys(self, context_file_path: PathLike) -> Dict[str, KeyDefinition]:
        """All keys visible from a document, in first-declared order."""
        key_space = await self.get_key_space(context_file_path)
        if key_space is None:
            return {}
        return dict(key_space.keys)

    async def get_key_space(self, context_file_path: PathLike) -> Optional[KeySpace]:
        root_map = await self.find_root_map(context_file_path)
        if root_map is None:
            return None
        return await self.build_key_space(root_map)

    async def resolve_key_reference(
        self,
        value: str,
        context_file_path: PathLike
    ) -> ResolvedKeyReference:
        """
        Resolve a keyref/conkeyref value of the form "key" or "key/element".
        The element id from the value takes precedence over the key's own fragment.
        """
        key_name, _, element_id = value.strip().partition("/")
        definition = None
        if key_name:
            definition = await self.resolve_key(key_name, context_file_path)

        if not element_id and definition is not None:
            element_id = definition.element_id or ""

        return ResolvedKeyReference(
            key_name=key_name,
            element_id=element_id or None,
            definition=definition
        )

    async def find_root_map(self, context_file_path: PathLike) -> Optional[str]:
        """Root map governing a file, or None. Negative results are cached too."""
        absolute_path = self._absolute(context_file_path)
        directory = os.path.dirname(absolute_path)

        if (entry := self.cache.get_root_map(directory)) is not None:
            return entry.root_map

        root_map = await self.locator.locate(absolute_path)
        self.cache.put_root_map(directory, root_map)
        self.event_manager.emit(EventType.ROOT_MAP_RESOLVED, path=absolute_path, root_map=root_map)
        return root_map

    @log_operation("build_key_space")
    async def build_key_space(self, root_map_path: PathLike) -> KeySpace:
        """
        Return the key space for a root map, building it when needed.
        Concurrent calls for the same root map share a single traversal.
        """
        absolute_root = self._absolute(root_map_path)

        if not self._settings_loaded:
            await self.reload_cache_config()

        max_link_matches = self.cache.settings.max_link_matches
        return await self.cache.get_or_build(
            absolute_root,
            lambda: self.builder.build(absolute_root, max_link_matches)
        )

    ### LIFECYCLE ###

    def invalidate_for_file(self, changed_file: PathLike) -> None:
        """Schedule invalidation for a changed map file (debounced)."""
        self.invalidations.add(self._absolute(changed_file))

    def flush_invalidations(self) -> int:
        """Apply pending invalidations immediately."""
        return self.invalidations.flush()

    def update_workspace_folders(
        self,
        added: Iterable[PathLike] = (),
        removed: Iterable[PathLike] = ()
    ) -> None:
        """Apply workspace folder changes. Containment changes, so all caches go."""
        self.workspace_folders.update(added=added, removed=removed)
        self.cache.clear()
        self.logger.info(f"Workspace folders changed, key space caches cleared ({len(self.workspace_folders)} folders)")
        self.event_manager.emit(EventType.WORKSPACE_CHANGED, folders=list(self.workspace_folders))

    async def reload_cache_config(self) -> KeySpaceSettings:
        """Re-read settings and expire entries that are stale under the new TTL."""
        self._settings_loaded = True
        settings = await self.config_manager.load()
        self.cache.configure(settings)
        self.event_manager.emit(EventType.CONFIG_UPDATE, settings=settings)
        return settings

    def shutdown(self) -> None:
        """Cancel timers and drop all cached state."""
        self.invalidations.cancel()
        self.cache.stop_sweeper()
        self.cache.clear()
        self.logger.debug("Key manager shutdown completed")

    @staticmethod
    def _absolute(path: PathLike) -> str:
        if not str(path).strip():
            raise ProcessingError(
                error_type="invalid_path",
                message="Path must not be empty",
                context=str(path)
            )
        return normalize_path(path)
