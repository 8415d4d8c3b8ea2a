# ditakeys/root_map_locator.py

from typing import List, Optional
import logging
import os

from .models.types import PathLike, MAP_EXTENSIONS, PREFERRED_ROOT_MAPS
from .utils.filesystem import FileSystem
from .utils.logger import DITALogger
from .utils.paths import WorkspaceFolders, normalize_path


class RootMapLocator:
    """
    Finds the map that acts as the entry point of a document's hierarchy.
    Walks upward from the document's directory to the workspace boundary.
    """

    def __init__(
        self,
        workspace_folders: Optional[WorkspaceFolders] = None,
        file_system: Optional[FileSystem] = None,
        logger: Optional[DITALogger] = None
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.workspace_folders = workspace_folders or WorkspaceFolders()
        self.file_system = file_system or FileSystem()

    @staticmethod
    def select_root_map(candidates: List[str]) -> Optional[str]:
        """Pick root.ditamap, main.ditamap, master.ditamap, else the first alphabetically."""
        if not candidates:
            return None
        for preferred in PREFERRED_ROOT_MAPS:
            if preferred in candidates:
                return preferred
        return sorted(candidates)[0]

    def _stop_dir(self, start_dir: str) -> str:
        # The first workspace folder bounds the walk; otherwise the filesystem root
        if self.workspace_folders.first:
            return self.workspace_folders.first
        drive, _ = os.path.splitdrive(start_dir)
        return drive + os.sep

    async def locate(self, file_path: PathLike) -> Optional[str]:
        """
        Search the file's directory and its ancestors for a root map.

        Returns:
            Absolute path of the selected map, or None when no map was found
        """
        current_dir = os.path.dirname(normalize_path(file_path))
        stop_dir = self._stop_dir(current_dir)

        while current_dir and len(current_dir) >= len(stop_dir):
            candidates = await self._map_files(current_dir)
            if selected := self.select_root_map(candidates):
                return os.path.join(current_dir, selected)

            parent_dir = os.path.dirname(current_dir)
            if parent_dir == current_dir:
                break
            current_dir = parent_dir

        return None

    async def _map_files(self, directory: str) -> List[str]:
        try:
            entries = await self.file_system.list_dir(directory)
        except OSError as e:
            # Unreadable directories count as empty
            self.logger.debug(f"Skipping unreadable directory {directory}: {str(e)}")
            return []
        return [name for name in entries if name.endswith(MAP_EXTENSIONS)]
