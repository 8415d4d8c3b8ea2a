# ditakeys/key_space_builder.py

from collections import deque
from typing import Callable, Deque, Optional, Set
import os
import time

from .key_extractor import KeyDefinitionExtractor
from .models.types import KeySpace, DEFAULT_MAX_LINK_MATCHES
from .utils.filesystem import FileSystem
from .utils.logger import DITALogger


class KeySpaceBuilder:
    """
    Builds a KeySpace by walking a root map's submap tree breadth-first.
    The first declaration of a key in traversal order wins.
    """

    def __init__(
        self,
        extractor: KeyDefinitionExtractor,
        file_system: Optional[FileSystem] = None,
        logger: Optional[DITALogger] = None,
        clock: Callable[[], float] = time.time
    ):
        self.extractor = extractor
        self.file_system = file_system or FileSystem()
        self.logger = logger or DITALogger(name=__name__)
        self.clock = clock

    async def build(
        self,
        root_map_path: str,
        max_link_matches: int = DEFAULT_MAX_LINK_MATCHES
    ) -> KeySpace:
        """
        Traverse the map hierarchy rooted at root_map_path.

        Args:
            root_map_path: Absolute, normalized path of the root map
            max_link_matches: Per-map cap on key-declaring elements

        Returns:
            A new KeySpace stamped with the current clock value
        """
        started = time.perf_counter()
        self.logger.log_build_start(root_map_path)

        key_space = KeySpace(root_map=root_map_path)
        visited: Set[str] = set()
        queue: Deque[str] = deque([root_map_path])

        while queue:
            current_map = queue.popleft()
            normalized = os.path.normpath(current_map)

            # Map hierarchies may reference each other in loops
            if normalized in visited:
                continue

            if not await self.file_system.exists(current_map):
                self.logger.debug(f"Skipping missing map {current_map}")
                continue

            visited.add(normalized)
            key_space.map_hierarchy.append(current_map)

            try:
                raw_content = await self.file_system.read_text(current_map)
            except (OSError, UnicodeDecodeError, ValueError) as e:
                self.logger.warning(f"Error reading map {current_map}: {str(e)}")
                continue

            content = self.extractor.strip_comments_and_cdata(raw_content)
            result = self.extractor.extract(content, current_map, max_link_matches)

            for key_def in result.keys:
                if key_def.key_name not in key_space.keys:
                    key_space.keys[key_def.key_name] = key_def

            queue.extend(result.submaps)

        key_space.build_time = self.clock()
        self.logger.log_build_end(
            root_map_path,
            len(key_space.keys),
            len(key_space.map_hierarchy),
            time.perf_counter() - started
        )
        return key_space
