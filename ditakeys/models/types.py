# ditakeys/models/types.py

from typing import Dict, List, Optional, Union
from dataclasses import dataclass, field
from pathlib import Path
import os

PathLike = Union[str, Path]

# Time constants (seconds)
ONE_MINUTE = 60.0
ROOT_MAP_CACHE_TTL = ONE_MINUTE
FILE_WATCHER_DEBOUNCE = 0.3
MIN_CLEANUP_INTERVAL = 5 * ONE_MINUTE
CACHE_CLEANUP_RATIO = 3

# Size limits
MAX_KEY_SPACES = 10
MAX_MAP_REFERENCES = 1000
DEFAULT_MAX_LINK_MATCHES = 10000
DEFAULT_CACHE_TTL_MINUTES = 5.0

MAP_EXTENSIONS = (".ditamap", ".bookmap")
PREFERRED_ROOT_MAPS = ("root.ditamap", "main.ditamap", "master.ditamap")


@dataclass
class KeyMetadata:
    """Display metadata carried by a key definition's topicmeta."""
    navtitle: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    shortdesc: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.navtitle or self.keywords or self.shortdesc)


@dataclass
class KeyDefinition:
    """DITA key definition structure."""
    key_name: str
    source_map: str
    target_file: Optional[str] = None
    element_id: Optional[str] = None
    inline_content: Optional[str] = None
    scope: Optional[str] = None
    processing_role: Optional[str] = None
    metadata: Optional[KeyMetadata] = None

    @property
    def is_empty(self) -> bool:
        """True for a declared key that resolves to nothing."""
        return self.target_file is None and self.inline_content is None


@dataclass
class KeySpace:
    """
    Resolved key table rooted at one map.
    Built once by a traversal and never mutated afterwards.
    """
    root_map: str
    keys: Dict[str, KeyDefinition] = field(default_factory=dict)
    build_time: float = 0.0
    map_hierarchy: List[str] = field(default_factory=list)

    def includes_map(self, map_path: PathLike) -> bool:
        """Check whether a map file took part in building this key space."""
        normalized = os.path.normpath(str(map_path))
        return any(os.path.normpath(m) == normalized for m in self.map_hierarchy)

    def keys_by_source_map(self) -> Dict[str, List[str]]:
        """Group key names by the map that declared them, in hierarchy order."""
        grouped: Dict[str, List[str]] = {m: [] for m in self.map_hierarchy}
        for name, definition in self.keys.items():
            grouped.setdefault(definition.source_map, []).append(name)
        return grouped


@dataclass
class MapScanResult:
    """Keys and submap references found in a single map."""
    keys: List[KeyDefinition] = field(default_factory=list)
    submaps: List[str] = field(default_factory=list)


@dataclass
class RootMapEntry:
    """Cached root map lookup. A None root map is a valid negative result."""
    root_map: Optional[str]
    timestamp: float


@dataclass
class ResolvedKeyReference:
    """A keyref/conkeyref value split into key name and element id."""
    key_name: str
    element_id: Optional[str] = None
    definition: Optional[KeyDefinition] = None

    @property
    def is_defined(self) -> bool:
        return self.definition is not None


@dataclass
class KeySpaceSettings:
    """Settings consumed by the key space engine."""
    key_space_cache_ttl_minutes: float = DEFAULT_CACHE_TTL_MINUTES
    max_link_matches: int = DEFAULT_MAX_LINK_MATCHES
    max_key_spaces: int = MAX_KEY_SPACES

    @property
    def ttl_seconds(self) -> float:
        return self.key_space_cache_ttl_minutes * ONE_MINUTE

    @property
    def cleanup_interval_seconds(self) -> float:
        return max(MIN_CLEANUP_INTERVAL, self.ttl_seconds / CACHE_CLEANUP_RATIO)


@dataclass
class CacheStats:
    """Counters for key space cache activity."""
    hits: int = 0
    misses: int = 0
    builds: int = 0
    joined_builds: int = 0
    evictions: int = 0
    expirations: int = 0
    invalidations: int = 0


# Error types
class ProcessingError(Exception):
    """Custom error for processing failures"""
    def __init__(
        self,
        error_type: str,
        message: str,
        context: Union[str, Path],
        element_id: Optional[str] = None,
        stacktrace: Optional[str] = None
    ):
        self.error_type = error_type
        self.message = message
        self.context = context
        self.element_id = element_id
        self.stacktrace = stacktrace
        super().__init__(self.message)
