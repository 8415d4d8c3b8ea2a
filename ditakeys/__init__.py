"""
DITA key space resolution for language tooling.
Resolves keys across map hierarchies with caching and debounced invalidation.
"""

from .config_manager import ConfigManager
from .event_manager import EventManager, EventType
from .key_manager import KeyManager
from .models.types import (
    KeyDefinition,
    KeyMetadata,
    KeySpace,
    KeySpaceSettings,
    ProcessingError,
    ResolvedKeyReference,
)

__all__ = [
    'ConfigManager',
    'EventManager',
    'EventType',
    'KeyManager',
    'KeyDefinition',
    'KeyMetadata',
    'KeySpace',
    'KeySpaceSettings',
    'ProcessingError',
    'ResolvedKeyReference',
]
