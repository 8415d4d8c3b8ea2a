# ditakeys/event_manager.py

from typing import Dict, Callable, List, Optional
from enum import Enum
import logging

from .utils.logger import DITALogger


class EventType(Enum):
    """Events raised by the key space engine."""
    KEY_SPACE_BUILT = "key_space_built"
    KEY_SPACE_EVICTED = "key_space_evicted"
    ROOT_MAP_RESOLVED = "root_map_resolved"
    CACHE_INVALIDATED = "cache_invalidated"
    WORKSPACE_CHANGED = "workspace_changed"
    CONFIG_UPDATE = "config_update"


class EventManager:
    """
    Centralized event dispatch for cache and configuration changes.
    Handler failures are logged and never reach the emitter.
    """
    def __init__(self, logger: Optional[DITALogger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._handlers: Dict[EventType, List[Callable]] = {
            event_type: [] for event_type in EventType
        }
        self._event_stack: List[str] = []
        self._max_event_depth = 10

    def subscribe(self, event_type: EventType, handler: Callable) -> None:
        """Register an event handler."""
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def emit(self, event_type: EventType, **data) -> None:
        """Emit an event with recursion protection."""
        event_id = f"{event_type.value}_{data.get('root_map') or data.get('path') or ''}"

        if len(self._event_stack) >= self._max_event_depth:
            self.logger.warning(f"Maximum event depth reached, skipping event: {event_id}")
            return

        if event_id in self._event_stack:
            self.logger.debug(f"Skipping recursive event: {event_id}")
            return

        self._event_stack.append(event_id)
        try:
            for handler in list(self._handlers[event_type]):
                try:
                    handler(**data)
                except Exception as e:
                    self.logger.error(f"Error in event handler: {str(e)}")
        finally:
            self._event_stack.pop()
