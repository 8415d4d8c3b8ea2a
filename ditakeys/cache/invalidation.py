# ditakeys/cache/invalidation.py

from typing import Callable, Dict, List, Optional
import asyncio
import logging

from ..models.types import FILE_WATCHER_DEBOUNCE
from ..utils.logger import DITALogger
from ..utils.paths import normalize_path


class InvalidationQueue:
    """
    Debounces file change notifications.
    Every path reported within the debounce window is processed once, together.
    """

    def __init__(
        self,
        handler: Callable[[str], object],
        delay: float = FILE_WATCHER_DEBOUNCE,
        logger: Optional[DITALogger] = None
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.handler = handler
        self.delay = delay
        # dict keeps first-reported order
        self._pending: Dict[str, None] = {}
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> List[str]:
        return list(self._pending)

    @property
    def scheduled(self) -> bool:
        return self._timer is not None

    def add(self, path: str) -> None:
        """Queue a changed file and restart the debounce timer."""
        self._pending[normalize_path(path)] = None

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to debounce on; apply right away
            self.flush()
            return

        self._timer = loop.call_later(self.delay, self.flush)

    def flush(self) -> int:
        """Process every pending path now. Returns the number processed."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        paths = list(self._pending)
        self._pending.clear()

        for path in paths:
            try:
                self.handler(path)
            except Exception as e:
                self.logger.error(f"Error invalidating cache for {path}: {str(e)}")

        if paths:
            self.logger.debug(f"Processed {len(paths)} pending invalidations")
        return len(paths)

    def cancel(self) -> None:
        """Drop pending paths without processing them."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending.clear()
