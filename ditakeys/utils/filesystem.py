# ditakeys/utils/filesystem.py
"""
Async file access for the key space engine.
Blocking calls run in a worker thread so the event loop stays responsive.
"""

import asyncio
import os
from pathlib import Path
from typing import List


class FileSystem:
    """Filesystem primitives used by the locator and the builder."""

    encoding = "utf-8"

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.isfile, path)

    async def read_text(self, path: str) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding=self.encoding)

    async def list_dir(self, directory: str) -> List[str]:
        """List entry names in a directory. Raises OSError when unreadable."""
        return await asyncio.to_thread(os.listdir, directory)
