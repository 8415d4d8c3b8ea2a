from collections import Counter
from pathlib import Path
from typing import List, Set
import os

import pytest
import pytest_asyncio

from ditakeys.config_manager import ConfigManager
from ditakeys.key_manager import KeyManager
from ditakeys.utils.filesystem import FileSystem
from ditakeys.utils.logger import DITALogger


class FakeClock:
    """Manually advanced clock for TTL and eviction tests."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingFileSystem(FileSystem):
    """FileSystem that records reads and can simulate failures."""

    def __init__(self):
        self.reads: Counter = Counter()
        self.listings: Counter = Counter()
        self.unreadable_files: Set[str] = set()
        self.unreadable_dirs: Set[str] = set()

    async def read_text(self, path: str) -> str:
        self.reads[os.path.normpath(path)] += 1
        if os.path.normpath(path) in self.unreadable_files:
            raise PermissionError(f"Permission denied: {path}")
        return await super().read_text(path)

    async def list_dir(self, directory: str) -> List[str]:
        self.listings[os.path.normpath(directory)] += 1
        if os.path.normpath(directory) in self.unreadable_dirs:
            raise PermissionError(f"Permission denied: {directory}")
        return await super().list_dir(directory)


@pytest.fixture
def map_xml():
    """Wrap map body markup in a minimal DITA map document."""
    def _map(body: str, root: str = "map") -> str:
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            f'<!DOCTYPE {root} PUBLIC "-//OASIS//DTD DITA Map//EN" "map.dtd">\n'
            f"<{root}>\n{body}\n</{root}>\n"
        )
    return _map


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "ws"
    root.mkdir()
    return root


@pytest.fixture
def write_file():
    def _write(path: Path, content: str = "") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def file_system() -> CountingFileSystem:
    return CountingFileSystem()


@pytest.fixture
def logger() -> DITALogger:
    return DITALogger(name="ditakeys.tests")


@pytest.fixture
def config_manager(tmp_path: Path, logger: DITALogger) -> ConfigManager:
    # Point at files that do not exist so only defaults apply
    return ConfigManager(
        config_path=tmp_path / "missing.yml",
        env_file=tmp_path / "missing.env",
        logger=logger
    )


@pytest_asyncio.fixture
async def manager(workspace, config_manager, file_system, clock, logger):
    key_manager = KeyManager(
        workspace_folders=[workspace],
        config_manager=config_manager,
        logger=logger,
        file_system=file_system,
        clock=clock
    )
    yield key_manager
    key_manager.shutdown()
