# ditakeys/utils/paths.py

from typing import Iterable, Iterator, List, Optional
import os

from ..models.types import PathLike

EXTERNAL_PREFIXES = ("http://", "https://")


def normalize_path(path: PathLike) -> str:
    """Return an absolute, normalized path string."""
    return os.path.normpath(os.path.abspath(str(path)))


def is_external_href(href: str) -> bool:
    return href.lower().startswith(EXTERNAL_PREFIXES)


def is_within_workspace(path: PathLike, workspace_folders: Iterable[str]) -> bool:
    """
    Check that a path lies inside one of the workspace folders.
    With no folders registered every path is accepted (single file mode).
    """
    folders = list(workspace_folders)
    if not folders:
        return True

    normalized = os.path.normpath(str(path))
    for folder in folders:
        root = os.path.normpath(folder)
        if normalized.startswith(root.rstrip(os.sep) + os.sep):
            return True
    return False


class WorkspaceFolders:
    """
    Registered workspace folders.
    Shared by the extractor (containment) and the locator (search boundary).
    """

    def __init__(self, folders: Optional[Iterable[PathLike]] = None):
        self._folders: List[str] = []
        self.update(added=folders or [])

    def __iter__(self) -> Iterator[str]:
        return iter(self._folders)

    def __len__(self) -> int:
        return len(self._folders)

    def __contains__(self, folder: object) -> bool:
        return isinstance(folder, (str, os.PathLike)) and normalize_path(folder) in self._folders

    @property
    def first(self) -> Optional[str]:
        return self._folders[0] if self._folders else None

    def update(
        self,
        added: Iterable[PathLike] = (),
        removed: Iterable[PathLike] = ()
    ) -> None:
        for folder in removed:
            normalized = normalize_path(folder)
            if normalized in self._folders:
                self._folders.remove(normalized)
        for folder in added:
            normalized = normalize_path(folder)
            if normalized not in self._folders:
                self._folders.append(normalized)

    def contains(self, path: PathLike) -> bool:
        return is_within_workspace(path, self._folders)

    def resolve(self, base_dir: str, relative: str) -> Optional[str]:
        """Resolve a reference against base_dir, dropping it if it escapes the workspace."""
        resolved = os.path.normpath(os.path.join(base_dir, relative))
        if self.contains(resolved):
            return resolved
        return None
