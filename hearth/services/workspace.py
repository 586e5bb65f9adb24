"""
Workspace — the directory where the assistant saves generated files.

Filenames come straight from model output, so only the final path
component is ever used. Existing files are never overwritten: a numeric
suffix is added instead (notes.txt → notes_1.txt).
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Optional

from .store import Store

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "untitled.txt"


@dataclass
class FileInfo:
    name: str
    size: int
    modified: datetime


def safe_filename(filename: str) -> str:
    """Strip directories, drive letters and dot-only names from a filename."""
    name = PureWindowsPath(PurePosixPath(filename.strip()).name).name
    if not name or name in (".", "..") or not name.strip("."):
        return DEFAULT_FILENAME
    return name


class Workspace:
    def __init__(self, path: str | Path, store: Optional[Store] = None):
        self.path = Path(path)
        self.store = store
        self.path.mkdir(parents=True, exist_ok=True)

    def _create(self, name: str, content: str) -> Path:
        """Create a new file, moving to name_1, name_2, ... while the name is taken."""
        data = content.encode("utf-8")
        target = self.path / name
        stem, suffix = target.stem, target.suffix or ".txt"
        counter = 0
        while True:
            try:
                with open(target, "xb") as f:
                    f.write(data)
                return target
            except FileExistsError:
                counter += 1
                target = self.path / f"{stem}_{counter}{suffix}"

    async def write_file(self, filename: str, content: str) -> Path:
        """Save content under a sanitized, non-clobbering name. Returns the path."""
        name = safe_filename(filename)
        target = await asyncio.to_thread(self._create, name, content)

        if self.store is not None:
            await self.store.log_file(target.name, f"Generated file: {name}")

        logger.info("Saved file: %s", target)
        return target

    def list_files(self) -> list[FileInfo]:
        files = []
        for entry in self.path.iterdir():
            if entry.is_file():
                stat = entry.stat()
                files.append(FileInfo(
                    name=entry.name,
                    size=stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                ))
        files.sort(key=lambda f: f.name)
        return files

    def read_file(self, filename: str) -> Optional[str]:
        target = self.path / safe_filename(filename)
        if target.is_file():
            return target.read_text(encoding="utf-8")
        return None
