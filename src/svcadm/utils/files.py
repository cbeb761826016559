"""Host file helpers."""

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Union


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _write_file(path: Path, content: str, mode: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "w") as handle:
        handle.write(content)
    os.chmod(path, mode)


async def write_file(path: PathLike, content: str, mode: int = 0o644) -> Path:
    """Write ``content`` to ``path``, creating parent directories."""
    path = Path(path)
    await asyncio.to_thread(_write_file, path, content, mode)
    logger.debug(f"Wrote {path}")
    return path


async def write_secret(path: PathLike, content: str) -> Path:
    """Write a secret readable by the owner only."""
    return await write_file(path, content, mode=0o600)


async def read_file(path: PathLike) -> str:
    """Read a text file."""
    return await asyncio.to_thread(Path(path).read_text)


def _remove_path(path: Path) -> bool:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    if path.exists() or path.is_symlink():
        path.unlink()
        return True
    return False


async def remove_path(path: PathLike) -> bool:
    """Delete a file or directory tree. Returns whether something was removed."""
    return await asyncio.to_thread(_remove_path, Path(path))


async def ensure_directory(path: PathLike) -> Path:
    """Create a directory if it does not exist."""
    path = Path(path)
    await asyncio.to_thread(lambda: path.mkdir(parents=True, exist_ok=True))
    return path
