"""
File operations for the durable local adapter.

Provides atomic text-blob read/write operations with:
- Atomic writes using temp file + rename
- OS errors mapped onto StorageIOError
"""

import os
import tempfile
from pathlib import Path

import aiofiles
import aiofiles.os

from ..exceptions import StorageIOError


async def ensure_directory(path: Path) -> None:
    """Ensure directory exists, creating if necessary.

    Args:
        path: Directory path to ensure exists
    """
    try:
        await aiofiles.os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise StorageIOError("create_directory", str(path), e) from e


async def read_text(path: Path) -> str | None:
    """Read a whole text file.

    Args:
        path: Path to the file

    Returns:
        File content or None if the file doesn't exist
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, encoding="utf-8") as f:
            return await f.read()
    except OSError as e:
        raise StorageIOError("read", str(path), e) from e


async def write_text_atomic(path: Path, content: str) -> None:
    """Write a text file atomically using temp file + rename.

    Readers see either the previous content or the new one, never a torn
    write.

    Args:
        path: Target path
        content: Text to write
    """
    await ensure_directory(path.parent)

    try:
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".tmp_",
            suffix=path.suffix,
        )
    except OSError as e:
        raise StorageIOError("write", str(path), e) from e
    try:
        os.close(fd)
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(content)
            await f.flush()
            os.fsync(f.fileno())

        await aiofiles.os.replace(temp_path, path)
    except Exception as e:
        # Clean up temp file on error
        try:
            await aiofiles.os.remove(temp_path)
        except OSError:
            pass
        raise StorageIOError("write", str(path), e) from e


async def remove_file(path: Path) -> bool:
    """Remove a file if it exists.

    Args:
        path: Path to remove

    Returns:
        True if file was removed, False if it didn't exist
    """
    try:
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)
            return True
        return False
    except OSError as e:
        raise StorageIOError("remove", str(path), e) from e
