"""Async JSON snapshot files.

Reads and writes the exported lineup data with ``aiofiles``. Every failure is
reported as a ``SnapshotError`` so the command layer has one thing to catch.
"""

import json
import logging
from pathlib import Path
from typing import Any, Union

import aiofiles

from ltrfantasy.domain.exceptions import SnapshotError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


async def write_json(file_path: PathLike, data: Any) -> Path:
    """Serializes ``data`` to ``file_path``, creating parent directories."""
    path = Path(file_path).expanduser()
    try:
        content = json.dumps(data, indent=2)
    except (TypeError, ValueError) as e:
        raise SnapshotError(f"Data for {path} is not JSON serializable: {e}") from e

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
            await f.write(content)
    except OSError as e:
        logger.error(f"Error writing snapshot {path}: {e}")
        raise SnapshotError(f"Failed to write {path}: {e}") from e

    logger.debug(f"Wrote {len(content)} characters to {path}")
    return path


async def read_json(file_path: PathLike) -> Any:
    """Loads the JSON document stored at ``file_path``."""
    path = Path(file_path).expanduser()
    if not path.is_file():
        raise SnapshotError(f"File not found: {path}")

    try:
        async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
            content = await f.read()
    except OSError as e:
        logger.error(f"Error reading snapshot {path}: {e}")
        raise SnapshotError(f"Failed to read {path}: {e}") from e

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"{path} does not contain valid JSON: {e}") from e
