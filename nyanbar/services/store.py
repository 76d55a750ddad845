"""
JSON file backed key-value store.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

import aiofiles

logger = logging.getLogger("nyanbar.services.store")

T = TypeVar("T")


class JsonStore:
    """Persists a flat mapping of keys to JSON values in a single file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}

        async with aiofiles.open(self.path, 'r', encoding='utf-8') as f:
            content = await f.read()

        if not content.strip():
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"❌ Corrupt store file {self.path}, starting empty: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"❌ Store file {self.path} does not hold an object, starting empty")
            return {}
        return data

    async def _write_all(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")

        async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(data, ensure_ascii=False, indent=2))

        os.replace(tmp_path, self.path)

    async def get(self, key: str, default: Optional[Any] = None) -> Any:
        async with self._lock:
            data = await self._read_all()
        return data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = await self._read_all()
            data[key] = value
            await self._write_all(data)
        logger.debug(f"💾 Stored key {key}")

    async def update(self, key: str, fn: Callable[[Any], Tuple[Any, T]], default: Optional[Any] = None) -> T:
        """
        Read-modify-write one key under a single lock acquisition.

        ``fn`` receives the current value (``default`` when the key is
        missing) and returns ``(new_value, result)``. The new value is
        written back and ``result`` is returned to the caller.
        """
        async with self._lock:
            data = await self._read_all()
            new_value, result = fn(data.get(key, default))
            data[key] = new_value
            await self._write_all(data)
        logger.debug(f"💾 Updated key {key}")
        return result

    async def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""
        async with self._lock:
            data = await self._read_all()
            if key not in data:
                return False
            del data[key]
            await self._write_all(data)
        return True
