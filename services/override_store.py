"""
Client-side hide/override state for built-in effects.

Lives in its own JSON file, separate from the prompt catalogs, and never
touches the default catalog: hiding or patching a built-in only changes
how it is displayed by clients sharing this file.
"""

import asyncio
import contextlib
import json
import logging
import secrets
from collections.abc import Callable
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError as PydanticValidationError

from api.schemas.prompts import OverridePatch, OverrideSet
from core.exceptions import StorageError
from services.change_bus import RESOURCE_OVERRIDES, ChangeBus, ChangeEvent

logger = logging.getLogger(__name__)


class OverrideStore:
    """
    Persisted OverrideSet with explicit open/close lifecycle.

    Writes re-read the file, apply their change, persist it, then publish
    an ``overrides`` change event. Use as ``async with OverrideStore(...)``
    or call open()/close().
    """

    def __init__(self, path: Path, bus: ChangeBus | None = None):
        self.path = Path(path)
        self._bus = bus
        self._state = OverrideSet()
        self._opened = False
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._opened

    @property
    def state(self) -> OverrideSet:
        """Current in-memory state (a copy)."""
        return self._state.model_copy(deep=True)

    @property
    def disabled_keys(self) -> set[str]:
        return set(self._state.disabled_keys)

    @property
    def overrides(self) -> dict[str, OverridePatch]:
        return dict(self._state.overrides)

    async def open(self) -> "OverrideStore":
        await self.refresh()
        self._opened = True
        return self

    async def close(self) -> None:
        self._opened = False

    async def __aenter__(self) -> "OverrideStore":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _ensure_open(self) -> None:
        if not self._opened:
            raise RuntimeError("OverrideStore is not open. Call open() first.")

    # ============ Persistence ============

    async def refresh(self) -> OverrideSet:
        """Reload state from disk, dropping anything unreadable."""
        async with self._lock:
            self._state = await self._load()
        return self.state

    async def _load(self) -> OverrideSet:
        if not await aiofiles.os.path.exists(self.path):
            return OverrideSet()

        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except OSError as e:
            logger.error(f"Failed to read override state {self.path}: {e}")
            return OverrideSet()

        if not raw.strip():
            return OverrideSet()

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError(f"expected object, got {type(data).__name__}")
            return OverrideSet.model_validate(data)
        except (ValueError, PydanticValidationError) as e:
            logger.error(f"Corrupt override state in {self.path}, using empty state: {e}")
            return OverrideSet()

    async def _persist(self, action: str, key: str | None = None) -> None:
        payload = json.dumps(self._state.to_document(), indent=2, ensure_ascii=False)
        tmp_path = self.path.with_name(f".{self.path.name}.{secrets.token_hex(4)}.tmp")
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to persist override state {self.path}: {e}")
            with contextlib.suppress(OSError):
                await aiofiles.os.remove(tmp_path)
            raise StorageError(
                message="Failed to save override state",
                details={"path": str(self.path)},
            ) from e

        if self._bus is not None:
            self._bus.publish(ChangeEvent(resource=RESOURCE_OVERRIDES, action=action, key=key))

    async def _update(
        self,
        change: Callable[[OverrideSet], None],
        action: str,
        key: str | None = None,
    ) -> OverrideSet:
        """
        Apply change to the state on disk and save it.

        The file is re-read first so writes from other stores sharing it
        are kept. If saving fails the state read from disk stays current.
        """
        self._ensure_open()
        async with self._lock:
            current = await self._load()
            state = current.model_copy(deep=True)
            change(state)
            self._state = state
            try:
                await self._persist(action, key)
            except StorageError:
                self._state = current
                raise
            return self.state

    # ============ Operations ============

    async def disable(self, key: str) -> None:
        """Hide a built-in. Disabling twice is the same as once."""
        await self._update(lambda state: state.disabled_keys.add(key), "disabled", key)
        logger.info(f"Disabled built-in effect: {key}")

    async def enable(self, key: str) -> None:
        """Show a hidden built-in again."""
        await self._update(lambda state: state.disabled_keys.discard(key), "enabled", key)
        logger.info(f"Enabled built-in effect: {key}")

    async def set_override_patch(self, key: str, patch: OverridePatch) -> OverridePatch:
        """Merge a patch into the key's existing patch, field by field."""

        def merge(state: OverrideSet) -> None:
            state.overrides[key] = state.overrides.get(key, OverridePatch()).merged_with(patch)

        state = await self._update(merge, "patched", key)
        logger.info(f"Updated override for built-in effect: {key}")
        return state.overrides[key]

    async def remove_override(self, key: str) -> None:
        await self._update(lambda state: state.overrides.pop(key, None), "override_removed", key)
        logger.info(f"Removed override for built-in effect: {key}")

    async def clear_all(self) -> None:
        """Forget every hidden key and patch. Custom prompts are untouched."""

        def clear(state: OverrideSet) -> None:
            state.disabled_keys.clear()
            state.overrides.clear()

        await self._update(clear, "cleared")
        logger.info("Cleared all built-in overrides")
