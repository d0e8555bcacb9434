"""
File-backed prompt catalogs.

Each catalog is one JSON object on disk, keyed by effect key. The
``default`` catalog is seeded at deployment time and read-only to the
application; the ``custom`` catalog takes upserts, deletes and clears.

Every write is a whole-document read-modify-write with no locking.
Two writers racing on the same document lose one of the changes (the
later completion wins), even when they touch different keys. The
expected usage is one writer at a time.
"""

import contextlib
import json
import logging
import secrets
import time
from collections.abc import Container
from enum import StrEnum
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from api.schemas.prompts import CatalogName
from core.config import Settings
from core.exceptions import (
    CatalogReadOnlyError,
    CatalogStorageError,
    UnknownCatalogError,
)
from services.change_bus import RESOURCE_PROMPTS, ChangeBus, ChangeEvent

logger = logging.getLogger(__name__)

CatalogDocument = dict[str, dict[str, Any]]


class DeleteOutcome(StrEnum):
    """Result of deleting a catalog entry."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"

    @property
    def ok(self) -> bool:
        return self is DeleteOutcome.DELETED


def generate_key(existing: Container[str]) -> str:
    """
    New key for a custom entry: millisecond timestamp plus 32 random bits.

    Redrawn while it collides with a key already in the document.
    """
    while True:
        key = f"custom_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
        if key not in existing:
            return key


class _CorruptDocument(Exception):
    pass


class PromptCatalogStore:
    """CRUD access to the default and custom catalog documents."""

    def __init__(
        self,
        default_path: Path,
        custom_path: Path,
        bus: ChangeBus | None = None,
    ):
        self._paths = {
            CatalogName.DEFAULT: Path(default_path),
            CatalogName.CUSTOM: Path(custom_path),
        }
        self._bus = bus

    @classmethod
    def from_settings(cls, settings: Settings, bus: ChangeBus | None = None) -> "PromptCatalogStore":
        return cls(settings.default_catalog_path, settings.custom_catalog_path, bus=bus)

    @staticmethod
    def _catalog(name: str) -> CatalogName:
        try:
            return CatalogName(name)
        except ValueError:
            raise UnknownCatalogError(
                message=f"Unknown catalog: {name}",
                details={"catalog": name},
            ) from None

    def path_for(self, name: str) -> Path:
        return self._paths[self._catalog(name)]

    def _writable(self, name: str) -> Path:
        catalog = self._catalog(name)
        if catalog is CatalogName.DEFAULT:
            raise CatalogReadOnlyError(
                message="The default catalog cannot be modified",
                details={"catalog": catalog.value},
            )
        return self._paths[catalog]

    # ============ Document I/O ============

    async def _load(self, path: Path) -> CatalogDocument:
        """Read a document. Missing or blank files read as empty."""
        if not await aiofiles.os.path.exists(path):
            return {}

        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            raw = await f.read()

        if not raw.strip():
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise _CorruptDocument(f"{path}: {e}") from e
        if not isinstance(data, dict):
            raise _CorruptDocument(f"{path}: top level is {type(data).__name__}, expected object")
        return data

    async def _read_for_write(self, path: Path) -> CatalogDocument:
        try:
            return await self._load(path)
        except _CorruptDocument as e:
            logger.error(f"Refusing to rewrite corrupt catalog {e}")
            raise CatalogStorageError(
                message="Catalog document is corrupt",
                details={"path": str(path)},
            ) from e
        except OSError as e:
            logger.error(f"Failed to read catalog {path}: {e}")
            raise CatalogStorageError(details={"path": str(path)}) from e

    async def _write(self, path: Path, data: CatalogDocument) -> None:
        """Replace a document in one step via a sibling temp file."""
        payload = json.dumps(data, indent=2, ensure_ascii=False)
        tmp_path = path.with_name(f".{path.name}.{secrets.token_hex(4)}.tmp")
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Failed to write catalog {path}: {e}")
            with contextlib.suppress(OSError):
                await aiofiles.os.remove(tmp_path)
            raise CatalogStorageError(details={"path": str(path)}) from e

    def _notify(self, action: str, catalog: CatalogName, key: str | None = None) -> None:
        if self._bus is not None:
            self._bus.publish(
                ChangeEvent(
                    resource=RESOURCE_PROMPTS,
                    action=action,
                    key=key,
                    catalog=catalog.value,
                )
            )

    # ============ Operations ============

    async def read_catalog(self, name: str) -> CatalogDocument:
        """
        Read a whole catalog.

        Never fails on a missing, unreadable or corrupt file; those read
        as an empty catalog (corruption and I/O errors are logged).
        """
        path = self.path_for(name)
        try:
            return await self._load(path)
        except _CorruptDocument as e:
            logger.error(f"Corrupt catalog read as empty: {e}")
        except OSError as e:
            logger.error(f"Failed to read catalog {path}: {e}")
        return {}

    async def catalog_status(self, name: str) -> dict[str, Any]:
        """Health summary of one catalog document."""
        path = self.path_for(name)
        try:
            exists = await aiofiles.os.path.exists(path)
            data = await self._load(path)
        except _CorruptDocument as e:
            return {"status": "corrupt", "path": str(path), "error": str(e)}
        except OSError as e:
            return {"status": "unreadable", "path": str(path), "error": str(e)}
        return {
            "status": "ok" if exists else "missing",
            "path": str(path),
            "entries": len(data),
        }

    async def upsert_entry(
        self,
        name: str,
        fields: dict[str, Any],
        key: str | None = None,
    ) -> str:
        """
        Create or fully replace an entry, returning its key.

        A blank or missing key gets a generated one.
        """
        path = self._writable(name)
        data = await self._read_for_write(path)

        effective_key = key.strip() if key and key.strip() else generate_key(data)
        existed = effective_key in data
        data[effective_key] = dict(fields)
        await self._write(path, data)

        logger.info(f"{'Updated' if existed else 'Created'} custom prompt: {effective_key}")
        self._notify("upserted", CatalogName(name), effective_key)
        return effective_key

    async def delete_entry(self, name: str, key: str) -> DeleteOutcome:
        """Remove an entry. A missing key leaves the document untouched."""
        path = self._writable(name)
        data = await self._read_for_write(path)

        if key not in data:
            logger.debug(f"Delete of missing custom prompt ignored: {key}")
            return DeleteOutcome.NOT_FOUND

        del data[key]
        await self._write(path, data)

        logger.info(f"Deleted custom prompt: {key}")
        self._notify("deleted", CatalogName(name), key)
        return DeleteOutcome.DELETED

    async def clear_catalog(self, name: str) -> bool:
        """Reset a catalog to an empty document."""
        path = self._writable(name)
        await self._write(path, {})

        logger.info(f"Cleared {name} catalog")
        self._notify("cleared", CatalogName(name))
        return True

    async def seed_default(self, data: CatalogDocument) -> None:
        """Write the default catalog. Deployment tooling only."""
        path = self._paths[CatalogName.DEFAULT]
        await self._write(path, data)
        logger.info(f"Seeded default catalog with {len(data)} entries")
        self._notify("seeded", CatalogName.DEFAULT)
