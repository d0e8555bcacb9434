"""
Live, merged view of the prompt catalogs for one consumer.

A CatalogView keeps the last good snapshot of both catalogs and re-runs
the merge from scratch whenever an input changes. Fetches are tagged
with increasing sequence numbers so a slow, older response can never
replace a newer snapshot.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from api.schemas.prompts import CatalogName, MergedPromptItem
from core.exceptions import CatalogTransportError
from services.change_bus import (
    RESOURCE_OVERRIDES,
    RESOURCE_PROMPTS,
    ChangeBus,
    ChangeEvent,
    Subscription,
)
from services.override_store import OverrideStore
from services.prompt_client import PromptApiClient
from services.prompt_merge import FALLBACK_LOCALE, merge_prompt_maps
from services.prompt_store import CatalogDocument

logger = logging.getLogger(__name__)

ViewListener = Callable[[list[MergedPromptItem]], None]


class CatalogView:
    """
    Merge-engine instance bound to a locale.

    Attributes:
        error: Message of the last failed reload, None after a good one
        loading: True while the newest reload is in flight
    """

    def __init__(
        self,
        client: PromptApiClient,
        locale: str = "en",
        overrides: OverrideStore | None = None,
        bus: ChangeBus | None = None,
        include_hidden: bool = False,
        fallback_locale: str = FALLBACK_LOCALE,
    ):
        self._client = client
        self._overrides = overrides
        self.locale = locale
        self.include_hidden = include_hidden
        self.fallback_locale = fallback_locale

        self._default: CatalogDocument = {}
        self._custom: CatalogDocument = {}
        self._items: list[MergedPromptItem] = []
        self._issued_seq = 0
        self._applied_seq = 0
        self._loaded = False
        self._closed = False
        self._listeners: list[ViewListener] = []
        self._pending: set[asyncio.Task] = set()

        self.error: str | None = None
        self.loading = False

        self._subscription: Subscription | None = None
        if bus is not None:
            self._subscription = bus.subscribe(
                self._on_change,
                resources=(RESOURCE_PROMPTS, RESOURCE_OVERRIDES),
            )

    # ============ Snapshot ============

    @property
    def items(self) -> list[MergedPromptItem]:
        return list(self._items)

    @property
    def default_catalog(self) -> CatalogDocument:
        return dict(self._default)

    @property
    def custom_catalog(self) -> CatalogDocument:
        return dict(self._custom)

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def closed(self) -> bool:
        return self._closed

    def items_for(self, locale: str, include_hidden: bool | None = None) -> list[MergedPromptItem]:
        """Merge the current snapshot for another locale without storing it."""
        return merge_prompt_maps(
            self._default,
            self._custom,
            locale,
            overrides=self._overrides.state if self._overrides else None,
            include_hidden=self.include_hidden if include_hidden is None else include_hidden,
            fallback_locale=self.fallback_locale,
        )

    def add_listener(self, listener: ViewListener) -> Callable[[], None]:
        """Call listener with the new list after each recompute."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _recompute(self) -> None:
        self._items = self.items_for(self.locale)
        for listener in list(self._listeners):
            try:
                listener(self.items)
            except Exception as e:
                logger.exception(f"Catalog view listener failed: {e}")

    def set_locale(self, locale: str) -> None:
        self.locale = locale
        self._recompute()

    # ============ Loading ============

    async def reload(self) -> bool:
        """
        Fetch both catalogs and apply them if still the newest request.

        The override file is re-read at the same time. Returns True if the
        fetched snapshot was applied. On failure the previous list stays
        in place and ``error`` is set.
        """
        if self._closed:
            return False

        self._issued_seq += 1
        seq = self._issued_seq
        self.loading = True
        try:
            default, custom, _ = await asyncio.gather(
                self._client.get_catalog(CatalogName.DEFAULT),
                self._client.get_catalog(CatalogName.CUSTOM),
                self._overrides.refresh() if self._overrides else asyncio.sleep(0),
            )
        except CatalogTransportError as e:
            if not self._closed and seq > self._applied_seq:
                self.error = e.message
                logger.warning(f"Catalog reload #{seq} failed, keeping last snapshot: {e.message}")
            return False
        finally:
            if seq == self._issued_seq:
                self.loading = False

        return self.apply_snapshot(seq, default, custom)

    def apply_snapshot(self, seq: int, default: CatalogDocument, custom: CatalogDocument) -> bool:
        """Install a fetched snapshot unless a newer one is already in place."""
        if self._closed:
            logger.debug(f"Discarding catalog snapshot #{seq} for closed view")
            return False
        if seq <= self._applied_seq:
            logger.debug(f"Discarding stale catalog snapshot #{seq} (have #{self._applied_seq})")
            return False

        self._applied_seq = seq
        self._default = dict(default)
        self._custom = dict(custom)
        self._loaded = True
        self.error = None
        self._recompute()
        return True

    # ============ Local writes ============

    def _local_snapshot(self, custom: CatalogDocument) -> None:
        # Anything fetched before this write is now stale
        self._applied_seq = self._issued_seq
        self._custom = custom
        self._recompute()

    def apply_local_upsert(self, key: str, fields: dict[str, Any]) -> None:
        self._local_snapshot({**self._custom, key: dict(fields)})

    def apply_local_delete(self, key: str) -> None:
        self._local_snapshot({k: v for k, v in self._custom.items() if k != key})

    def apply_local_clear(self) -> None:
        self._local_snapshot({})

    # ============ Change notifications ============

    def _schedule(self, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.debug("No running event loop, skipping scheduled catalog refresh")
            return
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _refresh_overrides(self) -> None:
        if self._overrides is None or self._closed:
            return
        await self._overrides.refresh()
        if not self._closed:
            self._recompute()

    def _on_change(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        if event.resource == RESOURCE_OVERRIDES:
            if event.remote:
                self._schedule(self._refresh_overrides())
            else:
                # Shared OverrideStore was already updated in place
                self._recompute()
        else:
            self._schedule(self.reload())

    async def wait_idle(self) -> None:
        """Wait for reloads triggered by change events to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def close(self) -> None:
        """Stop reacting to changes; late responses are discarded."""
        self._closed = True
        if self._subscription:
            self._subscription.unsubscribe()
            self._subscription = None
        self._listeners.clear()
