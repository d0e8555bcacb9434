"""
Transformation service: the interface UI code talks to.

Reads go through a CatalogView (merged default + custom catalogs with
the local override set applied); writes go to the prompt API or to the
local OverrideStore, update this process's view immediately and are
announced on the change bus so every other view converges.
"""

import logging
from typing import Any

from api.schemas.prompts import (
    CUSTOM_PROMPT_SENTINEL,
    MergedPromptItem,
    OverridePatch,
    TransformationCategory,
    UpsertPromptRequest,
)
from core.config import Settings
from core.exceptions import EffectNotFoundError, ValidationError
from services.catalog_view import CatalogView
from services.change_bus import RESOURCE_PROMPTS, ChangeBus, ChangeEvent
from services.image_backend import EditResult, ImageEditBackend, InputImage
from services.override_store import OverrideStore
from services.prompt_client import PromptApiClient
from services.prompt_merge import filter_items
from services.prompt_store import DeleteOutcome

logger = logging.getLogger(__name__)


def _category(value: TransformationCategory | str | None) -> TransformationCategory | None:
    if value is None or value == "":
        return None
    try:
        return TransformationCategory(value)
    except ValueError:
        raise ValidationError(
            message=f"Unknown category: {value}",
            details={"field": "category", "allowed": [c.value for c in TransformationCategory]},
        ) from None


class TransformationService:
    """
    Create, edit, hide and list transformations.

    Example:
        async with await TransformationService.connect(settings) as service:
            key = await service.create_custom("Sepia", "Make it sepia toned")
            items = await service.list_transformations("en")
    """

    def __init__(
        self,
        client: PromptApiClient,
        overrides: OverrideStore,
        bus: ChangeBus | None = None,
        locale: str = "en",
        fallback_locale: str = "en",
    ):
        self._client = client
        self._overrides = overrides
        self._bus = bus or ChangeBus()
        self._view = CatalogView(
            client,
            locale=locale,
            overrides=overrides,
            bus=self._bus,
            include_hidden=False,
            fallback_locale=fallback_locale,
        )

    @classmethod
    async def connect(cls, settings: Settings, bus: ChangeBus | None = None) -> "TransformationService":
        """Build a service from settings and open its override store."""
        bus = bus or ChangeBus()
        overrides = OverrideStore(settings.overrides_path, bus=bus)
        await overrides.open()
        return cls(
            PromptApiClient.from_settings(settings),
            overrides,
            bus=bus,
            locale=settings.default_locale,
            fallback_locale=settings.fallback_locale,
        )

    async def close(self) -> None:
        await self._view.wait_idle()
        self._view.close()
        await self._overrides.close()
        await self._client.aclose()

    async def __aenter__(self) -> "TransformationService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def view(self) -> CatalogView:
        return self._view

    @property
    def bus(self) -> ChangeBus:
        return self._bus

    # ============ Reads ============

    async def refresh(self) -> bool:
        return await self._view.reload()

    async def list_transformations(
        self,
        locale: str | None = None,
        include_hidden: bool = False,
        search: str | None = None,
        category: TransformationCategory | str | None = None,
        refresh: bool = True,
    ) -> list[MergedPromptItem]:
        """
        Merged, ordered transformations for a locale.

        Fetches fresh catalogs first unless refresh=False; if the fetch
        fails the last good snapshot is used and view.error is set.
        """
        if refresh or not self._view.loaded:
            await self._view.reload()
        items = self._view.items_for(locale or self._view.locale, include_hidden=include_hidden)
        return filter_items(items, search=search, category=_category(category))

    async def _ensure_loaded(self) -> None:
        if not self._view.loaded:
            await self._view.reload()

    async def is_builtin(self, key: str) -> bool:
        await self._ensure_loaded()
        return key in self._view.default_catalog

    # ============ Custom catalog ============

    @staticmethod
    def _build_request(
        key: str | None,
        title: str,
        prompt: str,
        icon: str | None,
        category: TransformationCategory | str | None,
        zh_title: str | None,
        zh_prompt: str | None,
    ) -> UpsertPromptRequest:
        missing = [
            name
            for name, value in (("title", title), ("prompt", prompt))
            if not isinstance(value, str) or not value.strip()
        ]
        if missing:
            raise ValidationError(
                message="Title and prompt are required",
                details={"fields": missing},
            )
        return UpsertPromptRequest(
            key=key,
            en_name=title,
            zh_name=zh_title,
            en_prompt=prompt,
            zh_prompt=zh_prompt,
            icon=icon,
            type=_category(category),
        )

    def _announce(self, action: str, key: str | None = None) -> None:
        self._bus.publish(
            ChangeEvent(resource=RESOURCE_PROMPTS, action=action, key=key, catalog="custom")
        )

    async def create_custom(
        self,
        title: str,
        prompt: str,
        icon: str | None = None,
        category: TransformationCategory | str | None = None,
        zh_title: str | None = None,
        zh_prompt: str | None = None,
    ) -> str:
        """Add a user effect and return its generated key."""
        request = self._build_request(None, title, prompt, icon, category, zh_title, zh_prompt)
        key = await self._client.upsert(request)
        self._view.apply_local_upsert(key, request.to_fields())
        self._announce("upserted", key)
        return key

    async def update_custom(
        self,
        key: str,
        title: str,
        prompt: str,
        icon: str | None = None,
        category: TransformationCategory | str | None = None,
        zh_title: str | None = None,
        zh_prompt: str | None = None,
    ) -> None:
        """
        Overwrite the custom entry for key.

        Using a built-in's key stores a custom entry that shadows it.
        """
        if not key or not key.strip():
            raise ValidationError(message="Key is required", details={"fields": ["key"]})
        request = self._build_request(key, title, prompt, icon, category, zh_title, zh_prompt)
        effective_key = await self._client.upsert(request)
        self._view.apply_local_upsert(effective_key, request.to_fields())
        self._announce("upserted", effective_key)

    async def delete_custom(self, key: str) -> None:
        outcome = await self._client.delete(key)
        if outcome is DeleteOutcome.NOT_FOUND:
            raise EffectNotFoundError(
                message=f"Custom effect not found: {key}",
                details={"key": key},
            )
        self._view.apply_local_delete(key)
        self._announce("deleted", key)

    async def clear_custom(self) -> None:
        await self._client.clear()
        self._view.apply_local_clear()
        self._announce("cleared")

    # ============ Built-in overrides ============

    async def hide_builtin(self, key: str) -> bool:
        """Hide a built-in. Returns False (and does nothing) for other keys."""
        if not await self.is_builtin(key):
            logger.debug(f"Ignoring hide for non built-in effect: {key}")
            return False
        await self._overrides.disable(key)
        return True

    async def restore_builtin(self, key: str) -> None:
        await self._overrides.enable(key)

    async def patch_builtin_override(
        self,
        key: str,
        patch: OverridePatch | dict[str, Any],
    ) -> OverridePatch | None:
        """Merge a patch into a built-in's override. None for non built-ins."""
        if not isinstance(patch, OverridePatch):
            patch = OverridePatch.model_validate(patch)
        if not await self.is_builtin(key):
            logger.debug(f"Ignoring override for non built-in effect: {key}")
            return None
        return await self._overrides.set_override_patch(key, patch)

    async def remove_builtin_override(self, key: str) -> None:
        await self._overrides.remove_override(key)

    async def clear_overrides(self) -> None:
        await self._overrides.clear_all()

    # ============ Applying ============

    async def resolve_prompt_text(
        self,
        key: str,
        locale: str | None = None,
        custom_text: str | None = None,
    ) -> str:
        """
        Prompt text to send for an effect.

        Effects whose prompt is the CUSTOM sentinel take the user's text.
        """
        await self._ensure_loaded()
        items = self._view.items_for(locale or self._view.locale, include_hidden=True)
        item = next((i for i in items if i.key == key), None)
        if item is None:
            raise EffectNotFoundError(message=f"Effect not found: {key}", details={"key": key})

        if item.prompt == CUSTOM_PROMPT_SENTINEL:
            if not custom_text or not custom_text.strip():
                raise ValidationError(
                    message="This effect needs a custom prompt",
                    details={"fields": ["custom_text"]},
                )
            return custom_text.strip()
        return item.prompt

    async def apply(
        self,
        key: str,
        images: list[InputImage],
        backend: ImageEditBackend,
        locale: str | None = None,
        custom_text: str | None = None,
    ) -> EditResult:
        if not images:
            raise ValidationError(message="At least one image is required", details={"fields": ["images"]})
        prompt_text = await self.resolve_prompt_text(key, locale=locale, custom_text=custom_text)
        logger.info(f"Applying effect {key} to {len(images)} image(s)")
        return await backend.apply_transformation(images, prompt_text)
