"""
Unit tests for TransformationService against the in-process prompt API.
"""

import json

import pytest
from httpx import ASGITransport, AsyncClient

from api.schemas.prompts import OverridePatch, TransformationCategory
from core.exceptions import CatalogTransportError, EffectNotFoundError, ValidationError
from services.change_bus import ChangeBus
from services.image_backend import EditResult, ImageEditBackend, InputImage
from services.override_store import OverrideStore
from services.prompt_client import PromptApiClient
from services.transformations import TransformationService


class RecordingBackend(ImageEditBackend):
    """Backend that echoes what it was asked to do."""

    def __init__(self):
        self.calls = []

    async def apply_transformation(self, images, prompt_text):
        self.calls.append((len(images), prompt_text))
        return EditResult(image=b"result", mime_type="image/png")


def _by_key(items):
    return {i.key: i for i in items}


class TestCustomEffects:
    """Create, update, delete and clear custom effects."""

    @pytest.mark.asyncio
    async def test_create_then_list(self, transformation_service):
        key = await transformation_service.create_custom("T", "P")

        items = _by_key(await transformation_service.list_transformations("en"))

        assert items[key].title == "T"
        assert items[key].prompt == "P"
        assert items[key].is_builtin is False
        assert list(items)[-1] == key

    @pytest.mark.asyncio
    async def test_create_is_visible_without_refresh(self, transformation_service):
        await transformation_service.refresh()

        key = await transformation_service.create_custom("Sepia", "Make it sepia", icon="filter")

        items = _by_key(await transformation_service.list_transformations(refresh=False))
        assert items[key].icon == "filter"

    @pytest.mark.asyncio
    async def test_create_persists_both_locales(self, transformation_service, custom_catalog_path):
        key = await transformation_service.create_custom(
            "Ink", "Ink wash painting", zh_title="水墨", category=TransformationCategory.STYLE
        )

        items = _by_key(await transformation_service.list_transformations("zh"))

        assert items[key].title == "水墨"
        assert items[key].prompt == "Ink wash painting"
        assert items[key].category == TransformationCategory.STYLE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title,prompt", [("", "P"), ("T", "   "), ("  ", "")])
    async def test_blank_fields_rejected(self, transformation_service, custom_catalog_path, title, prompt):
        with pytest.raises(ValidationError):
            await transformation_service.create_custom(title, prompt)

        assert not custom_catalog_path.exists()

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, transformation_service):
        with pytest.raises(ValidationError) as exc_info:
            await transformation_service.create_custom("T", "P", category="mystery")

        assert exc_info.value.details["field"] == "category"

    @pytest.mark.asyncio
    async def test_update_builtin_key_shadows_it(self, transformation_service):
        await transformation_service.update_custom("watercolor", "My Watercolor", "Softer watercolor")

        item = _by_key(await transformation_service.list_transformations())["watercolor"]

        assert item.title == "My Watercolor"
        assert item.is_builtin is True
        assert item.is_overridden is True

    @pytest.mark.asyncio
    async def test_update_requires_key(self, transformation_service):
        with pytest.raises(ValidationError):
            await transformation_service.update_custom(" ", "T", "P")

    @pytest.mark.asyncio
    async def test_delete(self, transformation_service):
        key = await transformation_service.create_custom("T", "P")

        await transformation_service.delete_custom(key)

        assert key not in _by_key(await transformation_service.list_transformations())

    @pytest.mark.asyncio
    async def test_delete_missing(self, transformation_service):
        with pytest.raises(EffectNotFoundError):
            await transformation_service.delete_custom("missing")

    @pytest.mark.asyncio
    async def test_delete_shadow_restores_builtin(self, transformation_service):
        await transformation_service.update_custom("watercolor", "Mine", "Mine")

        await transformation_service.delete_custom("watercolor")

        item = _by_key(await transformation_service.list_transformations())["watercolor"]
        assert item.title == "Watercolor"
        assert item.is_overridden is False

    @pytest.mark.asyncio
    async def test_clear_custom(self, transformation_service):
        await transformation_service.create_custom("A", "P")
        await transformation_service.create_custom("B", "P")

        await transformation_service.clear_custom()

        items = await transformation_service.list_transformations()
        assert all(i.is_builtin for i in items)


class TestListing:
    """Locale, search and category filters."""

    @pytest.mark.asyncio
    async def test_builtins_in_order(self, transformation_service):
        items = await transformation_service.list_transformations("en")

        assert [i.key for i in items] == ["custom_prompt", "golden_hour", "watercolor"]

    @pytest.mark.asyncio
    async def test_search_and_category(self, transformation_service):
        by_search = await transformation_service.list_transformations(search="GOLDEN")
        by_category = await transformation_service.list_transformations(category="style")

        assert [i.key for i in by_search] == ["golden_hour"]
        assert [i.key for i in by_category] == ["watercolor"]

    @pytest.mark.asyncio
    async def test_failed_refresh_serves_last_snapshot(self, transformation_service, prompt_api, monkeypatch):
        before = await transformation_service.list_transformations()

        async def unreachable(name):
            raise CatalogTransportError(message="connection refused")

        monkeypatch.setattr(prompt_api, "get_catalog", unreachable)
        after = await transformation_service.list_transformations()

        assert [i.key for i in after] == [i.key for i in before]
        assert transformation_service.view.error == "connection refused"


class TestBuiltinOverrides:
    """Hiding and patching built-ins."""

    @pytest.mark.asyncio
    async def test_hide_and_restore(self, transformation_service):
        assert await transformation_service.hide_builtin("watercolor") is True

        visible = _by_key(await transformation_service.list_transformations())
        everything = _by_key(await transformation_service.list_transformations(include_hidden=True))
        assert "watercolor" not in visible
        assert everything["watercolor"].is_hidden is True

        await transformation_service.restore_builtin("watercolor")

        assert "watercolor" in _by_key(await transformation_service.list_transformations())

    @pytest.mark.asyncio
    async def test_hide_non_builtin_is_noop(self, transformation_service, override_store):
        key = await transformation_service.create_custom("T", "P")

        assert await transformation_service.hide_builtin(key) is False
        assert override_store.disabled_keys == set()

    @pytest.mark.asyncio
    async def test_hide_does_not_touch_catalogs(self, transformation_service, default_catalog_path):
        before = default_catalog_path.read_bytes()

        await transformation_service.hide_builtin("watercolor")

        assert default_catalog_path.read_bytes() == before

    @pytest.mark.asyncio
    async def test_patch_override(self, transformation_service):
        merged = await transformation_service.patch_builtin_override("watercolor", {"title": "Patched"})

        item = _by_key(await transformation_service.list_transformations())["watercolor"]

        assert merged == OverridePatch(title="Patched")
        assert item.title == "Patched"
        assert item.prompt == "Turn the image into a watercolor painting."

    @pytest.mark.asyncio
    async def test_patch_non_builtin_returns_none(self, transformation_service):
        assert await transformation_service.patch_builtin_override("nope", {"title": "X"}) is None

    @pytest.mark.asyncio
    async def test_custom_entry_beats_patch(self, transformation_service):
        await transformation_service.patch_builtin_override("watercolor", {"title": "Patched"})
        await transformation_service.update_custom("watercolor", "Custom", "Custom prompt")

        item = _by_key(await transformation_service.list_transformations())["watercolor"]

        assert item.title == "Custom"

    @pytest.mark.asyncio
    async def test_remove_and_clear_overrides(self, transformation_service, override_store):
        await transformation_service.patch_builtin_override("watercolor", {"title": "Patched"})
        await transformation_service.remove_builtin_override("watercolor")
        assert override_store.overrides == {}

        await transformation_service.hide_builtin("golden_hour")
        await transformation_service.patch_builtin_override("watercolor", {"icon": "brush"})
        await transformation_service.clear_overrides()

        items = _by_key(await transformation_service.list_transformations())
        assert "golden_hour" in items
        assert items["watercolor"].icon == "palette"


class TestApply:
    """Resolving prompt text and calling the image backend."""

    @pytest.mark.asyncio
    async def test_resolve_builtin_prompt(self, transformation_service):
        text = await transformation_service.resolve_prompt_text("golden_hour", locale="zh")

        assert text == "将时间改为黄金时刻日落。"

    @pytest.mark.asyncio
    async def test_custom_prompt_needs_text(self, transformation_service):
        with pytest.raises(ValidationError):
            await transformation_service.resolve_prompt_text("custom_prompt")

        text = await transformation_service.resolve_prompt_text("custom_prompt", custom_text="  Add a hat  ")

        assert text == "Add a hat"

    @pytest.mark.asyncio
    async def test_unknown_effect(self, transformation_service):
        with pytest.raises(EffectNotFoundError):
            await transformation_service.resolve_prompt_text("nope")

    @pytest.mark.asyncio
    async def test_apply_calls_backend(self, transformation_service):
        backend = RecordingBackend()

        result = await transformation_service.apply("watercolor", [InputImage(data=b"img")], backend)

        assert result.image == b"result"
        assert backend.calls == [(1, "Turn the image into a watercolor painting.")]

    @pytest.mark.asyncio
    async def test_apply_requires_images(self, transformation_service):
        backend = RecordingBackend()

        with pytest.raises(ValidationError):
            await transformation_service.apply("watercolor", [], backend)

        assert backend.calls == []


class TestSharedOverrideFile:
    """Two clients sharing one override file."""

    @pytest.fixture
    async def other_service(self, app, test_settings):
        """Second client with its own bus and override store."""
        overrides = await OverrideStore(test_settings.overrides_path).open()
        api = PromptApiClient(AsyncClient(transport=ASGITransport(app=app), base_url="http://test"))
        service = TransformationService(api, overrides, bus=ChangeBus())
        yield service
        await service.close()

    @pytest.mark.asyncio
    async def test_hide_seen_by_other_client(self, transformation_service, other_service):
        await other_service.list_transformations()

        await transformation_service.hide_builtin("watercolor")
        items = await other_service.list_transformations(refresh=True)

        assert [i.key for i in items] == ["custom_prompt", "golden_hour"]

    @pytest.mark.asyncio
    async def test_later_write_keeps_other_clients_hide(
        self, transformation_service, other_service, test_settings
    ):
        await other_service.list_transformations()
        await transformation_service.hide_builtin("watercolor")

        await other_service.patch_builtin_override("golden_hour", {"title": "Dusk"})

        data = json.loads(test_settings.overrides_path.read_text(encoding="utf-8"))
        assert data == {"disabled_keys": ["watercolor"], "overrides": {"golden_hour": {"title": "Dusk"}}}

        items = _by_key(await transformation_service.list_transformations())
        assert "watercolor" not in items
        assert items["golden_hour"].title == "Dusk"
