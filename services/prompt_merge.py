"""
Merge of the default and custom catalogs into the display list.

merge_prompt_maps() is a pure function: identical inputs always give an
identical, identically ordered list, whatever the iteration order of the
source mappings.

Field precedence, highest first:
    custom entry > override patch > default entry > consumer defaults
"""

import logging
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from pydantic import ValidationError
from pypinyin import lazy_pinyin
from pyuca import Collator

from api.schemas.prompts import (
    CUSTOM_PROMPT_KEY,
    CUSTOM_PROMPT_SENTINEL,
    MergedPromptItem,
    OverridePatch,
    OverrideSet,
    PromptFields,
    TransformationCategory,
)

logger = logging.getLogger(__name__)

FALLBACK_LOCALE = "en"


def parse_catalog(raw: Mapping[str, Any]) -> dict[str, PromptFields]:
    """Turn a raw JSON catalog into typed records, dropping unusable entries."""
    catalog: dict[str, PromptFields] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key.strip():
            logger.warning("Skipping catalog entry with empty key")
            continue
        if isinstance(value, PromptFields):
            catalog[key] = value
        elif isinstance(value, Mapping):
            try:
                catalog[key] = PromptFields.model_validate(dict(value))
            except ValidationError as e:
                logger.warning(f"Skipping malformed catalog entry {key}: {e.error_count()} errors")
        else:
            logger.warning(f"Skipping catalog entry {key}: expected object, got {type(value).__name__}")
    return catalog


def _first(*values: str | None) -> str | None:
    for value in values:
        if value:
            return value
    return None


@lru_cache(maxsize=1)
def _collator() -> Collator:
    return Collator()


def collation_key(title: str, locale: str = FALLBACK_LOCALE) -> tuple:
    """
    Unicode Collation Algorithm key for a title in a locale.

    Case and accents only break ties. Chinese titles collate by pinyin,
    one syllable at a time.
    """
    collator = _collator()
    if locale.split("-")[0].lower() == "zh":
        weights = tuple(collator.sort_key(syllable) for syllable in lazy_pinyin(title))
    else:
        weights = (collator.sort_key(title),)
    return (weights, title)


def sort_key(item: MergedPromptItem, locale: str = FALLBACK_LOCALE) -> tuple:
    return (
        0 if item.key == CUSTOM_PROMPT_KEY else 1,
        0 if item.is_builtin else 1,
        collation_key(item.title, locale),
        item.key,
    )


def _merge_one(
    key: str,
    d: PromptFields | None,
    c: PromptFields | None,
    locale: str,
    fallback_locale: str,
    patch: OverridePatch | None,
) -> MergedPromptItem:
    title = _first(
        c.name_for(locale) if c else None,
        d.name_for(locale) if d else None,
        c.name_for(fallback_locale) if c else None,
        d.name_for(fallback_locale) if d else None,
    ) or key

    prompt = _first(
        c.prompt_for(locale) if c else None,
        d.prompt_for(locale) if d else None,
        c.prompt_for(fallback_locale) if c else None,
        d.prompt_for(fallback_locale) if d else None,
    ) or ""

    icon = _first(c.icon if c else None, d.icon if d else None)
    category: TransformationCategory | None = (c.category if c else None) or (
        d.category if d else None
    )

    # Patches customise pure built-ins; a custom entry for the key wins outright
    if patch is not None and d is not None and c is None:
        title = patch.title or title
        prompt = patch.prompt or prompt
        icon = patch.icon or icon
        category = patch.category or category

    if key == CUSTOM_PROMPT_KEY:
        prompt = CUSTOM_PROMPT_SENTINEL

    return MergedPromptItem(
        key=key,
        title=title,
        prompt=prompt,
        icon=icon,
        category=category,
        is_builtin=d is not None,
        is_overridden=d is not None and c is not None,
    )


def merge_prompt_maps(
    default: Mapping[str, Any],
    custom: Mapping[str, Any],
    locale: str,
    overrides: OverrideSet | None = None,
    include_hidden: bool = False,
    fallback_locale: str = FALLBACK_LOCALE,
) -> list[MergedPromptItem]:
    """
    Combine both catalogs into the ordered list shown to users.

    Args:
        default: Built-in catalog (raw JSON mapping or parsed records)
        custom: User catalog
        locale: Requested locale, e.g. "en" or "zh"
        overrides: Hidden keys and patches for built-ins (manager views)
        include_hidden: Keep disabled built-ins, flagged with is_hidden
        fallback_locale: Locale tried before falling back to the raw key

    Returns:
        custom_prompt first, then built-ins, then pure custom entries,
        each group ordered by title.
    """
    default_catalog = parse_catalog(default)
    custom_catalog = parse_catalog(custom)

    items: list[MergedPromptItem] = []
    for key in set(default_catalog) | set(custom_catalog):
        d = default_catalog.get(key)
        c = custom_catalog.get(key)
        if d is None and c is None:
            continue

        patch = overrides.overrides.get(key) if overrides is not None and d is not None else None
        item = _merge_one(key, d, c, locale, fallback_locale, patch)

        if overrides is not None and d is not None and key in overrides.disabled_keys:
            if not include_hidden:
                continue
            item.is_hidden = True

        items.append(item)

    items.sort(key=lambda item: sort_key(item, locale))
    return items


def filter_items(
    items: list[MergedPromptItem],
    search: str | None = None,
    category: str | None = None,
) -> list[MergedPromptItem]:
    """Case-insensitive search over title and prompt, plus category filter."""
    query = (search or "").strip().casefold()
    result = []
    for item in items:
        if category and item.display_category != category:
            continue
        if query and query not in f"{item.title} {item.prompt}".casefold():
            continue
        result.append(item)
    return result
