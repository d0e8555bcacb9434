"""
Prompts router for the effect catalogs.

Endpoints:
- GET /api/prompts/merged - Merged, ordered effect list for a locale
- GET /api/prompts/{catalog} - Whole default or custom catalog document
- POST /api/prompts/custom - Create or replace a custom effect
- DELETE /api/prompts/custom/{key} - Delete a custom effect
- DELETE /api/prompts/custom - Remove every custom effect
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse

from api.dependencies import get_app_settings, get_prompt_store
from api.schemas.prompts import (
    CatalogName,
    OkResponse,
    TransformationCategory,
    TransformationListResponse,
    UpsertPromptRequest,
    UpsertPromptResponse,
)
from core.config import Settings
from core.exceptions import CatalogStorageError
from services.prompt_merge import filter_items, merge_prompt_maps
from services.prompt_store import PromptCatalogStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prompts", tags=["prompts"])

# Catalog reads must never be served from a cache
NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.get(
    "/merged",
    response_model=TransformationListResponse,
    summary="Merged effect list",
)
async def list_merged(
    response: Response,
    locale: Optional[str] = Query(default=None, description="Locale code, e.g. en or zh"),
    search: Optional[str] = Query(default=None, description="Search title and prompt text"),
    category: Optional[TransformationCategory] = Query(default=None),
    store: PromptCatalogStore = Depends(get_prompt_store),
    settings: Settings = Depends(get_app_settings),
) -> TransformationListResponse:
    """
    Default and custom catalogs merged for one locale.

    Built-in overrides are a per-client concern and are not applied here.
    """
    locale = locale or settings.default_locale
    default, custom = await asyncio.gather(
        store.read_catalog(CatalogName.DEFAULT),
        store.read_catalog(CatalogName.CUSTOM),
    )
    items = merge_prompt_maps(default, custom, locale, fallback_locale=settings.fallback_locale)
    items = filter_items(items, search=search, category=category)

    response.headers.update(NO_STORE_HEADERS)
    return TransformationListResponse(items=items, total=len(items), locale=locale)


@router.get(
    "/{catalog}",
    summary="Read a catalog",
    description="Return the whole catalog document, or {} when it is missing.",
)
async def get_catalog(
    catalog: str,
    store: PromptCatalogStore = Depends(get_prompt_store),
) -> JSONResponse:
    data = await store.read_catalog(catalog)
    return JSONResponse(content=data, headers=NO_STORE_HEADERS)


@router.post(
    "/custom",
    response_model=UpsertPromptResponse,
    summary="Create or replace a custom effect",
)
async def upsert_custom_prompt(
    request: UpsertPromptRequest,
    store: PromptCatalogStore = Depends(get_prompt_store),
):
    """
    Write one custom effect.

    A request without a key creates a new entry under a generated key;
    a request with a key replaces that entry completely.
    """
    try:
        key = await store.upsert_entry(CatalogName.CUSTOM, request.to_fields(), key=request.key)
    except CatalogStorageError as e:
        logger.error(f"Failed to save custom prompt: {e.message}")
        return JSONResponse(
            status_code=500,
            content={"ok": False, "key": request.key or "", "error": e.message},
        )

    return UpsertPromptResponse(ok=True, key=key)


@router.delete(
    "/custom/{key:path}",
    response_model=OkResponse,
    response_model_exclude_none=True,
    summary="Delete a custom effect",
)
async def delete_custom_prompt(
    key: str,
    store: PromptCatalogStore = Depends(get_prompt_store),
):
    try:
        outcome = await store.delete_entry(CatalogName.CUSTOM, key)
    except CatalogStorageError as e:
        logger.error(f"Failed to delete custom prompt {key}: {e.message}")
        return JSONResponse(status_code=500, content={"ok": False, "error": e.message})

    if not outcome.ok:
        return JSONResponse(status_code=404, content={"ok": False, "error": "Not found"})
    return OkResponse(ok=True)


@router.delete(
    "/custom",
    response_model=OkResponse,
    response_model_exclude_none=True,
    summary="Clear the custom catalog",
)
async def clear_custom_prompts(
    store: PromptCatalogStore = Depends(get_prompt_store),
):
    try:
        ok = await store.clear_catalog(CatalogName.CUSTOM)
    except CatalogStorageError as e:
        logger.error(f"Failed to clear custom prompts: {e.message}")
        return JSONResponse(status_code=500, content={"ok": False, "error": e.message})

    return OkResponse(ok=ok)
