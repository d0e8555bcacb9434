"""
Services module for Effect Studio.
"""
from .change_bus import ChangeBus, ChangeEvent
from .prompt_store import PromptCatalogStore, DeleteOutcome
from .prompt_merge import merge_prompt_maps
from .override_store import OverrideStore
from .transformations import TransformationService

__all__ = [
    "ChangeBus",
    "ChangeEvent",
    "PromptCatalogStore",
    "DeleteOutcome",
    "merge_prompt_maps",
    "OverrideStore",
    "TransformationService",
]
