"""
Prompt catalog Pydantic schemas.

Covers the on-disk catalog records, the CRUD request/response bodies,
the client-side override set and the merged display record.
"""

from enum import StrEnum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

CUSTOM_PROMPT_KEY = "custom_prompt"
CUSTOM_PROMPT_SENTINEL = "CUSTOM"
DEFAULT_ICON = "auto_awesome"


class CatalogName(StrEnum):
    """The two catalog documents."""

    DEFAULT = "default"
    CUSTOM = "custom"


class TransformationCategory(StrEnum):
    """Grouping tag for transformations."""

    CUSTOM = "custom"
    STYLE = "style"
    ELEMENTS = "elements"
    SCENE = "scene"
    LIGHTING = "lighting"
    SPECIAL = "special"


def _non_blank(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


class PromptFields(BaseModel):
    """
    One catalog record, without its key.

    Locale-specific text lives in ``<locale>_name`` / ``<locale>_prompt``
    fields. Only ``en`` and ``zh`` are declared; other locales are kept
    as extra fields so they survive a read.
    """

    model_config = ConfigDict(extra="allow")

    en_name: Optional[str] = None
    zh_name: Optional[str] = None
    en_prompt: Optional[str] = None
    zh_prompt: Optional[str] = None
    icon: Optional[str] = None
    type: Optional[str] = None

    def _localized(self, field: str, locale: str) -> Optional[str]:
        return _non_blank(getattr(self, f"{locale}_{field}", None))

    def name_for(self, locale: str) -> Optional[str]:
        """Display title for a locale, None if missing or blank."""
        return self._localized("name", locale)

    def prompt_for(self, locale: str) -> Optional[str]:
        """Prompt text for a locale, None if missing or blank."""
        return self._localized("prompt", locale)

    @property
    def category(self) -> Optional[TransformationCategory]:
        """The record's category, ignoring values outside the known set."""
        try:
            return TransformationCategory(self.type) if self.type else None
        except ValueError:
            return None


class UpsertPromptRequest(BaseModel):
    """Body of POST /prompts/custom."""

    key: Optional[str] = Field(None, description="Existing key to overwrite; generated if omitted")
    en_name: str = Field(..., description="English title")
    zh_name: Optional[str] = Field(None, description="Chinese title, defaults to en_name")
    en_prompt: str = Field(..., description="English prompt text")
    zh_prompt: Optional[str] = Field(None, description="Chinese prompt, defaults to en_prompt")
    icon: Optional[str] = Field(None, description="Material Symbols icon name")
    type: Optional[TransformationCategory] = Field(None, description="Category tag")

    @field_validator("en_name", "en_prompt")
    @classmethod
    def require_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    def to_fields(self) -> Dict[str, Any]:
        """Fields to persist, trimmed, with zh mirrored from en when absent."""
        fields: Dict[str, Any] = {
            "en_name": self.en_name,
            "zh_name": (_non_blank(self.zh_name) or self.en_name).strip(),
            "en_prompt": self.en_prompt,
            "zh_prompt": (_non_blank(self.zh_prompt) or self.en_prompt).strip(),
        }
        if _non_blank(self.icon):
            fields["icon"] = self.icon.strip()
        if self.type:
            fields["type"] = self.type.value
        return fields


class UpsertPromptResponse(BaseModel):
    """Response of POST /prompts/custom."""

    ok: bool
    key: str


class OkResponse(BaseModel):
    """Generic write acknowledgement."""

    ok: bool
    error: Optional[str] = None


class OverridePatch(BaseModel):
    """Partial replacement for a built-in's displayed fields."""

    title: Optional[str] = None
    prompt: Optional[str] = None
    icon: Optional[str] = None
    category: Optional[TransformationCategory] = None

    def merged_with(self, other: "OverridePatch") -> "OverridePatch":
        """Field-level overwrite: values set on ``other`` win."""
        data = self.model_dump(exclude_none=True)
        data.update(other.model_dump(exclude_none=True))
        return OverridePatch(**data)


class OverrideSet(BaseModel):
    """Hidden built-ins and per-key override patches."""

    disabled_keys: Set[str] = Field(default_factory=set)
    overrides: Dict[str, OverridePatch] = Field(default_factory=dict)

    def to_document(self) -> Dict[str, Any]:
        """JSON document persisted on disk."""
        return {
            "disabled_keys": sorted(self.disabled_keys),
            "overrides": {
                key: patch.model_dump(mode="json", exclude_none=True)
                for key, patch in sorted(self.overrides.items())
            },
        }


class MergedPromptItem(BaseModel):
    """A display-ready transformation, resolved for one locale."""

    key: str
    title: str
    prompt: str
    icon: Optional[str] = None
    category: Optional[TransformationCategory] = None
    is_builtin: bool = False
    is_overridden: bool = False
    is_hidden: bool = False

    @property
    def is_custom_prompt(self) -> bool:
        return self.key == CUSTOM_PROMPT_KEY

    @property
    def display_icon(self) -> str:
        return self.icon or DEFAULT_ICON

    @property
    def display_category(self) -> Optional[TransformationCategory]:
        if self.category:
            return self.category
        return TransformationCategory.CUSTOM if self.is_custom_prompt else None


class TransformationListResponse(BaseModel):
    """Merged catalog as returned to display clients."""

    items: List[MergedPromptItem] = Field(default_factory=list)
    total: int = 0
    locale: str = "en"
