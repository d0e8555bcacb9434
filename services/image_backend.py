"""
Contract for the external image-editing backend.

The backend itself is opaque: it receives the uploaded images and the
final prompt text and returns one result image.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class InputImage:
    """An uploaded image."""

    data: bytes
    mime_type: str = "image/png"


@dataclass
class EditResult:
    """What the backend returned for one transformation."""

    image: bytes | None
    mime_type: str | None = None
    text: str | None = None  # Optional model commentary


class ImageEditBackend(ABC):
    """Anything that can apply a prompt to a set of images."""

    @abstractmethod
    async def apply_transformation(
        self,
        images: list[InputImage],
        prompt_text: str,
    ) -> EditResult:
        """Apply prompt_text to the images and return the result."""
        pass
