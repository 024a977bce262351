"""
Document surface interface.

The document-editing canvas is an external collaborator; this module only
describes what the studio needs from it and how results are handed over.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from .errors import ValidationError
from .image_utils import image_size_from_data_uri
from .models import GenerationResult

Dimensions = Tuple[int, int]
Position = Tuple[float, float]


@dataclass(frozen=True)
class DocumentContext:
    width: float
    height: float
    element_count: int = 0


class DocumentSurface(Protocol):
    def insert_image(self, image_ref: str, dimensions: Dimensions, position: Position): ...

    def insert_rectangle(self, dimensions: Dimensions, fill: str, position: Position): ...

    def insert_text(self, content: str, position: Position): ...

    def get_document_context(self) -> DocumentContext: ...


def place_result(surface: DocumentSurface, result: GenerationResult,
                 position: Position = (20, 20), max_width: Optional[float] = None):
    """
    Insert one result's image, sized from its pixels.

    With max_width the image is scaled down (keeping its aspect ratio) to fit.
    """
    if not result.success or not result.image_ref:
        raise ValidationError("Cannot place an unsuccessful result",
                              [result.error_message or "no image_ref"])

    width, height = image_size_from_data_uri(result.image_ref)
    if max_width and width > max_width:
        scale = max_width / width
        width, height = int(round(width * scale)), int(round(height * scale))

    return surface.insert_image(result.image_ref, (width, height), position)


def place_batch(surface: DocumentSurface, results: Sequence[GenerationResult],
                origin: Position = (20, 20), gap: float = 20) -> List:
    """Place a batch left to right, wrapping at the document's width."""
    context = surface.get_document_context()
    x, y = origin
    row_height = 0
    placed = []
    for result in results:
        if not result.success:
            continue
        width, height = image_size_from_data_uri(result.image_ref)
        if x > origin[0] and x + width > context.width:
            x = origin[0]
            y += row_height + gap
            row_height = 0
        placed.append(place_result(surface, result, (x, y)))
        x += width + gap
        row_height = max(row_height, height)
    return placed
