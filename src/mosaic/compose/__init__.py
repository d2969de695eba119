"""mosaic composition engine — includes, slots, layouts, head merge."""

from mosaic.compose.engine import Composer, CompositionResult, SourceDocument
from mosaic.compose.head import HeadElement, dedupe_key, merge_heads
from mosaic.compose.layouts import LayoutResolver

__all__ = [
    "Composer",
    "CompositionResult",
    "SourceDocument",
    "HeadElement",
    "dedupe_key",
    "merge_heads",
    "LayoutResolver",
]
