"""
fencelight

Build-time preprocessor that replaces annotated code fences with highlighted,
type-annotated HTML produced by one persistent highlight worker process.
"""

from .core.process_manager import WorkerHandle
from .core.protocol import HighlightRequest, HighlightResponse
from .preprocess import process_document, process_tree, render_blocks, rewrite_annotated_blocks

__version__ = "0.1.0"

__all__ = [
    "WorkerHandle",
    "HighlightRequest",
    "HighlightResponse",
    "process_document",
    "process_tree",
    "render_blocks",
    "rewrite_annotated_blocks",
]
