"""Media normalization for the recognition pipeline."""

from .transcoder import MediaTranscoder
from .types import MediaKind, MediaPayload

__all__ = ["MediaTranscoder", "MediaKind", "MediaPayload"]
