"""Recognition endpoint client and language catalog."""

from .client import RecognitionClient
from .languages import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES, Language, find_language

__all__ = ["RecognitionClient", "Language", "SUPPORTED_LANGUAGES", "DEFAULT_LANGUAGE", "find_language"]
