from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(slots=True, frozen=True)
class Language:
    code: str
    friendly_name: str


SUPPORTED_LANGUAGES: Tuple[Language, ...] = (
    Language("ru-RU", "Русский"),
    Language("en-US", "English (US)"),
    Language("en-GB", "English (UK)"),
    Language("uk-UA", "Українська"),
    Language("de-DE", "Deutsch"),
    Language("fr-FR", "Français"),
    Language("es-ES", "Español"),
    Language("it-IT", "Italiano"),
    Language("pt-BR", "Português (Brasil)"),
    Language("pl-PL", "Polski"),
    Language("tr-TR", "Türkçe"),
    Language("ja-JP", "日本語"),
)

DEFAULT_LANGUAGE = "ru-RU"


def find_language(code: str) -> Optional[Language]:
    lowered = code.strip().lower()
    for language in SUPPORTED_LANGUAGES:
        if language.code.lower() == lowered:
            return language
    return None


if find_language(DEFAULT_LANGUAGE) is None:  # pragma: no cover - catalog edit guard
    raise RuntimeError(f"default language {DEFAULT_LANGUAGE} missing from catalog")


__all__ = ["Language", "SUPPORTED_LANGUAGES", "DEFAULT_LANGUAGE", "find_language"]
