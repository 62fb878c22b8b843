"""Supported target languages."""

from typing import NamedTuple


class Language(NamedTuple):
    name: str
    flag: str


LANGUAGES: dict[str, Language] = {
    "english": Language("English", "🇬🇧"),
    "spanish": Language("Spanish (Español)", "🇪🇸"),
    "french": Language("French (Français)", "🇫🇷"),
    "german": Language("German (Deutsch)", "🇩🇪"),
    "japanese": Language("Japanese (日本語)", "🇯🇵"),
    "italian": Language("Italian (Italiano)", "🇮🇹"),
    "portuguese": Language("Portuguese (Português)", "🇵🇹"),
    "mandarin": Language("Mandarin Chinese (中文)", "🇨🇳"),
    "korean": Language("Korean (한국어)", "🇰🇷"),
    "arabic": Language("Arabic (العربية)", "🇸🇦"),
}


def language_name(code: str) -> str:
    """Display name for ``code``; unknown codes are shown as-is."""
    language = LANGUAGES.get(code)
    return language.name if language else code
