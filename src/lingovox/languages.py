"""Mapping between language names and the ISO codes the speech API expects.

Different endpoints want different spellings: transcription and translation
take codes, while the speech-to-speech target takes a name.
"""

from __future__ import annotations

from typing import Final

LANGUAGE_TO_CODE: Final[dict[str, str]] = {
    "autodetect": "auto",
    "auto": "auto",
    "shona": "sn",
    "english": "en",
    "chinese": "zh",
    "ndebele": "nr",
}

CODE_TO_LANGUAGE: Final[dict[str, str]] = {
    "auto": "autodetect",
    "sn": "shona",
    "en": "english",
    "zh": "chinese",
    "nr": "ndebele",
}


def get_language_code(language: str) -> str:
    """Return the ISO code for a language name (or code), ``auto`` if unknown."""
    normalized = language.strip().lower()
    if normalized in CODE_TO_LANGUAGE:
        return normalized
    return LANGUAGE_TO_CODE.get(normalized, "auto")


def get_language_name(code: str) -> str:
    """Return the language name for an ISO code (or name), ``autodetect`` if unknown."""
    normalized = code.strip().lower()
    if normalized in LANGUAGE_TO_CODE and normalized != "auto":
        return normalized
    return CODE_TO_LANGUAGE.get(normalized, "autodetect")


def get_supported_languages(include_auto: bool = True) -> list[dict[str, str]]:
    """List supported languages as ``{"name", "code"}`` dicts.

    Sorted alphabetically with autodetect first when included. Aliases that
    share a code (``auto``/``autodetect``) appear once.
    """
    seen: set[str] = set()
    languages: list[dict[str, str]] = []
    for name, code in LANGUAGE_TO_CODE.items():
        if code in seen:
            continue
        if not include_auto and code == "auto":
            continue
        seen.add(code)
        languages.append({"name": name.capitalize(), "code": code})

    return sorted(languages, key=lambda lang: (lang["code"] != "auto", lang["name"]))


def format_transcription_language(language: str) -> str:
    return get_language_code(language)


def format_translation_languages(source: str, target: str) -> dict[str, str]:
    return {
        "sourceLanguage": get_language_code(source),
        "targetLanguage": get_language_code(target),
    }


def format_speech_to_speech_languages(source: str, target: str) -> dict[str, str]:
    """Source language as a code, target language as a name."""
    return {
        "sourceLanguage": get_language_code(source),
        "targetLanguage": get_language_name(target),
    }


def is_language_supported(language: str) -> bool:
    normalized = language.strip().lower()
    return normalized in LANGUAGE_TO_CODE or normalized in CODE_TO_LANGUAGE


def get_display_name(language: str) -> str:
    """Capitalized language name for display."""
    return get_language_name(language).capitalize()
