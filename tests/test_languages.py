"""Tests for the language name/code mapping."""

from __future__ import annotations

import pytest

from lingovox.languages import (
    format_speech_to_speech_languages,
    format_transcription_language,
    format_translation_languages,
    get_display_name,
    get_language_code,
    get_language_name,
    get_supported_languages,
    is_language_supported,
)


@pytest.mark.parametrize(
    "language,code",
    [
        ("English", "en"),
        ("shona", "sn"),
        ("Autodetect", "auto"),
        ("zh", "zh"),
        (" Ndebele ", "nr"),
        ("klingon", "auto"),
    ],
)
def test_get_language_code(language, code):
    assert get_language_code(language) == code


@pytest.mark.parametrize(
    "code,name",
    [("en", "english"), ("SN", "shona"), ("auto", "autodetect"), ("chinese", "chinese"), ("xx", "autodetect")],
)
def test_get_language_name(code, name):
    assert get_language_name(code) == name


def test_supported_languages_sorted_with_auto_first():
    languages = get_supported_languages()

    assert languages[0] == {"name": "Autodetect", "code": "auto"}
    names = [language["name"] for language in languages[1:]]
    assert names == sorted(names)
    assert len({language["code"] for language in languages}) == len(languages)


def test_supported_languages_without_auto():
    codes = [language["code"] for language in get_supported_languages(include_auto=False)]
    assert "auto" not in codes
    assert set(codes) == {"en", "sn", "zh", "nr"}


def test_request_formatting():
    assert format_transcription_language("Shona") == "sn"
    assert format_translation_languages("english", "shona") == {
        "sourceLanguage": "en",
        "targetLanguage": "sn",
    }
    assert format_speech_to_speech_languages("english", "sn") == {
        "sourceLanguage": "en",
        "targetLanguage": "shona",
    }


def test_support_and_display():
    assert is_language_supported("Chinese")
    assert is_language_supported("nr")
    assert not is_language_supported("klingon")
    assert get_display_name("sn") == "Shona"
