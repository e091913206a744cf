"""Speech synthesis and speech-to-speech translation."""

from __future__ import annotations

from dataclasses import dataclass

from ..api.models import SpeechToSpeechResult
from ..audio.blob import AudioBlob
from ..exceptions import ApiError
from ..history.models import SpeechToSpeechItem, TextToSpeechItem
from ..languages import (
    format_speech_to_speech_languages,
    get_language_code,
    get_language_name,
)
from .base import FeatureService


@dataclass(frozen=True)
class TextToSpeechResult:
    text: str
    language: str
    audio: AudioBlob


class TextToSpeechFeature(FeatureService):
    error_title = "Text-to-Speech Error"
    requires_login = True
    login_message = "You must be logged in to use text-to-speech"

    def convert(self, text: str, language: str) -> TextToSpeechResult:
        self._check_user()
        self._check_text(text, "Please enter text to convert to speech")
        code = get_language_code(language)

        self._busy = True
        try:
            audio = self._client.text_to_speech(text, language)
        except ApiError as exc:
            self._report_api_error(exc)
            raise
        finally:
            self._busy = False

        name = get_language_name(code)
        self._save(TextToSpeechItem(language=name, text=text, audio_blob=audio))
        return TextToSpeechResult(text=text, language=name, audio=audio)


class SpeechToSpeechFeature(FeatureService):
    """Translate spoken audio; works anonymously, saved only when signed in."""

    error_title = "Speech-to-Speech Translation Error"

    def convert(
        self, audio: AudioBlob, source_language: str, target_language: str
    ) -> SpeechToSpeechResult:
        audio = self._check_audio(audio)
        source_code = get_language_code(source_language)
        target_code = get_language_code(target_language)

        self._busy = True
        try:
            languages = format_speech_to_speech_languages(source_code, target_code)
            response = self._client.speech_to_speech(
                audio, languages["sourceLanguage"], languages["targetLanguage"]
            )
        except ApiError as exc:
            self._report_api_error(exc)
            raise
        finally:
            self._busy = False

        source_name = get_language_name(source_code)
        target_name = get_language_name(target_code)
        self._save(
            SpeechToSpeechItem(
                original_language=source_name,
                translated_language=target_name,
                original_text=response.original_text,
                translated_text=response.translated_text,
                original_audio_blob=audio,
                translated_audio_blob=response.translated_audio,
            )
        )
        return SpeechToSpeechResult(
            original_text=response.original_text,
            original_language=source_name,
            translated_text=response.translated_text,
            translated_language=target_name,
            translated_audio=response.translated_audio,
            original_audio=audio,
        )
