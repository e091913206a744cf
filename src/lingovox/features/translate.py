"""Text translation."""

from __future__ import annotations

from ..api.models import TranslationResult
from ..exceptions import ApiError
from ..history.models import TranslationItem
from ..languages import format_translation_languages, get_language_name
from .base import FeatureService


class TranslateFeature(FeatureService):
    error_title = "Translation Error"
    requires_login = True
    login_message = "You must be logged in to translate text"

    def translate(
        self, text: str, source_language: str, target_language: str
    ) -> TranslationResult:
        """Translate ``text``; languages may be given as names or codes.

        The result carries language names; the request uses codes.

        Raises:
            ValidationError: If nobody is signed in or the text is empty
            ApiError: If the request failed (after notifying)
        """
        self._check_user()
        self._check_text(text, "Please enter text to translate")
        languages = format_translation_languages(source_language, target_language)
        source_code = languages["sourceLanguage"]
        target_code = languages["targetLanguage"]

        self._busy = True
        try:
            response = self._client.translate(text, source_code, target_code)
        except ApiError as exc:
            self._report_api_error(exc)
            raise
        finally:
            self._busy = False

        source_name = get_language_name(source_code)
        target_name = get_language_name(target_code)
        self._save(
            TranslationItem(
                source_language=source_name,
                target_language=target_name,
                original_text=text,
                translated_text=response.translated_text,
                audio_blob=response.audio,
            )
        )
        return TranslationResult(
            original_text=text,
            source_language=source_name,
            target_language=target_name,
            translated_text=response.translated_text,
            audio=response.audio,
        )
