"""HTTP client for the speech API proxy (transcription, translation, synthesis)."""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

import requests  # type: ignore[import-untyped]

from ..audio.blob import MP3_MIME_TYPE, AudioBlob
from ..exceptions import ApiError, ApiErrorType, UploadError
from ..metrics import get_metrics
from ..settings import AppSettings
from .models import (
    SpeechToSpeechResult,
    TranscriptionResult,
    TranscriptionWord,
    TranslationResult,
)

logger = logging.getLogger(__name__)

TRANSCRIBE_PATH = "/transcribe"
TRANSCRIBE_STREAM_PATH = "/transcribe_stream"
TRANSLATE_PATH = "/translate"
TEXT_TO_SPEECH_PATH = "/text-to-speech"
SPEECH_TO_SPEECH_PATH = "/speech-to-speech-translate"
RESET_CONTEXT_PATH = "/reset_context"
USER_STATS_PATH = "/user-stats"


class SpeechApiClient:
    """Thin wrapper over the speech API endpoints.

    Every failure is raised as ``ApiError`` (``UploadError`` for requests that
    carry audio) with a categorized ``error_type``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "SpeechApiClient":
        return cls(
            base_url=settings.api_base_url,
            api_key=settings.api_key,
            timeout=settings.request_timeout_seconds,
        )

    # --- endpoints -------------------------------------------------------

    def transcribe(self, audio: AudioBlob, language: str = "auto") -> TranscriptionResult:
        """Transcribe a complete recording or uploaded file."""
        response = self._request(
            "POST",
            TRANSCRIBE_PATH,
            context="Transcription failed",
            error_cls=UploadError,
            files={"audio": (f"recording{audio.suffix}", audio.data, audio.mime_type)},
            data={"language": language},
        )
        payload = self._json(response, "Transcription failed", UploadError)
        return TranscriptionResult(
            transcription=self._extract_text(payload, "Transcription failed"),
            language=str(payload.get("language") or language),
            confidence=_optional_float(payload.get("confidence")),
            words=_parse_words(payload.get("words")),
        )

    def transcribe_chunk(self, audio: AudioBlob, language: str = "auto") -> str:
        """Transcribe one streaming chunk and return its text (may be empty)."""
        with get_metrics().timed("api.transcribe_chunk", bytes=str(audio.size)):
            response = self._request(
                "POST",
                TRANSCRIBE_STREAM_PATH,
                context="Streaming transcription failed",
                error_cls=UploadError,
                files={"audio_chunk": ("chunk.wav", audio.data, audio.mime_type)},
                data={"language": language},
            )
            payload = self._json(response, "Streaming transcription failed", UploadError)
        text = payload.get("transcription", "")
        if text is None:
            return ""
        if not isinstance(text, str):
            raise UploadError(
                error_type=ApiErrorType.FORMAT_ERROR,
                context="Streaming transcription returned a non-text transcription",
                response_text=str(payload)[:500],
            )
        return text

    def translate(self, text: str, source_language: str, target_language: str) -> TranslationResult:
        """Translate text; the response may carry synthesized audio as base64."""
        response = self._request(
            "POST",
            TRANSLATE_PATH,
            context="Translation failed",
            json={
                "text": text,
                "sourceLanguage": source_language,
                "targetLanguage": target_language,
            },
        )
        payload = self._json(response, "Translation failed")
        translated = payload.get("translatedText")
        if not isinstance(translated, str):
            raise ApiError(
                error_type=ApiErrorType.PARSE_ERROR,
                context="Translation response does not contain translatedText",
                response_text=str(payload)[:500],
            )
        return TranslationResult(
            original_text=text,
            source_language=source_language,
            target_language=target_language,
            translated_text=translated,
            audio=_decode_audio(payload.get("audioContent"), "Translation failed"),
        )

    def text_to_speech(self, text: str, language: str) -> AudioBlob:
        """Synthesize speech; the endpoint answers with raw audio bytes."""
        response = self._request(
            "POST",
            TEXT_TO_SPEECH_PATH,
            context="Text-to-Speech failed",
            json={"text": text, "language": language},
        )
        content_type = response.headers.get("Content-Type", MP3_MIME_TYPE)
        mime_type = content_type.split(";")[0].strip() or MP3_MIME_TYPE
        return AudioBlob(data=response.content, mime_type=mime_type)

    def speech_to_speech(
        self, audio: AudioBlob, source_language: str, target_language: str
    ) -> SpeechToSpeechResult:
        """Translate spoken audio into synthesized speech in another language.

        ``source_language`` is sent as a code, ``target_language`` as a name.
        """
        response = self._request(
            "POST",
            SPEECH_TO_SPEECH_PATH,
            context="Speech-to-Speech translation failed",
            error_cls=UploadError,
            files={"audio": (f"recording{audio.suffix}", audio.data, audio.mime_type)},
            data={"sourceLanguage": source_language, "targetLanguage": target_language},
        )
        payload = self._json(response, "Speech-to-Speech translation failed", UploadError)
        translated_audio = _decode_audio(
            payload.get("synthesizedAudio"), "Speech-to-Speech translation failed"
        )
        return SpeechToSpeechResult(
            original_text=str(payload.get("originalText") or ""),
            original_language=source_language,
            translated_text=str(payload.get("translatedText") or ""),
            translated_language=target_language,
            translated_audio=translated_audio or AudioBlob(b"", MP3_MIME_TYPE),
            original_audio=audio,
        )

    def reset_context(self) -> dict[str, Any]:
        """Ask the streaming backend to forget the context of previous chunks."""
        response = self._request(
            "POST", RESET_CONTEXT_PATH, context="Failed to reset transcription context"
        )
        return self._json(response, "Failed to reset transcription context")

    def user_stats(self) -> dict[str, Any]:
        response = self._request(
            "GET", USER_STATS_PATH, context="Failed to fetch user statistics"
        )
        return self._json(response, "Failed to fetch user statistics")

    # --- plumbing --------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        context: str,
        error_cls: type[ApiError] = ApiError,
        **kwargs: Any,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        send = requests.post if method == "POST" else requests.get
        start = time.perf_counter()
        try:
            response = send(url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            logger.warning(
                "Speech API request timed out",
                extra={"url": url, "timeout_seconds": self.timeout},
            )
            raise error_cls(
                error_type=ApiErrorType.NETWORK_TIMEOUT,
                context=f"{context}: request timed out after {self.timeout}s",
                original_exception=e,
            ) from e
        except requests.exceptions.ConnectionError as e:
            logger.warning("Failed to connect to speech API", extra={"url": url})
            raise error_cls(
                error_type=ApiErrorType.CONNECTION_FAILED,
                context=f"{context}: could not connect to the speech service",
                original_exception=e,
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error("Speech API request failed", extra={"url": url}, exc_info=e)
            raise error_cls(
                error_type=ApiErrorType.UNKNOWN,
                context=context,
                original_exception=e,
            ) from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        get_metrics().record(
            f"api{path}", elapsed_ms, status=str(response.status_code)
        )

        if not 200 <= response.status_code < 300:
            logger.error(
                "Speech API returned non-2xx status",
                extra={
                    "url": url,
                    "status_code": response.status_code,
                    "response_preview": response.text[:500],
                },
            )
            raise error_cls(
                error_type=ApiErrorType.HTTP_ERROR,
                context=context,
                status_code=response.status_code,
                response_text=response.text[:500],
            )
        logger.debug("%s %s answered in %.0f ms", method, path, elapsed_ms)
        return response

    def _json(
        self,
        response: requests.Response,
        context: str,
        error_cls: type[ApiError] = ApiError,
    ) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise error_cls(
                error_type=ApiErrorType.PARSE_ERROR,
                context=f"{context}: response is not valid JSON",
                original_exception=e,
                response_text=response.text[:500],
            ) from e
        if not isinstance(payload, dict):
            response_type = type(payload).__name__
            raise error_cls(
                error_type=ApiErrorType.FORMAT_ERROR,
                context=f"{context}: expected a JSON object, got {response_type}",
                response_text=str(payload)[:500],
            )
        return payload

    def _extract_text(self, payload: Mapping[str, Any], context: str) -> str:
        """Find the transcription text in the common response shapes."""
        for key in ("transcription", "text", "result"):
            value = payload.get(key)
            if isinstance(value, str):
                return value

        data = payload.get("data")
        if isinstance(data, dict):
            for key in ("transcription", "text"):
                if isinstance(data.get(key), str):
                    return data[key]

        logger.error(
            "Could not extract text from response",
            extra={"response_keys": list(payload.keys())},
        )
        raise UploadError(
            error_type=ApiErrorType.PARSE_ERROR,
            context=f"{context}: response does not contain transcription text",
            response_text=str(payload)[:500],
        )


def _optional_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _parse_words(raw: Any) -> list[list[TranscriptionWord]]:
    """Parse ``words`` (a list of segments, each a list of word timings)."""
    segments: list[list[TranscriptionWord]] = []
    if not isinstance(raw, list):
        return segments
    for segment in raw:
        if not isinstance(segment, list):
            continue
        words = []
        for entry in segment:
            if not isinstance(entry, dict) or "word" not in entry:
                continue
            words.append(
                TranscriptionWord(
                    word=str(entry["word"]),
                    start=float(entry.get("start", 0.0)),
                    end=float(entry.get("end", 0.0)),
                )
            )
        segments.append(words)
    return segments


def _decode_audio(encoded: Any, context: str) -> Optional[AudioBlob]:
    if not encoded:
        return None
    if not isinstance(encoded, str):
        raise ApiError(
            error_type=ApiErrorType.FORMAT_ERROR,
            context=f"{context}: audio payload is not base64 text",
        )
    try:
        return AudioBlob.from_base64(encoded, MP3_MIME_TYPE)
    except ValueError as e:
        raise ApiError(
            error_type=ApiErrorType.PARSE_ERROR,
            context=f"{context}: audio payload could not be decoded",
            original_exception=e,
        ) from e
