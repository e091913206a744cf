"""Whole-file and live transcription."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..api.models import TranscriptionResult
from ..audio.blob import AudioBlob
from ..audio.recorder import AudioRecorder
from ..exceptions import ApiError
from ..history.models import TranscriptionItem, TranscriptionStreamItem
from ..languages import format_transcription_language, get_language_code
from ..settings import DEFAULT_CHUNK_INTERVAL_SECONDS
from ..streaming.session import StreamingSession
from .base import FeatureService

LOGGER = logging.getLogger(__name__)


class TranscribeFeature(FeatureService):
    """Transcribe a recording; works anonymously, saved only when signed in."""

    error_title = "Transcription Error"

    def transcribe(self, audio: AudioBlob, language: str = "auto") -> TranscriptionResult:
        audio = self._check_audio(audio)
        code = format_transcription_language(language)
        self._busy = True
        try:
            result = self._client.transcribe(audio, code)
        except ApiError as exc:
            self._report_api_error(exc)
            raise
        finally:
            self._busy = False

        self._save(
            TranscriptionItem(
                language=code,
                transcription=result.transcription,
                audio_blob=audio,
            )
        )
        return result


class StreamTranscribeFeature(FeatureService):
    """Creates live sessions whose final transcript is saved to history."""

    error_title = "Transcription Error"

    def create_session(
        self,
        recorder: Optional[AudioRecorder] = None,
        *,
        language: str = "auto",
        chunk_interval: float = DEFAULT_CHUNK_INTERVAL_SECONDS,
        on_transcript_update: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_complete: Optional[Callable[[str, Optional[AudioBlob]], None]] = None,
    ) -> StreamingSession:
        session: StreamingSession

        def handle_error(exc: Exception) -> None:
            self._notifier.error(str(exc), self.error_title)
            if on_error is not None:
                on_error(exc)

        def handle_complete(transcript: str, audio: Optional[AudioBlob]) -> None:
            self.save_transcript(transcript, session.language, audio)
            self._notifier.success("Transcription complete", "Success")
            if on_complete is not None:
                on_complete(transcript, audio)

        session = StreamingSession(
            self._client,
            recorder,
            language=language,
            chunk_interval=chunk_interval,
            on_transcript_update=on_transcript_update,
            on_error=handle_error,
            on_complete=handle_complete,
        )
        return session

    def save_transcript(
        self, transcript: str, language: str, audio: Optional[AudioBlob] = None
    ) -> Optional[str]:
        """Record a finished live transcript for the signed-in user."""
        if not transcript.strip():
            return None
        return self._save(
            TranscriptionStreamItem(
                language=get_language_code(language),
                transcription=transcript,
                audio_blob=audio,
            )
        )
