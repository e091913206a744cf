"""Shared plumbing for the feature services."""

from __future__ import annotations

import logging
from typing import Optional

from ..api.client import SpeechApiClient
from ..audio.blob import AudioBlob
from ..exceptions import ApiError, StorageError, ValidationError
from ..history.access import HistoryService
from ..history.models import HistoryItem
from ..identity import IdentityProvider, User
from ..notifications import Notifier

LOGGER = logging.getLogger(__name__)


class FeatureService:
    """Base for services that call the speech API and record the result.

    Subclasses set ``error_title`` (shown on API failures) and
    ``requires_login``.
    """

    error_title = "Error"
    requires_login = False
    login_message = "You must be logged in to use this feature"

    def __init__(
        self,
        client: SpeechApiClient,
        history: Optional[HistoryService],
        identity: IdentityProvider,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._client = client
        self._history = history
        self._identity = identity
        self._notifier = notifier or Notifier()
        self._busy = False

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def user(self) -> Optional[User]:
        return self._identity.current_user

    def _check_user(self) -> None:
        if self.requires_login and self._identity.current_user is None:
            raise ValidationError(self.login_message)

    @staticmethod
    def _check_text(text: str, message: str) -> str:
        if not text or not text.strip():
            raise ValidationError(message)
        return text

    @staticmethod
    def _check_audio(audio: Optional[AudioBlob]) -> AudioBlob:
        if audio is None or not audio:
            raise ValidationError("Please provide a recording or an audio file")
        return audio

    def _report_api_error(self, exc: ApiError) -> None:
        LOGGER.error("%s: %s", self.error_title, exc)
        self._notifier.error(str(exc), self.error_title)

    def _save(self, item: HistoryItem) -> Optional[str]:
        """Record the result for the signed-in user; failures never propagate."""
        if self._history is None or self._identity.current_user is None:
            return None
        try:
            return self._history.add_history_item(item)
        except StorageError as exc:
            LOGGER.warning("Result was not saved to history: %s", exc)
            return None
