"""Signed-in identity passed explicitly to the history layer and feature services."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from .settings import AppSettings

LOGGER = logging.getLogger(__name__)

IdentityListener = Callable[[Optional["User"]], None]


@dataclass(frozen=True)
class User:
    """Identity as supplied by the authentication provider."""

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: str = "user"


class IdentityProvider:
    """Holds the current user and notifies subscribers when it changes."""

    def __init__(self, user: Optional[User] = None) -> None:
        self._user = user
        self._listeners: list[IdentityListener] = []
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "IdentityProvider":
        """Build a provider signed in as the configured user, if any."""
        if not settings.user_id:
            return cls()
        return cls(
            User(
                uid=settings.user_id,
                email=settings.user_email or None,
                display_name=settings.user_display_name or None,
            )
        )

    @property
    def current_user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def sign_in(self, user: User) -> None:
        self._set(user)

    def sign_out(self) -> None:
        self._set(None)

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _set(self, user: Optional[User]) -> None:
        with self._lock:
            if user == self._user:
                return
            self._user = user
            listeners = list(self._listeners)

        LOGGER.info("Identity changed: %s", user.uid if user else "signed out")
        for listener in listeners:
            try:
                listener(user)
            except Exception:
                LOGGER.exception("Identity listener %r failed", listener)
