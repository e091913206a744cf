"""History bound to the signed-in user, with an in-memory view for front ends."""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Optional

from ..exceptions import StorageError
from ..identity import IdentityProvider, User
from ..notifications import Notifier
from .models import HistoryItem, HistoryItemType, now_ms
from .store import HistoryStore

LOGGER = logging.getLogger(__name__)


class HistoryService:
    """Exposes the history store for the current identity.

    The ``items`` view is reloaded whenever the identity changes and cleared on
    sign-out. Each load carries a generation token; a load that finishes after
    the identity (or filter) changed again is discarded instead of overwriting
    the newer view.
    """

    def __init__(
        self,
        store: HistoryStore,
        identity: IdentityProvider,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._store = store
        self._identity = identity
        self._notifier = notifier or Notifier()
        self._items: list[HistoryItem] = []
        self._loading = False
        self._generation = 0
        self._lock = threading.Lock()
        self._unsubscribe = identity.subscribe(self._on_identity_changed)
        self._on_identity_changed(identity.current_user)

    @property
    def items(self) -> list[HistoryItem]:
        with self._lock:
            return list(self._items)

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def user(self) -> Optional[User]:
        return self._identity.current_user

    def close(self) -> None:
        """Stop following identity changes."""
        self._unsubscribe()

    def refresh_history(self, item_type: Optional[HistoryItemType] = None) -> list[HistoryItem]:
        """Reload the view for the current user, optionally filtered by type."""
        user = self._identity.current_user
        with self._lock:
            self._generation += 1
            generation = self._generation
            if user is None:
                self._items = []
                self._loading = False
                return []
            self._loading = True

        try:
            items = self._store.get_history_items(user.uid, item_type)
        except StorageError as exc:
            LOGGER.error("Error fetching history: %s", exc)
            self._notifier.error("Failed to load history items", "Error")
            with self._lock:
                if generation == self._generation:
                    self._loading = False
            return self.items

        with self._lock:
            if generation != self._generation:
                LOGGER.debug("Discarding stale history load for %s", user.uid)
                return list(self._items)
            self._items = items
            self._loading = False
            return list(items)

    def filter_history_by_type(self, item_type: HistoryItemType) -> list[HistoryItem]:
        return self.refresh_history(item_type)

    def get_history_item(self, item_id: str) -> Optional[HistoryItem]:
        """Return one of the current user's items, or None."""
        user = self._identity.current_user
        if user is None:
            return None
        try:
            item = self._store.get_history_item(item_id)
        except StorageError as exc:
            LOGGER.error("Error getting history item %s: %s", item_id, exc)
            self._notifier.error("Failed to retrieve history item", "Error")
            return None
        if item is not None and item.user_id != user.uid:
            return None
        return item

    def add_history_item(self, item: HistoryItem) -> Optional[str]:
        """Save an item for the current user.

        Returns None without storing anything when nobody is signed in.

        Raises:
            StorageError: If the store rejected the item (after notifying)
        """
        user = self._identity.current_user
        if user is None:
            LOGGER.debug("Not saving %s item: no signed-in user", item.type.value)
            return None

        stamped = dataclasses.replace(
            item, user_id=user.uid, timestamp=item.timestamp or now_ms()
        )
        try:
            item_id = self._store.add_history_item(stamped)
        except StorageError as exc:
            LOGGER.error("Error adding history item: %s", exc)
            self._notifier.error("Failed to save history item", "Error")
            raise

        # The store may have dropped audio; the view shows what was kept.
        try:
            stored = self._store.get_history_item(item_id)
        except StorageError as exc:
            LOGGER.warning("Could not read back history item %s: %s", item_id, exc)
            stored = None
        if stored is not None:
            with self._lock:
                self._items.insert(0, stored)
        return item_id

    def delete_history_item(self, item_id: str) -> bool:
        """Delete one item of the current user; returns False on failure."""
        user = self._identity.current_user
        if user is None:
            return False
        try:
            existing = self._store.get_history_item(item_id)
            if existing is not None and existing.user_id != user.uid:
                LOGGER.warning("Refusing to delete history item %s of another user", item_id)
                return False
            self._store.delete_history_item(item_id)
        except StorageError as exc:
            LOGGER.error("Error deleting history item %s: %s", item_id, exc)
            self._notifier.error("Failed to delete history item", "Error")
            return False

        with self._lock:
            self._items = [item for item in self._items if item.id != item_id]
        return True

    def clear_history(self) -> bool:
        """Delete all items of the current user; returns False on failure."""
        user = self._identity.current_user
        if user is None:
            return False
        try:
            self._store.clear_history(user.uid)
        except StorageError as exc:
            LOGGER.error("Error clearing history: %s", exc)
            self._notifier.error("Failed to clear history", "Error")
            self.refresh_history()
            return False

        with self._lock:
            self._items = []
        self._notifier.success("History cleared successfully", "Success")
        return True

    def _on_identity_changed(self, user: Optional[User]) -> None:
        if user is None:
            with self._lock:
                self._generation += 1
                self._items = []
                self._loading = False
            return
        self.refresh_history()
