"""User notification preferences: cached lookup and the send gates."""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from tenderflow.config import settings
from tenderflow.db import PersistenceGateway
from tenderflow.schemas import NotificationPreferences, NotificationType, User

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    user: User | None
    expires_at: float


class PreferenceCache:
    """
    Bounded TTL cache of user documents keyed by user id.

    ``None`` values are cached too: an unreadable or missing user stays
    denied until the entry expires or is invalidated.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_entries: int | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = settings.preference_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.max_entries = max_entries or settings.preference_cache_max_entries
        self._timer = timer
        self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: str) -> bool:
        return self._live_entry(user_id) is not None

    def _live_entry(self, user_id: str) -> _CacheEntry | None:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if entry.expires_at <= self._timer():
            del self._entries[user_id]
            return None
        return entry

    def get(self, user_id: str) -> tuple[bool, User | None]:
        """Return ``(hit, user)``."""
        entry = self._live_entry(user_id)
        if entry is None:
            return False, None
        self._entries.move_to_end(user_id)
        return True, entry.user

    def set(self, user_id: str, user: User | None) -> None:
        self._entries[user_id] = _CacheEntry(user, self._timer() + self.ttl_seconds)
        self._entries.move_to_end(user_id)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, user_id: str) -> None:
        """Drop one user, e.g. after their preferences were saved."""
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()


class NotificationPreferenceGate:
    """Decides whether a user may receive an email or in-app notification."""

    users_collection = "users"

    def __init__(self, gateway: PersistenceGateway, cache: PreferenceCache):
        self.gateway = gateway
        self.cache = cache

    async def _load_user(self, user_id: str) -> User | None:
        hit, user = self.cache.get(user_id)
        if hit:
            return user

        try:
            document = await self.gateway.get(self.users_collection, user_id)
            user = User.model_validate(document) if document else None
        except Exception as e:
            logger.warning(f"Could not read preferences for user {user_id}: {e}")
            user = None

        self.cache.set(user_id, user)
        return user

    async def should_send_email(self, user_id: str | None, notification_type: NotificationType) -> bool:
        """
        Email gate.

        No user id means the recipient is external (e.g. an invited supplier
        without an account) and is always allowed. A known id whose document
        is missing or unreadable is denied.
        """
        if not user_id:
            return True

        user = await self._load_user(user_id)
        if user is None:
            logger.info(f"Email {notification_type.value} to {user_id} denied: user not found")
            return False

        prefs: NotificationPreferences = user.notification_preferences
        if prefs.email_notifications is False:
            return False
        return prefs.allows(notification_type.preference_key)

    async def should_send_in_app(self, user_id: str | None, notification_type: NotificationType) -> bool:
        """In-app gate. Unreadable users still get the notification."""
        if not user_id:
            return False

        try:
            document = await self.gateway.get(self.users_collection, user_id)
        except Exception as e:
            logger.warning(f"Could not read preferences for user {user_id}, sending anyway: {e}")
            return True

        if not document:
            return True
        prefs = User.model_validate(document).notification_preferences
        return prefs.allows(notification_type.preference_key)
