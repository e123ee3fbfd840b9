"""Per-user bet drafts between /newbet and /confirm, with expiry."""

import logging
import threading
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from kellybot.engine import Initiation
from kellybot.exceptions import NoActiveDraftError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Draft:
    initiation: Initiation
    opened_at: datetime
    expires_at: datetime


class DraftBook:
    """Drafts keyed by caller identity. Opening a new draft replaces the old one."""

    def __init__(self, ttl: timedelta, clock: Callable[[], datetime] | None = None):
        self.ttl = ttl
        self._clock = clock or _utcnow
        self._drafts: dict[Hashable, Draft] = {}
        self._lock = threading.Lock()

    def open(self, owner: Hashable, initiation: Initiation) -> Draft:
        now = self._clock()
        draft = Draft(initiation=initiation, opened_at=now, expires_at=now + self.ttl)
        with self._lock:
            if owner in self._drafts:
                logger.info(f"Replacing open draft for {owner}")
            self._drafts[owner] = draft
        return draft

    def get(self, owner: Hashable) -> Draft | None:
        """The owner's draft, or None if there is none or it has expired."""
        with self._lock:
            draft = self._drafts.get(owner)
            if draft is None:
                return None
            if draft.expires_at <= self._clock():
                del self._drafts[owner]
                logger.info(f"Draft for {owner} expired")
                return None
            return draft

    def take(self, owner: Hashable) -> Draft:
        """Remove and return the owner's draft.

        Raises:
            NoActiveDraftError: If there is no unexpired draft
        """
        with self._lock:
            draft = self._drafts.pop(owner, None)
        if draft is None or draft.expires_at <= self._clock():
            raise NoActiveDraftError(
                "No active bet calculation found (or it expired). Use /newbet first."
            )
        return draft

    def discard(self, owner: Hashable) -> bool:
        with self._lock:
            return self._drafts.pop(owner, None) is not None

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [owner for owner, d in self._drafts.items() if d.expires_at <= now]
            for owner in expired:
                del self._drafts[owner]
        if expired:
            logger.debug(f"Purged {len(expired)} expired drafts")
        return len(expired)

    def __len__(self) -> int:
        return len(self._drafts)
