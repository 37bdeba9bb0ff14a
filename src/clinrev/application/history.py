"""Append-only session history with a version-keyed lifetime stats cache."""

import logging
from collections.abc import Iterable, Iterator

from clinrev.domain.errors import DuplicateSessionError
from clinrev.domain.models import LifetimeStats, SessionRecord

from .stats.lifetime import derive_lifetime_stats

logger = logging.getLogger(__name__)


class SessionHistoryStore:
    """
    Completed study sessions, newest first.

    The only mutation is ``append``, which swaps in a new tuple in one
    assignment: readers holding a snapshot never see a half-added session.
    """

    def __init__(self, sessions: Iterable[SessionRecord] = ()):
        self._sessions: tuple[SessionRecord, ...] = tuple(sessions)
        self._ids = {s.id for s in self._sessions}
        self._version = 0
        self._lifetime: tuple[int, LifetimeStats] | None = None

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[SessionRecord]:
        return iter(self._sessions)

    @property
    def version(self) -> int:
        """Incremented on every append; keys the lifetime stats cache."""
        return self._version

    def snapshot(self) -> tuple[SessionRecord, ...]:
        return self._sessions

    def append(self, session: SessionRecord) -> None:
        if session.id in self._ids:
            raise DuplicateSessionError(f"Session {session.id} is already recorded")
        if not session.is_consistent:
            logger.warning(
                f"Session {session.id} has {len(session.details)} detail(s) for "
                f"{session.total_questions} question(s) and {session.correct_answers} correct"
            )

        self._sessions = (session, *self._sessions)
        self._ids.add(session.id)
        self._version += 1

    def lifetime_stats(self) -> LifetimeStats:
        """Lifetime stats for the current version, recomputed only after an append."""
        if self._lifetime is None or self._lifetime[0] != self._version:
            self._lifetime = (self._version, derive_lifetime_stats(self._sessions))
        return self._lifetime[1]
