"""
Study data repository — application layer orchestrator over the key-value store.

Owns every read-modify-write of persisted state: session history, the
lifetime stats cache, review cards, bookmarks, the question library,
mastery cards and full-state backup/restore.
"""

import asyncio
import logging
from collections.abc import Iterable

from clinrev.domain.errors import SnapshotValidationError
from clinrev.domain.models import LifetimeStats, MasteryCard, Question, SessionRecord
from clinrev.domain.ports import KeyValueStore, MasteryCardGenerator
from clinrev.domain.srs.models import DueItem, Rating, ReviewCard
from clinrev.infrastructure.persistence.schema import (
    LifetimeStatsSchema,
    SNAPSHOT_KEYS,
    MasteryCardSchema,
    QuestionSchema,
    SrsStateSchema,
    StudySnapshot,
    dump_sessions,
    load_sessions,
    parse_snapshot,
)

from .history import SessionHistoryStore
from .srs.deck import ReviewDeck, dissect_question
from .stats.lifetime import derive_lifetime_stats

logger = logging.getLogger(__name__)


class StudyDataRepository:
    """
    Persistence-facing service for all learner state.

    Follows Dependency Inversion: depends on the KeyValueStore port, not a
    concrete storage engine. Writes that touch more than one key go
    through ``set_many`` so they land together.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._lock = asyncio.Lock()
        self.is_importing = False

    # ------------------------------------------------------------------
    # History and lifetime stats
    # ------------------------------------------------------------------

    async def load_history(self) -> list[SessionRecord]:
        """Sessions, newest first."""
        return load_sessions(await self._store.get("history"))

    async def save_session(self, session: SessionRecord) -> LifetimeStats:
        """
        Prepend a completed session and refresh the lifetime stats cache.

        Returns:
            Lifetime stats including the new session.
        """
        async with self._lock:
            history = SessionHistoryStore(await self.load_history())
            history.append(session)
            stats = history.lifetime_stats()
            await self._store.set_many(
                {
                    "history": dump_sessions(history.snapshot()),
                    "lifetimeStats": LifetimeStatsSchema.from_domain(stats).to_json(),
                }
            )
        logger.info(
            f"Saved session {session.id} ({session.correct_answers}/{session.total_questions})"
        )
        return stats

    async def update_analytics(
        self, history: Iterable[SessionRecord] | None = None
    ) -> LifetimeStats:
        """Recompute and persist lifetime stats from the given (or stored) history."""
        sessions = list(history) if history is not None else await self.load_history()
        stats = derive_lifetime_stats(sessions)
        await self._store.set("lifetimeStats", LifetimeStatsSchema.from_domain(stats).to_json())
        return stats

    async def load_lifetime_stats(self) -> LifetimeStats:
        """Cached lifetime stats, rebuilt from history when the cache is missing."""
        raw = await self._store.get("lifetimeStats")
        if raw is None:
            return await self.update_analytics()
        return LifetimeStatsSchema.model_validate(raw).to_domain()

    # ------------------------------------------------------------------
    # Question library, bookmarks, mastery cards
    # ------------------------------------------------------------------

    async def load_question_library(self) -> dict[str, Question]:
        raw = await self._store.get("questionLibrary") or {}
        return {qid: QuestionSchema.model_validate(q).to_domain() for qid, q in raw.items()}

    async def add_to_library(self, questions: Iterable[Question]) -> int:
        """Add questions not already in the library. Returns how many were added."""
        async with self._lock:
            raw = await self._store.get("questionLibrary") or {}
            added = 0
            for question in questions:
                if question.id not in raw:
                    raw[question.id] = QuestionSchema.from_domain(question).to_json()
                    added += 1
            if added:
                await self._store.set("questionLibrary", raw)
        return added

    async def load_bookmarks(self) -> list[Question]:
        raw = await self._store.get("bookmarks") or []
        return [QuestionSchema.model_validate(q).to_domain() for q in raw]

    async def toggle_bookmark(self, question: Question, now: int) -> bool:
        """
        Bookmark or un-bookmark a question.

        Bookmarking also stores the question in the library and starts a
        review card if none exists. Un-bookmarking keeps the card so its
        review history survives.

        Returns:
            True if the question is now bookmarked.
        """
        async with self._lock:
            bookmarks = await self._store.get("bookmarks") or []
            if any(b.get("id") == question.id for b in bookmarks):
                bookmarks = [b for b in bookmarks if b.get("id") != question.id]
                await self._store.set("bookmarks", bookmarks)
                logger.info(f"Removed bookmark {question.id}")
                return False

            library = await self._store.get("questionLibrary") or {}
            dumped = QuestionSchema.from_domain(question).to_json()
            library.setdefault(question.id, dumped)
            deck = await self.load_deck()
            deck.bookmark(question.id, now)
            await self._store.set_many(
                {
                    "bookmarks": [*bookmarks, dumped],
                    "questionLibrary": library,
                    "srsStates": self._dump_deck(deck),
                }
            )
        logger.info(f"Bookmarked {question.id}")
        return True

    async def load_mastery_cards(self) -> dict[str, list[MasteryCard]]:
        raw = await self._store.get("masteryCards") or {}
        return {
            pid: [MasteryCardSchema.model_validate(c).to_domain() for c in cards]
            for pid, cards in raw.items()
        }

    async def dissect_question(
        self,
        question: Question,
        generator: MasteryCardGenerator,
        now: int,
        force: bool = False,
    ) -> list[MasteryCard] | None:
        """Generate mastery cards for a question and queue them for review today."""
        mastery = await self.load_mastery_cards()
        deck = await self.load_deck()
        layers = await dissect_question(question, generator, mastery, deck, now, force=force)
        if layers is None:
            return None

        async with self._lock:
            raw = await self._store.get("masteryCards") or {}
            raw[question.id] = [MasteryCardSchema.from_domain(c).to_json() for c in layers]
            states = await self._store.get("srsStates") or {}
            for card in layers:
                states[card.id] = SrsStateSchema.from_domain(deck.get(card.id)).to_json()
            await self._store.set_many({"masteryCards": raw, "srsStates": states})
        return layers

    # ------------------------------------------------------------------
    # Review cards
    # ------------------------------------------------------------------

    async def load_deck(self) -> ReviewDeck:
        raw = await self._store.get("srsStates") or {}
        return ReviewDeck(
            {cid: SrsStateSchema.model_validate(s).to_domain() for cid, s in raw.items()}
        )

    @staticmethod
    def _dump_deck(deck: ReviewDeck) -> dict[str, dict]:
        return {cid: SrsStateSchema.from_domain(c).to_json() for cid, c in deck.cards.items()}

    async def rate_card(self, card_id: str, rating: Rating | str, now: int) -> ReviewCard:
        async with self._lock:
            deck = await self.load_deck()
            card = deck.rate(card_id, rating, now)
            states = await self._store.get("srsStates") or {}
            states[card_id] = SrsStateSchema.from_domain(card).to_json()
            await self._store.set("srsStates", states)
        logger.info(f"Rated {card_id} {Rating.parse(rating).value}: next in {card.interval_days}d")
        return card

    async def due_items(self, now: int) -> list[DueItem]:
        deck = await self.load_deck()
        return deck.due(await self.load_question_library(), await self.load_mastery_cards(), now)

    # ------------------------------------------------------------------
    # Study plan
    # ------------------------------------------------------------------

    async def load_study_plan(self) -> dict | None:
        return await self._store.get("studyPlan")

    async def save_study_plan(self, plan: dict | None) -> None:
        await self._store.set("studyPlan", plan)

    # ------------------------------------------------------------------
    # Full state
    # ------------------------------------------------------------------

    async def get_all_data(self) -> StudySnapshot:
        """
        The whole persisted state with defaults filled in.

        A missing lifetime stats cache is rebuilt from history and saved.
        """
        values = {key: await self._store.get(key) for key in SNAPSHOT_KEYS}
        snapshot = StudySnapshot.model_validate(values)
        if snapshot.lifetime_stats is None:
            stats = await self.update_analytics(snapshot.sessions())
            snapshot.lifetime_stats = LifetimeStatsSchema.from_domain(stats)
        return snapshot

    async def backup_all_data(self) -> str:
        """Serialize the whole state as a JSON backup document."""
        snapshot = await self.get_all_data()
        return snapshot.model_dump_json(by_alias=True)

    async def full_import(self, json_data: str | bytes) -> bool:
        """
        Replace all state with a backup.

        The payload is validated completely before anything is touched; a
        rejected import leaves the existing state as it was. Lifetime stats
        in the payload are ignored and recomputed from its history.

        Returns:
            True if the import was applied.
        """
        try:
            snapshot = parse_snapshot(json_data)
        except SnapshotValidationError as e:
            logger.error(f"Import rejected: {e}")
            return False

        self.is_importing = True
        try:
            stats = derive_lifetime_stats(snapshot.sessions())
            snapshot.lifetime_stats = LifetimeStatsSchema.from_domain(stats)
            # Every snapshot key is rewritten in one unit, so nothing from the
            # previous state survives and a failed write leaves it intact.
            async with self._lock:
                await self._store.set_many(snapshot.storage_values())
        finally:
            self.is_importing = False

        logger.info(
            f"Imported {len(snapshot.history)} session(s), "
            f"{len(snapshot.srs_states)} review card(s)"
        )
        return True

    async def reset_data(self) -> None:
        """Wipe everything, review cards included."""
        async with self._lock:
            await self._store.clear()
        logger.info("All study data cleared")
