import logging
import random
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from . import quiz
from .errors import NotFoundError
from .models import (
    Card,
    CardCreate,
    CardUpdate,
    DEFAULT_REVISION_SETTINGS,
    RevisionSettings,
    Stats,
    TimeUnit,
)
from .store import DocumentCollection, utcnow
from .timeutils import next_due_date

SCHEMA_VERSION = 2


def migrate_document(doc: Dict) -> Dict:
    """
    Upgrades a stored card document to the current schema.

    Version 1 documents carried a plain ``revisionInterval`` in days or no
    revision setting at all. Both become an explicit ``revisionSettings``
    value. Current documents are returned as they are, others as an upgraded
    copy.
    """
    if doc.get("schemaVersion") == SCHEMA_VERSION and "revisionSettings" in doc:
        return doc

    doc = dict(doc)
    if "revisionSettings" not in doc:
        legacy_days = doc.get("revisionInterval")
        try:
            settings = RevisionSettings(interval=int(legacy_days), unit=TimeUnit.DAYS)
        except (TypeError, ValueError):
            settings = DEFAULT_REVISION_SETTINGS
        doc["revisionSettings"] = settings.model_dump(mode="json")
    doc.pop("revisionInterval", None)
    doc["schemaVersion"] = SCHEMA_VERSION
    return doc


def doc_to_card(doc: Dict) -> Card:
    doc = migrate_document(doc)
    return Card(
        id=doc["id"],
        front=doc.get("front", ""),
        back=doc.get("back", ""),
        user_id=doc.get("userId", ""),
        created_at=doc["createdAt"],
        updated_at=doc.get("updatedAt"),
        next_revision=doc.get("nextRevision"),
        last_reviewed=doc.get("lastReviewed"),
        review_count=int(doc.get("reviewCount", 0)),
        revision_settings=RevisionSettings(**doc["revisionSettings"]),
    )


def is_due(card: Card, now: datetime) -> bool:
    """Cards never reviewed, or whose next revision has passed, are due."""
    return card.next_revision is None or card.next_revision <= now


class FlashcardService:
    """Card store gateway: CRUD over a document collection, scoped by owner."""

    def __init__(self, collection: DocumentCollection, clock: Callable[[], datetime] = utcnow):
        self.collection = collection
        self.clock = clock

    def create(self, card: CardCreate, owner_id: str) -> str:
        doc = {
            "front": card.front,
            "back": card.back,
            "userId": owner_id,
            "revisionSettings": card.revision_settings.model_dump(mode="json"),
            "reviewCount": 0,
            "schemaVersion": SCHEMA_VERSION,
        }
        card_id = self.collection.add(doc)
        logging.info(f"Created card {card_id} for {owner_id}")
        return card_id

    def get(self, card_id: str, owner_id: Optional[str] = None) -> Card:
        doc = self.collection.get(card_id)
        if doc is None or (owner_id is not None and doc.get("userId") != owner_id):
            raise NotFoundError(f"Card {card_id} not found")
        return doc_to_card(doc)

    def update(self, card_id: str, updates: CardUpdate) -> None:
        fields = {}
        if updates.front is not None:
            fields["front"] = updates.front
        if updates.back is not None:
            fields["back"] = updates.back
        if updates.revision_settings is not None:
            fields["revisionSettings"] = updates.revision_settings.model_dump(mode="json")
            fields["revisionInterval"] = None
            fields["schemaVersion"] = SCHEMA_VERSION
        if not fields:
            return
        fields["updatedAt"] = self.clock()
        self.collection.update(card_id, fields)
        logging.info(f"Updated card {card_id}: {sorted(fields)}")

    def batch_update(self, updates: Iterable[Tuple[str, CardUpdate]]) -> None:
        # Stops at the first failure; earlier updates stay applied
        for card_id, card_update in updates:
            self.update(card_id, card_update)

    def delete(self, card_id: str) -> None:
        self.collection.delete(card_id)
        logging.info(f"Deleted card {card_id}")

    def list_by_owner(self, owner_id: str) -> List[Card]:
        docs = self.collection.query("userId", owner_id, order_by="createdAt", descending=True)
        return [doc_to_card(doc) for doc in docs]

    def count_by_owner(self, owner_id: str) -> int:
        return len(self.list_by_owner(owner_id))

    def mark_reviewed(self, card_id: str, settings: Optional[RevisionSettings] = None,
                      now: Optional[datetime] = None) -> Card:
        """
        Records a review: stamps ``lastReviewed``, pushes ``nextRevision`` out
        by the revision setting and increments the review counter.

        When ``settings`` is omitted the card's stored setting is used.
        """
        now = now or self.clock()
        card = self.get(card_id)
        settings = settings or card.revision_settings
        next_revision = next_due_date(settings.interval, settings.unit, now)
        fields = {
            "lastReviewed": now,
            "nextRevision": next_revision,
            "reviewCount": card.review_count + 1,
            "revisionSettings": settings.model_dump(mode="json"),
            "revisionInterval": None,
            "schemaVersion": SCHEMA_VERSION,
        }
        self.collection.update(card_id, fields)
        logging.info(f"Card {card_id} reviewed, next revision {next_revision.isoformat()}")
        return card.model_copy(update={
            "last_reviewed": now,
            "next_revision": next_revision,
            "review_count": card.review_count + 1,
            "revision_settings": settings,
        })

    def get_stats(self, owner_id: str, now: Optional[datetime] = None) -> Stats:
        now = now or self.clock()
        cards = self.list_by_owner(owner_id)
        return Stats(
            total_cards=len(cards),
            due_cards=sum(1 for c in cards if is_due(c, now)),
            reviews=sum(c.review_count for c in cards),
        )


@dataclass
class LiveQuiz:
    owner_id: str
    state: quiz.QuizState
    last_tick: datetime
    last_seen: datetime

    def max_duration(self) -> timedelta:
        per_card = self.state.question_seconds + self.state.reveal_seconds
        return timedelta(seconds=len(self.state.cards) * per_card)


class QuizService:
    """
    Keeps live rapid fire sessions and drives their countdown.

    Sessions tick once per elapsed second of the clock. Elapsed seconds are
    replayed before every read or action, so a session never needs a
    background timer, and a closed session can no longer change.

    Quizzes over no cards are never registered. Starting a quiz evicts the
    owner's finished sessions and any session left untouched for longer
    than its whole quiz could last.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow, rng: Optional[random.Random] = None,
                 question_seconds: int = quiz.QUESTION_SECONDS, reveal_seconds: int = quiz.REVEAL_SECONDS,
                 lenient: bool = True):
        self.clock = clock
        self.rng = rng or random.Random()
        self.question_seconds = question_seconds
        self.reveal_seconds = reveal_seconds
        self.lenient = lenient
        self.sessions: Dict[str, LiveQuiz] = {}
        self._lock = threading.Lock()

    def start(self, cards: List[Card], owner_id: str) -> Tuple[str, quiz.QuizState]:
        now = self.clock()
        state = quiz.start_quiz(
            cards, now, self.rng,
            question_seconds=self.question_seconds,
            reveal_seconds=self.reveal_seconds,
            lenient=self.lenient,
        )
        session_id = uuid.uuid4().hex
        with self._lock:
            self._evict(owner_id, now)
            if state.phase is quiz.QuizPhase.EMPTY:
                logging.info(f"Quiz for {owner_id} has no cards")
                return session_id, state
            self.sessions[session_id] = LiveQuiz(owner_id, state, now, now)
        logging.info(f"Quiz {session_id} started for {owner_id} with {len(state.cards)} cards")
        return session_id, state

    def _evict(self, owner_id: str, now: datetime) -> None:
        for session_id, live in list(self.sessions.items()):
            if now - live.last_seen > live.max_duration():
                del self.sessions[session_id]
                logging.debug(f"Quiz {session_id} evicted after idling")
                continue
            if live.owner_id == owner_id:
                self._catch_up(live)
                if live.state.phase is quiz.QuizPhase.FINISHED:
                    del self.sessions[session_id]
                    logging.debug(f"Quiz {session_id} evicted, finished")

    def _live(self, session_id: str, owner_id: str) -> LiveQuiz:
        live = self.sessions.get(session_id)
        if live is None or live.owner_id != owner_id:
            raise NotFoundError(f"Quiz {session_id} not found")
        return live

    def _catch_up(self, live: LiveQuiz) -> datetime:
        now = self.clock()
        live.last_seen = now
        while now - live.last_tick >= timedelta(seconds=1):
            if live.state.phase is not quiz.QuizPhase.PLAYING:
                live.last_tick = now
                break
            live.last_tick += timedelta(seconds=1)
            live.state = quiz.reduce(live.state, quiz.Tick(live.last_tick))
        return now

    def get(self, session_id: str, owner_id: str) -> quiz.QuizState:
        with self._lock:
            live = self._live(session_id, owner_id)
            self._catch_up(live)
            return live.state

    def submit(self, session_id: str, owner_id: str, answer: str) -> quiz.QuizState:
        with self._lock:
            live = self._live(session_id, owner_id)
            now = self._catch_up(live)
            state = quiz.reduce(live.state, quiz.Submit(answer))
            if state is not live.state:
                # The reveal pause runs from the moment of the answer
                live.last_tick = now
            live.state = state
            return live.state

    def restart(self, session_id: str, owner_id: str) -> quiz.QuizState:
        with self._lock:
            live = self._live(session_id, owner_id)
            now = self._catch_up(live)
            live.state = quiz.reduce(live.state, quiz.Restart(now, self.rng))
            live.last_tick = now
            return live.state

    def close(self, session_id: str, owner_id: str) -> None:
        with self._lock:
            self._live(session_id, owner_id)
            del self.sessions[session_id]
        logging.info(f"Quiz {session_id} closed")
