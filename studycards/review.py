"""Review board view-model.

A client keeps a ``BoardState`` and changes it only through ``execute``.
Each command is sent to the card store first and applied to the local card
list once the store confirms it. On failure the previous cards are kept and
``error`` carries a message fit for the user.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Tuple, Union

from .errors import NotFoundError, StoreUnavailableError
from .models import Card, CardCreate, CardUpdate, CardView, RevisionSettings
from .services import FlashcardService, is_due
from .timeutils import format_interval, time_until


@dataclass(frozen=True)
class BoardState:
    owner_id: str
    cards: Tuple[Card, ...] = ()
    error: Optional[str] = None


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class CreateCard:
    card: CardCreate


@dataclass(frozen=True)
class EditCard:
    card_id: str
    updates: CardUpdate


@dataclass(frozen=True)
class DeleteCard:
    card_id: str


@dataclass(frozen=True)
class MarkReviewed:
    card_id: str
    settings: Optional[RevisionSettings] = None


Command = Union[Refresh, CreateCard, EditCard, DeleteCard, MarkReviewed]

FAILURE_MESSAGES = {
    Refresh: "Failed to load flashcards",
    CreateCard: "Failed to add flashcard",
    EditCard: "Failed to update flashcard",
    DeleteCard: "Failed to delete flashcard",
    MarkReviewed: "Failed to mark flashcard as reviewed",
}


def _replace_card(cards: Tuple[Card, ...], updated: Card) -> Tuple[Card, ...]:
    return tuple(updated if c.id == updated.id else c for c in cards)


def _apply(state: BoardState, command: Command, service: FlashcardService, now: datetime) -> BoardState:
    if isinstance(command, Refresh):
        return replace(state, cards=tuple(service.list_by_owner(state.owner_id)), error=None)

    if isinstance(command, CreateCard):
        card_id = service.create(command.card, state.owner_id)
        # Built locally so a saved card is never reported as a failure
        created = Card(
            id=card_id,
            front=command.card.front,
            back=command.card.back,
            user_id=state.owner_id,
            created_at=now,
            revision_settings=command.card.revision_settings,
        )
        return replace(state, cards=(created,) + state.cards, error=None)

    if isinstance(command, EditCard):
        service.get(command.card_id, state.owner_id)
        service.update(command.card_id, command.updates)
        return replace(state, cards=_replace_card(state.cards, service.get(command.card_id)), error=None)

    if isinstance(command, DeleteCard):
        service.get(command.card_id, state.owner_id)
        service.delete(command.card_id)
        cards = tuple(c for c in state.cards if c.id != command.card_id)
        return replace(state, cards=cards, error=None)

    if isinstance(command, MarkReviewed):
        service.get(command.card_id, state.owner_id)
        reviewed = service.mark_reviewed(command.card_id, command.settings, now)
        return replace(state, cards=_replace_card(state.cards, reviewed), error=None)

    raise TypeError(f"Unknown command: {command!r}")


def execute(state: BoardState, command: Command, service: FlashcardService,
            now: Optional[datetime] = None) -> BoardState:
    """Runs ``command`` against the store and returns the next board state."""
    now = now or service.clock()
    try:
        return _apply(state, command, service, now)
    except NotFoundError:
        logging.warning(f"{type(command).__name__} on missing card")
        return replace(state, error="That flashcard no longer exists")
    except StoreUnavailableError as e:
        logging.error(f"{type(command).__name__} failed: {e}")
        return replace(state, error=FAILURE_MESSAGES[type(command)])


def load_board(service: FlashcardService, owner_id: str) -> BoardState:
    return execute(BoardState(owner_id), Refresh(), service)


def due_cards(state: BoardState, now: datetime) -> List[Card]:
    return [c for c in state.cards if is_due(c, now)]


def card_view(card: Card, now: datetime) -> CardView:
    if card.next_revision is None:
        due_in = "now"
    else:
        due_in = time_until(card.next_revision, now).label()
    settings = card.revision_settings
    return CardView(
        card=card,
        due=is_due(card, now),
        due_in=due_in,
        interval_label=format_interval(settings.interval, settings.unit),
    )
