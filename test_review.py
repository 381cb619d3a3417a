from datetime import timedelta

import pytest

from conftest import T0
from studycards.errors import StoreUnavailableError
from studycards.models import CardCreate, CardUpdate, RevisionSettings, TimeUnit
from studycards.review import (
    BoardState,
    CreateCard,
    DeleteCard,
    EditCard,
    MarkReviewed,
    Refresh,
    card_view,
    due_cards,
    execute,
    load_board,
)


@pytest.fixture
def board(service):
    state = load_board(service, "u1")
    state = execute(state, CreateCard(CardCreate(front="Q1", back="A1")), service)
    return execute(state, CreateCard(CardCreate(front="Q2", back="A2")), service)


def test_create_prepends_confirmed_card(board):
    assert [c.front for c in board.cards] == ["Q2", "Q1"]
    assert board.error is None


def test_edit_and_review_replace_card(board, service):
    target = board.cards[1]
    state = execute(board, EditCard(target.id, CardUpdate(back="changed")), service)
    assert state.cards[1].back == "changed"

    state = execute(state, MarkReviewed(target.id, RevisionSettings(interval=1, unit=TimeUnit.DAYS)), service, T0)
    assert state.cards[1].review_count == 1
    assert state.cards[1].next_revision == T0 + timedelta(days=1)
    assert [c.id for c in due_cards(state, T0)] == [state.cards[0].id]


def test_delete_removes_card(board, service):
    state = execute(board, DeleteCard(board.cards[0].id), service)
    assert [c.front for c in state.cards] == ["Q1"]
    assert execute(state, Refresh(), service).cards == state.cards


def test_create_needs_no_read_back(board, service, monkeypatch):
    def unavailable(*args, **kwargs):
        raise StoreUnavailableError("offline")

    monkeypatch.setattr(service.collection, "get", unavailable)
    settings = RevisionSettings(interval=2, unit=TimeUnit.WEEKS)
    state = execute(board, CreateCard(CardCreate(front="Q3", back="A3", revision_settings=settings)), service, T0)
    assert state.error is None
    created = state.cards[0]
    assert (created.front, created.back, created.user_id) == ("Q3", "A3", "u1")
    assert created.created_at == T0
    assert created.revision_settings == settings
    assert created.id in [c.id for c in service.list_by_owner("u1")]


def test_failed_create_keeps_previous_cards(board, service, monkeypatch):
    def unavailable(*args, **kwargs):
        raise StoreUnavailableError("offline")

    monkeypatch.setattr(service.collection, "add", unavailable)
    state = execute(board, CreateCard(CardCreate(front="Q3", back="A3")), service)
    assert state.cards == board.cards
    assert state.error == "Failed to add flashcard"


def test_store_failure_keeps_previous_cards(board, service, monkeypatch):
    def unavailable(*args, **kwargs):
        raise StoreUnavailableError("offline")

    monkeypatch.setattr(service.collection, "update", unavailable)
    monkeypatch.setattr(service.collection, "delete", unavailable)

    state = execute(board, EditCard(board.cards[0].id, CardUpdate(front="lost")), service)
    assert state.cards == board.cards
    assert state.error == "Failed to update flashcard"

    state = execute(state, DeleteCard(board.cards[0].id), service)
    assert state.cards == board.cards
    assert state.error == "Failed to delete flashcard"

    state = execute(state, MarkReviewed(board.cards[0].id), service, T0)
    assert state.cards[0].review_count == 0
    assert state.error == "Failed to mark flashcard as reviewed"


def test_missing_or_foreign_card(board, service):
    state = execute(board, DeleteCard("missing"), service)
    assert state.cards == board.cards
    assert state.error == "That flashcard no longer exists"

    other = BoardState("u2")
    state = execute(other, DeleteCard(board.cards[0].id), service)
    assert state.error == "That flashcard no longer exists"
    assert len(service.list_by_owner("u1")) == 2


def test_card_view(board, service):
    card = board.cards[0]
    view = card_view(card, T0)
    assert view.due
    assert view.due_in == "now"
    assert view.interval_label == "1 day"

    reviewed = service.mark_reviewed(card.id, now=T0)
    view = card_view(reviewed, T0 + timedelta(hours=1))
    assert not view.due
    assert view.due_in == "23 hours"
    assert card_view(reviewed, T0 + timedelta(days=1)).due_in == "overdue"
