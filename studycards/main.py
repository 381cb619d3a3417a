from fastapi import FastAPI, HTTPException, Depends, Header
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional

from .config import Settings, configure_logging
from .errors import InvalidIntervalError, NotFoundError, StoreUnavailableError
from .models import CardCreate, CardList, CardUpdate, QuizAnswer, QuizResult, QuizView, ReviewRequest
from .quiz import QuizPhase, QuizState
from .review import card_view
from .services import FlashcardService, QuizService
from .store import CsvCollection, MongoCollection

settings = Settings.from_env()
configure_logging(settings)

app = FastAPI(title="Study Cards API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Singleton services, built on first use
_services = {}


def get_service() -> FlashcardService:
    if "cards" not in _services:
        if settings.store == "mongo":
            collection = MongoCollection.connect(settings.mongo_uri, settings.mongo_db)
        else:
            collection = CsvCollection(settings.csv_path)
        _services["cards"] = FlashcardService(collection)
    return _services["cards"]


def get_quiz_service() -> QuizService:
    if "quiz" not in _services:
        _services["quiz"] = QuizService(
            question_seconds=settings.quiz_seconds,
            reveal_seconds=settings.reveal_seconds,
            lenient=not settings.strict_grading,
        )
    return _services["quiz"]


def get_current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """The auth proxy in front of the API passes the signed-in uid in X-User-Id."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not signed in")
    return x_user_id


def _store_error(e: StoreUnavailableError) -> HTTPException:
    return HTTPException(status_code=503, detail=str(e) or "Card store unavailable")


def _quiz_view(session_id: str, state: QuizState) -> QuizView:
    current = state.current
    return QuizView(
        id=session_id,
        phase=state.phase.value,
        question_number=state.index + 1 if state.phase is QuizPhase.PLAYING else 0,
        total=len(state.cards),
        front=current.front if current else None,
        time_left=state.time_left,
        score=state.score,
        answer=state.answer,
        revealed=state.revealed,
        is_correct=state.is_correct,
        correct_answer=current.back if current and state.revealed else None,
        result=QuizResult(**vars(state.result)) if state.result else None,
    )


@app.get("/health")
def health():
    return {"status": "ok", "store": settings.store}


# --- Cards ---

@app.get("/cards", response_model=CardList)
def list_cards(user_id: str = Depends(get_current_user), service: FlashcardService = Depends(get_service)):
    try:
        cards = service.list_by_owner(user_id)
    except StoreUnavailableError as e:
        raise _store_error(e)
    now = service.clock()
    return CardList(cards=[card_view(c, now) for c in cards], count=len(cards))


@app.post("/cards", status_code=201)
def add_card(card: CardCreate, user_id: str = Depends(get_current_user),
             service: FlashcardService = Depends(get_service)):
    try:
        card_id = service.create(card, user_id)
        return card_view(service.get(card_id), service.clock())
    except StoreUnavailableError as e:
        raise _store_error(e)


@app.get("/cards/{card_id}")
def get_card(card_id: str, user_id: str = Depends(get_current_user),
             service: FlashcardService = Depends(get_service)):
    try:
        return card_view(service.get(card_id, user_id), service.clock())
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Card not found")
    except StoreUnavailableError as e:
        raise _store_error(e)


@app.put("/cards/{card_id}")
def update_card(card_id: str, updates: CardUpdate, user_id: str = Depends(get_current_user),
                service: FlashcardService = Depends(get_service)):
    try:
        service.get(card_id, user_id)
        service.update(card_id, updates)
        return card_view(service.get(card_id), service.clock())
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Card not found")
    except StoreUnavailableError as e:
        raise _store_error(e)


@app.delete("/cards/{card_id}")
def delete_card(card_id: str, user_id: str = Depends(get_current_user),
                service: FlashcardService = Depends(get_service)):
    try:
        service.get(card_id, user_id)
        service.delete(card_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Card not found")
    except StoreUnavailableError as e:
        raise _store_error(e)
    return {"success": True}


@app.post("/cards/{card_id}/review")
def review_card(card_id: str, request: Optional[ReviewRequest] = None,
                user_id: str = Depends(get_current_user), service: FlashcardService = Depends(get_service)):
    settings_override = request.revision_settings if request else None
    try:
        service.get(card_id, user_id)
        card = service.mark_reviewed(card_id, settings_override)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Card not found")
    except InvalidIntervalError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_error(e)
    return card_view(card, service.clock())


@app.get("/stats")
def get_stats(user_id: str = Depends(get_current_user), service: FlashcardService = Depends(get_service)):
    try:
        return service.get_stats(user_id)
    except StoreUnavailableError as e:
        raise _store_error(e)


# --- Rapid fire quiz ---

@app.post("/quiz", status_code=201, response_model=QuizView)
def start_quiz(user_id: str = Depends(get_current_user), service: FlashcardService = Depends(get_service),
               quizzes: QuizService = Depends(get_quiz_service)):
    try:
        cards = service.list_by_owner(user_id)
    except StoreUnavailableError as e:
        raise _store_error(e)
    session_id, state = quizzes.start(cards, user_id)
    return _quiz_view(session_id, state)


@app.get("/quiz/{session_id}", response_model=QuizView)
def get_quiz(session_id: str, user_id: str = Depends(get_current_user),
             quizzes: QuizService = Depends(get_quiz_service)):
    try:
        return _quiz_view(session_id, quizzes.get(session_id, user_id))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Quiz not found")


@app.post("/quiz/{session_id}/answer", response_model=QuizView)
def answer_quiz(session_id: str, payload: QuizAnswer, user_id: str = Depends(get_current_user),
                quizzes: QuizService = Depends(get_quiz_service)):
    try:
        return _quiz_view(session_id, quizzes.submit(session_id, user_id, payload.answer))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Quiz not found")


@app.post("/quiz/{session_id}/restart", response_model=QuizView)
def restart_quiz(session_id: str, user_id: str = Depends(get_current_user),
                 quizzes: QuizService = Depends(get_quiz_service)):
    try:
        return _quiz_view(session_id, quizzes.restart(session_id, user_id))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Quiz not found")


@app.delete("/quiz/{session_id}")
def close_quiz(session_id: str, user_id: str = Depends(get_current_user),
               quizzes: QuizService = Depends(get_quiz_service)):
    try:
        quizzes.close(session_id, user_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return {"success": True}
