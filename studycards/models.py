from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime


class TimeUnit(str, Enum):
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"


class RevisionSettings(BaseModel):
    interval: int = Field(1, gt=0)
    unit: TimeUnit = TimeUnit.DAYS


DEFAULT_REVISION_SETTINGS = RevisionSettings(interval=1, unit=TimeUnit.DAYS)


def _require_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


class Card(BaseModel):
    id: str
    front: str
    back: str
    user_id: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    next_revision: Optional[datetime] = None
    last_reviewed: Optional[datetime] = None
    review_count: int = 0
    revision_settings: RevisionSettings = DEFAULT_REVISION_SETTINGS


class CardCreate(BaseModel):
    front: str
    back: str
    revision_settings: RevisionSettings = DEFAULT_REVISION_SETTINGS

    @field_validator("front", "back")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _require_text(value)


class CardUpdate(BaseModel):
    front: Optional[str] = None
    back: Optional[str] = None
    revision_settings: Optional[RevisionSettings] = None

    @field_validator("front", "back")
    @classmethod
    def not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _require_text(value)


class ReviewRequest(BaseModel):
    # Falls back to the card's stored settings when omitted
    revision_settings: Optional[RevisionSettings] = None


class CardView(BaseModel):
    card: Card
    due: bool
    due_in: str
    interval_label: str


class Stats(BaseModel):
    total_cards: int
    due_cards: int
    reviews: int


class QuizAnswer(BaseModel):
    answer: str


class QuizResult(BaseModel):
    correct: int
    total: int
    elapsed: int  # seconds
    accuracy: int  # percent


class QuizView(BaseModel):
    id: str
    phase: str
    question_number: int
    total: int
    front: Optional[str] = None
    time_left: int
    score: int
    answer: str = ""
    revealed: bool = False
    is_correct: Optional[bool] = None
    correct_answer: Optional[str] = None
    result: Optional[QuizResult] = None


class CardList(BaseModel):
    cards: List[CardView]
    count: int
