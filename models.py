import math
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

TOTAL_QUESTIONS = 6

# question index -> (difficulty, seconds)
DIFFICULTY_LADDER = [
    ("easy", 20),
    ("easy", 20),
    ("medium", 60),
    ("medium", 60),
    ("hard", 120),
    ("hard", 120),
]

PENDING = "pending"
INFO_COLLECTION = "info_collection"
INTERVIEWING = "interviewing"
PAUSED = "paused"
COMPLETED = "completed"

ACTIVE_STATUSES = (INTERVIEWING, INFO_COLLECTION)
CONTACT_FIELDS = ("name", "email", "phone")


def ladder_for(index: int):
    if not 0 <= index < TOTAL_QUESTIONS:
        raise ValueError(f"question index out of range: {index}")
    return DIFFICULTY_LADDER[index]


def round_score(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Candidate(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    resume_text: str = ""
    status: str = Field(default=PENDING, index=True)
    current_question_index: int = 0
    score: Optional[float] = None
    summary: Optional[str] = None
    recommendation: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow, index=True)
    completed_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None

    def missing_fields(self):
        return [f for f in CONTACT_FIELDS if not getattr(self, f)]


class Question(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    candidate_id: str = Field(foreign_key="candidate.id", index=True)
    question_text: str
    difficulty: str
    time_limit: int
    question_index: int
    created_at: datetime = Field(default_factory=utcnow)


class Answer(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    question_id: str = Field(foreign_key="question.id", index=True)
    candidate_id: str = Field(foreign_key="candidate.id", index=True)
    answer_text: str = ""
    score: Optional[int] = None
    feedback: Optional[str] = None
    time_spent: int = 0
    submitted_at: datetime = Field(default_factory=utcnow)


class ChatMessage(SQLModel, table=True):
    __tablename__ = "chat_message"

    # autoincrement keeps messages written in one transaction in order
    id: Optional[int] = Field(default=None, primary_key=True)
    candidate_id: str = Field(foreign_key="candidate.id", index=True)
    sender: str
    message: str
    message_type: str = "text"
    # "metadata" is reserved on SQLModel classes
    meta: dict = Field(default_factory=dict, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(default_factory=utcnow)
