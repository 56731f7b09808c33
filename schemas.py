from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator

from resume import EMAIL_RE


class InfoUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name", "email", "phone")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        if v and not EMAIL_RE.fullmatch(v):
            raise ValueError("invalid email address")
        return v


class AnswerSubmit(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(alias="questionId", min_length=1)
    answer_text: str = Field(default="", alias="answerText")
    time_spent: int = Field(default=0, alias="timeSpent", ge=0)
    expected_index: Optional[int] = Field(default=None, alias="expectedIndex", ge=0)


class PauseAction(BaseModel):
    action: Literal["pause", "resume"]


def _ts(value):
    return value.isoformat() if value else None


def candidate_view(c) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "resumeText": c.resume_text,
        "status": c.status,
        "currentQuestionIndex": c.current_question_index,
        "score": c.score,
        "summary": c.summary,
        "recommendation": c.recommendation,
        "startedAt": _ts(c.started_at),
        "completedAt": _ts(c.completed_at),
        "pausedAt": _ts(c.paused_at),
    }


def question_view(q) -> dict:
    if q is None:
        return None
    return {
        "id": q.id,
        "candidateId": q.candidate_id,
        "questionText": q.question_text,
        "difficulty": q.difficulty,
        "timeLimit": q.time_limit,
        "questionIndex": q.question_index,
        "createdAt": _ts(q.created_at),
    }


def message_view(m) -> dict:
    return {
        "id": m.id,
        "candidateId": m.candidate_id,
        "sender": m.sender,
        "message": m.message,
        "messageType": m.message_type,
        "metadata": m.meta or {},
        "createdAt": _ts(m.created_at),
    }


def aggregate_view(agg: dict) -> dict:
    view = candidate_view(agg["candidate"])
    view.update({
        "totalQuestions": agg["total_questions"],
        "completedQuestions": agg["completed_questions"],
        "answeredQuestions": agg["answered_questions"],
        "currentQuestion": question_view(agg["current_question"]),
        "messages": [message_view(m) for m in agg["messages"]],
    })
    return view


def stats_view(stats: dict) -> dict:
    return {
        "totalCandidates": stats["total_candidates"],
        "completedInterviews": stats["completed_interviews"],
        "activeInterviews": stats["active_interviews"],
        "averageScore": stats["average_score"],
    }
