"""
Fold a candidate's chat transcript into a state projection.

The transcript is an append-only log written alongside every transition,
so replaying it must reproduce the candidate record's phase, current
question and final score. Used for auditing and by the transcript endpoint.
"""

from dataclasses import dataclass, field
from typing import Optional, List


@dataclass
class TranscriptProjection:
    phase: str = "pending"
    current_question_id: Optional[str] = None
    questions_asked: int = 0
    answers_given: int = 0
    missing_fields: List[str] = field(default_factory=list)
    scores: List[int] = field(default_factory=list)
    final_score: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "phase": self.phase,
            "currentQuestionId": self.current_question_id,
            "questionsAsked": self.questions_asked,
            "answersGiven": self.answers_given,
            "missingFields": list(self.missing_fields),
            "scores": list(self.scores),
            "finalScore": self.final_score,
        }


def fold(messages) -> TranscriptProjection:
    state = TranscriptProjection()
    for m in messages:
        meta = m.meta or {}
        if m.message_type == "info_request":
            state.phase = "info_collection"
            state.missing_fields = list(meta.get("missingFields", []))
        elif m.message_type == "question":
            state.phase = "interviewing"
            state.missing_fields = []
            state.current_question_id = meta.get("questionId")
            state.questions_asked += 1
        elif m.message_type == "answer":
            state.answers_given += 1
            state.current_question_id = None
            if meta.get("score") is not None:
                state.scores.append(meta["score"])
        elif m.message_type == "text" and "finalScore" in meta:
            state.phase = "completed"
            state.final_score = meta["finalScore"]
    return state


def consistent_with(projection: TranscriptProjection, candidate, current_question=None) -> bool:
    """Paused is a status toggle that never reaches the log."""
    status = "interviewing" if candidate.status == "paused" else candidate.status
    if projection.phase != status:
        return False
    if projection.phase == "completed":
        return projection.final_score == candidate.score
    expected = current_question.id if current_question else None
    return projection.current_question_id == expected
