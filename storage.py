"""
Session store for interview candidates.

Thin CRUD layer over a SQLModel session plus the two compare-and-set
writes the progression engine relies on (status transition and index
advance). Candidate is the aggregate root; questions, answers and chat
messages only ever hang off a candidate id.
"""

import logging
from typing import Optional, List
from sqlalchemy import update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from errors import NotFound, Conflict, StorageFailure
from models import (
    Candidate, Question, Answer, ChatMessage,
    TOTAL_QUESTIONS, COMPLETED, ACTIVE_STATUSES, round_score,
)

logger = logging.getLogger(__name__)


class Store:
    def __init__(self, db_session: Session):
        self.db = db_session

    def _commit(self):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Commit failed")
            raise StorageFailure() from e

    def _save(self, entity):
        self.db.add(entity)
        self._commit()
        self.db.refresh(entity)
        return entity

    # candidates

    def get_candidate(self, candidate_id: str) -> Optional[Candidate]:
        return self.db.get(Candidate, candidate_id)

    def create_candidate(self, **fields) -> Candidate:
        return self._save(Candidate(**fields))

    def update_candidate(self, candidate_id: str, **fields) -> Candidate:
        candidate = self.get_candidate(candidate_id)
        if not candidate:
            raise NotFound("Candidate not found")
        for key, value in fields.items():
            setattr(candidate, key, value)
        return self._save(candidate)

    def get_all_candidates(self) -> List[Candidate]:
        statement = select(Candidate).order_by(Candidate.started_at.desc())
        return list(self.db.exec(statement).all())

    def transition_status(self, candidate_id: str, from_status: str, **fields) -> bool:
        """
        Move a candidate out of `from_status` only if it is still there.

        Returns False when another writer got there first.
        """
        stmt = (
            update(Candidate)
            .where(Candidate.id == candidate_id, Candidate.status == from_status)
            .values(**fields)
        )
        try:
            result = self.db.connection().execute(stmt)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Status transition failed for %s", candidate_id)
            raise StorageFailure() from e
        if result.rowcount != 1:
            self.db.rollback()
            return False
        self._commit()
        return True

    def advance(self, candidate_id: str, expected_index: int, updates: dict, records=()) -> Candidate:
        """
        Apply `updates` to the candidate and insert `records` in one
        transaction, provided current_question_index still equals
        `expected_index`. Raises Conflict otherwise and writes nothing.
        """
        stmt = (
            update(Candidate)
            .where(
                Candidate.id == candidate_id,
                Candidate.current_question_index == expected_index,
            )
            .values(**updates)
        )
        try:
            result = self.db.connection().execute(stmt)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Advance failed for %s", candidate_id)
            raise StorageFailure() from e
        if result.rowcount != 1:
            self.db.rollback()
            raise Conflict()
        for record in records:
            self.db.add(record)
        self._commit()
        candidate = self.get_candidate(candidate_id)
        self.db.refresh(candidate)
        return candidate

    # questions

    def create_question(self, **fields) -> Question:
        return self._save(Question(**fields))

    def get_questions_by_candidate(self, candidate_id: str) -> List[Question]:
        statement = (
            select(Question)
            .where(Question.candidate_id == candidate_id)
            .order_by(Question.question_index)
        )
        return list(self.db.exec(statement).all())

    def get_current_question(self, candidate_id: str) -> Optional[Question]:
        candidate = self.get_candidate(candidate_id)
        if not candidate:
            return None
        statement = select(Question).where(
            Question.candidate_id == candidate_id,
            Question.question_index == candidate.current_question_index,
        )
        return self.db.exec(statement).first()

    # answers

    def create_answer(self, **fields) -> Answer:
        return self._save(Answer(**fields))

    def get_answers_by_candidate(self, candidate_id: str) -> List[Answer]:
        statement = (
            select(Answer)
            .where(Answer.candidate_id == candidate_id)
            .order_by(Answer.submitted_at)
        )
        return list(self.db.exec(statement).all())

    def get_answer_by_question(self, question_id: str) -> Optional[Answer]:
        statement = select(Answer).where(Answer.question_id == question_id)
        return self.db.exec(statement).first()

    # chat

    def create_chat_message(self, **fields) -> ChatMessage:
        return self._save(ChatMessage(**fields))

    def get_chat_messages(self, candidate_id: str) -> List[ChatMessage]:
        statement = (
            select(ChatMessage)
            .where(ChatMessage.candidate_id == candidate_id)
            .order_by(ChatMessage.created_at, ChatMessage.id)
        )
        return list(self.db.exec(statement).all())

    # derived

    def get_candidate_aggregate(self, candidate_id: str) -> Optional[dict]:
        candidate = self.get_candidate(candidate_id)
        if not candidate:
            return None
        answered = self.db.exec(
            select(func.count()).select_from(Answer).where(Answer.candidate_id == candidate_id)
        ).one()
        return {
            "candidate": candidate,
            "total_questions": TOTAL_QUESTIONS,
            "completed_questions": len(self.get_questions_by_candidate(candidate_id)),
            "answered_questions": answered,
            "current_question": self.get_current_question(candidate_id),
            "messages": self.get_chat_messages(candidate_id),
        }

    def get_stats(self) -> dict:
        candidates = self.get_all_candidates()
        completed = [c for c in candidates if c.status == COMPLETED]
        active = [c for c in candidates if c.status in ACTIVE_STATUSES]
        scores = [c.score for c in completed if c.score is not None]
        average = round_score(sum(scores) / len(scores)) if scores else 0
        return {
            "total_candidates": len(candidates),
            "completed_interviews": len(completed),
            "active_interviews": len(active),
            "average_score": average,
        }
