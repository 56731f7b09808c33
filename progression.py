"""
Interview progression engine.

Owns the candidate state machine:

    pending -> info_collection -> interviewing <-> paused -> completed

and decides which question is current, when the next one is generated and
when the interview is scored. Collaborator calls (question generation,
scoring, summary) never fail the interview: each one runs under a deadline
with one retry and falls back to a deterministic value.

Mutations of one candidate are serialized with a per-candidate lock, and
advancing the question index is a compare-and-set in the store, so a
racing auto-submit and manual submit can never both be counted.
"""

import os
import math
import asyncio
import logging
import weakref

from errors import NotFound, Conflict, ValidationError
from models import (
    TOTAL_QUESTIONS, CONTACT_FIELDS, INFO_COLLECTION, INTERVIEWING, PAUSED, COMPLETED,
    Question, Answer, ChatMessage, ladder_for, round_score, utcnow,
)
from timer import clamp_time_spent

logger = logging.getLogger(__name__)

COLLABORATOR_TIMEOUT = float(os.getenv("COLLABORATOR_TIMEOUT", "30"))
COLLABORATOR_RETRIES = int(os.getenv("COLLABORATOR_RETRIES", "1"))

FALLBACK_TOPICS = {
    "easy": "React components",
    "medium": "state management",
    "hard": "system architecture",
}
FALLBACK_FEEDBACK = "Unable to evaluate answer at this time."
FALLBACK_SUMMARY = "Interview assessment completed."
FALLBACK_RECOMMENDATION = "Requires manual review"

# entries drop out once no coroutine holds or waits on the lock
_locks = weakref.WeakValueDictionary()


def candidate_lock(candidate_id: str) -> asyncio.Lock:
    lock = _locks.get(candidate_id)
    if lock is None:
        lock = asyncio.Lock()
        _locks[candidate_id] = lock
    return lock


async def call_collaborator(name, fn, *args, fallback):
    attempts = 1 + max(0, COLLABORATOR_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(fn(*args), timeout=COLLABORATOR_TIMEOUT)
        except Exception as e:
            # any collaborator fault degrades content, never the interview flow
            logger.warning("%s failed (attempt %d/%d): %r", name, attempt, attempts, e)
    logger.warning("%s falling back to default", name)
    return fallback


def clamp_score(value, default=5) -> int:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    if score != score:
        return default
    return int(math.floor(min(10.0, max(1.0, score)) + 0.5))


def mean_score(results) -> float:
    if not results:
        return 0
    return round_score(sum(r["score"] for r in results) / len(results))


class ProgressionEngine:
    def __init__(self, store, ai):
        self.store = store
        self.ai = ai

    # question generation

    async def _next_question(self, index: int, resume_text: str, previous=()) -> dict:
        difficulty, time_limit = ladder_for(index)
        fallback = {
            "question": f"Describe your experience with {FALLBACK_TOPICS[difficulty]}.",
            "difficulty": difficulty,
            "time_limit": time_limit,
        }
        result = await call_collaborator(
            "generate_question", self.ai.generate_question,
            index, resume_text, list(previous), fallback=fallback,
        )
        text = result.get("question") if isinstance(result, dict) else None
        if not isinstance(text, str) or not text.strip():
            text = fallback["question"]
        for key, expected in (("difficulty", difficulty), ("time_limit", time_limit)):
            got = result.get(key) if isinstance(result, dict) else None
            if got is not None and got != expected:
                logger.warning("Question %d: overriding %s %r with ladder value %r", index, key, got, expected)
        return {"question": text.strip(), "difficulty": difficulty, "time_limit": time_limit}

    def _question_records(self, candidate_id: str, index: int, generated: dict, prefix: str = ""):
        question = Question(
            candidate_id=candidate_id,
            question_text=generated["question"],
            difficulty=generated["difficulty"],
            time_limit=generated["time_limit"],
            question_index=index,
        )
        message = ChatMessage(
            candidate_id=candidate_id,
            sender="ai",
            message=f"{prefix}{generated['question']}",
            message_type="question",
            meta={
                "questionId": question.id,
                "difficulty": question.difficulty,
                "timeLimit": question.time_limit,
            },
        )
        return question, message

    async def _start_interview(self, candidate, prefix: str = ""):
        generated = await self._next_question(0, candidate.resume_text)
        question, message = self._question_records(candidate.id, 0, generated, prefix)
        self.store.create_question(**question.model_dump())
        self.store.create_chat_message(**message.model_dump(exclude={"id"}))
        logger.info("Candidate %s started interviewing", candidate.id)

    # transitions

    def _require(self, candidate_id: str, message: str = "Candidate not found"):
        # checked before locking so unknown ids never get a lock entry
        if not self.store.get_candidate(candidate_id):
            raise NotFound(message)

    async def create_candidate(self, contact: dict, resume_text: str):
        fields = {f: (contact.get(f) or None) for f in CONTACT_FIELDS}
        missing = [f for f in CONTACT_FIELDS if not fields[f]]
        candidate = self.store.create_candidate(
            **fields,
            resume_text=resume_text or "",
            status=INFO_COLLECTION if missing else INTERVIEWING,
            current_question_index=0,
        )
        logger.info("Created candidate %s (missing: %s)", candidate.id, missing or "none")

        if missing:
            self.store.create_chat_message(
                candidate_id=candidate.id,
                sender="ai",
                message=(
                    "I've successfully extracted your resume information. However, I need some "
                    f"additional details: {', '.join(missing)}. Could you please provide the missing information?"
                ),
                message_type="info_request",
                meta={"missingFields": missing},
            )
        else:
            async with candidate_lock(candidate.id):
                await self._start_interview(candidate)
        return self.store.get_candidate_aggregate(candidate.id)

    async def supply_info(self, candidate_id: str, info: dict):
        self._require(candidate_id)
        async with candidate_lock(candidate_id):
            candidate = self.store.get_candidate(candidate_id)

            updates = {f: info[f] for f in CONTACT_FIELDS if info.get(f)}
            if updates:
                candidate = self.store.update_candidate(candidate_id, **updates)

            if not candidate.missing_fields():
                # only the call that flips the status generates question 0
                if self.store.transition_status(candidate_id, INFO_COLLECTION, status=INTERVIEWING):
                    candidate = self.store.get_candidate(candidate_id)
                    await self._start_interview(candidate, prefix="Thank you! Now let's begin the interview. ")
            return self.store.get_candidate_aggregate(candidate_id)

    async def submit_answer(self, candidate_id: str, question_id: str, answer_text: str,
                            time_spent, expected_index: int = None):
        self._require(candidate_id, "Candidate or question not found")
        async with candidate_lock(candidate_id):
            candidate = self.store.get_candidate(candidate_id)
            question = self.store.get_current_question(candidate_id) if candidate else None
            if not candidate or not question or question.id != question_id:
                raise NotFound("Candidate or question not found")
            if expected_index is not None and expected_index != candidate.current_question_index:
                raise Conflict()

            index = candidate.current_question_index
            time_spent = clamp_time_spent(time_spent, question.time_limit)
            answer_text = answer_text or ""

            scoring = await call_collaborator(
                "score_answer", self.ai.score_answer,
                question.question_text, answer_text, question.difficulty, time_spent, question.time_limit,
                fallback={"score": 5, "feedback": FALLBACK_FEEDBACK, "strengths": [], "improvements": []},
            )
            if not isinstance(scoring, dict):
                scoring = {}
            score = clamp_score(scoring.get("score"))

            answer = Answer(
                question_id=question.id,
                candidate_id=candidate_id,
                answer_text=answer_text,
                score=score,
                feedback=scoring.get("feedback") or FALLBACK_FEEDBACK,
                time_spent=time_spent,
            )
            answer_message = ChatMessage(
                candidate_id=candidate_id,
                sender="candidate",
                message=answer_text,
                message_type="answer",
                meta={"questionId": question.id, "score": score, "timeSpent": time_spent},
            )

            next_index = index + 1
            if next_index >= TOTAL_QUESTIONS:
                updates, records = await self._finish(candidate, answer)
                self.store.advance(candidate_id, index, updates, [answer, answer_message] + records)
                logger.info("Candidate %s completed with score %s", candidate_id, updates["score"])
            else:
                previous = [q.question_text for q in self.store.get_questions_by_candidate(candidate_id)]
                generated = await self._next_question(next_index, candidate.resume_text, previous)
                next_question, message = self._question_records(candidate_id, next_index, generated)
                self.store.advance(
                    candidate_id, index,
                    {"current_question_index": next_index},
                    [answer, answer_message, next_question, message],
                )
                logger.info("Candidate %s advanced to question %d", candidate_id, next_index)
            return self.store.get_candidate_aggregate(candidate_id)

    async def _finish(self, candidate, last_answer: Answer):
        answers = {a.question_id: a for a in self.store.get_answers_by_candidate(candidate.id)}
        answers[last_answer.question_id] = last_answer
        results = []
        for q in self.store.get_questions_by_candidate(candidate.id):
            a = answers.get(q.id)
            results.append({
                "question": q.question_text,
                "answer": a.answer_text if a else "",
                "score": a.score if a else 0,
                "difficulty": q.difficulty,
            })

        fallback_score = mean_score(results)
        summary = await call_collaborator(
            "generate_summary", self.ai.generate_summary,
            candidate.name or "", candidate.resume_text, results,
            fallback={
                "overall_score": fallback_score,
                "summary": FALLBACK_SUMMARY,
                "strengths": [],
                "weaknesses": [],
                "recommendation": FALLBACK_RECOMMENDATION,
            },
        )
        if not isinstance(summary, dict):
            summary = {}
        try:
            overall = round_score(min(10.0, max(1.0, float(summary.get("overall_score")))))
        except (TypeError, ValueError):
            overall = fallback_score
        text = summary.get("summary") or FALLBACK_SUMMARY
        recommendation = summary.get("recommendation") or FALLBACK_RECOMMENDATION

        updates = {
            "status": COMPLETED,
            "completed_at": utcnow(),
            "score": overall,
            "summary": text,
            "recommendation": recommendation,
            "current_question_index": TOTAL_QUESTIONS,
        }
        message = ChatMessage(
            candidate_id=candidate.id,
            sender="ai",
            message=f"Interview completed! Your final score is {overall}/10. {text}",
            message_type="text",
            meta={"finalScore": overall, "summary": text, "recommendation": recommendation},
        )
        return updates, [message]

    async def set_paused(self, candidate_id: str, action: str):
        if action not in ("pause", "resume"):
            raise ValidationError("action must be 'pause' or 'resume'")
        self._require(candidate_id)
        async with candidate_lock(candidate_id):
            if action == "pause":
                candidate = self.store.update_candidate(candidate_id, status=PAUSED, paused_at=utcnow())
            else:
                candidate = self.store.update_candidate(candidate_id, status=INTERVIEWING, paused_at=None)
            logger.info("Candidate %s %sd", candidate_id, action)
            return candidate
