"""
Tests for the session store: CRUD ordering, aggregate view, stats and the
compare-and-set writes.
Run: pytest tests/test_storage.py -v
"""

from datetime import timedelta

import pytest

from errors import NotFound, Conflict
from models import Candidate, Answer, ChatMessage, Question, COMPLETED, INTERVIEWING, INFO_COLLECTION, PAUSED, utcnow


def _candidate(store, **kw):
    fields = {"name": "Ada Lovelace", "email": "ada@example.com", "phone": "+16502530000",
              "resume_text": "resume", "status": INTERVIEWING}
    fields.update(kw)
    return store.create_candidate(**fields)


class TestCandidates:
    def test_create_sets_defaults(self, store):
        c = _candidate(store)
        assert c.id
        assert c.started_at is not None
        assert c.completed_at is None
        assert c.paused_at is None
        assert c.current_question_index == 0

    def test_update_unknown_candidate_raises(self, store):
        with pytest.raises(NotFound):
            store.update_candidate("missing", status=PAUSED)

    def test_update_applies_partial_fields(self, store):
        c = _candidate(store)
        updated = store.update_candidate(c.id, name="Grace Hopper")
        assert updated.name == "Grace Hopper"
        assert updated.email == "ada@example.com"

    def test_all_candidates_newest_first(self, store):
        now = utcnow()
        old = _candidate(store, started_at=now - timedelta(hours=2))
        new = _candidate(store, started_at=now)
        mid = _candidate(store, started_at=now - timedelta(hours=1))
        assert [c.id for c in store.get_all_candidates()] == [new.id, mid.id, old.id]

    def test_missing_fields_in_order(self, store):
        c = _candidate(store, name=None, phone=None)
        assert c.missing_fields() == ["name", "phone"]

    def test_default_timestamps_are_utc_aware(self):
        stamps = [
            Candidate().started_at,
            Question(candidate_id="c", question_text="q", difficulty="easy", time_limit=20,
                     question_index=0).created_at,
            Answer(question_id="q", candidate_id="c").submitted_at,
            ChatMessage(candidate_id="c", sender="ai", message="hi").created_at,
        ]
        assert all(s.utcoffset() == timedelta(0) for s in stamps)

    def test_timestamp_updates_persist(self, store):
        c = _candidate(store)
        paused = store.update_candidate(c.id, status=PAUSED, paused_at=utcnow())
        assert paused.paused_at is not None
        assert store.update_candidate(c.id, paused_at=None).paused_at is None


class TestQuestionsAndAnswers:
    def test_questions_ordered_by_index(self, store):
        c = _candidate(store)
        for i in (2, 0, 1):
            store.create_question(candidate_id=c.id, question_text=f"q{i}", difficulty="easy",
                                  time_limit=20, question_index=i)
        assert [q.question_index for q in store.get_questions_by_candidate(c.id)] == [0, 1, 2]

    def test_current_question_follows_index(self, store):
        c = _candidate(store)
        q0 = store.create_question(candidate_id=c.id, question_text="q0", difficulty="easy",
                                   time_limit=20, question_index=0)
        assert store.get_current_question(c.id).id == q0.id
        store.update_candidate(c.id, current_question_index=1)
        assert store.get_current_question(c.id) is None

    def test_current_question_unknown_candidate(self, store):
        assert store.get_current_question("nope") is None

    def test_answers_ordered_by_submission(self, store):
        c = _candidate(store)
        now = utcnow()
        store.create_answer(question_id="q2", candidate_id=c.id, answer_text="later",
                            score=5, time_spent=3, submitted_at=now)
        store.create_answer(question_id="q1", candidate_id=c.id, answer_text="earlier",
                            score=5, time_spent=3, submitted_at=now - timedelta(seconds=5))
        assert [a.answer_text for a in store.get_answers_by_candidate(c.id)] == ["earlier", "later"]
        assert store.get_answer_by_question("q2").answer_text == "later"


class TestChat:
    def test_messages_ordered_and_metadata_kept(self, store):
        c = _candidate(store)
        store.create_chat_message(candidate_id=c.id, sender="ai", message="hi",
                                  message_type="info_request", meta={"missingFields": ["email"]})
        store.create_chat_message(candidate_id=c.id, sender="candidate", message="a@b.co")
        messages = store.get_chat_messages(c.id)
        assert [m.message for m in messages] == ["hi", "a@b.co"]
        assert messages[0].meta == {"missingFields": ["email"]}
        assert messages[1].message_type == "text"


class TestAggregate:
    def test_unknown_candidate(self, store):
        assert store.get_candidate_aggregate("nope") is None

    def test_counts_and_current_question(self, store):
        c = _candidate(store, current_question_index=1)
        q0 = store.create_question(candidate_id=c.id, question_text="q0", difficulty="easy",
                                   time_limit=20, question_index=0)
        q1 = store.create_question(candidate_id=c.id, question_text="q1", difficulty="easy",
                                   time_limit=20, question_index=1)
        store.create_answer(question_id=q0.id, candidate_id=c.id, answer_text="a", score=6, time_spent=4)

        agg = store.get_candidate_aggregate(c.id)
        assert agg["total_questions"] == 6
        assert agg["completed_questions"] == 2
        assert agg["answered_questions"] == 1
        assert agg["current_question"].id == q1.id
        assert agg["messages"] == []


class TestStats:
    def test_empty(self, store):
        assert store.get_stats() == {
            "total_candidates": 0,
            "completed_interviews": 0,
            "active_interviews": 0,
            "average_score": 0,
        }

    def test_counts_and_average(self, store):
        _candidate(store, status=COMPLETED, score=7.0)
        _candidate(store, status=COMPLETED, score=8.5)
        _candidate(store, status=COMPLETED, score=6.0)
        _candidate(store, status=INTERVIEWING)
        _candidate(store, status=INFO_COLLECTION)
        _candidate(store, status=PAUSED)

        stats = store.get_stats()
        assert stats["total_candidates"] == 6
        assert stats["completed_interviews"] == 3
        assert stats["active_interviews"] == 2
        # 21.5 / 3 = 7.1666...
        assert stats["average_score"] == 7.2


class TestCompareAndSet:
    def test_transition_only_from_expected_status(self, store):
        c = _candidate(store, status=INFO_COLLECTION)
        assert store.transition_status(c.id, INFO_COLLECTION, status=INTERVIEWING) is True
        assert store.transition_status(c.id, INFO_COLLECTION, status=INTERVIEWING) is False
        assert store.get_candidate(c.id).status == INTERVIEWING

    def test_advance_writes_everything(self, store):
        c = _candidate(store)
        records = [
            Answer(question_id="q0", candidate_id=c.id, answer_text="a", score=5, time_spent=1),
            ChatMessage(candidate_id=c.id, sender="candidate", message="a", message_type="answer"),
            Question(candidate_id=c.id, question_text="q1", difficulty="easy", time_limit=20, question_index=1),
        ]
        updated = store.advance(c.id, 0, {"current_question_index": 1}, records)
        assert updated.current_question_index == 1
        assert len(store.get_answers_by_candidate(c.id)) == 1
        assert len(store.get_chat_messages(c.id)) == 1
        assert store.get_current_question(c.id).question_text == "q1"

    def test_advance_with_stale_index_writes_nothing(self, store):
        c = _candidate(store, current_question_index=2)
        records = [
            Answer(question_id="q0", candidate_id=c.id, answer_text="a", score=5, time_spent=1),
            ChatMessage(candidate_id=c.id, sender="candidate", message="a", message_type="answer"),
        ]
        with pytest.raises(Conflict):
            store.advance(c.id, 1, {"current_question_index": 2}, records)
        assert store.get_answers_by_candidate(c.id) == []
        assert store.get_chat_messages(c.id) == []
        assert store.get_candidate(c.id).current_question_index == 2
