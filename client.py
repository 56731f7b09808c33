"""
HTTP client for the interview API and the client-side session driver.

InterviewSession mirrors what the browser does: it keeps the candidate's
aggregate view, runs the advisory countdown for the current question,
auto-submits once when it expires, and persists its pointer through a
SessionCache so an interrupted session can be continued.
"""

import time
import logging
import httpx

from errors import InterviewError, NotFound, ValidationError, ExtractionFailure, Conflict, StorageFailure
from timer import Countdown

logger = logging.getLogger(__name__)

ERRORS_BY_STATUS = {
    400: ValidationError,
    404: NotFound,
    409: Conflict,
    422: ExtractionFailure,
}


class InterviewClient:
    def __init__(self, base_url: str = "http://localhost:8000", transport=None, timeout: float = 60):
        self.http = httpx.Client(base_url=base_url, transport=transport, timeout=timeout)

    def close(self):
        self.http.close()

    def _request(self, method: str, path: str, **kwargs):
        try:
            resp = self.http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StorageFailure(f"Request failed: {e}") from e
        if resp.status_code >= 400:
            try:
                message = resp.json().get("message")
            except ValueError:
                message = None
            error = ERRORS_BY_STATUS.get(resp.status_code)
            if error is None:
                error = StorageFailure if resp.status_code >= 500 else InterviewError
            raise error(message)
        return resp.json()

    def upload_resume(self, filename: str, content: bytes):
        return self._request("POST", "/candidates", files={"resume": (filename, content)})

    def update_info(self, candidate_id: str, **info):
        return self._request("PATCH", f"/candidates/{candidate_id}/info", json=info)

    def submit_answer(self, candidate_id: str, question_id: str, answer_text: str, time_spent: int,
                      expected_index: int = None):
        body = {"questionId": question_id, "answerText": answer_text, "timeSpent": time_spent}
        if expected_index is not None:
            body["expectedIndex"] = expected_index
        return self._request("POST", f"/candidates/{candidate_id}/answers", json=body)

    def get_candidate(self, candidate_id: str):
        return self._request("GET", f"/candidates/{candidate_id}")

    def list_candidates(self):
        return self._request("GET", "/candidates")

    def stats(self):
        return self._request("GET", "/stats")

    def set_paused(self, candidate_id: str, action: str):
        return self._request("PATCH", f"/candidates/{candidate_id}/pause", json={"action": action})


class InterviewSession:
    def __init__(self, client: InterviewClient, cache, clock=time.monotonic):
        self.client = client
        self.cache = cache
        self._clock = clock
        self.aggregate = None
        self.countdown = None
        self.draft = ""
        self._submitted = None

    @property
    def candidate_id(self):
        return self.aggregate["id"] if self.aggregate else None

    def _apply(self, aggregate: dict):
        self.aggregate = aggregate
        self.cache.save(aggregate)
        question = aggregate.get("currentQuestion")
        active = aggregate["status"] in ("interviewing", "paused") and question
        if not active:
            self.countdown = None
            return
        if self.countdown is None or self.countdown.question_id != question["id"]:
            self.countdown = Countdown(question["id"], question["timeLimit"], clock=self._clock)
            self.draft = ""
        if aggregate["status"] == "paused":
            self.countdown.pause()
        else:
            self.countdown.resume()

    def start(self, filename: str, content: bytes):
        self.cache.start_fresh()
        self._apply(self.client.upload_resume(filename, content))
        return self.aggregate

    def continue_cached(self):
        """Re-attach to the cached candidate, refetching the server's view."""
        candidate_id = self.cache.candidate_id()
        if not candidate_id:
            raise NotFound("No cached session")
        self._apply(self.client.get_candidate(candidate_id))
        return self.aggregate

    def sync(self):
        self._apply(self.client.get_candidate(self.candidate_id))
        return self.aggregate

    def supply_info(self, **info):
        self._apply(self.client.update_info(self.candidate_id, **info))
        return self.aggregate

    def pause(self):
        candidate = self.client.set_paused(self.candidate_id, "pause")
        if self.countdown:
            self.countdown.pause()
        self.aggregate.update(candidate)
        self.cache.save(self.aggregate)

    def resume(self):
        candidate = self.client.set_paused(self.candidate_id, "resume")
        if self.countdown:
            self.countdown.resume()
        self.aggregate.update(candidate)
        self.cache.save(self.aggregate)

    def submit(self, answer_text: str = None, time_spent: int = None):
        question = self.aggregate and self.aggregate.get("currentQuestion")
        if not question or self._submitted == question["id"]:
            return None
        text = self.draft if answer_text is None else answer_text
        if time_spent is None:
            time_spent = self.countdown.time_spent() if self.countdown else question["timeLimit"]
        self._submitted = question["id"]
        try:
            aggregate = self.client.submit_answer(
                self.candidate_id, question["id"], text.strip(), time_spent,
                expected_index=self.aggregate["currentQuestionIndex"],
            )
        except (NotFound, Conflict):
            # the other submit won the race, pick up the server's view
            logger.info("Question %s already closed, resyncing", question["id"])
            return self.sync()
        except InterviewError:
            self._submitted = None
            raise
        self._apply(aggregate)
        return aggregate

    def tick(self, now: float = None):
        """Auto-submit the draft once the countdown for the current question runs out."""
        if not self.countdown or self.countdown.paused or not self.countdown.expired(now):
            return None
        return self.submit(self.draft, self.countdown.time_limit)
