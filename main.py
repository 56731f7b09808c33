import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, UploadFile, File, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from deps import get_store, get_ai, init_db, to_e164, MAX_UPLOAD_BYTES
from errors import InterviewError, NotFound, ValidationError
from progression import ProgressionEngine
from resume import extract_contact_info
from schemas import (
    InfoUpdate, AnswerSubmit, PauseAction,
    aggregate_view, candidate_view, stats_view,
)
from storage import Store
import transcript

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="AI Interview Assistant", lifespan=lifespan)


@app.exception_handler(InterviewError)
async def interview_error_handler(request: Request, exc: InterviewError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"message": "Invalid request payload"})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Storage error"})


def get_engine(store: Store = Depends(get_store), ai=Depends(get_ai)):
    return ProgressionEngine(store, ai)


@app.get("/")
async def root():
    return {"status": "ok", "service": "AI Interview Assistant"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.post("/candidates")
async def create_candidate(
    resume: UploadFile = File(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    if resume is None:
        raise ValidationError("Resume file is required")
    raw = await resume.read()
    if not raw:
        raise ValidationError("Resume file is required")
    if len(raw) > MAX_UPLOAD_BYTES:
        raise ValidationError("Resume file is too large")

    extracted = extract_contact_info(raw, resume.filename or "")
    agg = await engine.create_candidate(extracted, extracted["text"])
    return aggregate_view(agg)


@app.patch("/candidates/{candidate_id}/info")
async def update_info(
    candidate_id: str,
    body: InfoUpdate,
    engine: ProgressionEngine = Depends(get_engine),
):
    info = body.model_dump()
    if info.get("phone"):
        info["phone"] = to_e164(info["phone"])
    agg = await engine.supply_info(candidate_id, info)
    return aggregate_view(agg)


@app.post("/candidates/{candidate_id}/answers")
async def submit_answer(
    candidate_id: str,
    body: AnswerSubmit,
    engine: ProgressionEngine = Depends(get_engine),
):
    agg = await engine.submit_answer(
        candidate_id,
        body.question_id,
        body.answer_text,
        body.time_spent,
        expected_index=body.expected_index,
    )
    return aggregate_view(agg)


@app.get("/candidates/{candidate_id}")
def get_candidate(candidate_id: str, store: Store = Depends(get_store)):
    agg = store.get_candidate_aggregate(candidate_id)
    if not agg:
        raise NotFound("Candidate not found")
    return aggregate_view(agg)


@app.get("/candidates")
def list_candidates(store: Store = Depends(get_store)):
    return [candidate_view(c) for c in store.get_all_candidates()]


@app.get("/stats")
def get_stats(store: Store = Depends(get_store)):
    return stats_view(store.get_stats())


@app.patch("/candidates/{candidate_id}/pause")
async def pause_interview(
    candidate_id: str,
    body: PauseAction,
    engine: ProgressionEngine = Depends(get_engine),
):
    candidate = await engine.set_paused(candidate_id, body.action)
    return candidate_view(candidate)


@app.get("/candidates/{candidate_id}/transcript")
def get_transcript(candidate_id: str, store: Store = Depends(get_store)):
    agg = store.get_candidate_aggregate(candidate_id)
    if not agg:
        raise NotFound("Candidate not found")
    projection = transcript.fold(agg["messages"])
    result = projection.to_dict()
    result["consistent"] = transcript.consistent_with(projection, agg["candidate"], agg["current_question"])
    return result
