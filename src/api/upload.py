"""
src/api/upload.py
==================
HTTP Surface — Legal Intake Pipeline

Responsibility:
    - Expose POST /api/audio/upload (rate-limited in the "ai-pipeline" bucket)
    - Reject empty uploads and uploads over 20 MB
    - Delegate pipeline execution to src.pipeline.run_pipeline on a
      worker thread
    - Expose read endpoints for stored audio records and the
      lawyer-assignment endpoint (rate-limited in the "standard" bucket)

Status codes:
    429 — bucket exhausted (the upload is checked before its body is read)
    400 — empty or oversized upload
    404 — unknown record or case
    500 — pipeline aborted (transcription failed) or database error
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.cases.case_service import CaseNotFoundError, assign_lawyer
from src.db.audio_repository import (
    get_audio_record,
    list_audio_records,
    list_by_case,
    list_by_owner,
)
from src.db.database import get_db, init_db
from src.pipeline import run_pipeline
from src.rate_limiter import (
    AI_PIPELINE_BUCKET,
    STANDARD_BUCKET,
    RateLimiter,
    build_rate_limiter,
)
from src.schemas import audio_record_to_json, case_record_to_json
from src.stage_outcome import AbortPipeline

logger = logging.getLogger("legalintake.api")

UPLOAD_PATH: str = "/api/audio/upload"
MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024
# Multipart framing and form fields on top of the file itself
MULTIPART_OVERHEAD_BYTES: int = 64 * 1024

TOO_MANY_REQUESTS: str = "Too many requests. Please try again later."


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Legal Intake",
    description="Audio intake for legal cases: transcription, redaction, translation and case creation.",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.rate_limiter = build_rate_limiter()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def rate_limited(bucket: str) -> Callable[..., None]:
    """Dependency that consumes one token from ``bucket`` or fails with 429."""

    def _consume(limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
        if not limiter.try_consume(bucket):
            raise HTTPException(status_code=429, detail=TOO_MANY_REQUESTS)

    return _consume


def _too_large_detail() -> str:
    return f"File size exceeds maximum limit of {MAX_UPLOAD_BYTES // (1024 * 1024)}MB."


# ---------------------------------------------------------------------------
# Upload admission
# ---------------------------------------------------------------------------


@app.middleware("http")
async def upload_admission(request: Request, call_next):
    """
    Reject uploads before the multipart body is read.

    Route dependencies only run after FastAPI has parsed the form, so the
    upload route is gated here: rate limit first, then a Content-Length
    bound.
    """
    if request.method == "POST" and request.url.path == UPLOAD_PATH:
        if not get_rate_limiter(request).try_consume(AI_PIPELINE_BUCKET):
            return JSONResponse(status_code=429, content={"detail": TOO_MANY_REQUESTS})

        content_length = request.headers.get("content-length", "")
        if (
            content_length.isdigit()
            and int(content_length) > MAX_UPLOAD_BYTES + MULTIPART_OVERHEAD_BYTES
        ):
            logger.warning("Upload rejected before parsing: %s bytes declared.", content_length)
            return JSONResponse(status_code=400, content={"detail": _too_large_detail()})

    return await call_next(request)


# Added last so it wraps the admission middleware and 429/400 carry CORS headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


@app.post(UPLOAD_PATH)
async def upload_audio(
    file: UploadFile = File(...),
    user_id: Optional[int] = Form(None),
    case_title: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    """
    Accept an audio file and run the full intake pipeline.

    Rate limiting for this route happens in upload_admission.

    Args:
        file:       Uploaded recording.
        user_id:    Owning client; without it no case is created.
        case_title: Optional title for the created case.

    Returns:
        The persisted audio record as JSON.
    """
    if file.size is not None and file.size > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail=_too_large_detail())

    # Bounded read: one byte past the limit is enough to detect oversize
    audio_bytes = await file.read(MAX_UPLOAD_BYTES + 1)

    if not audio_bytes:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    if len(audio_bytes) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail=_too_large_detail())

    logger.info(
        "Audio file received: %s (%.2f KB, %s)",
        file.filename, len(audio_bytes) / 1024, file.content_type,
    )

    try:
        result = await asyncio.to_thread(
            run_pipeline,
            db,
            audio_bytes,
            mime_type=file.content_type,
            filename=file.filename,
            owner_user_id=user_id,
            case_title=case_title,
        )
    except AbortPipeline as exc:
        logger.error("Pipeline aborted: %s", exc)
        raise HTTPException(
            status_code=500,
            detail=f"Audio processing failed: {exc.message}",
        )
    except SQLAlchemyError as exc:
        logger.error("Pipeline database error: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to save audio record.")
    except Exception as exc:
        logger.error("Pipeline unexpected error: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Audio processing failed.")

    return JSONResponse(status_code=200, content=audio_record_to_json(result.record))


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@app.get("/api/audio/all", dependencies=[Depends(rate_limited(STANDARD_BUCKET))])
def get_all_audio(db: Session = Depends(get_db)):
    return [audio_record_to_json(r) for r in list_audio_records(db)]


@app.get("/api/audio/user/{user_id}", dependencies=[Depends(rate_limited(STANDARD_BUCKET))])
def get_audio_by_user(user_id: int, db: Session = Depends(get_db)):
    return [audio_record_to_json(r) for r in list_by_owner(db, user_id)]


@app.get("/api/audio/case/{case_id}", dependencies=[Depends(rate_limited(STANDARD_BUCKET))])
def get_audio_by_case(case_id: int, db: Session = Depends(get_db)):
    return [audio_record_to_json(r) for r in list_by_case(db, case_id)]


@app.get("/api/audio/{record_id}", dependencies=[Depends(rate_limited(STANDARD_BUCKET))])
def get_audio(record_id: int, db: Session = Depends(get_db)):
    record = get_audio_record(db, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Audio record not found with id: {record_id}")
    return audio_record_to_json(record)


# ---------------------------------------------------------------------------
# Case assignment
# ---------------------------------------------------------------------------


@app.post("/api/cases/{case_id}/assign", dependencies=[Depends(rate_limited(STANDARD_BUCKET))])
def assign_case_lawyer(
    case_id: int,
    lawyer_id: int = Form(...),
    db: Session = Depends(get_db),
):
    """Assign a lawyer to a case and sync the linked audio records."""
    try:
        case = assign_lawyer(db, case_id, lawyer_id)
    except CaseNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return case_record_to_json(case)
