"""FastAPI complaint assist service: AI auto-fill for the complaint intake form.

Delegates text extraction to the external extraction service, then serves
review rows and selective merges of the candidate into the caller's form.
Privacy: raw complaint text is never logged, only its length.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import PurePath

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse

from config import settings
from extraction_client import ExtractionClient, ExtractionFailure, ExtractionServiceUnavailable
from field_paths import PathSyntaxError, canonical
from merge import merge_with_report
from models import (
    ApplyFieldPayload,
    ApplyResponse,
    ExtractionRequest,
    ExtractionResult,
    MergeRequest,
    ReviewPayload,
    ReviewRow,
    SourceHint,
)
from review import build_review_rows

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SUPPORTED_UPLOAD_SUFFIXES = {".txt", ".eml"}

_extraction_client: ExtractionClient | None = None
_extraction_available: bool = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the extraction client on startup if configured."""
    global _extraction_client, _extraction_available

    if not settings.EXTRACTION_SERVICE_URL:
        logger.info("Extraction service not configured (EXTRACTION_SERVICE_URL is empty), AI auto-fill disabled")
        _extraction_available = False
    else:
        logger.info("Using extraction service at %s", settings.EXTRACTION_SERVICE_URL)
        _extraction_client = ExtractionClient()
        _extraction_available = True

    yield

    if _extraction_client is not None:
        await _extraction_client.aclose()
        _extraction_client = None
    _extraction_available = False


app = FastAPI(title="Complaint Assist", version="1.0.0", lifespan=lifespan)


def source_hint_for_filename(filename: str | None) -> SourceHint:
    if filename and PurePath(filename).suffix.lower() == ".eml":
        return SourceHint.EMAIL
    return SourceHint.OTHER


async def _run_extraction(request: ExtractionRequest):
    if not _extraction_available or _extraction_client is None:
        return JSONResponse(
            status_code=503,
            content={"detail": "AI extraction is not available - no extraction service configured"},
        )

    try:
        return await _extraction_client.extract(request)
    except ExtractionServiceUnavailable as e:
        logger.error("Extraction service unavailable: %s", e)
        return JSONResponse(status_code=503, content={"detail": f"Extraction service unavailable: {e}"})
    except ExtractionFailure as e:
        logger.error("Extraction failed: %s", e)
        return JSONResponse(status_code=502, content={"detail": f"Extraction failed: {e}"})


@app.post("/api/v1/extract", response_model=ExtractionResult)
async def extract(request: ExtractionRequest):
    """Extract a candidate complaint record from pasted text."""
    logger.info(
        "Processing extraction: source=%s chars=%d",
        request.source_hint.value,
        len(request.raw_text),
    )
    return await _run_extraction(request)


@app.post("/api/v1/extract/file", response_model=ExtractionResult)
async def extract_file(
    file: UploadFile = File(...),
    source_hint: SourceHint | None = Form(None),
):
    """Extract from an uploaded .txt or .eml file."""
    suffix = PurePath(file.filename or "").suffix.lower()
    if suffix not in SUPPORTED_UPLOAD_SUFFIXES:
        return JSONResponse(
            status_code=400,
            content={"detail": f"Unsupported file type {suffix or '(none)'}; expected .txt or .eml"},
        )

    raw = await file.read()
    text = raw.decode("utf-8", errors="replace")
    if not text.strip():
        return JSONResponse(status_code=400, content={"detail": "Empty file uploaded"})

    hint = source_hint or source_hint_for_filename(file.filename)
    logger.info("Processing file extraction: source=%s size=%d bytes", hint.value, len(raw))
    return await _run_extraction(ExtractionRequest(raw_text=text, source_hint=hint))


@app.post("/api/v1/review", response_model=list[ReviewRow])
async def review(payload: ReviewPayload):
    """Field-by-field diff rows for the review panel."""
    return build_review_rows(payload.result, payload.form)


@app.post("/api/v1/apply-all", response_model=ApplyResponse)
async def apply_all(payload: ReviewPayload):
    form, report = merge_with_report(payload.form, payload.result, MergeRequest.for_all())
    return ApplyResponse(form=form, report=report)


@app.post("/api/v1/apply-field", response_model=ApplyResponse)
async def apply_field(payload: ApplyFieldPayload):
    try:
        path = canonical(payload.path)
    except PathSyntaxError as e:
        return JSONResponse(
            status_code=422,
            content={"detail": str(e), "path": e.path, "segment": e.segment},
        )

    form, report = merge_with_report(payload.form, payload.result, MergeRequest.for_paths(path))
    return ApplyResponse(form=form, report=report)


@app.get("/health")
async def health():
    """Return service status and extraction service availability."""
    base = {
        "status": "healthy",
        "extraction_available": _extraction_available,
    }

    if _extraction_available and _extraction_client is not None:
        base["extraction_health"] = await _extraction_client.health()

    return base


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
