"""LexiCite — FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from lexicite.backends.courtlistener import CourtListenerLookup
from lexicite.backends.gemini import GeminiVerifier
from lexicite.config import VerificationConfig, settings
from lexicite.db.database import CREDENTIAL_KEY, TEXT_KEY, TITLE_KEY, Database
from lexicite.errors import PatternError, StaleCitationError
from lexicite.models.report import ReportEntry
from lexicite.models.verification import VerificationMode
from lexicite.orchestrator.aggregation import CitationFilter, SortOption
from lexicite.orchestrator.dispatcher import VerificationOrchestrator
from lexicite.orchestrator.extractor import compile_pattern
from lexicite.orchestrator.journal import ArchiveSync, ReportJournal
from lexicite.orchestrator.session import DocumentSession

logger = logging.getLogger(__name__)

DEFAULT_TEXT = """The legal framework regarding abortion has shifted significantly.
Previously, the primary authority was Roe v. Wade, 410 U.S. 113 (1973).
However, modern briefs must account for the ruling in Dobbs v. Jackson Women's Health Organization, 597 U.S. 215 (2022).
For criminal procedure, see Miranda v. Arizona, 384 U.S. 436 (1966)."""

db = Database(settings.database_path)
_session: DocumentSession | None = None
_tasks: set[asyncio.Task] = set()


def build_orchestrator() -> VerificationOrchestrator:
    return VerificationOrchestrator(GeminiVerifier(), CourtListenerLookup())


def get_session() -> DocumentSession:
    if _session is None:
        raise RuntimeError("Session not initialised — application not started")
    return _session


def _spawn(coro) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _tasks.add(task)
    task.add_done_callback(_tasks.discard)
    return task


async def _load_session() -> DocumentSession:
    """Restore text, title, credential and history, each independently."""
    text = await db.get_state(TEXT_KEY)
    title = await db.get_state(TITLE_KEY)
    credential = await db.get_state(CREDENTIAL_KEY)
    history = await db.get_reports(settings.history_limit)

    config = VerificationConfig.from_settings(settings)
    if credential is not None:
        config = config.updated(court_listener_token=credential)

    session = DocumentSession(
        build_orchestrator(),
        config=config,
        journal=ReportJournal(history, limit=settings.history_limit),
        sync=ArchiveSync(),
        text=DEFAULT_TEXT if text is None else text,
    )
    if title:
        session.set_title(title)
    session.collection.subscribe(
        lambda event, c: _publish({"type": "citation", "event": event, "citation": c.to_dict()})
    )
    logger.info("Session restored with %d citation(s), %d report(s)", len(session.collection), len(history))
    return session


async def _save_snapshot() -> None:
    session = get_session()
    await db.save_document(session.text, session.title)


async def _autosave(interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await _save_snapshot()
        except Exception:
            logger.exception("Autosave failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _session
    await db.connect()
    _session = await _load_session()
    autosave = asyncio.create_task(_autosave(settings.autosave_interval))
    yield
    autosave.cancel()
    await _save_snapshot()
    await db.close()
    _session = None


app = FastAPI(
    title="LexiCite",
    description="Legal citation extraction and verification",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Request / Response models ---


class DocumentUpdate(BaseModel):
    text: str | None = None
    title: str | None = None


class DocumentResponse(BaseModel):
    text: str
    title: str
    no_citations_found: bool
    citations: list[dict]


class CorrectionRequest(BaseModel):
    citation: str
    case_name: str | None = None


class ConfigUpdate(BaseModel):
    mode: VerificationMode | None = None
    search_enabled: bool | None = None
    court_listener_enabled: bool | None = None
    court_listener_token: str | None = None
    rerun_all: bool | None = None
    pattern: str | None = None


class HistoricalRequest(BaseModel):
    query: str


def _document_response(session: DocumentSession) -> DocumentResponse:
    return DocumentResponse(
        text=session.text,
        title=session.title,
        no_citations_found=session.no_citations_found,
        citations=[c.to_dict() for c in session.collection],
    )


def _config_response(session: DocumentSession) -> dict:
    config = session.config
    return {
        "mode": config.mode.value,
        "search_enabled": config.search_enabled,
        "court_listener_enabled": config.court_listener_enabled,
        "court_listener_configured": bool(config.court_listener_token),
        "rerun_all": config.rerun_all,
        "pattern": session.pattern,
    }


# --- Routes ---


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/document", response_model=DocumentResponse)
async def get_document():
    return _document_response(get_session())


@app.put("/api/document", response_model=DocumentResponse)
async def update_document(req: DocumentUpdate):
    """Replace the text and/or title. Text changes re-extract citations."""
    session = get_session()
    if req.title is not None:
        session.set_title(req.title)
    if req.text is not None:
        session.set_text(req.text)
    return _document_response(session)


@app.get("/api/citations")
async def list_citations(
    filter: CitationFilter = CitationFilter.ALL, sort: SortOption = SortOption.ORIGINAL
):
    return [c.to_dict() for c in get_session().view(filter, sort)]


@app.get("/api/stats")
async def get_stats():
    session = get_session()
    return {**session.stats().to_dict(), "verifying": session.is_verifying}


@app.get("/api/highlights")
async def get_highlights():
    return [s.to_dict() for s in get_session().highlights()]


@app.post("/api/verify", status_code=202)
async def start_verification():
    """Start a verification batch. Progress streams over /ws/citations."""
    session = get_session()
    try:
        batch = session.start_verification()
    except RuntimeError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    _spawn(_archive_batch(batch))
    return {"status": "started", "pending": session.stats().pending}


@app.post("/api/citations/{citation_id}/correction", response_model=DocumentResponse)
async def apply_correction(citation_id: str, req: CorrectionRequest):
    session = get_session()
    try:
        session.apply_correction(citation_id, req.citation, req.case_name)
    except KeyError:
        raise HTTPException(status_code=404, detail="Citation not found")
    except StaleCitationError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return _document_response(session)


@app.get("/api/config")
async def get_config():
    return _config_response(get_session())


@app.put("/api/config")
async def update_config(req: ConfigUpdate):
    session = get_session()
    changes = req.model_dump(exclude_unset=True)
    pattern_set = "pattern" in changes
    pattern = changes.pop("pattern", None)

    if pattern_set and pattern:
        try:
            compile_pattern(pattern)
        except PatternError as exc:
            raise HTTPException(status_code=422, detail=str(exc))

    changes = {k: v for k, v in changes.items() if v is not None}
    if changes:
        session.reconfigure(**changes)
    if "court_listener_token" in changes:
        token = changes["court_listener_token"]
        if token.strip():
            await db.set_state(CREDENTIAL_KEY, token)
        else:
            # Cleared; the environment default applies on the next start
            await db.delete_state(CREDENTIAL_KEY)
    if pattern_set:
        session.set_pattern(pattern)
    return _config_response(session)


@app.get("/api/history")
async def get_history():
    return [e.to_dict() for e in get_session().journal.entries]


@app.get("/api/history/export")
async def export_history():
    session = get_session()
    filename = f"lexicite_case_study_data_{int(time.time() * 1000)}.json"
    return Response(
        content=session.journal.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.delete("/api/history", status_code=204)
async def clear_history():
    get_session().journal.clear()
    await db.clear_reports()


@app.post("/api/history/sync")
async def sync_history():
    session = get_session()
    if not session.sync.enabled:
        raise HTTPException(status_code=400, detail="No sync endpoint configured")
    synced = await session.sync.send_dataset(session.journal.entries)
    return {"synced": synced, "count": len(session.journal)}


@app.post("/api/historical-context")
async def historical_context(req: HistoricalRequest):
    verifier = get_session().orchestrator.verifier
    fetch = getattr(verifier, "historical_context", None)
    if fetch is None:
        raise HTTPException(status_code=501, detail="Verifier does not provide historical context")
    context = await fetch(req.query)
    if context is None:
        raise HTTPException(status_code=502, detail="Historical context unavailable")
    return {
        "query": context.query,
        "era": context.era,
        "topic": context.topic,
        "brief": context.brief,
        "keyForces": context.key_forces,
        "relatedCases": context.related_cases,
        "timeline": [
            {"year": e.year, "caseName": e.case_name, "summary": e.summary, "citation": e.citation}
            for e in context.timeline
        ],
    }


# --- WebSocket ---

# One queue per connected client
_subscribers: set[asyncio.Queue] = set()


def _publish(message: dict) -> None:
    for queue in list(_subscribers):
        if queue.full():
            # Slow client; drop its oldest pending message
            queue.get_nowait()
            logger.warning("WebSocket client lagging, dropped a message")
        queue.put_nowait(message)


async def _pump(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


@app.websocket("/ws/citations")
async def citations_ws(websocket: WebSocket):
    """Stream citation updates and batch summaries."""
    await websocket.accept()
    queue: asyncio.Queue = asyncio.Queue(maxsize=settings.ws_queue_size)
    _subscribers.add(queue)
    sender = asyncio.create_task(_pump(websocket, queue))
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        _subscribers.discard(queue)


# --- Batch archival ---


async def _archive_batch(batch: asyncio.Task) -> None:
    """Persist and announce a finished batch."""
    try:
        entry: ReportEntry = await batch
    except Exception:
        logger.exception("Verification batch failed")
        _publish({"type": "error", "detail": "Verification batch failed"})
        return

    try:
        await db.add_report(entry, settings.history_limit)
    except Exception:
        logger.exception("Failed to persist report %s", entry.id)

    _publish({"type": "batch", "report": entry.to_dict(), "stats": get_session().stats().to_dict()})


def run() -> None:
    import uvicorn

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("lexicite.main:app", host=settings.host, port=settings.port)
