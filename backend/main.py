"""TabRail FastAPI Backend."""

import asyncio
import json
import logging
import threading
import time

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from assigner import TabAssigner
from config import load_config
from context import ContextTracker
from events import EventBroadcaster, TabEvents
from exceptions import InvalidInput
from extractor import cached_page_signals
from matcher import TabMatcher
from models import ActionRequest, ActivatedEvent, PageSignals, RawTab, SignalsRequest, now_ms
from store import TabStore

config = load_config()

logging.basicConfig(
    level=getattr(logging, str(config["log_level"]).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(message)s",
)
log = logging.getLogger(__name__)

CLEANUP_INTERVAL_SEC = 3600


def build_engine(db_path: str, cfg: dict) -> tuple[TabStore, TabEvents]:
    """Wire store, tracker, matcher and assigner into one event handler."""
    store = TabStore(db_path)
    tracker = ContextTracker(store, window_ms=int(cfg["context_window_minutes"]) * 60 * 1000)
    assigner = TabAssigner(store, TabMatcher(), tracker)
    events = TabEvents(
        store, assigner, tracker,
        broadcaster=EventBroadcaster(),
        disabled_sites=cfg["disabled_sites"],
    )
    return store, events


store, engine = build_engine(config["db_path"], config)

# One tab event is fully handled before the next one starts.
_event_lock = threading.Lock()

app = FastAPI(title="TabRail", version="1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Tab lifecycle events ────────────────────────────────────

@app.post("/api/events/tab-created")
def tab_created(raw: RawTab):
    with _event_lock:
        try:
            tab = engine.on_created(raw)
        except InvalidInput as e:
            raise HTTPException(400, str(e))
    return {"tab_id": raw.tab_id, "status": "indexed" if tab else "ignored"}


@app.post("/api/events/tab-activated")
def tab_activated(event: ActivatedEvent):
    with _event_lock:
        try:
            assignment = engine.on_activated(event.tab_id, event.window_id, event.tab)
        except InvalidInput as e:
            raise HTTPException(400, str(e))
    if assignment is None:
        return {"tab_id": event.tab_id, "status": "ignored"}
    return {"tab_id": event.tab_id, "status": "assigned", "assignment": assignment.model_dump()}


@app.post("/api/events/tab-updated")
def tab_updated(raw: RawTab):
    with _event_lock:
        try:
            tab = engine.on_updated(raw)
        except InvalidInput as e:
            raise HTTPException(400, str(e))
    return {"tab_id": raw.tab_id, "status": "updated" if tab else "ignored"}


@app.delete("/api/tabs/{tab_id}")
def tab_removed(tab_id: int):
    with _event_lock:
        engine.on_removed(tab_id)
    return {"tab_id": tab_id, "status": "removed"}


@app.delete("/api/windows/{window_id}")
def window_removed(window_id: int):
    with _event_lock:
        engine.on_window_removed(window_id)
    return {"window_id": window_id, "status": "cleared"}


# ── Page signals ────────────────────────────────────────────

@app.post("/api/tabs/{tab_id}/signals")
def tab_signals(tab_id: int, req: SignalsRequest):
    """Content script reports headings/description for a tab."""
    signals = PageSignals(**req.model_dump(), extracted_at=now_ms())
    with _event_lock:
        ok = engine.record_page_signals(tab_id, signals)
    if not ok:
        raise HTTPException(404, "Tab not found")
    return {"tab_id": tab_id, "status": "recorded"}


@app.post("/api/tabs/{tab_id}/extract")
def tab_extract(tab_id: int):
    """Fetch page signals server-side when the content script could not."""
    tab = store.get_tab(tab_id)
    if tab is None:
        raise HTTPException(404, "Tab not found")

    def _do_extract(tid: int, url: str):
        signals = cached_page_signals(
            store, url, ttl=config["signals_cache_ttl_sec"], timeout=config["extract_timeout"]
        )
        if signals is None:
            log.warning("No page signals extracted for tab %d: %s", tid, url)
            return
        with _event_lock:
            engine.record_page_signals(tid, signals)
        log.info("Extracted page signals for tab %d", tid)

    thread = threading.Thread(target=_do_extract, args=(tab_id, tab.url))
    thread.start()
    return {"tab_id": tab_id, "status": "extracting"}


# ── State & context ─────────────────────────────────────────

@app.get("/api/state")
def get_state(window_id: int | None = None):
    return engine.state(window_id)


@app.get("/api/context/{window_id}")
def get_context(window_id: int):
    context = engine.tracker.get_context(window_id)
    if context is None:
        return {"window_id": window_id, "fresh": False, "context": None}
    return {"window_id": window_id, "fresh": True, "context": context.model_dump()}


@app.get("/api/projects/{project_id}")
def get_project(project_id: str):
    project = store.get_project(project_id)
    if project is None:
        raise HTTPException(404, "Project not found")
    tabs = store.get_tabs_by_project(project_id)
    return {"project": project.model_dump(), "tabs": [t.model_dump() for t in tabs]}


# ── Commands ────────────────────────────────────────────────

@app.post("/api/actions")
def run_action(req: ActionRequest):
    if req.project_id is None:
        raise HTTPException(400, "project_id is required")

    with _event_lock:
        if req.action == "move_tab_to_project":
            if req.tab_id is None:
                raise HTTPException(400, "tab_id is required")
            ok = engine.move_tab_to_project(req.tab_id, req.project_id, req.subproject_id)
        elif req.action == "rename_project":
            if not req.value:
                raise HTTPException(400, "value is required")
            ok = engine.rename_project(req.project_id, req.value)
        elif req.action == "pin_project":
            ok = engine.pin_project(req.project_id)
        elif req.action == "lock_project":
            ok = engine.lock_project(req.project_id)
        else:
            ok = engine.delete_project(req.project_id)

    if not ok:
        raise HTTPException(404, "Tab or project not found")
    return {"action": req.action, "status": "ok"}


# ── Change notifications ────────────────────────────────────

@app.get("/api/events")
def list_events(since: int = 0):
    """Observers poll this with the last seq they saw."""
    return {"events": engine.broadcaster.since(since), "last_seq": engine.broadcaster.last_seq}


@app.get("/api/events/stream")
async def stream_events(request: Request, since: int = 0):
    """SSE stream of change notifications."""
    async def event_generator():
        last = since
        while not await request.is_disconnected():
            for event in engine.broadcaster.since(last):
                last = event["seq"]
                yield f"data: {json.dumps(event)}\n\n"
            await asyncio.sleep(1)

    return StreamingResponse(event_generator(), media_type="text/event-stream")


def _cleanup_loop():
    while True:
        time.sleep(CLEANUP_INTERVAL_SEC)
        try:
            store.clear_expired_cache()
        except Exception as e:
            log.error("Cleanup error: %s", e)


if __name__ == "__main__":
    log.info("Starting TabRail backend on port %d", config["backend_port"])
    threading.Thread(target=_cleanup_loop, daemon=True).start()
    uvicorn.run(app, host=config.get("backend_host", "127.0.0.1"), port=config["backend_port"])
