"""
server.py — FastAPI backend for the NIP pickit editor.

Wraps one PickitEditor session. Every editor endpoint returns the full
editor snapshot (visible rules, tabs, facets, summary, filter state and
notices) so the front end can re-render from a single response.

Endpoints:
  GET    /api/status                        → version + session summary
  GET    /api/editor/view                   → current snapshot
  POST   /api/editor/folder                 → set pickit folder, list files
  GET    /api/editor/files                  → refresh file list
  POST   /api/editor/files/new              → register a new .nip file
  POST   /api/editor/load                   → load a rule file
  POST   /api/editor/search                 → set / clear the search term
  POST   /api/editor/select                 → quality tab / type facet click
  POST   /api/editor/filters/{chip}         → status|ethereal|unidentified|
                                              favorites|comments|rule-sort|type-sort
  POST   /api/editor/tabs/quality-order     → persist dragged tab order
  POST   /api/editor/tabs/type-order        → persist dragged facet order
  POST   /api/editor/rules/reorder          → persist dragged rule order
  POST   /api/editor/rules/{id}/toggle      → enable / disable
  POST   /api/editor/rules/{id}/ethereal    → cycle ethereal flag
  POST   /api/editor/rules/{id}/favorite    → toggle favorite
  POST   /api/editor/rules/{id}/comment     → edit display comment
  POST   /api/editor/rules/{id}/line        → replace the whole line
  POST   /api/editor/rules/{id}/value       → edit one number in place
  DELETE /api/editor/rules/{id}             → delete rule
"""

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import APP_VERSION
from core.editor_config import EditorConfig
from games.d2r import create_d2r_taxonomy
from pickit_editor import PickitEditor, RuleNotFoundError

logger = logging.getLogger("editor.api")

editor: Optional[PickitEditor] = None
editor_config = EditorConfig()


def configure(cfg: EditorConfig):
    """Set the session settings used when the app starts (called by main.py)."""
    global editor_config
    editor_config = cfg


async def _initial_load():
    """Open the remembered folder, if any, once the server is up."""
    if not editor or not editor.folder:
        return
    try:
        await editor.load_file_list()
    except ValueError as e:
        logger.warning(f"Initial folder load skipped: {e}")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    global editor
    if editor is None:
        editor = PickitEditor.from_config(editor_config, create_d2r_taxonomy())
    editor.refresh()
    load_task = asyncio.create_task(_initial_load())
    logger.info(f"NIP editor API ready (backend {editor_config.backend_url})")
    try:
        yield
    finally:
        load_task.cancel()


app = FastAPI(title="NIP Editor API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _respond(action, *args):
    """Run an editor action (method name or callable) and return the snapshot,
    or a JSON error body."""
    if editor is None:
        return _error(503, "Editor is still initializing, try again in a moment")
    if isinstance(action, str):
        action = getattr(editor, action)
    try:
        result = action(*args)
        if inspect.isawaitable(result):
            await result
    except RuleNotFoundError as e:
        return _error(404, str(e))
    except ValueError as e:
        return _error(400, str(e))
    return editor.snapshot()


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------
class FolderRequest(BaseModel):
    path: str


class FileRequest(BaseModel):
    name: str


class SearchRequest(BaseModel):
    term: str = ""


class SelectRequest(BaseModel):
    quality: Optional[str] = None
    type: Optional[str] = None


class OrderRequest(BaseModel):
    order: List[str]


class RuleOrderRequest(BaseModel):
    orderedIds: List[str]


class CommentRequest(BaseModel):
    comment: str = ""


class LineRequest(BaseModel):
    line: str


class ValueRequest(BaseModel):
    start: int
    end: int
    value: str


# ---------------------------------------------------------------------------
# REST endpoints
# ---------------------------------------------------------------------------
@app.get("/api/status")
async def get_status():
    if editor is None:
        return {"version": APP_VERSION, "ready": False}
    return {
        "version": APP_VERSION,
        "ready": True,
        "folder": editor.folder,
        "currentFile": editor.current_file,
        "rules": len(editor.rules),
        "mappingsLoaded": editor.loader.loaded,
    }


@app.get("/api/editor/view")
async def get_view():
    return await _respond(lambda: None)


@app.post("/api/editor/folder")
async def post_folder(req: FolderRequest):
    return await _respond("set_folder", req.path)


@app.get("/api/editor/files")
async def get_files():
    return await _respond("load_file_list", False)


@app.post("/api/editor/files/new")
async def post_new_file(req: FileRequest):
    return await _respond("create_file", req.name)


@app.post("/api/editor/load")
async def post_load(req: FileRequest):
    return await _respond("load_file", req.name)


@app.post("/api/editor/search")
async def post_search(req: SearchRequest):
    return await _respond("set_search", req.term)


@app.post("/api/editor/select")
async def post_select(req: SelectRequest):
    def select():
        if req.quality is not None:
            editor.select_quality(req.quality)
        if req.type is not None:
            editor.select_type(req.type)
    return await _respond(select)


@app.post("/api/editor/filters/{chip}")
async def post_filter_chip(chip: str):
    return await _respond("click_chip", chip)


@app.post("/api/editor/tabs/quality-order")
async def post_quality_order(req: OrderRequest):
    return await _respond("reorder_quality_tabs", req.order)


@app.post("/api/editor/tabs/type-order")
async def post_type_order(req: OrderRequest):
    return await _respond("reorder_type_facets", req.order)


@app.post("/api/editor/rules/reorder")
async def post_rule_order(req: RuleOrderRequest):
    return await _respond("reorder_rules", req.orderedIds)


@app.post("/api/editor/rules/{rule_id}/toggle")
async def post_toggle_rule(rule_id: str):
    return await _respond("toggle_rule", rule_id)


@app.post("/api/editor/rules/{rule_id}/ethereal")
async def post_toggle_ethereal(rule_id: str):
    return await _respond("toggle_ethereal", rule_id)


@app.post("/api/editor/rules/{rule_id}/favorite")
async def post_toggle_favorite(rule_id: str):
    return await _respond("toggle_favorite", rule_id)


@app.post("/api/editor/rules/{rule_id}/comment")
async def post_comment(rule_id: str, req: CommentRequest):
    return await _respond("edit_comment", rule_id, req.comment)


@app.post("/api/editor/rules/{rule_id}/line")
async def post_line(rule_id: str, req: LineRequest):
    return await _respond("edit_rule_line", rule_id, req.line)


@app.post("/api/editor/rules/{rule_id}/value")
async def post_value(rule_id: str, req: ValueRequest):
    return await _respond("edit_value", rule_id, req.start, req.end, req.value)


@app.delete("/api/editor/rules/{rule_id}")
async def delete_rule(rule_id: str):
    return await _respond("delete_rule", rule_id)
