"""FastAPI application exposing the PaperShelf commands to the desktop UI."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from papershelf import commands
from papershelf.config import AppConfig
from papershelf.errors import NotFoundError, StorageError, ValidationError
from papershelf.groups.criteria import CreateSmartGroupInput, Criterion
from papershelf.index.search import FullTextSearchQuery
from papershelf.index.storage import LibraryStore

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="PaperShelf", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class SearchPayload(BaseModel):
    query: str
    limit: Optional[int] = Field(default=None, ge=1)
    offset: Optional[int] = Field(default=None, ge=0)
    folder_id: Optional[str] = None
    db: Path | None = None


class SmartGroupPapersPayload(BaseModel):
    criteria: List[Criterion] = Field(default_factory=list)
    match_mode: Optional[str] = None


def _resolve_db_path(db: Path | None) -> Path:
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _open_store(db: Path | None) -> LibraryStore:
    resolved_db = _resolve_db_path(db)
    _ensure_db_parent(resolved_db)
    return LibraryStore(resolved_db)


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_handler(request: Request, exc: StorageError) -> JSONResponse:
    LOGGER.error("Storage failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": f"Storage error: {exc}"})


@app.post("/papers/{paper_id}/index")
async def index_paper(paper_id: str, db: Path | None = None) -> dict[str, Any]:
    store = _open_store(db)
    try:
        status = await asyncio.to_thread(commands.index_paper, store, paper_id)
    finally:
        store.close()
    return {"status": status}


@app.post("/index")
async def index_all_papers(db: Path | None = None) -> dict[str, Any]:
    store = _open_store(db)
    try:
        statuses = await asyncio.to_thread(commands.index_all_papers, store)
    finally:
        store.close()
    return {"results": statuses}


@app.post("/search")
async def search_full_text(payload: SearchPayload) -> dict[str, Any]:
    query = FullTextSearchQuery(
        query=payload.query,
        limit=payload.limit,
        offset=payload.offset,
        folder_id=payload.folder_id,
    )
    store = _open_store(payload.db)
    try:
        response = await asyncio.to_thread(commands.search_full_text, store, query)
    finally:
        store.close()
    return {"total": response.total, "results": response.results}


@app.get("/papers/{paper_id}/index-status")
async def get_paper_index_status(paper_id: str, db: Path | None = None) -> dict[str, Any]:
    store = _open_store(db)
    try:
        indexed = await asyncio.to_thread(commands.get_paper_index_status, store, paper_id)
    finally:
        store.close()
    return {"paper_id": paper_id, "is_indexed": indexed}


@app.get("/stats")
async def get_index_stats(db: Path | None = None) -> dict[str, Any]:
    store = _open_store(db)
    try:
        stats = await asyncio.to_thread(commands.get_index_stats, store)
    finally:
        store.close()
    return {"stats": stats}


@app.post("/smart-groups/papers")
async def get_smart_group_papers(
    payload: SmartGroupPapersPayload, db: Path | None = None
) -> dict[str, Any]:
    store = _open_store(db)
    try:
        papers = await asyncio.to_thread(
            commands.get_smart_group_papers, store, payload.criteria, payload.match_mode
        )
    finally:
        store.close()
    return {"papers": papers, "count": len(papers)}


@app.get("/smart-groups/predefined")
async def get_predefined_smart_groups() -> dict[str, Any]:
    return {"groups": commands.get_predefined_smart_groups()}


@app.get("/smart-groups")
async def get_smart_groups(db: Path | None = None) -> dict[str, Any]:
    store = _open_store(db)
    try:
        groups = await asyncio.to_thread(commands.get_smart_groups, store)
    finally:
        store.close()
    return {"groups": groups}


@app.post("/smart-groups")
async def create_smart_group(
    payload: CreateSmartGroupInput, db: Path | None = None
) -> dict[str, Any]:
    store = _open_store(db)
    try:
        group = await asyncio.to_thread(commands.create_smart_group, store, payload)
    finally:
        store.close()
    return {"group": group}


@app.delete("/smart-groups/{group_id}")
async def delete_smart_group(group_id: str, db: Path | None = None) -> dict[str, Any]:
    store = _open_store(db)
    try:
        await asyncio.to_thread(commands.delete_smart_group, store, group_id)
    finally:
        store.close()
    return {"status": "ok", "deleted_id": group_id}
