"""FastAPI entrypoint for the journal retrieval backend."""

from __future__ import annotations

import asyncio
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from journal_rag.app_state import JournalAppState, JournalServices
from journal_rag.errors import GenerationBackendError, StorageUnavailable
from journal_rag.logging_config import get_logger
from journal_rag.models import (
    ContextSettings,
    ConversationMessage,
    FilePayload,
    JournalFile,
    QueryRequest,
    QueryResponsePayload,
    SaveFileRequest,
    SearchHitPayload,
    SearchRequest,
    SearchResponsePayload,
    StatsPayload,
)

log = get_logger(__name__)

app = FastAPI(title="Journal RAG Backend", description="Offline retrieval over private journal files")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

state: Optional[JournalAppState] = None


def services() -> JournalServices:
    global state
    if state is None:
        state = JournalAppState()
    return state.current()


def _file_payload(record: JournalFile) -> FilePayload:
    return FilePayload(
        file_id=record.id,
        name=record.name,
        content=record.content,
        folder_id=record.folder_id,
        journal_date=record.journal_date,
        is_pinned=record.is_pinned,
        word_count=record.word_count,
    )


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "message": "Journal backend is running"}


@app.post("/files", response_model=FilePayload, tags=["files"])
async def save_file(request: SaveFileRequest):
    try:
        record = await asyncio.to_thread(services().journal.save_file, request)
        return _file_payload(record)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StorageUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@app.post("/files/{file_id:path}/reindex", tags=["files"])
async def reindex_file(file_id: str):
    try:
        chunks = await asyncio.to_thread(services().journal.reindex_file, file_id)
        return {"success": True, "file_id": file_id, "chunks_indexed": chunks}
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    except StorageUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@app.get("/files/{file_id:path}", response_model=FilePayload, tags=["files"])
async def get_file(file_id: str):
    try:
        record = await asyncio.to_thread(services().journal.get_file, file_id)
        return _file_payload(record)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    except StorageUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@app.delete("/files/{file_id:path}", tags=["files"])
async def delete_file(file_id: str):
    try:
        record = await asyncio.to_thread(services().journal.delete_file, file_id)
        return {"success": True, "file_id": record.id}
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    except StorageUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@app.post("/search", response_model=SearchResponsePayload, tags=["search"])
async def search(request: SearchRequest):
    try:
        results = await asyncio.to_thread(services().search.search, request.text, request.top_k)
    except StorageUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return SearchResponsePayload(
        results=[
            SearchHitPayload(
                file_id=result.file_id,
                file_name=result.file_name,
                chunk_index=result.chunk_index,
                text=result.best_chunk_text,
                score=result.score,
            )
            for result in results
        ]
    )


@app.post("/query", response_model=QueryResponsePayload, tags=["query"])
async def query(request: QueryRequest):
    history = [
        ConversationMessage(role=message.role, content=message.content, timestamp=message.timestamp)
        for message in request.history
    ]
    settings = ContextSettings(
        selected_file_ids=list(request.selected_file_ids),
        max_tokens=request.max_tokens,
    )
    try:
        answer = await asyncio.to_thread(services().journal.query, request.text, history, settings)
        return QueryResponsePayload(answer=answer)
    except GenerationBackendError as exc:
        log.warning("Query failed: %s", exc)
        raise HTTPException(status_code=502, detail=exc.user_message)
    except StorageUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@app.post("/admin/reindex", tags=["admin"])
async def reindex_all():
    try:
        processed = await asyncio.to_thread(services().journal.reindex_all)
        return {"success": True, "files_indexed": processed}
    except StorageUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@app.get("/admin/stats", response_model=StatsPayload, tags=["admin"])
async def stats():
    try:
        return await asyncio.to_thread(services().journal.stats)
    except StorageUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
