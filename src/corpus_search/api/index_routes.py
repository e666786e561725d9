"""
Index Routes

This module exposes endpoints for:
- Querying index statistics
- Full rebuilds and incremental syncs
- Upserting and removing single documents

Handlers are plain functions so FastAPI runs the blocking engine calls in
its thread pool.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from .dependencies import get_engine
from .models import (
    DocumentPathRequest,
    DocumentSummary,
    OperationResult,
    StatsResponse,
)
from ..embeddings.models import RebuildSummary, SyncSummary
from ..engine import CorpusSearchEngine

router = APIRouter(prefix="/index", tags=["index"])

EngineDep = Annotated[CorpusSearchEngine, Depends(get_engine)]


@router.get("/stats", response_model=StatsResponse)
def get_stats(engine: EngineDep) -> StatsResponse:
    stats = engine.stats()
    return StatsResponse(
        documents=stats.documents,
        vocabulary=stats.vocabulary,
        topical_tags=stats.topical_tags,
        last_updated=stats.last_updated,
    )


@router.post("/rebuild", response_model=RebuildSummary, response_model_by_alias=False)
def rebuild(engine: EngineDep) -> RebuildSummary:
    """
    Recompute vocabulary, IDF table and every embedding from the corpus.
    """
    return engine.rebuild()


@router.post("/sync", response_model=SyncSummary, response_model_by_alias=False)
def sync(engine: EngineDep) -> SyncSummary:
    """
    Re-encode changed files and drop deleted ones against the current vocabulary.
    """
    return engine.sync()


@router.put("/documents", response_model=OperationResult)
def upsert_document(req: DocumentPathRequest, engine: EngineDep) -> OperationResult:
    doc = engine.index_file(req.path)
    if doc is None:
        return OperationResult(status="skipped")
    return OperationResult(status="updated", document=DocumentSummary.from_record(doc))


@router.delete("/documents", response_model=OperationResult)
def delete_document(req: DocumentPathRequest, engine: EngineDep) -> OperationResult:
    removed = engine.remove_file(req.path)
    return OperationResult(status="deleted" if removed else "not_found")
