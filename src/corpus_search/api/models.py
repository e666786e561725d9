"""
API Models

Request/response schemas for the search service. Responses never carry
embeddings or the full content preview; search highlights are short
windows cut from the preview around exact query matches.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..embeddings.models import DocumentRecord, SearchHit


# ---------------------------------------------------------------------
# Search Models
# ---------------------------------------------------------------------

class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    limit: Optional[int] = Field(default=None, ge=1, le=1000)
    topical_tag: Optional[str] = None
    min_score: Optional[float] = None

    model_config = ConfigDict(extra="forbid")


class DocumentSummary(BaseModel):
    id: str
    path: str
    relative_path: str
    topical_tag: str
    summary: str
    declared_symbols: List[str]
    referenced_modules: List[str]
    line_count: int
    last_modified_timestamp: float

    @classmethod
    def from_record(cls, doc: DocumentRecord) -> "DocumentSummary":
        return cls(
            id=doc.id,
            path=doc.path,
            relative_path=doc.relative_path,
            topical_tag=doc.topical_tag,
            summary=doc.summary,
            declared_symbols=list(doc.declared_symbols),
            referenced_modules=list(doc.referenced_modules),
            line_count=doc.line_count,
            last_modified_timestamp=doc.last_modified_timestamp,
        )


class SearchResult(BaseModel):
    document: DocumentSummary
    score: float
    highlights: List[str] = Field(default_factory=list)

    @classmethod
    def from_hit(cls, hit: SearchHit) -> "SearchResult":
        return cls(
            document=DocumentSummary.from_record(hit.document),
            score=hit.score,
            highlights=list(hit.highlights),
        )


# ---------------------------------------------------------------------
# Index Models
# ---------------------------------------------------------------------

class DocumentPathRequest(BaseModel):
    path: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class OperationResult(BaseModel):
    """
    Standardized mutation operation result.
    """
    status: Literal["updated", "deleted", "skipped", "not_found"]
    document: Optional[DocumentSummary] = None

    model_config = ConfigDict(extra="forbid")


class StatsResponse(BaseModel):
    documents: int
    vocabulary: int
    topical_tags: Dict[str, int]
    last_updated: datetime
