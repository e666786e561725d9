"""
Index Data Models

Canonical pydantic models for the corpus index:

- ``DocumentRecord``: one indexed file (metadata + embedding)
- ``IndexSnapshot``: the persisted index document
- ``SearchHit``, ``IndexStats``, ``RebuildSummary``, ``SyncSummary``:
  results handed back to callers

Persisted and serialized forms use camelCase keys; Python code uses the
snake_case attribute names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


INDEX_FORMAT_VERSION = "1.0"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class DocumentRecord(_CamelModel):
    """
    A single indexed file.

    This model is the authoritative schema for:
    - in-memory index storage
    - persistence to JSON
    - search result mapping
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Truncated digest of the absolute path; primary key.",
    )

    path: str = Field(..., min_length=1)
    relative_path: str

    topical_tag: str = Field(
        ...,
        description="Label assigned by the classifier strategy.",
    )

    content_preview: str = Field(
        default="",
        description="Leading slice of the file, used only for exact-match highlighting.",
    )

    summary: str = ""
    declared_symbols: List[str] = Field(default_factory=list)
    referenced_modules: List[str] = Field(default_factory=list)

    line_count: int = Field(..., ge=0)
    last_modified_timestamp: float = Field(
        ...,
        description="File mtime in seconds since the epoch.",
    )
    content_hash: str = Field(..., min_length=1)

    embedding: List[float] = Field(
        ...,
        description="L2-normalized vector, length equal to the vocabulary dimension.",
    )

    model_config = ConfigDict(frozen=True)


class IndexSnapshot(_CamelModel):
    """
    The persisted index document.
    """

    version: str = INDEX_FORMAT_VERSION
    created: datetime
    updated: datetime
    document_count: int = Field(..., ge=0)
    dimension: int = Field(..., gt=0)
    vocabulary: Dict[str, int] = Field(default_factory=dict)
    idf_scores: Dict[str, float] = Field(default_factory=dict)
    idf_document_count: int = Field(
        default=0,
        ge=0,
        description="Number of documents the IDF table was computed from.",
    )
    documents: Dict[str, DocumentRecord] = Field(default_factory=dict)


class SearchHit(_CamelModel):
    document: DocumentRecord
    score: float
    highlights: List[str] = Field(default_factory=list)


class IndexStats(_CamelModel):
    documents: int
    vocabulary: int
    topical_tags: Dict[str, int] = Field(default_factory=dict)
    last_updated: datetime


class RebuildSummary(_CamelModel):
    files_found: int
    documents_indexed: int
    files_skipped: int
    vocabulary_size: int
    duration_seconds: float


class SyncSummary(_CamelModel):
    added: int = 0
    updated: int = 0
    removed: int = 0
    unchanged: int = 0
    skipped: int = 0
    rebuilt: bool = False
