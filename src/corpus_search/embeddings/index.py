"""
Corpus Vector Index

This module implements the in-memory index store: the frozen vocabulary and
IDF table, plus the document records encoded against them, with persistence
to a single JSON document.

Key Properties
--------------
- Vocabulary and documents are swapped together on full replacement
- Incremental upserts must match the current vocabulary dimension
- Document collection iterates in insertion order
- Reader/writer locking: searches run concurrently, mutations run alone
- Atomic persistence (temp file + replace)
- Strict structural validation on load
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence

import numpy as np

from .models import (
    INDEX_FORMAT_VERSION,
    DocumentRecord,
    IndexSnapshot,
    IndexStats,
)
from .vocabulary import Vocabulary
from ..core.locks import ReadWriteLock

logger = logging.getLogger("corpus.index")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class CorpusIndexError(RuntimeError):
    """Base error for index store failures."""


class IndexConsistencyError(CorpusIndexError):
    """Raised when a document does not fit the current vocabulary."""


class IndexPersistenceError(CorpusIndexError):
    """Raised when the index cannot be read from or written to disk."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IndexView(NamedTuple):
    """Consistent read-only view handed to readers under the read lock."""
    vocabulary: Optional[Vocabulary]
    documents: List[DocumentRecord]
    matrix: np.ndarray


# ---------------------------------------------------------------------
# Index Store
# ---------------------------------------------------------------------

class CorpusIndex:
    """
    Persistent in-memory corpus index.

    Parameters
    ----------
    dimension : int
        Embedding dimension D every vocabulary and embedding must match.

    index_path : Optional[str]
        JSON file the index is persisted to. ``save``/``load`` require it.
    """

    def __init__(
        self,
        dimension: int,
        index_path: Optional[str] = None,
    ) -> None:
        self.dimension = dimension
        self._index_path = index_path

        self._vocabulary: Optional[Vocabulary] = None
        self._documents: Dict[str, DocumentRecord] = {}
        self.created = _utcnow()
        self.updated = self.created

        self._lock = ReadWriteLock()
        self._matrix: Optional[np.ndarray] = None
        self._matrix_lock = Lock()

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _check_vocabulary(self, vocabulary: Vocabulary) -> None:
        if vocabulary.dimension != self.dimension:
            raise IndexConsistencyError(
                f"Vocabulary dimension {vocabulary.dimension} does not match "
                f"index dimension {self.dimension}."
            )

    def _check_document(self, doc: DocumentRecord) -> None:
        if len(doc.embedding) != self.dimension:
            raise IndexConsistencyError(
                f"Embedding for {doc.path} has length {len(doc.embedding)}, "
                f"expected {self.dimension}."
            )

    def _touch(self) -> None:
        self.updated = _utcnow()
        self._matrix = None

    def _ensure_matrix(self) -> np.ndarray:
        with self._matrix_lock:
            if self._matrix is None:
                if self._documents:
                    self._matrix = np.asarray(
                        [d.embedding for d in self._documents.values()],
                        dtype=np.float64,
                    )
                else:
                    self._matrix = np.zeros((0, self.dimension), dtype=np.float64)
            return self._matrix

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    @property
    def vocabulary(self) -> Optional[Vocabulary]:
        return self._vocabulary

    @property
    def document_count(self) -> int:
        return len(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._documents

    def get(self, doc_id: str) -> Optional[DocumentRecord]:
        with self._lock.read():
            return self._documents.get(doc_id)

    def documents(self) -> List[DocumentRecord]:
        with self._lock.read():
            return list(self._documents.values())

    @contextmanager
    def view(self) -> Iterator[IndexView]:
        """
        Hold the read lock and expose vocabulary, documents and the stacked
        embedding matrix (rows in document order).
        """
        with self._lock.read():
            yield IndexView(
                vocabulary=self._vocabulary,
                documents=list(self._documents.values()),
                matrix=self._ensure_matrix(),
            )

    def get_stats(self) -> IndexStats:
        """
        Return index statistics for diagnostics.
        """
        with self._lock.read():
            tags: Dict[str, int] = {}
            for doc in self._documents.values():
                tags[doc.topical_tag] = tags.get(doc.topical_tag, 0) + 1

            return IndexStats(
                documents=len(self._documents),
                vocabulary=len(self._vocabulary) if self._vocabulary else 0,
                topical_tags=tags,
                last_updated=self.updated,
            )

    # ------------------------------------------------------------------
    # Mutation API
    # ------------------------------------------------------------------

    def replace(
        self,
        vocabulary: Vocabulary,
        documents: Sequence[DocumentRecord],
    ) -> None:
        """
        Atomically replace vocabulary, IDF table and every document.

        Validation happens before anything is swapped, so a failure leaves
        the previous state untouched.
        """
        self._check_vocabulary(vocabulary)
        for doc in documents:
            self._check_document(doc)

        new_docs = {doc.id: doc for doc in documents}

        with self._lock.write():
            self._vocabulary = vocabulary
            self._documents = new_docs
            self._touch()

    def install_vocabulary(self, vocabulary: Vocabulary) -> None:
        """
        Set the vocabulary of an index that has none yet (bootstrap path).
        """
        self._check_vocabulary(vocabulary)
        with self._lock.write():
            if self._vocabulary is not None:
                raise IndexConsistencyError(
                    "Index already has a vocabulary; only a full rebuild may replace it."
                )
            self._vocabulary = vocabulary
            self._touch()

    def upsert(self, doc: DocumentRecord) -> bool:
        """
        Insert or update one document. Returns True if it was new.

        An existing id keeps its position in iteration order.
        """
        self._check_document(doc)
        with self._lock.write():
            if self._vocabulary is None:
                raise IndexConsistencyError("Cannot add documents before a vocabulary exists.")
            is_new = doc.id not in self._documents
            self._documents[doc.id] = doc
            self._touch()
            return is_new

    def remove(self, doc_id: str) -> bool:
        """
        Remove a document. Removing an unknown id is a no-op.
        """
        with self._lock.write():
            if self._documents.pop(doc_id, None) is None:
                return False
            self._touch()
            return True

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_snapshot(self) -> IndexSnapshot:
        with self._lock.read():
            vocab = self._vocabulary
            return IndexSnapshot(
                version=INDEX_FORMAT_VERSION,
                created=self.created,
                updated=self.updated,
                document_count=len(self._documents),
                dimension=self.dimension,
                vocabulary=dict(vocab.terms) if vocab else {},
                idf_scores=dict(vocab.idf) if vocab else {},
                idf_document_count=vocab.document_count if vocab else 0,
                documents=dict(self._documents),
            )

    def save(self) -> None:
        """
        Persist the index to disk atomically.
        """
        if not self._index_path:
            raise IndexPersistenceError("No index path configured.")

        path = Path(self._index_path)
        payload = self.to_snapshot().model_dump(mode="json", by_alias=True)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=path.name, suffix=".tmp", dir=str(path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise IndexPersistenceError(
                f"Failed to write index to {path}: {type(exc).__name__}"
            ) from exc

        logger.debug("Saved %d documents to %s", len(payload["documents"]), path)

    def load(self) -> bool:
        """
        Load the index from disk.

        Returns
        -------
        bool
            False if no persisted index exists.

        Raises
        ------
        IndexPersistenceError
            If the file is unreadable, truncated or structurally invalid.
            The in-memory state is left untouched in that case.
        """
        if not self._index_path:
            raise IndexPersistenceError("No index path configured.")

        path = Path(self._index_path)
        if not path.exists():
            return False

        try:
            raw = path.read_text(encoding="utf-8")
            snapshot = IndexSnapshot.model_validate_json(raw)
        except (OSError, ValueError) as exc:
            raise IndexPersistenceError(
                f"Failed to read index from {path}: {type(exc).__name__}"
            ) from exc

        vocabulary = self._validate_snapshot(snapshot)

        with self._lock.write():
            self._vocabulary = vocabulary
            self._documents = dict(snapshot.documents)
            self.created = snapshot.created
            self.updated = snapshot.updated
            self._matrix = None

        logger.info(
            "Loaded %d documents (vocabulary %d) from %s",
            len(self._documents),
            len(vocabulary) if vocabulary else 0,
            path,
        )
        return True

    def _validate_snapshot(self, snapshot: IndexSnapshot) -> Optional[Vocabulary]:
        if snapshot.version != INDEX_FORMAT_VERSION:
            raise IndexPersistenceError(f"Unsupported index version {snapshot.version!r}.")

        if snapshot.dimension != self.dimension:
            raise IndexPersistenceError(
                f"Persisted dimension {snapshot.dimension} does not match "
                f"configured dimension {self.dimension}."
            )

        if snapshot.document_count != len(snapshot.documents):
            raise IndexPersistenceError("documentCount does not match the stored documents.")

        for key, doc in snapshot.documents.items():
            if key != doc.id:
                raise IndexPersistenceError(f"Document key {key!r} does not match its id.")
            if len(doc.embedding) != snapshot.dimension:
                raise IndexPersistenceError(
                    f"Embedding for {doc.path} has length {len(doc.embedding)}, "
                    f"expected {snapshot.dimension}."
                )

        if not snapshot.vocabulary and not snapshot.idf_scores:
            if snapshot.documents:
                raise IndexPersistenceError("Documents stored without a vocabulary.")
            return None

        try:
            return Vocabulary(
                dimension=snapshot.dimension,
                terms=snapshot.vocabulary,
                idf=snapshot.idf_scores,
                document_count=snapshot.idf_document_count,
            )
        except ValueError as exc:
            raise IndexPersistenceError(f"Invalid vocabulary: {exc}") from exc
