"""
Corpus Search Engine

Explicitly owned facade over the walker, tokenizer, encoder, index store and
ranker. One engine instance owns one index; callers create it, initialize
it, mutate it and search it. There is no process-wide singleton.

Concurrency
-----------
Every mutating operation (rebuild, upsert, remove, sync) holds the engine's
writer lock for its whole read-encode-apply-save sequence, so a document is
never encoded against one vocabulary and applied after a rebuild installed
another. Searches and stats only take the index store's read lock and may
run concurrently with each other.
"""

from __future__ import annotations

import logging
import os
import time
from threading import RLock
from typing import List, Optional, Set, Tuple

from .config import Settings, settings as default_settings
from .corpus.walker import CorpusWalker, SourceFile
from .embeddings.encoder import DocumentEncoder, content_hash, document_id
from .embeddings.index import CorpusIndex, IndexPersistenceError
from .embeddings.models import (
    DocumentRecord,
    IndexStats,
    RebuildSummary,
    SearchHit,
    SyncSummary,
)
from .embeddings.vocabulary import Vocabulary, build_vocabulary
from .extraction.extractors import MetadataExtractor
from .search.ranker import SearchRanker
from .text.tokenizer import Tokenizer

logger = logging.getLogger("corpus.engine")


class IndexNotInitializedError(RuntimeError):
    """Raised when an operation needs an index that was never initialized."""


Tokenized = Tuple[SourceFile, List[str]]


class CorpusSearchEngine:
    """
    Parameters
    ----------
    cfg : Optional[Settings]
        Engine configuration. Defaults to the module-level settings.

    tokenizer, walker, encoder, index, ranker
        Optional pre-built collaborators; each defaults to one built from
        ``cfg``.

    extractor : Optional[MetadataExtractor]
        Metadata strategy used when ``encoder`` is not given.
    """

    def __init__(
        self,
        cfg: Optional[Settings] = None,
        *,
        tokenizer: Optional[Tokenizer] = None,
        walker: Optional[CorpusWalker] = None,
        encoder: Optional[DocumentEncoder] = None,
        index: Optional[CorpusIndex] = None,
        ranker: Optional[SearchRanker] = None,
        extractor: Optional[MetadataExtractor] = None,
    ) -> None:
        self.settings = cfg or default_settings
        self.tokenizer = tokenizer or Tokenizer.from_settings(self.settings)
        self.walker = walker or CorpusWalker.from_settings(self.settings)
        self.encoder = encoder or DocumentEncoder.from_settings(self.settings, extractor)
        self.index = index or CorpusIndex(
            dimension=self.settings.embedding_dimension,
            index_path=str(self.settings.index_path()),
        )
        self.ranker = ranker or SearchRanker.from_settings(self.settings, self.tokenizer)

        self._write_lock = RLock()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Load the persisted index, or rebuild when it is missing or invalid.
        """
        logger.info("Initializing corpus index")
        with self._write_lock:
            self.settings.resolved_data_dir().mkdir(parents=True, exist_ok=True)

            try:
                loaded = self.index.load()
            except IndexPersistenceError as exc:
                logger.warning("Persisted index rejected (%s); rebuilding", exc)
                loaded = False

            if loaded and self.index.vocabulary is not None:
                logger.info("Loaded %d documents from cache", len(self.index))
                self._initialized = True
                return

            self.rebuild()

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise IndexNotInitializedError(
                "Corpus index is not initialized. Call initialize() or rebuild() first."
            )

    def _load_persisted(self) -> None:
        """
        Pick up the persisted index before the first mutation of an engine
        that was never initialized, so a mutation never saves over it.

        An unreadable persisted index raises ``IndexPersistenceError``.
        """
        if self._initialized or self.index.vocabulary is not None:
            return
        if self.index.load() and self.index.vocabulary is not None:
            logger.info("Loaded %d documents from cache", len(self.index))
            self._initialized = True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _tokenize_source(self, source: SourceFile) -> Tokenized:
        return source, self.tokenizer.tokenize(source.content)

    def _scan(self) -> Tuple[List[str], List[Tokenized]]:
        paths = list(self.walker.iter_paths())
        results = self.walker.read_all(paths, self._tokenize_source)
        loaded = [r for r in results if r is not None and r[1]]
        return paths, loaded

    def _encode(self, source: SourceFile, tokens: List[str], vocabulary: Vocabulary) -> Optional[DocumentRecord]:
        return self.encoder.encode(
            source.path,
            source.content,
            tokens,
            vocabulary,
            modified=source.modified,
        )

    def rebuild(self) -> RebuildSummary:
        """
        Full rebuild: walk, tokenize, build the vocabulary once over every
        document, encode everything and swap it in atomically.
        """
        with self._write_lock:
            started = time.monotonic()
            logger.info("Rebuilding corpus index")

            paths, loaded = self._scan()
            logger.info("Found %d files to index", len(paths))

            vocabulary = build_vocabulary(
                (tokens for _, tokens in loaded),
                dimension=self.settings.embedding_dimension,
                min_count=self.settings.min_term_frequency,
                idf_mode=self.settings.idf_mode,
            )
            logger.info("Vocabulary size: %d", len(vocabulary))

            documents = []
            for source, tokens in loaded:
                doc = self._encode(source, tokens, vocabulary)
                if doc is not None:
                    documents.append(doc)

            self.index.replace(vocabulary, documents)
            self._initialized = True
            logger.info("Indexed %d documents", len(documents))

            summary = RebuildSummary(
                files_found=len(paths),
                documents_indexed=len(documents),
                files_skipped=len(paths) - len(documents),
                vocabulary_size=len(vocabulary),
                duration_seconds=round(time.monotonic() - started, 3),
            )
            self.index.save()
            return summary

    def index_file(self, path: str) -> Optional[DocumentRecord]:
        """
        Upsert one file against the frozen vocabulary.

        A persisted index is loaded first when the engine was never
        initialized. With no vocabulary at all, a one-document vocabulary is
        bootstrapped from the file itself. Missing, unreadable, oversized or
        token-less files are skipped and None is returned, as are files the
        corpus walker would not pick up (outside the roots, wrong extension,
        hidden or ignored directory).
        """
        path = os.path.abspath(path)
        with self._write_lock:
            if not os.path.isfile(path):
                logger.warning("File not found: %s", path)
                return None

            if not self.walker.accepts(path):
                logger.warning("Not part of the corpus: %s", path)
                return None

            self._load_persisted()

            source = self.walker.read(path)
            if source is None:
                return None

            tokens = self.tokenizer.tokenize(source.content)
            if not tokens:
                logger.info("No usable tokens in %s; skipping", path)
                return None

            vocabulary = self.index.vocabulary
            if vocabulary is None:
                vocabulary = build_vocabulary(
                    [tokens],
                    dimension=self.settings.embedding_dimension,
                    min_count=self.settings.min_term_frequency,
                    idf_mode=self.settings.idf_mode,
                )
                self.index.install_vocabulary(vocabulary)
                logger.info("Bootstrapped vocabulary of %d terms from %s", len(vocabulary), path)

            doc = self._encode(source, tokens, vocabulary)
            if doc is None:
                return None

            self.index.upsert(doc)
            self.index.save()
            return doc

    def remove_file(self, path: str) -> bool:
        """
        Remove the document for ``path``. Unknown paths are a no-op.
        """
        with self._write_lock:
            self._load_persisted()
            removed = self.index.remove(document_id(path))
            if removed:
                self.index.save()
            return removed

    def sync(self) -> SyncSummary:
        """
        Incremental refresh against the current vocabulary.

        New files and files whose content hash changed are re-encoded;
        records whose files no longer exist under the roots are dropped.
        Falls back to a full rebuild when no vocabulary exists.
        """
        with self._write_lock:
            try:
                self._load_persisted()
            except IndexPersistenceError as exc:
                logger.warning("Persisted index rejected (%s); rebuilding", exc)

            vocabulary = self.index.vocabulary
            if vocabulary is None:
                self.rebuild()
                return SyncSummary(added=len(self.index), rebuilt=True)

            summary = SyncSummary()
            paths, loaded = self._scan()
            seen: Set[str] = set()

            for source, tokens in loaded:
                doc_id = document_id(source.path)
                seen.add(doc_id)
                existing = self.index.get(doc_id)
                if existing is not None and existing.content_hash == content_hash(source.content):
                    summary.unchanged += 1
                    continue

                doc = self._encode(source, tokens, vocabulary)
                if doc is None:
                    summary.skipped += 1
                    continue
                if self.index.upsert(doc):
                    summary.added += 1
                else:
                    summary.updated += 1

            summary.skipped += len(paths) - len(loaded)

            for doc in self.index.documents():
                if doc.id not in seen:
                    self.index.remove(doc.id)
                    summary.removed += 1

            if summary.added or summary.updated or summary.removed:
                self.index.save()

            logger.info(
                "Sync complete: %d added, %d updated, %d removed, %d unchanged",
                summary.added,
                summary.updated,
                summary.removed,
                summary.unchanged,
            )
            return summary

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def search(
        self,
        query: str,
        limit: Optional[int] = None,
        topical_tag: Optional[str] = None,
        min_score: Optional[float] = None,
    ) -> List[SearchHit]:
        self._require_initialized()
        return self.ranker.rank(
            self.index,
            query,
            limit=limit,
            topical_tag=topical_tag,
            min_score=min_score,
        )

    def stats(self) -> IndexStats:
        self._require_initialized()
        return self.index.get_stats()
