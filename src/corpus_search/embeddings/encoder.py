"""
Document Encoder

Second phase of the indexing protocol: turns token sequences into
L2-normalized TF-IDF vectors against a frozen ``Vocabulary`` and assembles
``DocumentRecord`` objects with their extracted metadata.

Queries are encoded with exactly the same function as documents.
"""

from __future__ import annotations

import hashlib
import logging
import os
from collections import Counter
from pathlib import Path
from typing import Callable, Optional, Sequence, TypeVar

import numpy as np

from .models import DocumentRecord
from .vocabulary import Vocabulary
from ..config import Settings
from ..extraction.extractors import MetadataExtractor, PatternExtractor

logger = logging.getLogger("corpus.encoder")

T = TypeVar("T")


# ---------------------------------------------------------------------
# Vector Math
# ---------------------------------------------------------------------

def encode_tokens(tokens: Sequence[str], vocabulary: Vocabulary) -> np.ndarray:
    """
    Encode a token sequence as a unit-length TF-IDF vector.

    Terms outside the vocabulary contribute nothing. A sequence with no
    vocabulary terms yields the all-zero vector.
    """
    vector = np.zeros(vocabulary.dimension, dtype=np.float64)

    for term, tf in Counter(tokens).items():
        index = vocabulary.index_of(term)
        if index is not None:
            vector[index] = tf * vocabulary.idf_of(term)

    return normalize(vector)


def normalize(vector: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vector))
    if norm == 0.0:
        return vector
    return vector / norm


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Dot product of two unit vectors. Returns 0.0 for mismatched lengths.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        return 0.0
    return float(np.clip(np.dot(a, b), -1.0, 1.0))


# ---------------------------------------------------------------------
# Identity Helpers
# ---------------------------------------------------------------------

def document_id(path: str) -> str:
    """Stable 16-hex-digit id derived from the resolved path."""
    return hashlib.md5(os.path.realpath(path).encode("utf-8")).hexdigest()[:16]


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------
# Document Encoder
# ---------------------------------------------------------------------

class DocumentEncoder:
    """
    Builds ``DocumentRecord`` objects from file text.

    Parameters
    ----------
    extractor : MetadataExtractor
        Strategy for summary, symbols, modules and topical tag.

    base_dir : str
        Base for ``relative_path``.

    preview_chars : int
        Length of the stored content preview.
    """

    def __init__(
        self,
        extractor: Optional[MetadataExtractor] = None,
        base_dir: Optional[str] = None,
        preview_chars: int = 5000,
        default_tag: str = "core",
    ) -> None:
        self.extractor = extractor or PatternExtractor(default_tag=default_tag)
        self.base_dir = base_dir or os.getcwd()
        self.preview_chars = preview_chars
        self.default_tag = default_tag

    @classmethod
    def from_settings(
        cls,
        cfg: Settings,
        extractor: Optional[MetadataExtractor] = None,
    ) -> "DocumentEncoder":
        return cls(
            extractor=extractor or PatternExtractor.from_settings(cfg),
            base_dir=str(Path(cfg.base_dir).resolve()),
            preview_chars=cfg.content_preview_chars,
            default_tag=cfg.default_topical_tag,
        )

    def encode(
        self,
        path: str,
        content: str,
        tokens: Sequence[str],
        vocabulary: Vocabulary,
        modified: float,
    ) -> Optional[DocumentRecord]:
        """
        Encode one file. Returns None when the file has no usable tokens.
        """
        if not tokens:
            return None

        path = os.path.abspath(path)
        embedding = encode_tokens(tokens, vocabulary)

        return DocumentRecord(
            id=document_id(path),
            path=path,
            relative_path=os.path.relpath(path, self.base_dir),
            topical_tag=self._safely(
                "classify", lambda: self.extractor.classify(path, content), self.default_tag
            ),
            content_preview=content[: self.preview_chars],
            summary=self._safely("summarize", lambda: self.extractor.summarize(content), ""),
            declared_symbols=self._safely(
                "declared_symbols", lambda: self.extractor.declared_symbols(content), []
            ),
            referenced_modules=self._safely(
                "referenced_modules", lambda: self.extractor.referenced_modules(content), []
            ),
            line_count=len(content.split("\n")),
            last_modified_timestamp=modified,
            content_hash=content_hash(content),
            embedding=embedding.tolist(),
        )

    def _safely(self, name: str, func: Callable[[], T], default: T) -> T:
        try:
            result = func()
        except Exception:
            logger.warning("Metadata heuristic %s failed; using default", name, exc_info=True)
            return default
        return default if result is None else result
