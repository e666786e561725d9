"""
Search Ranker

Scores every indexed document against a query:

    score = cosine(query, doc)
          + topical_boost      if a tag filter is given and the doc tag contains it
          + exact_match_boost  if the literal query occurs in the doc preview

Documents below ``min_score`` are dropped; the rest are sorted by descending
score with ties kept in index iteration order. The ranker only reads from the
index and never triggers a rebuild.
"""

from __future__ import annotations

import re
from typing import List, Optional

import numpy as np

from ..config import Settings
from ..embeddings.encoder import encode_tokens
from ..embeddings.index import CorpusIndex
from ..embeddings.models import SearchHit
from ..text.tokenizer import Tokenizer


def find_exact_matches(
    query: str,
    content: str,
    limit: int = 3,
    context: int = 30,
) -> List[str]:
    """
    Case-insensitive occurrences of ``query`` in ``content``, each returned
    as a window of ``context`` characters on either side.

    Positions are taken from ``content`` itself, so windows stay aligned
    when lower-casing would change the text length. Overlapping
    occurrences are reported separately.
    """
    highlights: List[str] = []
    if not query or limit <= 0:
        return highlights

    pattern = re.compile(f"(?=({re.escape(query)}))", re.IGNORECASE)
    for match in pattern.finditer(content):
        start = max(0, match.start(1) - context)
        end = min(len(content), match.end(1) + context)
        highlights.append("..." + content[start:end] + "...")
        if len(highlights) >= limit:
            break

    return highlights


class SearchRanker:
    def __init__(
        self,
        tokenizer: Tokenizer,
        topical_boost: float = 0.2,
        exact_match_boost: float = 0.3,
        default_limit: int = 10,
        default_min_score: float = 0.1,
        highlight_limit: int = 3,
        highlight_context: int = 30,
    ) -> None:
        self.tokenizer = tokenizer
        self.topical_boost = topical_boost
        self.exact_match_boost = exact_match_boost
        self.default_limit = default_limit
        self.default_min_score = default_min_score
        self.highlight_limit = highlight_limit
        self.highlight_context = highlight_context

    @classmethod
    def from_settings(cls, cfg: Settings, tokenizer: Tokenizer) -> "SearchRanker":
        return cls(
            tokenizer=tokenizer,
            topical_boost=cfg.topical_boost,
            exact_match_boost=cfg.exact_match_boost,
            default_limit=cfg.default_limit,
            default_min_score=cfg.default_min_score,
            highlight_limit=cfg.highlight_limit,
            highlight_context=cfg.highlight_context_chars,
        )

    def rank(
        self,
        index: CorpusIndex,
        query: str,
        limit: Optional[int] = None,
        topical_tag: Optional[str] = None,
        min_score: Optional[float] = None,
    ) -> List[SearchHit]:
        """
        Rank the documents of ``index`` against ``query``.

        Parameters
        ----------
        index : CorpusIndex
            Index to read from.

        query : str
            Free-text query; tokenized exactly like documents.

        limit : Optional[int]
            Maximum number of hits (default ``default_limit``).

        topical_tag : Optional[str]
            Documents whose tag contains this string receive ``topical_boost``.

        min_score : Optional[float]
            Hits scoring below this are dropped (default ``default_min_score``).

        Returns
        -------
        List[SearchHit]
            Hits sorted by descending score.
        """
        limit = self.default_limit if limit is None else limit
        min_score = self.default_min_score if min_score is None else min_score
        if limit <= 0:
            return []

        tokens = self.tokenizer.tokenize(query)
        exact_query = query.strip()
        exact_lower = exact_query.lower()

        with index.view() as view:
            if not view.documents:
                return []

            if view.vocabulary is not None:
                query_vec = encode_tokens(tokens, view.vocabulary)
                similarities = view.matrix @ query_vec
            else:
                similarities = np.zeros(len(view.documents))

            hits: List[SearchHit] = []
            for doc, similarity in zip(view.documents, similarities):
                score = float(similarity)

                if topical_tag and topical_tag in doc.topical_tag:
                    score += self.topical_boost

                highlights: List[str] = []
                if exact_lower and exact_lower in doc.content_preview.lower():
                    score += self.exact_match_boost
                    highlights = find_exact_matches(
                        exact_query,
                        doc.content_preview,
                        limit=self.highlight_limit,
                        context=self.highlight_context,
                    )

                if score >= min_score:
                    hits.append(SearchHit(document=doc, score=score, highlights=highlights))

        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]
