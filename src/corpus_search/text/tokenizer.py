"""
Tokenizer

Turns raw text into the normalized terms shared by vocabulary building,
document encoding and query encoding. No stemming is applied.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from ..config import Settings


class Tokenizer:
    """
    Lower-cases text, blanks out every character outside the allowed
    alphabet, splits on whitespace and drops stop words and tokens outside
    the configured length bounds.

    Parameters
    ----------
    stop_words : Iterable[str]
        Terms dropped after normalization.

    extra_alphabet : str
        Regex character-class fragment appended to ``a-z0-9``, e.g. ``"а-яё"``
        to keep Cyrillic words in bilingual corpora.

    min_length, max_length : int
        Inclusive token length bounds.
    """

    def __init__(
        self,
        stop_words: Iterable[str] = (),
        extra_alphabet: str = "",
        min_length: int = 2,
        max_length: int = 30,
    ) -> None:
        self.stop_words = frozenset(w.lower() for w in stop_words)
        self.min_length = min_length
        self.max_length = max_length
        self._disallowed = re.compile(f"[^a-z0-9{extra_alphabet}\\s]")

    @classmethod
    def from_settings(cls, cfg: Settings) -> "Tokenizer":
        return cls(
            stop_words=cfg.stop_words,
            extra_alphabet=cfg.extra_alphabet,
            min_length=cfg.min_token_length,
            max_length=cfg.max_token_length,
        )

    def tokenize(self, text: Optional[str]) -> List[str]:
        if not text:
            return []

        cleaned = self._disallowed.sub(" ", text.lower())
        return [
            token
            for token in cleaned.split()
            if self.min_length <= len(token) <= self.max_length
            and token not in self.stop_words
        ]

    __call__ = tokenize
