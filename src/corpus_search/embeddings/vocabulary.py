"""
Vocabulary Builder

First phase of the two-phase indexing protocol:

    build_vocabulary(corpus)  -> Vocabulary
    encode(document, vocab)   -> embedding   (see ``encoder.py``)

A ``Vocabulary`` is frozen once built. Incremental updates receive the
existing instance and have no way to add dimensions to it; only a full
rebuild produces a new one.

Weighting
---------
Vocabulary admission ranks terms by their *global* frequency (total
occurrences across the corpus). In the default ``term_frequency`` mode the
IDF of a term uses that same global frequency as its statistic:

    idf(t) = ln(1 + N / (1 + globalFrequency(t)))

where ``N`` is the number of documents fed to the build. The
``document_frequency`` mode substitutes the number of documents containing
``t`` for classical TF-IDF behaviour. Admission always uses global frequency.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

IDF_MODES = ("term_frequency", "document_frequency")


@dataclass(frozen=True)
class Vocabulary:
    """
    Immutable term -> dimension mapping plus the IDF table.

    ``terms`` holds only the admitted terms (at most ``dimension`` of them);
    ``idf`` holds a weight for every term observed during the build.
    """

    dimension: int
    terms: Mapping[str, int] = field(default_factory=dict)
    idf: Mapping[str, float] = field(default_factory=dict)
    document_count: int = 0

    def __post_init__(self) -> None:
        if self.dimension <= 0:
            raise ValueError("Vocabulary dimension must be positive.")

        terms = dict(self.terms)
        seen = set()
        for term, index in terms.items():
            if not 0 <= index < self.dimension:
                raise ValueError(
                    f"Dimension index {index} for term {term!r} is outside "
                    f"[0, {self.dimension})."
                )
            if index in seen:
                raise ValueError(f"Dimension index {index} is assigned twice.")
            seen.add(index)

        object.__setattr__(self, "terms", MappingProxyType(terms))
        object.__setattr__(self, "idf", MappingProxyType(dict(self.idf)))

    def __len__(self) -> int:
        return len(self.terms)

    def __contains__(self, term: object) -> bool:
        return term in self.terms

    def index_of(self, term: str) -> Optional[int]:
        return self.terms.get(term)

    def idf_of(self, term: str) -> float:
        return self.idf.get(term) or 1.0


def build_vocabulary(
    token_sequences: Iterable[Sequence[str]],
    dimension: int,
    min_count: int = 2,
    idf_mode: str = "term_frequency",
) -> Vocabulary:
    """
    Build a vocabulary from the token sequences of every document in a corpus.

    Parameters
    ----------
    token_sequences : Iterable[Sequence[str]]
        One token sequence per document, in corpus order. The order decides
        dimension assignment between terms of equal frequency (first
        occurrence wins), so callers must feed documents in a stable order.

    dimension : int
        Embedding dimension cap D; at most D terms are admitted.

    min_count : int
        Terms with a global frequency below this are not admitted.

    idf_mode : str
        ``"term_frequency"`` or ``"document_frequency"``.

    Returns
    -------
    Vocabulary
    """
    if idf_mode not in IDF_MODES:
        raise ValueError(f"Unknown idf_mode {idf_mode!r}; expected one of {IDF_MODES}.")

    global_counts: Counter = Counter()
    document_counts: Counter = Counter()
    n_documents = 0

    for tokens in token_sequences:
        n_documents += 1
        global_counts.update(tokens)
        if idf_mode == "document_frequency":
            document_counts.update(set(tokens))

    # sorted() is stable: equal counts keep first-occurrence order
    admitted = sorted(
        (item for item in global_counts.items() if item[1] >= min_count),
        key=lambda item: item[1],
        reverse=True,
    )[:dimension]

    terms = {term: index for index, (term, _) in enumerate(admitted)}

    statistic = document_counts if idf_mode == "document_frequency" else global_counts
    idf = {
        term: math.log(1 + n_documents / (1 + statistic[term]))
        for term in global_counts
    }

    return Vocabulary(
        dimension=dimension,
        terms=terms,
        idf=idf,
        document_count=n_documents,
    )
