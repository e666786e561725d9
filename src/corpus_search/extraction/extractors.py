"""
Metadata Extraction Strategies

Heuristic, pattern-based extraction of per-file metadata. The encoder only
depends on the ``MetadataExtractor`` protocol, so any of these heuristics can
be swapped out without touching the embedding path.

None of the extractors guarantee complete or unique results.
"""

from __future__ import annotations

import re
from typing import Callable, List, Mapping, Optional, Protocol, Sequence, Tuple

from ..config import Settings

Classifier = Callable[[str, str], str]


class MetadataExtractor(Protocol):
    def summarize(self, content: str) -> str: ...

    def declared_symbols(self, content: str) -> List[str]: ...

    def referenced_modules(self, content: str) -> List[str]: ...

    def classify(self, path: str, content: str) -> str: ...


# ---------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------

class PatternClassifier:
    """
    Assign a topical tag by testing regex patterns against the file path and
    the first ``window`` characters of its content. Tags are tried in
    mapping order; the first tag with a matching pattern wins.
    """

    def __init__(
        self,
        patterns: Optional[Mapping[str, Sequence[str]]] = None,
        default: str = "core",
        window: int = 500,
    ) -> None:
        self.default = default
        self.window = window
        self._compiled: List[Tuple[str, List[re.Pattern]]] = [
            (tag, [re.compile(p, re.IGNORECASE) for p in pats])
            for tag, pats in (patterns or {}).items()
        ]

    def __call__(self, path: str, content: str) -> str:
        combined = f"{path} {content[: self.window]}"
        for tag, patterns in self._compiled:
            if any(p.search(combined) for p in patterns):
                return tag
        return self.default


# ---------------------------------------------------------------------
# Default Extractor
# ---------------------------------------------------------------------

_DOC_BLOCK = re.compile(r"/\*\*([\s\S]*?)\*/")
_PY_DOCSTRING = re.compile(r'\A\s*(?:#[^\n]*\n\s*)*(?:"""([\s\S]*?)"""|\'\'\'([\s\S]*?)\'\'\')')

_JS_EXPORT = re.compile(r"export\s+(?:default\s+)?(?:async\s+)?(?:class|function|const|interface|type|enum)\s+(\w+)")
_PY_DEF = re.compile(r"^(?:async\s+)?(?:def|class)\s+(\w+)", re.MULTILINE)

_JS_IMPORT = re.compile(r"import\s+.*?from\s+['\"](.+?)['\"]")
_JS_REQUIRE = re.compile(r"require\(\s*['\"](.+?)['\"]\s*\)")
_PY_IMPORT = re.compile(r"^\s*(?:from\s+([\w.]+)\s+import\s|import\s+([\w.]+)\s*(?:$|,|#|\s+as\s))", re.MULTILINE)


class PatternExtractor:
    """
    Regex-driven extractor covering JS/TS, Python and plain text.

    Parameters
    ----------
    classifier : Optional[Classifier]
        Callable ``(path, content) -> tag``. Defaults to a
        ``PatternClassifier`` with no patterns, which tags everything
        with ``default_tag``.

    summary_max_chars : int
        Summaries are truncated to this length.
    """

    def __init__(
        self,
        classifier: Optional[Classifier] = None,
        summary_max_chars: int = 200,
        summary_lines: int = 5,
        default_tag: str = "core",
    ) -> None:
        self.classifier = classifier or PatternClassifier(default=default_tag)
        self.summary_max_chars = summary_max_chars
        self.summary_lines = summary_lines

    @classmethod
    def from_settings(cls, cfg: Settings) -> "PatternExtractor":
        return cls(
            classifier=PatternClassifier(
                cfg.topic_patterns, default=cfg.default_topical_tag
            ),
            summary_max_chars=cfg.summary_max_chars,
            default_tag=cfg.default_topical_tag,
        )

    def summarize(self, content: str) -> str:
        match = _DOC_BLOCK.search(content)
        if match:
            body = re.sub(r"\s*\*\s*", " ", match.group(1))
            return " ".join(body.split())[: self.summary_max_chars]

        match = _PY_DOCSTRING.match(content)
        if match:
            body = match.group(1) if match.group(1) is not None else match.group(2)
            if body.strip():
                return " ".join(body.split())[: self.summary_max_chars]

        lines = content.split("\n")[: self.summary_lines]
        return " ".join(lines)[: self.summary_max_chars]

    def declared_symbols(self, content: str) -> List[str]:
        found = [(m.start(), m.group(1)) for m in _JS_EXPORT.finditer(content)]
        found += [(m.start(), m.group(1)) for m in _PY_DEF.finditer(content)]
        return [name for _, name in sorted(found)]

    def referenced_modules(self, content: str) -> List[str]:
        found = [(m.start(), m.group(1)) for m in _JS_IMPORT.finditer(content)]
        found += [(m.start(), m.group(1)) for m in _JS_REQUIRE.finditer(content)]
        found += [
            (m.start(), m.group(1) or m.group(2))
            for m in _PY_IMPORT.finditer(content)
        ]
        return [name for _, name in sorted(found)]

    def classify(self, path: str, content: str) -> str:
        return self.classifier(path, content)
