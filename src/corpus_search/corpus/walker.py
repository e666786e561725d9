"""
Corpus Walker

Enumerates indexable files under the configured roots and reads them.

Filtering
---------
- Hidden directories (leading ``.``) and names in ``ignored_dirs`` are pruned.
- Only files whose extension is in ``extensions`` are yielded.
- Files larger than ``max_file_size`` bytes are skipped, never truncated.

Paths are yielded in sorted order so that downstream vocabulary building is
deterministic. Reading can fan out over a thread pool; results are returned
in path order regardless of completion order.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, TypeVar, Union

from ..config import Settings

logger = logging.getLogger("corpus.walker")

T = TypeVar("T")


class CorpusWalkError(RuntimeError):
    """Raised when a corpus root exists but cannot be walked."""


@dataclass(frozen=True)
class SourceFile:
    """A file read from the corpus."""
    path: str
    content: str
    size: int
    modified: float


class CorpusWalker:
    def __init__(
        self,
        roots: Sequence[os.PathLike],
        extensions: Iterable[str] = (".ts", ".js", ".md", ".json", ".py"),
        max_file_size: int = 100_000,
        ignored_dirs: Iterable[str] = ("node_modules", "dist", "build", "__pycache__"),
        workers: int = 8,
    ) -> None:
        self.roots = [Path(r) for r in roots]
        self.extensions = {e.lower() for e in extensions}
        self.max_file_size = max_file_size
        self.ignored_dirs = set(ignored_dirs)
        self.workers = max(1, workers)

    @classmethod
    def from_settings(cls, cfg: Settings) -> "CorpusWalker":
        return cls(
            roots=cfg.resolved_source_dirs(),
            extensions=cfg.file_extensions,
            max_file_size=cfg.max_document_size,
            ignored_dirs=cfg.ignored_dirs,
            workers=cfg.index_workers,
        )

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def iter_paths(self) -> Iterator[str]:
        """
        Yield absolute paths of matching files under every root.

        Raises
        ------
        CorpusWalkError
            If a root exists but is not a readable directory.
        """
        for root in self.roots:
            if not root.exists():
                logger.warning("Corpus root %s does not exist; skipping", root)
                continue
            if not root.is_dir():
                raise CorpusWalkError(f"Corpus root is not a directory: {root}")
            yield from self._walk_root(os.path.abspath(root))

    def accepts(self, path: str) -> bool:
        """
        True if ``iter_paths`` would yield ``path``: it lies under one of the
        roots, has an allowed extension and no directory between the root
        and the file is hidden or ignored.
        """
        if os.path.splitext(path)[1].lower() not in self.extensions:
            return False

        resolved = os.path.realpath(path)
        for root in self.roots:
            root = os.path.realpath(root)
            if os.path.commonpath([root, resolved]) != root:
                continue
            parts = os.path.relpath(os.path.dirname(resolved), root).split(os.sep)
            return not any(
                (p.startswith(".") and p != ".") or p in self.ignored_dirs
                for p in parts
            )
        return False

    def _walk_root(self, root: str) -> Iterator[str]:
        def on_error(exc: OSError) -> None:
            if os.path.abspath(exc.filename or "") == root:
                raise CorpusWalkError(f"Cannot read corpus root {root}: {exc}") from exc
            logger.warning("Skipping unreadable directory %s: %s", exc.filename, exc)

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith(".") and d not in self.ignored_dirs
            )
            for name in sorted(filenames):
                if os.path.splitext(name)[1].lower() in self.extensions:
                    yield os.path.join(dirpath, name)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read(self, path: str) -> Optional[SourceFile]:
        """
        Read one file. Returns None for oversized, unreadable or empty files.
        """
        try:
            stat = os.stat(path)
            if stat.st_size > self.max_file_size:
                logger.debug("Skipping %s (%d bytes > %d)", path, stat.st_size, self.max_file_size)
                return None
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                content = f.read()
        except OSError as exc:
            logger.warning("Skipping unreadable file %s: %s", path, exc)
            return None

        if not content:
            return None

        return SourceFile(
            path=os.path.abspath(path),
            content=content,
            size=stat.st_size,
            modified=stat.st_mtime,
        )

    def read_all(
        self,
        paths: Sequence[str],
        process: Optional[Callable[[SourceFile], T]] = None,
    ) -> List[Optional[Union[SourceFile, T]]]:
        """
        Read many files concurrently, optionally applying ``process`` to each
        file inside the worker. Output order matches ``paths``; skipped files
        appear as None.
        """
        def task(path: str):
            source = self.read(path)
            if source is None or process is None:
                return source
            return process(source)

        if self.workers == 1 or len(paths) < 2:
            return [task(p) for p in paths]
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            return list(pool.map(task, paths))
