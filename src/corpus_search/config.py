"""
Engine Configuration

All tunables for the corpus walker, tokenizer, vocabulary builder, encoder
and ranker live on a single pydantic-settings model. Values can be overridden
through environment variables prefixed with ``CORPUS_SEARCH_`` or a local
``.env`` file. List and dict fields are read from JSON in the environment.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_STOP_WORDS = [
    "the", "is", "at", "which", "on", "a", "an", "and", "or", "but",
    "in", "to", "for", "of", "with", "as", "by", "from", "that", "this",
    "it", "be", "are", "was", "were", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "must", "shall", "can", "need", "if", "then",
    "import", "export", "const", "let", "var", "function", "class",
    "return", "new", "null", "undefined", "true", "false", "void",
]


class Settings(BaseSettings):
    base_dir: Path = Field(default_factory=Path.cwd)
    data_dir: Path = Path("data/corpus_index")
    index_filename: str = "vector-index.json"

    # Corpus walker
    source_dirs: List[Path] = [Path("src"), Path("scripts"), Path("docs")]
    file_extensions: List[str] = [".ts", ".js", ".md", ".json", ".py"]
    max_document_size: int = Field(default=100_000, gt=0)
    ignored_dirs: List[str] = ["node_modules", "dist", "build", "__pycache__"]
    index_workers: int = Field(default=8, ge=1)

    # Tokenizer
    stop_words: List[str] = DEFAULT_STOP_WORDS
    extra_alphabet: str = "а-яё"  # regex character-class fragment (Cyrillic)
    min_token_length: int = Field(default=2, ge=1)
    max_token_length: int = Field(default=30, ge=1)

    # Vocabulary / encoder
    embedding_dimension: int = Field(default=512, gt=0)
    min_term_frequency: int = Field(default=2, ge=1)
    idf_mode: Literal["term_frequency", "document_frequency"] = "term_frequency"
    content_preview_chars: int = Field(default=5000, ge=0)
    summary_max_chars: int = Field(default=200, ge=0)
    default_topical_tag: str = "core"
    topic_patterns: Dict[str, List[str]] = {}

    # Ranker
    topical_boost: float = 0.2
    exact_match_boost: float = 0.3
    default_limit: int = Field(default=10, ge=1)
    default_min_score: float = 0.1
    highlight_limit: int = Field(default=3, ge=0)
    highlight_context_chars: int = Field(default=30, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="CORPUS_SEARCH_",
        env_file=".env",
        extra="ignore",
    )

    def _resolve(self, path: Path) -> Path:
        path = Path(path)
        if not path.is_absolute():
            path = Path(self.base_dir) / path
        return path.resolve()

    def resolved_source_dirs(self) -> List[Path]:
        return [self._resolve(d) for d in self.source_dirs]

    def resolved_data_dir(self) -> Path:
        return self._resolve(self.data_dir)

    def index_path(self) -> Path:
        return self.resolved_data_dir() / self.index_filename


settings = Settings()
