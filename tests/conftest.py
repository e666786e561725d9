from pathlib import Path

import pytest

from corpus_search.config import Settings
from corpus_search.engine import CorpusSearchEngine


@pytest.fixture
def corpus_dir(tmp_path):
    d = tmp_path / "corpus"
    d.mkdir()
    return d


@pytest.fixture
def write_file(corpus_dir):
    def _write(name: str, content: str) -> Path:
        path = corpus_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        values = dict(
            base_dir=tmp_path,
            data_dir=Path("data"),
            source_dirs=[Path("corpus")],
            embedding_dimension=16,
            min_term_frequency=1,
            index_workers=2,
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def make_engine(make_settings):
    def _make(**overrides) -> CorpusSearchEngine:
        return CorpusSearchEngine(make_settings(**overrides))
    return _make
