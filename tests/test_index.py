"""
Index Store Tests

Covers mutation semantics, bookkeeping, and persistence round trips /
rejection of invalid persisted documents.
"""

import json
import time

import pytest

from corpus_search.embeddings.index import (
    CorpusIndex,
    IndexConsistencyError,
    IndexPersistenceError,
)
from corpus_search.embeddings.models import DocumentRecord
from corpus_search.embeddings.vocabulary import build_vocabulary


DIM = 4


def make_record(doc_id: str, embedding=None, tag: str = "core") -> DocumentRecord:
    return DocumentRecord(
        id=doc_id,
        path=f"/corpus/{doc_id}.md",
        relative_path=f"{doc_id}.md",
        topical_tag=tag,
        content_preview=f"content of {doc_id}",
        summary=doc_id,
        line_count=1,
        last_modified_timestamp=1700000000.0,
        content_hash=f"hash-{doc_id}",
        embedding=embedding if embedding is not None else [1.0, 0.0, 0.0, 0.0],
    )


@pytest.fixture
def vocab():
    return build_vocabulary([["fox", "dog"], ["fox", "cat"]], dimension=DIM, min_count=1)


@pytest.fixture
def index(tmp_path, vocab):
    idx = CorpusIndex(dimension=DIM, index_path=str(tmp_path / "data" / "index.json"))
    idx.replace(vocab, [make_record("a"), make_record("b", tag="security")])
    return idx


class TestMutations:

    def test_replace_sets_everything(self, index, vocab):
        assert index.vocabulary is vocab
        assert [d.id for d in index.documents()] == ["a", "b"]
        assert index.document_count == len(index) == 2

    def test_replace_rejects_inconsistent_documents(self, index, vocab):
        with pytest.raises(IndexConsistencyError):
            index.replace(vocab, [make_record("c", embedding=[1.0, 0.0])])
        # previous state untouched
        assert [d.id for d in index.documents()] == ["a", "b"]

    def test_replace_rejects_wrong_vocabulary_dimension(self, index):
        other = build_vocabulary([["fox"]], dimension=DIM + 1, min_count=1)
        with pytest.raises(IndexConsistencyError):
            index.replace(other, [])

    def test_upsert_new_and_existing(self, index):
        assert index.upsert(make_record("c")) is True
        assert index.upsert(make_record("a", embedding=[0.0, 1.0, 0.0, 0.0])) is False

        ids = [d.id for d in index.documents()]
        assert ids == ["a", "b", "c"]
        assert index.get("a").embedding == [0.0, 1.0, 0.0, 0.0]
        assert index.document_count == 3

    def test_upsert_never_changes_vocabulary(self, index, vocab):
        before = len(index.vocabulary)
        index.upsert(make_record("c"))
        assert index.vocabulary is vocab
        assert len(index.vocabulary) == before

    def test_upsert_wrong_dimension(self, index):
        with pytest.raises(IndexConsistencyError):
            index.upsert(make_record("c", embedding=[1.0]))

    def test_upsert_without_vocabulary(self):
        idx = CorpusIndex(dimension=DIM)
        with pytest.raises(IndexConsistencyError):
            idx.upsert(make_record("a"))

    def test_install_vocabulary_only_once(self, vocab):
        idx = CorpusIndex(dimension=DIM)
        idx.install_vocabulary(vocab)
        assert idx.vocabulary is vocab
        with pytest.raises(IndexConsistencyError):
            idx.install_vocabulary(vocab)

    def test_remove(self, index):
        assert index.remove("a") is True
        assert "a" not in index
        assert index.document_count == 1

    def test_remove_missing_is_noop(self, index):
        before = index.updated
        assert index.remove("missing") is False
        assert index.updated == before
        assert index.document_count == 2

    def test_updated_refreshed_on_mutation(self, index):
        before = index.updated
        time.sleep(0.01)
        index.upsert(make_record("c"))
        assert index.updated > before

    def test_view_matrix_follows_documents(self, index):
        index.upsert(make_record("c", embedding=[0.0, 0.0, 1.0, 0.0]))
        with index.view() as view:
            assert view.matrix.shape == (3, DIM)
            assert list(view.matrix[2]) == [0.0, 0.0, 1.0, 0.0]
        index.remove("a")
        with index.view() as view:
            assert view.matrix.shape == (2, DIM)

    def test_stats(self, index, vocab):
        stats = index.get_stats()
        assert stats.documents == 2
        assert stats.vocabulary == len(vocab)
        assert stats.topical_tags == {"core": 1, "security": 1}
        assert stats.last_updated == index.updated


class TestPersistence:

    def test_round_trip(self, tmp_path, index):
        index.save()

        loaded = CorpusIndex(dimension=DIM, index_path=str(tmp_path / "data" / "index.json"))
        assert loaded.load() is True

        assert dict(loaded.vocabulary.terms) == dict(index.vocabulary.terms)
        assert dict(loaded.vocabulary.idf) == dict(index.vocabulary.idf)
        assert loaded.vocabulary.document_count == index.vocabulary.document_count == 2
        assert [d.id for d in loaded.documents()] == ["a", "b"]
        for expected in index.documents():
            assert loaded.get(expected.id).model_dump() == expected.model_dump()
        assert loaded.created == index.created
        assert loaded.updated == index.updated

    def test_persisted_format(self, tmp_path, index):
        index.save()
        data = json.loads((tmp_path / "data" / "index.json").read_text(encoding="utf-8"))

        assert set(data) == {
            "version", "created", "updated", "documentCount", "dimension",
            "vocabulary", "idfScores", "idfDocumentCount", "documents",
        }
        assert data["documentCount"] == 2
        assert data["idfDocumentCount"] == 2
        doc = data["documents"]["a"]
        assert doc["relativePath"] == "a.md"
        assert doc["topicalTag"] == "core"
        assert doc["embedding"] == [1.0, 0.0, 0.0, 0.0]

    def test_missing_file(self, tmp_path):
        idx = CorpusIndex(dimension=DIM, index_path=str(tmp_path / "nope.json"))
        assert idx.load() is False

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "index.json"
        path.write_text('{"version": "1.0", "crea', encoding="utf-8")
        idx = CorpusIndex(dimension=DIM, index_path=str(path))
        with pytest.raises(IndexPersistenceError):
            idx.load()
        assert idx.vocabulary is None

    def _rewrite(self, tmp_path, index, mutate):
        index.save()
        path = tmp_path / "data" / "index.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        mutate(data)
        path.write_text(json.dumps(data), encoding="utf-8")
        return CorpusIndex(dimension=DIM, index_path=str(path))

    def test_rejects_embedding_length_mismatch(self, tmp_path, index):
        def mutate(data):
            data["documents"]["a"]["embedding"] = [1.0, 0.0]
        with pytest.raises(IndexPersistenceError):
            self._rewrite(tmp_path, index, mutate).load()

    def test_rejects_dimension_mismatch(self, tmp_path, index):
        index.save()
        other = CorpusIndex(dimension=DIM * 2, index_path=str(tmp_path / "data" / "index.json"))
        with pytest.raises(IndexPersistenceError):
            other.load()

    def test_rejects_document_count_mismatch(self, tmp_path, index):
        def mutate(data):
            data["documentCount"] = 5
        with pytest.raises(IndexPersistenceError):
            self._rewrite(tmp_path, index, mutate).load()

    def test_rejects_out_of_range_vocabulary(self, tmp_path, index):
        def mutate(data):
            data["vocabulary"]["fox"] = DIM + 3
        with pytest.raises(IndexPersistenceError):
            self._rewrite(tmp_path, index, mutate).load()

    def test_rejects_unknown_version(self, tmp_path, index):
        def mutate(data):
            data["version"] = "0.1"
        with pytest.raises(IndexPersistenceError):
            self._rewrite(tmp_path, index, mutate).load()

    def test_save_failure_is_reported(self, tmp_path, vocab):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        idx = CorpusIndex(dimension=DIM, index_path=str(blocker / "index.json"))
        idx.replace(vocab, [make_record("a")])

        with pytest.raises(IndexPersistenceError):
            idx.save()
        assert idx.document_count == 1
