"""Tests for the backend protocol helpers and the in-memory k-mer backend."""

from __future__ import annotations

import json

import pytest

from seqsearch.backend import Match, SearchBackend, open_backend, resolve_backend_factory
from seqsearch.backend.memory import InMemoryKmerBackend, from_options, kmers
from seqsearch.backend.testing import ScriptedBackend
from seqsearch.core.errors import BackendError, InternalError

SEQUENCES = {
    "AB000001:1:20": "ACGTACGTACGTACGTACGT",
    "AB000002:1:20": "ACGTACGTAAAAAAAAAAAA",
    "AB000003:1:20": "TTTTTTTTTTTTTTTTTTTT",
}


class TestFactoryResolution:
    def test_resolves_module_callable(self):
        factory = resolve_backend_factory("seqsearch.backend.memory:from_options")
        assert factory is from_options

    @pytest.mark.parametrize(
        "spec",
        ["seqsearch.backend.memory", "no.such.module:factory", "seqsearch.backend.memory:missing"],
    )
    def test_bad_spec_raises_internal_error(self, spec):
        with pytest.raises(InternalError):
            resolve_backend_factory(spec)

    def test_open_backend_returns_session(self):
        session = open_backend("seqsearch.backend.testing:scripted", {"matches": []})
        assert isinstance(session, ScriptedBackend)
        assert isinstance(session, SearchBackend)


class TestInMemoryKmerBackend:
    @pytest.fixture()
    def backend(self):
        return InMemoryKmerBackend(
            SEQUENCES,
            kmer_size=4,
            partitions={"mixed": ["AB000002:1:20", "AB000003:1:20"]},
        )

    def test_kmers(self):
        assert kmers("acgta", 4) == {"ACGT", "CGTA"}

    def test_ranks_by_shared_kmers(self, backend):
        matches = backend.search("ACGTACGTACGT", {}, 10)
        assert [m.seqid for m in matches] == [["AB000001:1:20", "AB000002:1:20"]]
        assert matches[0].correctedscore == 4

    def test_unrelated_sequences_are_not_hits(self, backend):
        assert backend.search("GGGGGGGG", {}, 10) == []

    def test_partition_filter(self, backend):
        matches = backend.search("ACGTACGT", {"partition": "mixed"}, 10)
        assert [m.seqid for m in matches] == [["AB000002:1:20"]]

    def test_unknown_partition(self, backend):
        with pytest.raises(BackendError):
            backend.search("ACGTACGT", {"partition": "nope"}, 10)

    def test_minscore_filter(self, backend):
        assert backend.search("ACGTAAAA", {"minscore": 6}, 10) == []
        assert backend.search("ACGTAAAA", {"minscore": 1}, 10) != []

    def test_minpsharedkey_filter(self, backend):
        # ACGTTTTT has 4 distinct k-mers; every stored sequence shares one
        matches = backend.search("ACGTTTTT", {"minpsharedkey": 0.5}, 10)
        assert matches == []

    def test_limit(self):
        backend = InMemoryKmerBackend({"A:1:8": "ACGTACGT", "B:1:8": "ACGTAAAA"}, kmer_size=4)
        assert len(backend.search("ACGTACGT", {}, 1)) == 1

    def test_short_query(self, backend):
        with pytest.raises(BackendError, match="too short"):
            backend.search("ACG", {}, 10)

    def test_closed_session(self, backend):
        backend.close()
        with pytest.raises(BackendError):
            backend.search("ACGTACGT", {}, 10)

    def test_invalid_kmer_size(self):
        with pytest.raises(ValueError):
            InMemoryKmerBackend({}, kmer_size=0)


class TestFromOptions:
    def test_loads_sequences_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps(SEQUENCES), encoding="utf-8")

        backend = from_options({"sequences_file": str(path), "kmer_size": 4})

        assert backend.kmer_size == 4
        assert backend.search("TTTTTTTT", {}, 10)[0].seqid == ["AB000003:1:20"]

    def test_missing_sequences_file(self, tmp_path):
        with pytest.raises(BackendError, match="Cannot load sequences"):
            from_options({"sequences_file": str(tmp_path / "missing.json")})


class TestMatch:
    def test_sequence_only_on_request(self):
        m = Match(correctedscore=3, seqid=["X:1:9"], seq="ACGT")
        assert m.to_dict() == {"correctedscore": 3, "seqid": ["X:1:9"]}
        assert m.to_dict(include_sequence=True)["seq"] == "ACGT"
