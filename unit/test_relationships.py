"""Test relationship edges and the relationship graph."""

from collections import Counter

import pytest

from components.auditing import ErrorLedger
from components.models import EdgeKind
from components.relationships import (
    RelationshipGraph,
    build_edges,
    build_index,
    direct_edges,
)
from components.similarity import SimilarityMatcher


@pytest.fixture
def pool(initiative_factory):
    """Three linked initiatives plus an unrelated one."""
    origin = initiative_factory.create_initiative(
        expediente="121/000001", subject="Proyecto de Ley de vivienda asequible"
    )
    child = initiative_factory.create_initiative(
        expediente="122/000002",
        subject="Proyecto de Ley de vivienda asequible y alquiler",
        related=["121/000001", "999/999999"],
        origin=["121/000001", "122/000002"],
    )
    sibling = initiative_factory.create_initiative(
        expediente="122/000003",
        subject="Reforma del Reglamento del Congreso",
        related=["122/000002"],
    )
    loner = initiative_factory.create_initiative(
        expediente="184/000004", subject="Pregunta sobre infraestructuras ferroviarias"
    )
    return [origin, child, sibling, loner]


class TestBuildEdges:
    """Test edges for a single initiative."""

    def test_direct_edges_come_first(self, pool):
        edges = build_edges(pool[1], pool)
        direct = [e for e in edges if e.kind == EdgeKind.DIRECT]
        assert edges[: len(direct)] == direct
        assert [(e.target, e.label, e.weight) for e in direct] == [
            ("121/000001", "related", 1.0),
            ("121/000001", "origin", 1.0),
        ]

    def test_unresolved_and_self_references_are_dropped_and_counted(self, pool):
        counters = Counter()
        edges = build_edges(pool[1], pool, counters=counters)
        targets = {e.target for e in edges if e.kind == EdgeKind.DIRECT}
        assert "999/999999" not in targets
        assert "122/000002" not in targets
        assert counters["unresolved"] == 1
        assert counters["self_reference"] == 1

    def test_similarity_edges_carry_score_label(self, pool):
        edges = build_edges(pool[0], pool, SimilarityMatcher(threshold=0.6))
        similar = [e for e in edges if e.kind == EdgeKind.SIMILARITY]
        assert [e.target for e in similar] == ["122/000002"]
        edge = similar[0]
        assert 0.6 <= edge.weight <= 1.0
        assert edge.label == f"similar ({edge.weight:.2f})"

    def test_no_edges_for_unrelated(self, pool):
        assert build_edges(pool[3], pool, SimilarityMatcher(threshold=0.9)) == []


class TestIndex:
    """Test expediente indexing."""

    def test_first_duplicate_wins(self, initiative_factory):
        first = initiative_factory.create_initiative(expediente="122/000010")
        second = initiative_factory.create_initiative(expediente="122/000010")
        index = build_index([first, second])
        assert index["122/000010"] is first

    def test_empty_expediente_not_indexed(self, initiative_factory):
        assert build_index([initiative_factory.create_initiative(expediente="")]) == {}


class TestRelationshipGraph:
    """Test whole-pool building and queries."""

    def test_matches_single_initiative_builder(self, pool):
        matcher = SimilarityMatcher(threshold=0.6)
        graph = RelationshipGraph(pool, matcher)
        built = graph.build()
        for initiative, edges in zip(pool, built):
            assert edges == build_edges(initiative, pool, matcher)

    def test_stats(self, pool):
        graph = RelationshipGraph(pool, SimilarityMatcher(threshold=0.6))
        graph.build()
        stats = graph.stats()
        assert stats["total_initiatives"] == 4
        assert stats["total_direct_relations"] == 3
        assert stats["max_direct_relations"] == 2
        assert stats["initiatives_with_relations"] == 2
        assert stats["unresolved_references"] == 1
        assert stats["self_references"] == 1
        assert stats["total_similarities"] == 2  # origin <-> child
        assert stats["average_direct_relations"] == 0.75

    def test_graph_export(self, pool):
        graph = RelationshipGraph(pool, SimilarityMatcher(threshold=0.6))
        graph.build()
        exported = graph.graph()
        assert exported["metadata"] == {"total_nodes": 4, "total_edges": 5}
        node = exported["nodes"][0]
        assert node["id"] == "121/000001"
        assert node["group"] == "proposicion"
        assert node["size"] == 1

    def test_relationship_info(self, pool):
        graph = RelationshipGraph(pool, SimilarityMatcher(threshold=0.6))
        graph.build()
        direct = graph.relationship_info("122/000002", "121/000001")
        assert direct == {
            "kind": "direct",
            "source": "122/000002",
            "target": "121/000001",
            "label": "related",
        }
        similar = graph.relationship_info("121/000001", "122/000002")
        assert similar["kind"] == "similarity"
        assert graph.relationship_info("184/000004", "121/000001") is None
        assert graph.relationship_info("000/000000", "121/000001") is None

    def test_top_lists(self, pool):
        graph = RelationshipGraph(pool, SimilarityMatcher(threshold=0.6))
        graph.build()
        assert graph.most_related(limit=1)[0]["expediente"] == "122/000002"
        top = graph.highest_similarity()
        assert {row["expediente"] for row in top} == {"121/000001", "122/000002"}

    def test_chunked_build_matches_single_block(self, pool):
        matcher = SimilarityMatcher(threshold=0.6)
        whole = RelationshipGraph(pool, matcher).build()
        assert RelationshipGraph(pool, matcher, chunk_rows=1).build() == whole

    def test_failing_row_is_isolated(self, pool, monkeypatch):
        real_direct_edges = direct_edges

        def flaky(initiative, index, counters=None):
            if initiative.expediente == "122/000003":
                raise RuntimeError("broken references")
            return real_direct_edges(initiative, index, counters)

        monkeypatch.setattr("components.relationships.direct_edges", flaky)
        ledger = ErrorLedger()
        built = RelationshipGraph(pool, SimilarityMatcher(threshold=0.6), ledger).build()
        assert len(built) == len(pool)
        assert built[2] == []
        assert [e.target for e in built[1] if e.kind == EdgeKind.DIRECT] == [
            "121/000001",
            "121/000001",
        ]
        (entry,) = ledger.errors
        assert (entry.stage, entry.index, entry.expediente) == ("edges", 2, "122/000003")
