"""Relationship graph between initiatives.

Direct edges come from the feed's cross-reference fields (related and
origin initiatives); similarity edges come from subject text similarity.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Iterable, Optional, Sequence

from components.auditing import ErrorLedger, record_context
from components.models import EdgeKind, Initiative, RelationshipEdge
from components.similarity import CHUNK_ROWS, SimilarityMatcher, is_same_item

logger = logging.getLogger(__name__)

DIRECT_LABELS = ("related", "origin")
SUBJECT_PREVIEW_CHARS = 100


def build_index(initiatives: Iterable[Initiative]) -> dict[str, Initiative]:
    """Map expediente -> initiative; the first record with a key wins."""
    index: dict[str, Initiative] = {}
    for initiative in initiatives:
        if initiative.expediente and initiative.expediente not in index:
            index[initiative.expediente] = initiative
        elif initiative.expediente:
            logger.debug("Duplicate expediente %s ignored in index", initiative.expediente)
    return index


def direct_edges(
    initiative: Initiative,
    index: dict[str, Initiative],
    counters: Optional[Counter] = None,
) -> list[RelationshipEdge]:
    """Resolve an initiative's outbound reference tokens into edges.

    Tokens that are not in the index, or that point back at the initiative
    itself, are dropped and counted under 'unresolved' and
    'self_reference'.
    """
    counters = counters if counters is not None else Counter()
    edges = []
    seen = set()
    for label, tokens in zip(DIRECT_LABELS, (initiative.related, initiative.origin)):
        for token in tokens:
            if initiative.expediente and token == initiative.expediente:
                counters["self_reference"] += 1
                continue
            if token not in index:
                counters["unresolved"] += 1
                logger.debug(
                    "%s: unresolved %s reference %s", initiative.expediente, label, token
                )
                continue
            if (token, label) in seen:
                continue
            seen.add((token, label))
            edges.append(
                RelationshipEdge(initiative.expediente, token, EdgeKind.DIRECT, label, 1.0)
            )
    return edges


def similarity_edge(source: Initiative, target: Initiative, score: float) -> RelationshipEdge:
    return RelationshipEdge(
        source.expediente,
        target.expediente,
        EdgeKind.SIMILARITY,
        f"similar ({score:.2f})",
        score,
    )


def build_edges(
    initiative: Initiative,
    all_initiatives: Sequence[Initiative],
    matcher: Optional[SimilarityMatcher] = None,
    index: Optional[dict[str, Initiative]] = None,
    counters: Optional[Counter] = None,
) -> list[RelationshipEdge]:
    """Build the outbound edges of one initiative.

    Args:
        initiative: Source initiative
        all_initiatives: Pool used both to resolve references and to find
            similar subjects
        matcher: Similarity matcher (default settings if None)
        index: Prebuilt expediente index (built from the pool if None)
        counters: Counter collecting dropped references

    Returns:
        Direct edges first, then similarity edges best score first
    """
    matcher = matcher or SimilarityMatcher()
    index = index if index is not None else build_index(all_initiatives)
    edges = direct_edges(initiative, index, counters)
    for candidate, score in matcher.find_similar(initiative, all_initiatives):
        edges.append(similarity_edge(initiative, candidate, score))
    return edges


class RelationshipGraph:
    """Edges for a whole pool of initiatives, plus graph-level queries."""

    def __init__(
        self,
        initiatives: Iterable[Initiative],
        matcher: Optional[SimilarityMatcher] = None,
        ledger: Optional[ErrorLedger] = None,
        chunk_rows: int = CHUNK_ROWS,
    ) -> None:
        self.initiatives = list(initiatives)
        self.matcher = matcher or SimilarityMatcher()
        self.ledger = ledger if ledger is not None else ErrorLedger()
        self.chunk_rows = chunk_rows
        self.index = build_index(self.initiatives)
        self.counters: Counter = Counter()
        self.edges: list[list[RelationshipEdge]] = []

    def _row_edges(self, initiative: Initiative, scores) -> list[RelationshipEdge]:
        edges = direct_edges(initiative, self.index, self.counters)
        similar = [
            (candidate, float(score))
            for candidate, score in zip(self.initiatives, scores)
            if not is_same_item(initiative, candidate) and score >= self.matcher.threshold
        ]
        similar.sort(key=lambda pair: -pair[1])
        edges.extend(similarity_edge(initiative, c, s) for c, s in similar)
        return edges

    def build(self) -> list[list[RelationshipEdge]]:
        """Compute every initiative's edges, scoring chunk_rows rows at a time.

        A row that fails is recorded in the ledger and gets no edges.

        Returns:
            Edge lists parallel to self.initiatives
        """
        self.counters.clear()
        self.edges = []
        subjects = [i.subject for i in self.initiatives]
        for start, block in self.matcher.iter_similarity_rows(subjects, self.chunk_rows):
            for row, scores in enumerate(block, start):
                initiative = self.initiatives[row]
                with record_context(
                    self.ledger, "edges", row, initiative.expediente
                ) as scope:
                    edges = self._row_edges(initiative, scores)
                self.edges.append([] if scope.failed else edges)
        logger.info(
            "Built %d edges for %d initiatives (%d unresolved references)",
            sum(len(e) for e in self.edges),
            len(self.initiatives),
            self.counters["unresolved"],
        )
        return self.edges

    def _edges_of(self, kind: EdgeKind) -> list[list[RelationshipEdge]]:
        return [[e for e in edges if e.kind == kind] for edges in self.edges]

    def stats(self) -> dict[str, Any]:
        """Totals, maxima and averages over the built edges."""
        direct = [len(e) for e in self._edges_of(EdgeKind.DIRECT)]
        similar = self._edges_of(EdgeKind.SIMILARITY)
        similar_counts = [len(e) for e in similar]
        scores = [edge.weight for edges in similar for edge in edges]
        total = len(self.initiatives)
        return {
            "total_initiatives": total,
            "total_direct_relations": sum(direct),
            "total_similarities": sum(similar_counts),
            "max_direct_relations": max(direct, default=0),
            "max_similarities": max(similar_counts, default=0),
            "average_direct_relations": round(sum(direct) / total, 2) if total else 0,
            "average_similarities": round(sum(similar_counts) / total, 2) if total else 0,
            "average_similarity_score": round(sum(scores) / len(scores), 3) if scores else 0,
            "initiatives_with_relations": sum(1 for n in direct if n),
            "initiatives_with_similarities": sum(1 for n in similar_counts if n),
            "unresolved_references": self.counters["unresolved"],
            "self_references": self.counters["self_reference"],
        }

    def graph(self) -> dict[str, Any]:
        """Nodes and edges ready for a graph view."""
        nodes = []
        all_edges = []
        for initiative, edges in zip(self.initiatives, self.edges):
            nodes.append({
                "id": initiative.expediente,
                "label": f"{initiative.type} - {initiative.expediente}",
                "type": initiative.type,
                "subject": initiative.subject,
                "author": initiative.author,
                "presentation_date": (
                    initiative.presentation_date.isoformat()
                    if initiative.presentation_date else None
                ),
                "group": initiative.group,
                "size": len(edges),
            })
            all_edges.extend(edge.to_dict() for edge in edges)
        return {
            "nodes": nodes,
            "edges": all_edges,
            "metadata": {"total_nodes": len(nodes), "total_edges": len(all_edges)},
        }

    def relationship_info(self, source: str, target: str) -> Optional[dict[str, Any]]:
        """Describe how source links to target, direct edges first."""
        if source not in self.index:
            return None
        edges = next(
            (
                edges
                for initiative, edges in zip(self.initiatives, self.edges)
                if initiative is self.index[source]
            ),
            [],
        )
        for kind in (EdgeKind.DIRECT, EdgeKind.SIMILARITY):
            for edge in edges:
                if edge.kind == kind and edge.target == target:
                    info = {"kind": kind.value, "source": source, "target": target}
                    if kind == EdgeKind.DIRECT:
                        info["label"] = edge.label
                    else:
                        info["similarity"] = edge.weight
                    return info
        return None

    def _summary(self, initiative: Initiative) -> dict[str, Any]:
        subject = initiative.subject
        if len(subject) > SUBJECT_PREVIEW_CHARS:
            subject = subject[:SUBJECT_PREVIEW_CHARS] + "..."
        return {
            "expediente": initiative.expediente,
            "type": initiative.type,
            "subject": subject,
        }

    def most_related(self, limit: int = 10) -> list[dict[str, Any]]:
        """Initiatives with the most direct relations."""
        rows = [
            {**self._summary(initiative), "total_relations": len(edges)}
            for initiative, edges in zip(self.initiatives, self._edges_of(EdgeKind.DIRECT))
            if edges
        ]
        rows.sort(key=lambda row: -row["total_relations"])
        return rows[:limit]

    def highest_similarity(self, limit: int = 10) -> list[dict[str, Any]]:
        """Initiatives with the strongest single similarity edge."""
        rows = [
            {
                **self._summary(initiative),
                "max_similarity": max(edge.weight for edge in edges),
                "total_similar": len(edges),
            }
            for initiative, edges in zip(
                self.initiatives, self._edges_of(EdgeKind.SIMILARITY)
            )
            if edges
        ]
        rows.sort(key=lambda row: -row["max_similarity"])
        return rows[:limit]
