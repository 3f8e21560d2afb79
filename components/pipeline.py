"""Pipeline that turns a parsed feed into a cross-referenced history."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from components.auditing import ErrorLedger, RunSummary, record_context
from components.categories import classify_initiative_type
from components.config import Config
from components.errors import FeedShapeError
from components.flows import (
    LegislativeFlow,
    build_flows,
    check_sort_field,
    summarize_flows,
)
from components.models import ApprovedLaw, Initiative
from components.relationships import RelationshipGraph
from components.similarity import SimilarityMatcher
from components.stages import classify_stage
from timeline.parser import TimelineExtractor

logger = logging.getLogger(__name__)


@dataclass
class FeedResult:
    """Everything one run produced."""

    initiatives: list[Initiative]
    laws: list[ApprovedLaw]
    flows: list[LegislativeFlow]
    ledger: ErrorLedger
    summary: RunSummary
    graph: Optional[RelationshipGraph] = None
    config: Config = field(default_factory=Config)

    def to_records(self) -> list[dict[str, Any]]:
        """Initiative records restricted to the configured export fields."""
        include = self.config.export.include_fields
        return [initiative.to_record(include) for initiative in self.initiatives]

    def flow_records(self) -> list[dict[str, Any]]:
        return [flow.to_dict() for flow in self.flows]


def check_batch(records: Any, name: str, item_types: tuple[type, ...]) -> list:
    """Validate that a batch is an iterable of mappings and materialize it.

    Raises:
        FeedShapeError: for a bare mapping or string, a non-iterable, or
            an element that is not a mapping
    """
    if isinstance(records, (str, bytes, Mapping)):
        raise FeedShapeError(
            f"{name} must be an iterable of records, got a single {type(records).__name__}"
        )
    if not isinstance(records, Iterable):
        raise FeedShapeError(
            f"{name} must be an iterable of records, got {type(records).__name__}"
        )
    items = list(records)
    for position, item in enumerate(items):
        if not isinstance(item, (Mapping, *item_types)):
            raise FeedShapeError(
                f"{name}[{position}] must be a mapping, got {type(item).__name__}"
            )
    return items


def parse_initiatives(
    records: list, ledger: ErrorLedger, summary: RunSummary
) -> list[Initiative]:
    """Build Initiative objects, isolating records that fail to parse."""
    initiatives = []
    for index, record in enumerate(records):
        if isinstance(record, Initiative):
            initiatives.append(record)
            continue
        with record_context(ledger, "parse", index, _expediente_of(record)):
            initiatives.append(Initiative.from_record(record))
    for initiative in initiatives:
        if not initiative.is_valid():
            summary.invalid_initiatives += 1
        if not initiative.has_valid_dates():
            summary.bad_dates += 1
    return initiatives


def parse_laws(records: list, ledger: ErrorLedger) -> list[ApprovedLaw]:
    """Build ApprovedLaw objects, isolating records that fail to parse."""
    laws = []
    for index, record in enumerate(records):
        if isinstance(record, ApprovedLaw):
            laws.append(record)
            continue
        with record_context(ledger, "law", index):
            laws.append(ApprovedLaw.from_record(record))
    return laws


def _expediente_of(record: Mapping) -> Optional[str]:
    value = record.get("expediente") or record.get("NUMEXPEDIENTE")
    return str(value) if value else None


def process_feed(
    initiative_records: Any,
    law_records: Any = None,
    config: Optional[Config] = None,
) -> FeedResult:
    """Run the whole core over one feed batch.

    Args:
        initiative_records: Iterable of initiative mappings
        law_records: Iterable of approved-law mappings (optional)
        config: Run configuration (defaults if None)

    Returns:
        FeedResult with processed initiatives, flows, ledger and summary

    Raises:
        FeedShapeError: the input is not an iterable of mappings
        ConfigError: a configuration value is out of its domain
    """
    config = config or Config()
    raw_initiatives = check_batch(initiative_records, "initiative_records", (Initiative,))
    raw_laws = check_batch(
        law_records if law_records is not None else [], "law_records", (ApprovedLaw,)
    )
    extractor = TimelineExtractor.from_config(config.timeline)
    matcher = SimilarityMatcher.from_config(config.similarity)
    check_sort_field(config.flows.sort_field)

    ledger = ErrorLedger()
    summary = RunSummary(initiatives_in=len(raw_initiatives), laws_in=len(raw_laws))
    initiatives = parse_initiatives(raw_initiatives, ledger, summary)

    for index, initiative in enumerate(initiatives):
        with record_context(ledger, "classify", index, initiative.expediente):
            initiative.apply_category(classify_initiative_type(initiative))
            initiative.apply_classification(classify_stage(initiative))
            summary.count(summary.categories, initiative.category.value)
            summary.count(summary.stages, initiative.classification.stage.value)
        with record_context(ledger, "timeline", index, initiative.expediente):
            initiative.apply_timeline(extractor.extract_events(initiative.narrative))

    graph = RelationshipGraph(initiatives, matcher, ledger)
    for initiative, edges in zip(initiatives, graph.build()):
        initiative.apply_edges(edges)
    summary.relationships = graph.stats()

    laws = parse_laws(raw_laws, ledger)
    flows = build_flows(initiatives, laws, config, ledger)

    summary.initiatives_processed = len(initiatives)
    summary.laws_processed = len(laws)
    summary.flows = len(flows)
    summary.finish(len(ledger))
    logger.info(
        "Processed %d/%d initiatives and %d/%d laws into %d flows (%d errors)",
        summary.initiatives_processed,
        summary.initiatives_in,
        summary.laws_processed,
        summary.laws_in,
        summary.flows,
        summary.errors,
    )
    logger.debug("Flow summary: %s", summarize_flows(flows))
    return FeedResult(initiatives, laws, flows, ledger, summary, graph, config)
