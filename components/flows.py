"""Legislative flows: initiatives joined to the laws they became.

Every approved law produces one flow. When an unclaimed initiative can be
matched to it, the initiative's events and milestones are merged into the
law's flow; every initiative left over becomes a standalone flow. With N
initiatives, M laws and K matches, a run yields N + M - K flows.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Optional, Sequence

from components.auditing import ErrorLedger, record_context
from components.config import Config
from components.errors import ConfigError
from components.models import ApprovedLaw, Initiative
from components.relationships import build_index
from components.stages import Stage, classify_stage
from components.utils import expedientes_in_text, extract_key_terms, normalize_text
from timeline.models import TimelineEvent, merge_events

logger = logging.getLogger(__name__)

SORT_FIELDS = ("presentation_date", "publication_date", "last_event_date")
UNCLASSIFIED = "unclassified"  # status and phase of a flow that failed to build


@dataclass
class LegislativeFlow:
    """One legislative item's full journey."""

    key: str  # law_id, expediente, or "unkeyed-<n>"
    kind: str  # "law" or "initiative"
    final_status: str
    phase: str
    events: list[TimelineEvent] = field(default_factory=list)
    initiative: Optional[Initiative] = None
    law: Optional[ApprovedLaw] = None
    stage: Optional[Stage] = None
    matched_by: Optional[str] = None

    @property
    def presentation_date(self) -> Optional[date]:
        return self.initiative.presentation_date if self.initiative else None

    @property
    def publication_date(self) -> Optional[date]:
        return self.law.publication_date if self.law else None

    @property
    def last_event_date(self) -> Optional[date]:
        dates = [d for e in self.events for d in (e.start, e.end) if d]
        return max(dates) if dates else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict."""
        return {
            "key": self.key,
            "kind": self.kind,
            "final_status": self.final_status,
            "phase": self.phase,
            "stage": self.stage.value if self.stage else None,
            "matched_by": self.matched_by,
            "expediente": self.initiative.expediente if self.initiative else None,
            "law": self.law.to_dict() if self.law else None,
            "events": [event.to_dict() for event in self.events],
        }


def initiative_milestones(initiative: Initiative) -> list[TimelineEvent]:
    """Presentation and qualification events of an initiative."""
    events = []
    if initiative.presentation_date:
        author = f" por {initiative.author}" if initiative.author else ""
        events.append(TimelineEvent(
            label="Presentación",
            start=initiative.presentation_date,
            description=f"{initiative.type or 'Iniciativa'} presentada{author}",
            source="initiative",
        ))
    if initiative.qualification_date:
        events.append(TimelineEvent(
            label="Calificación",
            start=initiative.qualification_date,
            description="Calificada y admitida a trámite por la Mesa del Congreso",
            source="initiative",
        ))
    return events


def law_milestones(law: ApprovedLaw, entry_into_force_days: int = 20) -> list[TimelineEvent]:
    """Royal sanction, BOE publication and entry into force of a law.

    Sanction is taken as the day before publication; entry into force as
    entry_into_force_days after it. No publication date, no milestones;
    a derived milestone that would fall outside the calendar is left out.
    """
    published = law.publication_date
    if published is None:
        return []
    number = f"{law.law_number}/{law.year}" if law.year else law.law_number
    events = []
    sanctioned = _shift(published, -1)
    if sanctioned:
        events.append(TimelineEvent(
            label="Sanción real",
            start=sanctioned,
            description="Sanción por Su Majestad el Rey",
            source="law",
        ))
    events.append(TimelineEvent(
        label="Publicación en el BOE",
        start=published,
        description=f"{law.type} {number} publicada en el BOE",
        source="law",
    ))
    in_force = _shift(published, entry_into_force_days)
    if in_force:
        events.append(TimelineEvent(
            label="Entrada en vigor",
            start=in_force,
            description=f"Entrada en vigor a los {entry_into_force_days} días de su publicación",
            source="law",
        ))
    return events


def _shift(day: date, days: int) -> Optional[date]:
    try:
        return day + timedelta(days=days)
    except OverflowError:
        logger.debug("Milestone %+d days from %s is out of range", days, day)
        return None


def legislative_phase(initiative: Initiative) -> str:
    """Coarse phase of an initiative that has no law yet."""
    if initiative.qualification_date is None:
        return "presentacion"
    status = normalize_text(initiative.status)
    if "pleno" in status:
        return "debate"
    if "comision" in status:
        return "trabajo"
    if "senado" in status:
        return "aprobacion"
    return "trabajo"


class FlowLinker:
    """Matches approved laws to initiatives and assembles the flows."""

    def __init__(
        self,
        initiatives: Sequence[Initiative],
        config: Optional[Config] = None,
        ledger: Optional[ErrorLedger] = None,
    ):
        self.initiatives = list(initiatives)
        self.config = (config or Config()).flows
        self.ledger = ledger if ledger is not None else ErrorLedger()
        self.index = build_index(self.initiatives)
        self.claimed: set[int] = set()
        self._terms: dict[int, set[str]] = {}

    def _available(self, expediente: str) -> Optional[Initiative]:
        initiative = self.index.get(expediente)
        if initiative is None or id(initiative) in self.claimed:
            return None
        return initiative

    def _key_terms(self, initiative: Initiative) -> set[str]:
        if id(initiative) not in self._terms:
            self._terms[id(initiative)] = set(extract_key_terms(initiative.subject))
        return self._terms[id(initiative)]

    def match(self, law: ApprovedLaw) -> tuple[Optional[Initiative], Optional[str]]:
        """Find the unclaimed initiative a law came from.

        Tried in order: the law's expediente, its reference tokens, an
        expediente embedded in its title, then (when enabled) shared key
        terms between title and subject.

        Returns:
            (initiative, how it matched), or (None, None)
        """
        if law.expediente and self._available(law.expediente):
            return self._available(law.expediente), "expediente"
        for token in law.references:
            if self._available(token):
                return self._available(token), "reference"
        for token in expedientes_in_text(law.title):
            if self._available(token):
                return self._available(token), "title_expediente"
        if self.config.match_titles:
            law_terms = set(extract_key_terms(law.title))
            for initiative in self.initiatives:
                if id(initiative) in self.claimed:
                    continue
                shared = law_terms & self._key_terms(initiative)
                if len(shared) >= self.config.min_shared_terms:
                    return initiative, "key_terms"
        return None, None

    def law_flow(self, law: ApprovedLaw, position: int = 0) -> LegislativeFlow:
        """Build the flow of one law, claiming its initiative if found.

        The initiative is only claimed once the flow is complete, so a
        failure leaves it free to become a standalone flow.
        """
        initiative, matched_by = self.match(law)
        events = law_milestones(law, self.config.entry_into_force_days)
        if initiative is not None:
            events = merge_events(
                initiative.timeline, initiative_milestones(initiative), events
            )
        else:
            events = merge_events(events)
        flow = LegislativeFlow(
            key=law_key(law, position),
            kind="law",
            final_status=law.final_status,
            phase="completed",
            events=events,
            initiative=initiative,
            law=law,
            stage=Stage.PUBLISHED,
            matched_by=matched_by,
        )
        if initiative is not None:
            self.claimed.add(id(initiative))
            logger.debug("%s matched %s by %s", flow.key, initiative.expediente, matched_by)
        return flow

    def initiative_flow(self, initiative: Initiative, position: int) -> LegislativeFlow:
        """Build the standalone flow of an initiative with no law."""
        classification = initiative.classification or classify_stage(initiative)
        return LegislativeFlow(
            key=initiative_key(initiative, position),
            kind="initiative",
            final_status=classification.stage.value,
            phase=legislative_phase(initiative),
            events=merge_events(initiative.timeline, initiative_milestones(initiative)),
            initiative=initiative,
            stage=classification.stage,
        )

    def build(self, approved_laws: Iterable[ApprovedLaw]) -> list[LegislativeFlow]:
        """All flows: laws in input order, then leftover initiatives.

        An item whose flow fails is recorded in the ledger and still gets
        a bare flow (no events), so every item appears exactly once.
        """
        flows = []
        for position, law in enumerate(approved_laws):
            with record_context(
                self.ledger, "flows", position, law.expediente or law.law_id
            ) as scope:
                flow = self.law_flow(law, position)
            if scope.failed:
                flow = LegislativeFlow(
                    key=law_key(law, position),
                    kind="law",
                    final_status=law.final_status,
                    phase="completed",
                    law=law,
                    stage=Stage.PUBLISHED,
                )
            flows.append(flow)
        for position, initiative in enumerate(self.initiatives):
            if id(initiative) in self.claimed:
                continue
            with record_context(
                self.ledger, "flows", position, initiative.expediente
            ) as scope:
                flow = self.initiative_flow(initiative, position)
            if scope.failed:
                flow = LegislativeFlow(
                    key=initiative_key(initiative, position),
                    kind="initiative",
                    final_status=UNCLASSIFIED,
                    phase=UNCLASSIFIED,
                    initiative=initiative,
                )
            flows.append(flow)
        return flows


def law_key(law: ApprovedLaw, position: int) -> str:
    """Flow key of a law; 'unkeyed-law-<n>' when it has no identifier."""
    return law.law_id or f"unkeyed-law-{position}"


def initiative_key(initiative: Initiative, position: int) -> str:
    """Flow key of an initiative; 'unkeyed-<n>' without an expediente."""
    return initiative.expediente or f"unkeyed-{position}"


def check_sort_field(sort_field: str) -> str:
    """Raise ConfigError unless flows can be ordered by sort_field."""
    if sort_field not in SORT_FIELDS:
        raise ConfigError(f"Cannot sort flows by {sort_field!r}")
    return sort_field


def sort_flows(
    flows: Iterable[LegislativeFlow],
    sort_field: str = "presentation_date",
    descending: bool = True,
) -> list[LegislativeFlow]:
    """Order flows by a date field; flows without one go last, in input order."""
    check_sort_field(sort_field)
    flows = list(flows)
    dated = [f for f in flows if getattr(f, sort_field) is not None]
    undated = [f for f in flows if getattr(f, sort_field) is None]
    dated.sort(key=lambda f: getattr(f, sort_field), reverse=descending)
    return dated + undated


def build_flows(
    initiatives: Sequence[Initiative],
    approved_laws: Iterable[ApprovedLaw],
    config: Optional[Config] = None,
    ledger: Optional[ErrorLedger] = None,
) -> list[LegislativeFlow]:
    """Link laws to initiatives and return the ordered flows.

    Args:
        initiatives: Processed initiatives (timelines already applied)
        approved_laws: Approved laws, matched in input order
        config: Run configuration (defaults if None)
        ledger: Where failing items are recorded (a fresh one if None)

    Returns:
        One flow per law plus one per unmatched initiative
    """
    config = config or Config()
    linker = FlowLinker(initiatives, config, ledger)
    flows = linker.build(approved_laws)
    logger.info(
        "Built %d flows (%d laws matched to initiatives)",
        len(flows),
        len(linker.claimed),
    )
    return sort_flows(flows, config.flows.sort_field, config.flows.sort_descending)


def summarize_flows(flows: Iterable[LegislativeFlow]) -> dict[str, Any]:
    """Counts by kind, status and phase."""
    flows = list(flows)
    return {
        "total_flows": len(flows),
        "law_flows": sum(1 for f in flows if f.kind == "law"),
        "initiative_flows": sum(1 for f in flows if f.kind == "initiative"),
        "matched_laws": sum(1 for f in flows if f.kind == "law" and f.initiative),
        "by_status": dict(Counter(f.final_status for f in flows)),
        "by_phase": dict(Counter(f.phase for f in flows)),
    }
