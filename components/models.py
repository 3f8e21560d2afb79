"""Data models for the Congreso de los Diputados open-data feed."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, TYPE_CHECKING

from components.utils import (
    as_text,
    expedientes_in_text,
    normalize_text,
    parse_spanish_date,
    split_tokens,
)
from timeline.models import TimelineEvent

if TYPE_CHECKING:
    from components.categories import InitiativeCategory
    from components.stages import ClassificationResult

LAW_NUMBER_RE = re.compile(r"(\d+)\s*/\s*(\d{4})")

# Attribute name -> accepted record keys, snake_case first, then XML tags
INITIATIVE_FIELDS: dict[str, tuple[str, ...]] = {
    "expediente": ("expediente", "NUMEXPEDIENTE"),
    "type": ("type", "TIPO"),
    "subject": ("subject", "OBJETO"),
    "author": ("author", "AUTOR"),
    "presentation_date": ("presentation_date", "FECHAPRESENTACION"),
    "qualification_date": ("qualification_date", "FECHACALIFICACION"),
    "processing_mode": ("processing_mode", "TIPOTRAMITACION"),
    "result": ("result", "RESULTADOTRAMITACION"),
    "status": ("status", "SITUACIONACTUAL"),
    "narrative": ("narrative", "TRAMITACIONSEGUIDA"),
    "committee": ("committee", "COMISIONCOMPETENTE"),
    "legislature": ("legislature", "LEGISLATURA"),
    "related": ("related", "INICIATIVASRELACIONADAS"),
    "origin": ("origin", "INICIATIVASDEORIGEN"),
    "bocg_links": ("bocg_links", "ENLACESBOCG"),
    "ds_links": ("ds_links", "ENLACESDS"),
    "law_number": ("law_number", "NUMERO_LEY"),
    "boe_id": ("boe_id", "BOE_ID"),
    "boe_url": ("boe_url", "URL_BOE"),
}

LAW_FIELDS: dict[str, tuple[str, ...]] = {
    "type": ("type", "law_type", "TIPO_LEY"),
    "law_number": ("law_number", "NUMERO_LEY"),
    "year": ("year", "ANIO"),
    "title": ("title", "TITULO_LEY", "titulo"),
    "publication_date": ("publication_date", "boe_date", "FECHA_LEY"),
    "bulletin_number": ("bulletin_number", "boe_issue_number"),
    "pdf_url": ("pdf_url", "url_boe", "URL_BOE"),
    "expediente": ("expediente", "NUMEXPEDIENTE"),
    "references": ("references", "INICIATIVAS"),
}


def _pick(record: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """Return the first present, non-None value among keys."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


class EdgeKind(str, Enum):
    """How two initiatives are connected."""

    DIRECT = "direct"
    SIMILARITY = "similarity"


@dataclass(frozen=True)
class RelationshipEdge:
    """A directed edge between two initiatives."""

    source: str
    target: str
    kind: EdgeKind
    label: str = ""
    weight: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict."""
        return {
            "source": self.source,
            "target": self.target,
            "kind": self.kind.value,
            "label": self.label,
            "weight": self.weight,
        }


@dataclass
class Initiative:
    """A parliamentary initiative as delivered by the open-data feed.

    Raw fields are filled once by from_record; the derived fields
    (category, classification, timeline, edges) only change through the
    apply_* methods, each of which touches its own field alone.
    """

    expediente: str = ""  # e.g. "122/000045"
    type: str = ""  # "Proposición de ley", "Proyecto de ley", ...
    subject: str = ""
    author: str = ""
    presentation_date: Optional[date] = None
    qualification_date: Optional[date] = None
    processing_mode: str = ""  # "Normal", "Urgente", ...
    result: str = ""
    status: str = ""  # current situation
    narrative: str = ""  # tramitación seguida
    committee: str = ""
    legislature: str = ""
    bocg_links: str = ""
    ds_links: str = ""
    law_number: str = ""
    boe_id: str = ""
    boe_url: str = ""
    related: list[str] = field(default_factory=list)
    origin: list[str] = field(default_factory=list)
    raw_presentation_date: str = field(default="", repr=False)
    raw_qualification_date: str = field(default="", repr=False)

    category: Optional[InitiativeCategory] = None
    classification: Optional[ClassificationResult] = None
    timeline: list[TimelineEvent] = field(default_factory=list)
    edges: list[RelationshipEdge] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Initiative":
        """Build an initiative from a parsed feed record.

        Args:
            record: Mapping with snake_case keys or upper-case XML tags

        Returns:
            Initiative with missing text fields as '' and bad dates as None
        """
        values = {
            name: _pick(record, keys) for name, keys in INITIATIVE_FIELDS.items()
        }
        raw_presentation = as_text(values.pop("presentation_date")).strip()
        raw_qualification = as_text(values.pop("qualification_date")).strip()
        related = split_tokens(values.pop("related"))
        origin = split_tokens(values.pop("origin"))
        text_fields = {name: as_text(value).strip() for name, value in values.items()}
        return cls(
            presentation_date=parse_spanish_date(raw_presentation),
            qualification_date=parse_spanish_date(raw_qualification),
            raw_presentation_date=raw_presentation,
            raw_qualification_date=raw_qualification,
            related=related,
            origin=origin,
            **text_fields,
        )

    @property
    def external_links(self) -> str:
        """BOCG and DS link text joined together."""
        return " ".join(part for part in (self.bocg_links, self.ds_links) if part)

    @property
    def group(self) -> str:
        """Coarse display group derived from the initiative type."""
        kind = normalize_text(self.type)
        for needle, group in (
            ("proyecto", "proyecto"),
            ("proposicion", "proposicion"),
            ("iniciativa", "iniciativa"),
            ("enmienda", "enmienda"),
            ("ley", "ley"),
        ):
            if needle in kind:
                return group
        return "otro"

    def is_valid(self) -> bool:
        """Whether the record can be persisted (it has an expediente)."""
        return bool(self.expediente)

    def has_valid_dates(self) -> bool:
        """True when every non-empty raw date parsed."""
        if self.raw_presentation_date and self.presentation_date is None:
            return False
        if self.raw_qualification_date and self.qualification_date is None:
            return False
        return True

    def apply_category(self, category: InitiativeCategory) -> None:
        self.category = category

    def apply_classification(self, classification: ClassificationResult) -> None:
        self.classification = classification

    def apply_timeline(self, events: Iterable[TimelineEvent]) -> None:
        self.timeline = list(events)

    def apply_edges(self, edges: Iterable[RelationshipEdge]) -> None:
        self.edges = list(edges)

    def to_record(self, include_fields: Optional[Iterable[str]] = None) -> dict:
        """Export a plain dict, optionally restricted to include_fields."""
        record = {
            "expediente": self.expediente,
            "type": self.type,
            "subject": self.subject,
            "author": self.author,
            "presentation_date": _iso(self.presentation_date),
            "qualification_date": _iso(self.qualification_date),
            "processing_mode": self.processing_mode,
            "result": self.result,
            "status": self.status,
            "committee": self.committee,
            "legislature": self.legislature,
            "law_number": self.law_number,
            "related": list(self.related),
            "origin": list(self.origin),
            "group": self.group,
            "category": self.category.value if self.category else None,
            "feed_category": self.category.feed_value if self.category else None,
            "classification": (
                self.classification.to_dict() if self.classification else None
            ),
            "timeline": [event.to_dict() for event in self.timeline],
            "edges": [edge.to_dict() for edge in self.edges],
        }
        if include_fields is None:
            return record
        return {name: record.get(name) for name in include_fields}


@dataclass(frozen=True)
class ApprovedLaw:
    """A law published after passing through parliament."""

    law_number: str  # "7" for "Ley 7/2025"
    year: Optional[int]
    title: str
    type: str = "Ley"
    final_status: str = "approved"
    publication_date: Optional[date] = None
    bulletin_number: str = ""
    pdf_url: str = ""
    expediente: str = ""
    references: tuple[str, ...] = ()

    @property
    def law_id(self) -> Optional[str]:
        """Stable identifier such as 'law_2025_7'.

        Without a number and year, falls back to 'law_<expediente>'; None
        when the law has neither.
        """
        if self.year is not None and self.law_number:
            return f"law_{self.year}_{self.law_number}"
        if self.expediente:
            return f"law_{self.expediente}"
        return None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ApprovedLaw":
        """Build an approved law from a parsed record.

        The year and number come from 'N/YYYY' in the law number field or,
        failing that, from the title ('Ley 7/2025, de ...'). The expediente
        falls back to one embedded in the title as '(NNN/NNNNNN)'.
        """
        values = {name: _pick(record, keys) for name, keys in LAW_FIELDS.items()}
        title = as_text(values["title"]).strip()
        raw_number = as_text(values["law_number"]).strip()
        number, year = raw_number, None
        match = LAW_NUMBER_RE.search(raw_number) or LAW_NUMBER_RE.search(title)
        if match:
            if not raw_number or LAW_NUMBER_RE.search(raw_number):
                number = match.group(1)
            year = int(match.group(2))
        if values["year"] not in (None, ""):
            try:
                year = int(values["year"])
            except (TypeError, ValueError):
                pass
        expediente = as_text(values["expediente"]).strip()
        if not expediente:
            embedded = expedientes_in_text(title)
            expediente = embedded[0] if embedded else ""
        return cls(
            law_number=number,
            year=year,
            title=title,
            type=as_text(values["type"]).strip() or "Ley",
            publication_date=parse_spanish_date(values["publication_date"]),
            bulletin_number=as_text(values["bulletin_number"]).strip(),
            pdf_url=as_text(values["pdf_url"]).strip(),
            expediente=expediente,
            references=tuple(split_tokens(values["references"])),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict."""
        return {
            "law_id": self.law_id,
            "type": self.type,
            "law_number": self.law_number,
            "year": self.year,
            "title": self.title,
            "final_status": self.final_status,
            "publication_date": _iso(self.publication_date),
            "bulletin_number": self.bulletin_number,
            "pdf_url": self.pdf_url,
            "expediente": self.expediente,
        }


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None
