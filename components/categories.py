"""Processing-category classification for initiatives.

Assigns each record one of seven processing categories by evaluating an
ordered rule table over boolean signals computed from the normalized type,
processing mode, author and subject.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union

from components.models import Initiative
from components.utils import includes_any, normalize_text

logger = logging.getLogger(__name__)


class InitiativeCategory(str, Enum):
    """How an initiative is processed by the chamber."""

    ORDINARY = "ordinary"
    URGENT = "urgent"
    SPECIAL_REINFORCED_MAJORITY = "special-reinforced-majority"
    AUTONOMOUS_COMMUNITY = "autonomous-community"
    POPULAR_INITIATIVE = "popular-initiative"
    CONSTITUTIONAL_BODY = "constitutional-body"
    APPROVED_LAW = "approved-law"

    @property
    def feed_value(self) -> str:
        """The feed's processing-category value, exported as 'feed_category'."""
        return FEED_VALUES[self]


FEED_VALUES = {
    InitiativeCategory.ORDINARY: "tramitacion_ordinaria",
    InitiativeCategory.URGENT: "tramitacion_urgente",
    InitiativeCategory.SPECIAL_REINFORCED_MAJORITY: "tramitacion_especial_mayoria_reforzada",
    InitiativeCategory.AUTONOMOUS_COMMUNITY: "tramitacion_iniciativas_autonomicas",
    InitiativeCategory.POPULAR_INITIATIVE: "tramitacion_iniciativas_populares",
    InitiativeCategory.CONSTITUTIONAL_BODY: "tramitacion_organos_constitucionales",
    InitiativeCategory.APPROVED_LAW: "ley_aprobada",
}

BILL_TYPES = (
    "proyecto de ley",
    "proposicion de ley",
    "proposicion de ley de grupos parlamentarios del congreso",
)
DECREE_LAW_TERMS = ("decreto-ley", "decreto ley")
CONSTITUTIONAL_REFORM_TERMS = ("reforma constitucional", "reforma de la constitucion")
REGIONAL_CHAMBERS = ("parlamento", "asamblea", "cortes")
REGIONS = ("cataluna", "galicia", "andalucia", "cantabria", "canarias", "vasco")
POPULAR_AUTHOR_TERMS = ("popular", "ilp")
CONSTITUTIONAL_BODIES = (
    "defensor del pueblo",
    "cgpj",
    "consejo general del poder judicial",
    "organo consultivo",
    "organo constitucional",
    "tribunal constitucional",
    "consejo de estado",
    "parlamento europeo",
)


@dataclass(frozen=True)
class CategoryRule:
    """One row of the precedence table: all required signals -> category."""

    name: str
    required: tuple[str, ...]
    category: InitiativeCategory

    def applies(self, signals: Mapping[str, bool]) -> bool:
        """True when every required signal fires."""
        return all(signals[name] for name in self.required)


# Evaluated top to bottom; first match wins
CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule("ordinary_bill", ("is_bill", "mode_normal"), InitiativeCategory.ORDINARY),
    CategoryRule(
        "senate_proposal",
        ("author_senate", "type_proposicion_de_ley"),
        InitiativeCategory.ORDINARY,
    ),
    CategoryRule("urgent_bill", ("is_bill", "mode_urgent"), InitiativeCategory.URGENT),
    CategoryRule("decree_law", ("genuine_decree_law",), InitiativeCategory.URGENT),
    CategoryRule(
        "constitutional_reform",
        ("constitutional_reform",),
        InitiativeCategory.SPECIAL_REINFORCED_MAJORITY,
    ),
    CategoryRule(
        "regional_author", ("regional_author",), InitiativeCategory.AUTONOMOUS_COMMUNITY
    ),
    CategoryRule(
        "statute_reform", ("statute_reform",), InitiativeCategory.AUTONOMOUS_COMMUNITY
    ),
    CategoryRule(
        "popular_initiative", ("popular",), InitiativeCategory.POPULAR_INITIATIVE
    ),
    CategoryRule(
        "constitutional_body",
        ("constitutional_body",),
        InitiativeCategory.CONSTITUTIONAL_BODY,
    ),
    CategoryRule("approved_law", ("approved_law",), InitiativeCategory.APPROVED_LAW),
)
DEFAULT_CATEGORY = InitiativeCategory.ORDINARY


@dataclass(frozen=True)
class CategoryDecision:
    """A category with the rule and signals that produced it."""

    category: InitiativeCategory
    rule: str
    signals: dict[str, bool]


def compute_category_signals(fields: Mapping[str, Any]) -> dict[str, bool]:
    """Compute the boolean signals the category rules read.

    Args:
        fields: Mapping with type, processing_mode, author, subject and
            law_number keys (missing keys read as empty)
    """
    kind = normalize_text(fields.get("type"))
    mode = normalize_text(fields.get("processing_mode"))
    author = normalize_text(fields.get("author"))
    subject = normalize_text(fields.get("subject"))

    # Known gap: subjects that merely cite a decree-law while also naming a
    # "proyecto de ley" still count as genuine.
    genuine_decree_law = includes_any(kind, DECREE_LAW_TERMS) or (
        "proyecto de ley" in subject and includes_any(subject, DECREE_LAW_TERMS)
    )
    return {
        "is_bill": includes_any(kind, BILL_TYPES),
        "mode_normal": mode in ("", "normal"),
        "mode_urgent": mode == "urgente",
        "author_senate": "senado" in author,
        "type_proposicion_de_ley": "proposicion de ley" in kind,
        "genuine_decree_law": genuine_decree_law,
        "constitutional_reform": includes_any(
            f"{kind} {subject}", CONSTITUTIONAL_REFORM_TERMS
        ),
        "regional_author": "comunidad autonoma" in author
        or (includes_any(author, REGIONAL_CHAMBERS) and includes_any(author, REGIONS)),
        "statute_reform": "propuesta de reforma de estatuto de autonomia" in kind,
        "popular": includes_any(author, POPULAR_AUTHOR_TERMS)
        or "iniciativa legislativa popular" in f"{kind} {subject}",
        "constitutional_body": includes_any(author, CONSTITUTIONAL_BODIES),
        "approved_law": "leyes" in kind or bool(str(fields.get("law_number") or "").strip()),
    }


def _as_fields(source: Union[Initiative, Mapping[str, Any]]) -> Mapping[str, Any]:
    if not isinstance(source, Initiative):
        source = Initiative.from_record(source)
    return {
        "type": source.type,
        "processing_mode": source.processing_mode,
        "author": source.author,
        "subject": source.subject,
        "law_number": source.law_number,
    }


def classify_initiative_type_with_reason(
    source: Union[Initiative, Mapping[str, Any]],
) -> CategoryDecision:
    """Classify an initiative and report which rule decided it.

    Args:
        source: Initiative or raw record (snake_case or XML tag keys)

    Returns:
        CategoryDecision with the matched rule name ('default' if none)
    """
    signals = compute_category_signals(_as_fields(source))
    for rule in CATEGORY_RULES:
        if rule.applies(signals):
            return CategoryDecision(rule.category, rule.name, signals)
    return CategoryDecision(DEFAULT_CATEGORY, "default", signals)


def classify_initiative_type(
    source: Union[Initiative, Mapping[str, Any]],
) -> InitiativeCategory:
    """Classify an initiative into one of the seven processing categories."""
    decision = classify_initiative_type_with_reason(source)
    logger.debug("Category %s via rule %s", decision.category.value, decision.rule)
    return decision.category
