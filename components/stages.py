"""Canonical procedural stage classification.

Turns the noisy status fields of an initiative into one of nine canonical
stages plus a step index (1 presentation, 2 debate, 3 committee,
4 approval, 5 publication). Signals are keyword stems searched in
accent-free, lower-cased text; the first rule whose signal fires wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Union

from components.models import Initiative
from components.utils import includes_any, parse_spanish_date
from timeline.parser import split_fragments

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Canonical stage of an initiative."""

    PROPOSED = "proposed"
    DEBATING = "debating"
    COMMITTEE = "committee"
    VOTING = "voting"
    PASSED = "passed"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    CLOSED = "closed"
    PUBLISHED = "published"


# Keyword stems, already accent-free and lower-case
APPROVED_STEMS = ("aprob",)
REJECTED_STEMS = ("rechaz",)
WITHDRAWN_STEMS = ("retirad",)
PUBLICATION_TEXT_STEMS = ("boe", "publicacion", "entrada en vigor")
VOTING_STEMS = ("votacion", "voto", "aprobacion", "senado")
COMMITTEE_STEMS = ("comision", "ponencia", "dictamen", "enmiendas parciales")
DEBATE_STEMS = ("totalidad", "debate en el pleno", "toma en consideracion", "pleno")
CLOSED_STEMS = ("cerrado",)


@dataclass(frozen=True)
class ClassificationResult:
    """Stage, step and the diagnostic reason behind them."""

    stage: Stage
    step: int
    reason: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict."""
        return {"stage": self.stage.value, "step": self.step, "reason": self.reason}


@dataclass(frozen=True)
class StageRule:
    """One row of the precedence table: if signal fires, yield stage/step."""

    name: str
    signal: str
    stage: Stage
    step: int


# Evaluated top to bottom; first match wins
STAGE_RULES: tuple[StageRule, ...] = (
    StageRule("approved", "has_approved", Stage.PASSED, 4),
    StageRule("rejected", "has_rejected", Stage.REJECTED, 2),
    StageRule("withdrawn", "has_withdrawn", Stage.WITHDRAWN, 1),
    StageRule("published", "has_verified_publication", Stage.PUBLISHED, 5),
    StageRule("voting", "has_voting", Stage.VOTING, 4),
    StageRule("committee", "has_committee", Stage.COMMITTEE, 3),
    StageRule("debate", "has_debate", Stage.DEBATING, 2),
    StageRule("closed", "is_closed", Stage.CLOSED, 1),
)
DEFAULT_STAGE = (Stage.PROPOSED, 1)


def result_text(initiative: Initiative) -> tuple[str, str]:
    """Return the text the terminal signals look at, and where it came from.

    The result field wins. When it is empty, the last fragment of the
    procedural narrative stands in, since the feed often records the
    outcome there ('...; Aprobado en Pleno').
    """
    if initiative.result.strip():
        return initiative.result, "result"
    fragments = split_fragments(initiative.narrative)
    if fragments:
        return fragments[-1], "narrative"
    return "", "none"


def compute_signals(initiative: Initiative) -> tuple[dict[str, bool], str]:
    """Compute every stage signal for an initiative.

    Returns:
        (signal map, result source)
    """
    result, source = result_text(initiative)
    combined = " ".join((
        initiative.result,
        initiative.status,
        initiative.narrative,
        initiative.committee,
        initiative.external_links,
    ))
    signals = {
        "has_approved": includes_any(result, APPROVED_STEMS),
        "has_rejected": includes_any(result, REJECTED_STEMS),
        "has_withdrawn": includes_any(result, WITHDRAWN_STEMS),
        # Recorded for diagnostics only; no rule reads it
        "has_publication_text": includes_any(combined, PUBLICATION_TEXT_STEMS),
        "has_verified_publication": bool(initiative.boe_id or initiative.boe_url),
        "has_voting": includes_any(combined, VOTING_STEMS),
        "has_committee": includes_any(combined, COMMITTEE_STEMS),
        "has_debate": includes_any(combined, DEBATE_STEMS),
        "is_closed": includes_any(initiative.status, CLOSED_STEMS),
    }
    return signals, source


def classify_stage(
    initiative: Union[Initiative, Mapping[str, Any]],
) -> ClassificationResult:
    """Classify an initiative into its canonical stage.

    Never raises on missing fields; they read as empty text.

    Args:
        initiative: Initiative or raw feed record

    Returns:
        ClassificationResult whose reason holds the full signal map, the
        winning rule name ('default' if none) and the result source
    """
    if not isinstance(initiative, Initiative):
        initiative = Initiative.from_record(initiative)
    signals, source = compute_signals(initiative)
    reason: dict[str, Any] = {"signals": signals, "result_source": source}
    for rule in STAGE_RULES:
        if signals[rule.signal]:
            logger.debug(
                "%s: stage %s via rule %s",
                initiative.expediente or "<no expediente>",
                rule.stage.value,
                rule.name,
            )
            return ClassificationResult(rule.stage, rule.step, {**reason, "rule": rule.name})
    stage, step = DEFAULT_STAGE
    return ClassificationResult(stage, step, {**reason, "rule": "default"})


def pick_latest_stage(
    pairs: Iterable[tuple[Optional[Union[date, str]], ClassificationResult]],
) -> ClassificationResult:
    """Pick the classification with the latest date.

    Missing or unparseable dates sort as the earliest; ties keep input
    order, so the last of them wins.

    Args:
        pairs: (date, ClassificationResult) pairs

    Returns:
        The latest result, or proposed/1 with {"empty": True} for no input
    """
    ordered = sorted(
        pairs,
        key=lambda pair: parse_spanish_date(pair[0]) or date.min,
    )
    if not ordered:
        stage, step = DEFAULT_STAGE
        return ClassificationResult(stage, step, {"empty": True})
    return ordered[-1][1]
