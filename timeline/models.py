"""Core data models for the timeline system."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Iterable, Iterator, Optional

DEFAULT_EVENT_LABEL = "Tramitación"


@dataclass(frozen=True)
class TimelineEvent:
    """A single dated (or undated) procedural milestone.

    Represents one fragment of an initiative's procedural narrative,
    parsed into structured data.
    """

    label: str
    start: Optional[date] = None
    end: Optional[date] = None
    description: str = ""
    source: str = "narrative"  # "narrative", "initiative" or "law"

    @property
    def key(self) -> tuple[str, Optional[date], Optional[date]]:
        """Composite key used for deduplication."""
        return (self.label, self.start, self.end)

    @property
    def is_dated(self) -> bool:
        """True when the event carries a start or an end date."""
        return self.start is not None or self.end is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict with ISO dates."""
        return {
            "label": self.label,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "description": self.description,
            "source": self.source,
        }

    def __str__(self) -> str:
        """Human-readable representation."""
        start = self.start.isoformat() if self.start else "?"
        end = self.end.isoformat() if self.end else "?"
        return f"{start}..{end} {self.label}"


@dataclass
class DatePatternNode:
    """Definition of one date pattern with its field extractors.

    Each node recognises one shape of date phrase in a narrative fragment
    (a full range, an opening date, a closing date) with:
    - One compiled regex whose named groups hold the raw dates
    - Named field extractors that turn the match into event fields
    - Priority for disambiguation when several patterns match
    """

    name: str
    pattern: re.Pattern
    extractors: dict[str, Callable] = field(default_factory=dict)
    priority: int = 100  # Lower = higher priority

    def match(self, fragment: str) -> Optional[re.Match]:
        """Try to match a fragment against this node's pattern.

        Args:
            fragment: One piece of narrative text

        Returns:
            Match object if successful, None otherwise
        """
        return self.pattern.search(fragment)

    def extract_data(self, match: re.Match) -> dict[str, Any]:
        """Extract structured data from a regex match.

        Args:
            match: Successful regex match object

        Returns:
            Dictionary of extracted field names to values
        """
        data: dict[str, Any] = {}
        data.update(match.groupdict())
        for field_name, extractor in self.extractors.items():
            try:
                data[field_name] = extractor(match, data)
            except Exception:  # pylint: disable=broad-exception-caught
                # A failing extractor leaves its field empty
                data[field_name] = None
        return data


def dedupe_events(events: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    """Drop events whose (label, start, end) key was already seen.

    The first occurrence wins; input order is otherwise preserved.
    """
    seen: set[tuple[str, Optional[date], Optional[date]]] = set()
    unique = []
    for event in events:
        if event.key in seen:
            continue
        seen.add(event.key)
        unique.append(event)
    return unique


def sort_events(events: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    """Sort ascending by start date with undated events last.

    sorted() is stable, so events sharing a start date, and all events
    without one, keep their relative input order.
    """
    return sorted(
        events,
        key=lambda e: (e.start is None, e.start or date.min),
    )


def merge_events(*groups: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    """Concatenate event groups, then dedupe and sort them."""
    combined: list[TimelineEvent] = []
    for group in groups:
        combined.extend(group)
    return sort_events(dedupe_events(combined))


class ProceduralTimeline:
    """Ordered timeline of events for one legislative item, with queries."""

    def __init__(
        self, events: Iterable[TimelineEvent], expediente: Optional[str] = None
    ) -> None:
        """Initialize timeline.

        Args:
            events: Events (will be deduplicated and sorted)
            expediente: Optional identifier for reference
        """
        self.events = merge_events(events)
        self.expediente = expediente

    @property
    def dated_events(self) -> list[TimelineEvent]:
        """Events with a start date."""
        return [e for e in self.events if e.start is not None]

    @property
    def undated_events(self) -> list[TimelineEvent]:
        """Events without a start date (always at the tail)."""
        return [e for e in self.events if e.start is None]

    @property
    def first_date(self) -> Optional[date]:
        """Earliest start date, or None."""
        dated = self.dated_events
        return dated[0].start if dated else None

    @property
    def last_date(self) -> Optional[date]:
        """Latest date mentioned by any event, start or end."""
        dates = [d for e in self.events for d in (e.start, e.end) if d]
        return max(dates) if dates else None

    def span_days(self) -> Optional[int]:
        """Days between the first and last known dates."""
        if self.first_date is None or self.last_date is None:
            return None
        return (self.last_date - self.first_date).days

    def get_events_in_range(self, start: date, end: date) -> list[TimelineEvent]:
        """Get events starting within a date range (inclusive)."""
        return [
            e for e in self.events if e.start is not None and start <= e.start <= end
        ]

    def get_events_by_label(self, text: str) -> list[TimelineEvent]:
        """Get events whose label contains the given text (case-insensitive)."""
        needle = text.lower()
        return [e for e in self.events if needle in e.label.lower()]

    def get_events_by_source(self, source: str) -> list[TimelineEvent]:
        """Get events produced by one source ("narrative", "law", ...)."""
        return [e for e in self.events if e.source == source]

    def to_list(self) -> list[dict[str, Any]]:
        """Plain dict representation of every event."""
        return [e.to_dict() for e in self.events]

    def __len__(self) -> int:
        """Number of events in timeline."""
        return len(self.events)

    def __iter__(self) -> Iterator[TimelineEvent]:
        """Iterate over events."""
        return iter(self.events)

    def __getitem__(self, index: int) -> TimelineEvent:
        """Get event by index."""
        return self.events[index]


__all__ = [
    "DEFAULT_EVENT_LABEL",
    "DatePatternNode",
    "ProceduralTimeline",
    "TimelineEvent",
    "dedupe_events",
    "merge_events",
    "sort_events",
]
