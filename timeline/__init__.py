"""Timeline extraction for parliamentary procedural narratives.

This package turns the free-text 'tramitación seguida' of an initiative
into a deduplicated, chronologically ordered list of events.

Main components:
- models: Core data structures (TimelineEvent, ProceduralTimeline)
- parser: Fragment splitting and event extraction
- extractors: Field extraction utilities (dates, labels)
- nodes: Date pattern definitions
"""

from timeline.models import (
    DatePatternNode,
    ProceduralTimeline,
    TimelineEvent,
    merge_events,
)
from timeline.parser import TimelineExtractor, build_timeline, extract_timeline

__all__ = [
    "DatePatternNode",
    "ProceduralTimeline",
    "TimelineEvent",
    "TimelineExtractor",
    "build_timeline",
    "extract_timeline",
    "merge_events",
]

__version__ = "0.1.0"
