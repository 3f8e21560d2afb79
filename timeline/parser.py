"""Main parsing logic for turning procedural narratives into timelines."""

import logging
import re
from typing import Any, Iterable, Optional

from timeline.models import (
    DEFAULT_EVENT_LABEL,
    DatePatternNode,
    ProceduralTimeline,
    TimelineEvent,
    dedupe_events,
    sort_events,
)
from timeline.nodes import DATE_NODES, create_date_nodes

logger = logging.getLogger(__name__)

DEFAULT_SEPARATORS = ("\r\n", "\n", ";")


def split_fragments(
    narrative: Any, separators: Iterable[str] = DEFAULT_SEPARATORS
) -> list[str]:
    """Split a narrative into trimmed, non-empty fragments.

    Args:
        narrative: Raw procedural narrative (non-strings yield [])
        separators: Literal separators, all treated alike

    Returns:
        Fragments in input order
    """
    if not isinstance(narrative, str) or not narrative:
        return []
    seps = sorted(set(separators), key=len, reverse=True)
    if not seps:
        return [narrative.strip()] if narrative.strip() else []
    splitter = re.compile("|".join(re.escape(s) for s in seps))
    return [piece.strip() for piece in splitter.split(narrative) if piece.strip()]


class TimelineExtractor:
    """Extracts ordered timeline events from procedural narrative text."""

    def __init__(
        self,
        date_nodes: Optional[list[DatePatternNode]] = None,
        separators: Iterable[str] = DEFAULT_SEPARATORS,
    ):
        """Initialize extractor.

        Args:
            date_nodes: DatePatternNode definitions (uses default if None)
            separators: Fragment separators
        """
        self.nodes = date_nodes or DATE_NODES
        # Sort by priority (lower = higher priority)
        self.nodes = sorted(self.nodes, key=lambda n: n.priority)
        self.separators = tuple(separators)

    @classmethod
    def from_config(cls, config) -> "TimelineExtractor":
        """Build an extractor from a Config.Timeline section."""
        return cls(create_date_nodes(config.patterns), config.separators)

    def extract_events(self, narrative: Any) -> list[TimelineEvent]:
        """Extract, deduplicate and sort the events of one narrative.

        Args:
            narrative: Raw procedural narrative

        Returns:
            Events ascending by start date, dateless ones last
        """
        events = []
        last_dateless: Optional[str] = None
        for fragment in split_fragments(narrative, self.separators):
            event = self._match_fragment(fragment, last_dateless)
            if event is None:
                event = TimelineEvent(label=fragment, description=fragment)
                last_dateless = fragment
            events.append(event)
        return sort_events(dedupe_events(events))

    def _match_fragment(
        self, fragment: str, last_dateless: Optional[str]
    ) -> Optional[TimelineEvent]:
        """Match one fragment against the nodes; first match wins.

        Args:
            fragment: Trimmed narrative fragment
            last_dateless: Most recent fragment that carried no date phrase

        Returns:
            A TimelineEvent, or None when no date phrase matches
        """
        for node in self.nodes:
            match = node.match(fragment)
            if not match:
                continue
            data = node.extract_data(match)
            label = data.get("prefix") or last_dateless or DEFAULT_EVENT_LABEL
            logger.debug("Fragment %r matched %s", fragment, node.name)
            return TimelineEvent(
                label=label,
                start=data.get("start_date"),
                end=data.get("end_date"),
                description=fragment,
            )
        return None


def extract_timeline(
    narrative: Any, extractor: Optional[TimelineExtractor] = None
) -> list[TimelineEvent]:
    """Extract the ordered event list for a narrative.

    This is the main entry point for timeline extraction. Calling it on
    the same text always yields the same list.
    """
    return (extractor or TimelineExtractor()).extract_events(narrative)


def build_timeline(
    narrative: Any,
    expediente: Optional[str] = None,
    extractor: Optional[TimelineExtractor] = None,
) -> ProceduralTimeline:
    """Extract a narrative straight into a queryable ProceduralTimeline."""
    return ProceduralTimeline(extract_timeline(narrative, extractor), expediente)
