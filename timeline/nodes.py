"""Date pattern node definitions for procedural narratives.

This module defines the recognised date phrases ('desde X hasta Y',
'desde X', 'hasta Y') and the extractors that turn them into event fields.
"""

import re
from typing import List, Mapping, Optional

from timeline.models import DatePatternNode
from timeline.extractors import (
    extract_end_date,
    extract_label_prefix,
    extract_start_date,
)

DATE = r"\d{1,2}/\d{1,2}/\d{4}"

# Evaluated in this order; the first pattern that matches a fragment wins
DEFAULT_DATE_PATTERNS: dict[str, str] = {
    "full_range": rf"desde\s+(?P<start>{DATE})\s+hasta\s+(?P<end>{DATE})",
    "start_only": rf"desde\s+(?P<start>{DATE})",
    "end_only": rf"hasta\s+(?P<end>{DATE})",
}


def create_date_nodes(
    patterns: Optional[Mapping[str, str]] = None,
) -> List[DatePatternNode]:
    """Create the date pattern nodes.

    Args:
        patterns: Name -> regex mapping, in evaluation order. Regexes use
            the named groups ``start`` and/or ``end``. Defaults to
            DEFAULT_DATE_PATTERNS.

    Returns:
        List of DatePatternNode objects, priority following mapping order
    """
    nodes = []
    for position, (name, regex) in enumerate(
        (patterns or DEFAULT_DATE_PATTERNS).items()
    ):
        nodes.append(DatePatternNode(
            name=name,
            pattern=re.compile(regex, re.I),
            extractors={
                "start_date": extract_start_date,
                "end_date": extract_end_date,
                "prefix": extract_label_prefix,
            },
            priority=(position + 1) * 10,
        ))
    return nodes


# Default node registry
DATE_NODES = create_date_nodes()
