"""Field extraction utilities for parsing narrative fragments.

Every extractor has the same call signature, (match, data), so nodes can
chain them; some arguments go unused.
"""

import re
from datetime import date
from typing import Any, Optional

from components.utils import parse_spanish_date

LABEL_TRIM_CHARS = " \t.,:;-"


def extract_start_date(match: re.Match, data: dict[str, Any]) -> Optional[date]:
    """Parse the opening date of a phrase such as 'desde 01/02/2024'.

    Args:
        match: Regex match object
        data: Dictionary of already-extracted data

    Returns:
        Parsed date, or None when absent or not a real calendar date
    """
    return parse_spanish_date(data.get("start"))


def extract_end_date(match: re.Match, data: dict[str, Any]) -> Optional[date]:
    """Parse the closing date of a phrase such as 'hasta 15/03/2024'."""
    return parse_spanish_date(data.get("end"))


def extract_label_prefix(match: re.Match, data: dict[str, Any]) -> Optional[str]:
    """Return the text in front of the date phrase, if any.

    'Comisión de Hacienda desde 01/02/2024' yields 'Comisión de Hacienda'.
    """
    prefix = match.string[: match.start()].strip(LABEL_TRIM_CHARS)
    return prefix or None
