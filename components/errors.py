"""Exception types raised by the legislative history core."""


class LegislativeHistoryError(Exception):
    """Base class for all errors raised by the core."""


class FeedShapeError(LegislativeHistoryError, TypeError):
    """The parser handed us something that is not a batch of records.

    Raised at the entry point so a malformed feed fails fast instead of
    being classified as if it were data.
    """


class ConfigError(LegislativeHistoryError, ValueError):
    """A configuration value is outside its allowed domain."""
