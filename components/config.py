"""Configuration with safe defaults, optionally loaded from config.yaml."""

from __future__ import annotations

from typing import Any, Optional

from yaml import safe_load

from components.errors import ConfigError
from components.similarity import ALGORITHMS
from timeline.nodes import DEFAULT_DATE_PATTERNS
from timeline.parser import DEFAULT_SEPARATORS

DEFAULT_INCLUDE_FIELDS = [
    "expediente",
    "type",
    "subject",
    "author",
    "presentation_date",
    "qualification_date",
    "timeline",
    "edges",
    "legislature",
    "status",
    "committee",
    "category",
    "classification",
]


class Config:
    """Provides an interface and safe defaults for config values.

    The core never reads the environment; whoever drives a run builds the
    Config (from a dict or a YAML file) and passes it in.
    """

    def __init__(self, config: Optional[dict[str, Any]] = None) -> None:
        self.config: dict[str, Any] = dict(config or {})

    @classmethod
    def from_yaml(cls, config_path: str) -> Config:
        """Load a YAML document; an empty file yields all defaults."""
        with open(config_path, "r", encoding="utf-8") as f:
            data = safe_load(f)
        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"{config_path} must hold a mapping at the top level")
        return cls(data)

    class Similarity:
        """Similarity matcher configuration."""

        def __init__(self, config: dict[str, Any]) -> None:
            self.similarity = config.get("similarity") or {}

        @property
        def algorithm(self) -> str:
            """Which scorer to use."""
            algorithm = str(self.similarity.get("algorithm", "levenshtein"))
            if algorithm not in ALGORITHMS:
                raise ConfigError(f"Unknown similarity algorithm: {algorithm}")
            return algorithm

        @property
        def threshold(self) -> float:
            """Minimum score for a similarity edge."""
            threshold = float(self.similarity.get("threshold", 0.6))
            if not 0.0 <= threshold <= 1.0:
                raise ConfigError(f"Similarity threshold out of range: {threshold}")
            return threshold

        @property
        def workers(self) -> int:
            """Threads used for the similarity matrix (-1 = all cores)."""
            return int(self.similarity.get("workers", 1))

    @property
    def similarity(self) -> Config.Similarity:
        """Similarity configuration."""
        return Config.Similarity(self.config)

    class Timeline:
        """Timeline extraction configuration."""

        def __init__(self, config: dict[str, Any]) -> None:
            self.timeline = config.get("timeline") or {}

        @property
        def patterns(self) -> dict[str, str]:
            """Date pattern name -> regex, in evaluation order."""
            return dict(self.timeline.get("patterns") or DEFAULT_DATE_PATTERNS)

        @property
        def separators(self) -> list[str]:
            """Fragment separators for the procedural narrative."""
            return list(self.timeline.get("separators") or DEFAULT_SEPARATORS)

    @property
    def timeline(self) -> Config.Timeline:
        """Timeline configuration."""
        return Config.Timeline(self.config)

    class Flows:
        """Legislative flow configuration."""

        def __init__(self, config: dict[str, Any]) -> None:
            self.flows = config.get("flows") or {}

        @property
        def sort_field(self) -> str:
            """Flow field used for ordering."""
            return str(self.flows.get("sort_field", "presentation_date"))

        @property
        def sort_descending(self) -> bool:
            """Whether to order newest first."""
            direction = str(self.flows.get("sort_direction", "desc")).lower()
            if direction not in ("asc", "desc"):
                raise ConfigError(f"Unknown sort direction: {direction}")
            return direction == "desc"

        @property
        def match_titles(self) -> bool:
            """Whether to match laws to initiatives by shared key terms."""
            return bool(self.flows.get("match_titles", False))

        @property
        def min_shared_terms(self) -> int:
            """Key terms a law title and a subject must share to match."""
            return int(self.flows.get("min_shared_terms", 2))

        @property
        def entry_into_force_days(self) -> int:
            """Default days from publication to entry into force."""
            return int(self.flows.get("entry_into_force_days", 20))

    @property
    def flows(self) -> Config.Flows:
        """Flow configuration."""
        return Config.Flows(self.config)

    class Export:
        """Record export configuration."""

        def __init__(self, config: dict[str, Any]) -> None:
            self.export = config.get("export") or {}

        @property
        def include_fields(self) -> list[str]:
            """Fields kept in exported initiative records."""
            return list(self.export.get("include_fields") or DEFAULT_INCLUDE_FIELDS)

    @property
    def export(self) -> Config.Export:
        """Export configuration."""
        return Config.Export(self.config)
