"""Factory for creating test narratives and events."""

from datetime import date
from typing import Optional

from timeline.models import TimelineEvent


class TimelineFactory:
    """Factory for creating procedural narratives and timeline events."""

    @staticmethod
    def create_event(
        label: str = "Tramitación",
        start: Optional[date] = None,
        end: Optional[date] = None,
        description: str = "",
        source: str = "narrative",
    ) -> TimelineEvent:
        """Create a single TimelineEvent."""
        return TimelineEvent(label, start, end, description or label, source)

    @staticmethod
    def create_narrative(*fragments: str, separator: str = "\n") -> str:
        """Join fragments the way the feed does."""
        return separator.join(fragments)

    @staticmethod
    def create_standard_narrative() -> str:
        """A typical bill path: qualification, amendments, committee, plenary."""
        return TimelineFactory.create_narrative(
            "Calificación desde 16/01/2024 hasta 16/01/2024",
            "Comisión de Vivienda y Agenda Urbana",
            "Ampliación de enmiendas desde 20/02/2024 hasta 05/03/2024",
            "Pleno desde 10/04/2024",
            "Aprobado con modificaciones",
        )
