"""Factory for creating test initiatives and laws."""

from itertools import count
from typing import Any, Optional

from components.models import ApprovedLaw, Initiative
from unit.fixtures import Author, InitiativeType

_sequence = count(1)


class InitiativeFactory:
    """Factory for creating feed records and initiatives."""

    @staticmethod
    def next_expediente(prefix: str = "122") -> str:
        """A fresh expediente such as '122/000001'."""
        return f"{prefix}/{next(_sequence):06d}"

    @staticmethod
    def create_record(
        expediente: Optional[str] = None,
        tipo: str = InitiativeType.PROPOSICION.value,
        objeto: str = "Proposición de Ley sobre la vivienda asequible",
        autor: str = Author.SOCIALIST_GROUP.value,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Create a raw feed record with upper-case XML tags."""
        record = {
            "NUMEXPEDIENTE": expediente or InitiativeFactory.next_expediente(),
            "TIPO": tipo,
            "OBJETO": objeto,
            "AUTOR": autor,
            "FECHAPRESENTACION": "10/01/2024",
            "FECHACALIFICACION": "16/01/2024",
            "TIPOTRAMITACION": "",
            "RESULTADOTRAMITACION": "",
            "SITUACIONACTUAL": "",
            "TRAMITACIONSEGUIDA": "",
            "COMISIONCOMPETENTE": "",
            "LEGISLATURA": "XV",
        }
        record.update(kwargs)
        return record

    @staticmethod
    def create_initiative(
        expediente: Optional[str] = None,
        subject: str = "Proposición de Ley sobre la vivienda asequible",
        **kwargs: Any,
    ) -> Initiative:
        """Create an Initiative directly (snake_case fields)."""
        defaults = {
            "type": InitiativeType.PROPOSICION.value,
            "author": Author.SOCIALIST_GROUP.value,
        }
        defaults.update(kwargs)
        return Initiative(
            expediente=expediente if expediente is not None
            else InitiativeFactory.next_expediente(),
            subject=subject,
            **defaults,
        )

    @staticmethod
    def create_law_record(
        numero: str = "7/2025",
        titulo: str = "Ley 7/2025, de 3 de marzo, de vivienda asequible.",
        fecha: str = "04/03/2025",
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Create a raw approved-law record."""
        record = {
            "TIPO": "Ley",
            "NUMERO_LEY": numero,
            "TITULO_LEY": titulo,
            "FECHA_LEY": fecha,
            "bulletin_number": "55",
            "pdf_url": "https://www.boe.es/boe/dias/2025/03/04/pdfs/BOE-A-2025-1.pdf",
        }
        record.update(kwargs)
        return record

    @staticmethod
    def create_law(**kwargs: Any) -> ApprovedLaw:
        """Create an ApprovedLaw from a default record."""
        return ApprovedLaw.from_record(InitiativeFactory.create_law_record(**kwargs))
