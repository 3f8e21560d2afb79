"""Test fixtures and enums for unit testing."""

from enum import Enum


class InitiativeType(str, Enum):
    """Common TIPO values seen in the feed."""

    PROPOSICION = "Proposición de ley de Grupos Parlamentarios del Congreso"
    PROYECTO = "Proyecto de ley"
    DECRETO_LEY = "Real Decreto-ley"
    REFORMA_ESTATUTO = "Propuesta de reforma de Estatuto de Autonomía"
    ILP = "Iniciativa legislativa popular"
    MOCION = "Moción consecuencia de interpelación urgente"


class Author(str, Enum):
    """Common AUTOR values for testing."""

    GOVERNMENT = "Gobierno"
    SOCIALIST_GROUP = "Grupo Parlamentario Socialista"
    SENATE = "Senado"
    CATALAN_PARLIAMENT = "Parlamento de Cataluña"
    OMBUDSMAN = "Defensor del Pueblo"
