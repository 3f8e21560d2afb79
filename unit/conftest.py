"""Pytest configuration and shared fixtures."""

import pytest
from pathlib import Path

from components.config import Config
from unit.fixtures.initiative_factory import InitiativeFactory
from unit.fixtures.timeline_factory import TimelineFactory


@pytest.fixture
def initiative_factory():
    """Provide InitiativeFactory instance."""
    return InitiativeFactory()


@pytest.fixture
def timeline_factory():
    """Provide TimelineFactory instance."""
    return TimelineFactory()


@pytest.fixture
def default_config():
    """Config with every default."""
    return Config()


@pytest.fixture
def repo_config_path():
    """Path to the config.yaml shipped at the repository root."""
    return Path(__file__).parent.parent / "config.yaml"


@pytest.fixture
def end_to_end_record(initiative_factory):
    """The reference record: a plain proposición that ended approved."""
    return initiative_factory.create_record(
        expediente="122/000045",
        tipo="Proposición de Ley",
        objeto="Proposición de Ley de medidas urgentes en materia de vivienda",
        autor="Grupo Parlamentario Socialista",
        TIPOTRAMITACION="",
        TRAMITACIONSEGUIDA="desde 01/02/2024 hasta 15/03/2024; Aprobado en Pleno",
    )
