"""Test the feed pipeline end to end."""

import logging
from datetime import date

import pytest

from components.categories import InitiativeCategory
from components.config import Config
from components.errors import ConfigError, FeedShapeError
from components.models import EdgeKind
from components.pipeline import process_feed
from components.stages import Stage


class TestEndToEnd:
    """Test the reference scenario."""

    def test_reference_record(self, end_to_end_record):
        result = process_feed([end_to_end_record])
        (initiative,) = result.initiatives
        assert initiative.category == InitiativeCategory.ORDINARY
        assert (initiative.classification.stage, initiative.classification.step) == (
            Stage.PASSED,
            4,
        )
        dated = [e for e in initiative.timeline if e.start or e.end]
        assert len(dated) == 1
        assert (dated[0].start, dated[0].end) == (date(2024, 2, 1), date(2024, 3, 15))
        assert initiative.timeline[-1].label == "Aprobado en Pleno"

    def test_records_follow_export_fields(self, end_to_end_record):
        result = process_feed([end_to_end_record])
        (record,) = result.to_records()
        assert list(record) == Config().export.include_fields
        assert record["category"] == "ordinary"
        assert record["classification"]["stage"] == "passed"
        assert record["timeline"][0]["start"] == "2024-02-01"

    def test_custom_export_fields(self, end_to_end_record):
        config = Config({"export": {"include_fields": ["expediente", "category"]}})
        (record,) = process_feed([end_to_end_record], config=config).to_records()
        assert record == {"expediente": "122/000045", "category": "ordinary"}

    def test_edges_and_flows(self, initiative_factory):
        records = [
            initiative_factory.create_record(expediente="121/000001"),
            initiative_factory.create_record(
                expediente="122/000002",
                INICIATIVASDEORIGEN="121/000001",
                OBJETO="Pregunta sobre puertos",
            ),
        ]
        laws = [initiative_factory.create_law_record(NUMEXPEDIENTE="121/000001")]
        result = process_feed(records, laws)
        second = result.initiatives[1]
        assert [(e.target, e.kind) for e in second.edges] == [("121/000001", EdgeKind.DIRECT)]
        assert len(result.flows) == 2
        assert result.summary.flows == 2
        assert result.summary.relationships["total_direct_relations"] == 1
        assert result.flow_records()[0]["key"] in {"law_2025_7", "122/000002"}


class TestFeedShape:
    """Test structural validation at the entry point."""

    @pytest.mark.parametrize("batch", [
        {"NUMEXPEDIENTE": "122/000001"},
        "122/000001",
        42,
        None,
        [{"NUMEXPEDIENTE": "122/000001"}, "not a record"],
    ])
    def test_rejects_non_batches(self, batch):
        with pytest.raises(FeedShapeError):
            process_feed(batch)

    def test_shape_error_is_type_error(self):
        with pytest.raises(TypeError):
            process_feed({"TIPO": "Proyecto de ley"})

    def test_bad_law_batch(self, end_to_end_record):
        with pytest.raises(FeedShapeError):
            process_feed([end_to_end_record], law_records="Ley 7/2025")

    def test_generator_accepted(self, end_to_end_record):
        result = process_feed(r for r in [end_to_end_record])
        assert len(result.initiatives) == 1

    def test_empty_batch(self):
        result = process_feed([])
        assert result.initiatives == []
        assert result.flows == []
        assert result.summary.errors == 0

    def test_bad_config_fails_fast(self, end_to_end_record):
        config = Config({"similarity": {"algorithm": "soundex"}})
        with pytest.raises(ConfigError):
            process_feed([end_to_end_record], config=config)


class TestIsolation:
    """Test per-record failure isolation."""

    def test_malformed_fields_use_sentinels(self, initiative_factory):
        record = initiative_factory.create_record(
            FECHAPRESENTACION="31/02/2024", OBJETO=None, TRAMITACIONSEGUIDA=17
        )
        result = process_feed([record, {}])
        assert len(result.initiatives) == 2
        assert result.initiatives[0].presentation_date is None
        assert result.summary.bad_dates == 1
        assert result.summary.invalid_initiatives == 1
        assert not result.ledger

    def test_failing_record_is_recorded_and_batch_continues(
        self, initiative_factory, monkeypatch, caplog
    ):
        boom = initiative_factory.create_record(expediente="122/000666")

        def explode(initiative):
            if initiative.expediente == "122/000666":
                raise RuntimeError("boom")
            return InitiativeCategory.ORDINARY

        monkeypatch.setattr("components.pipeline.classify_initiative_type", explode)
        with caplog.at_level(logging.WARNING, logger="components.auditing"):
            result = process_feed([initiative_factory.create_record(), boom])
        assert len(result.ledger) == 1
        (entry,) = result.ledger.errors
        assert (entry.index, entry.expediente, entry.stage) == (1, "122/000666", "classify")
        assert entry.error_type == "RuntimeError"
        assert result.initiatives[0].category == InitiativeCategory.ORDINARY
        assert result.summary.errors == 1
        assert "122/000666" in caplog.text
        assert result.ledger.finalize()["by_stage"] == {"classify": 1}

    def test_law_at_calendar_edge_keeps_every_flow(self, initiative_factory):
        records = [
            initiative_factory.create_record(expediente=f"121/00006{n}") for n in range(3)
        ]
        laws = [
            initiative_factory.create_law_record(NUMEXPEDIENTE="121/000060"),
            initiative_factory.create_law_record(
                numero="9/9999", titulo="Ley 9/9999.", fecha="31/12/9999"
            ),
        ]
        result = process_feed(records, laws)
        assert len(result.flows) == 3 + 2 - 1
        assert not result.ledger
        edge_law = next(f for f in result.flows if f.key == "law_9999_9")
        assert [e.label for e in edge_law.events] == ["Sanción real", "Publicación en el BOE"]

    def test_bad_sort_field_fails_fast(self, end_to_end_record):
        config = Config({"flows": {"sort_field": "title"}})
        with pytest.raises(ConfigError):
            process_feed([end_to_end_record], config=config)
