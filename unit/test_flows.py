"""Test linking approved laws to initiatives."""

from datetime import date

import pytest

from components.auditing import ErrorLedger
from components.config import Config
from components.errors import ConfigError
from components.flows import (
    build_flows,
    law_milestones,
    legislative_phase,
    sort_flows,
    summarize_flows,
)
from components.stages import Stage


class TestMatching:
    """Test the matching order for laws."""

    def test_match_by_law_expediente(self, initiative_factory):
        initiative = initiative_factory.create_initiative(expediente="121/000010")
        law = initiative_factory.create_law(expediente="121/000010")
        (flow,) = build_flows([initiative], [law])
        assert flow.initiative is initiative
        assert flow.matched_by == "expediente"
        assert flow.key == "law_2025_7"

    def test_match_by_reference_tokens(self, initiative_factory):
        initiative = initiative_factory.create_initiative(expediente="121/000011")
        law = initiative_factory.create_law(references="999/000000 121/000011")
        (flow,) = build_flows([initiative], [law])
        assert flow.matched_by == "reference"

    def test_match_by_title_expediente(self, initiative_factory):
        initiative = initiative_factory.create_initiative(expediente="121/000012")
        law = initiative_factory.create_law(
            titulo="Ley 7/2025, de 3 de marzo, de vivienda (121/000012)."
        )
        assert law.expediente == "121/000012"
        (flow,) = build_flows([initiative], [law])
        assert flow.initiative is initiative

    def test_key_terms_off_by_default(self, initiative_factory):
        initiative = initiative_factory.create_initiative(
            subject="Proyecto de Ley de vivienda asequible y alquiler"
        )
        law = initiative_factory.create_law(
            titulo="Ley 7/2025, de vivienda asequible y alquiler."
        )
        flows = build_flows([initiative], [law])
        assert len(flows) == 2

    def test_key_terms_when_enabled(self, initiative_factory):
        config = Config({"flows": {"match_titles": True}})
        initiative = initiative_factory.create_initiative(
            subject="Proyecto de Ley de vivienda asequible y alquiler"
        )
        law = initiative_factory.create_law(
            titulo="Ley 7/2025, de vivienda asequible y alquiler."
        )
        (flow,) = build_flows([initiative], [law], config)
        assert flow.matched_by == "key_terms"

    def test_initiative_claimed_once(self, initiative_factory):
        initiative = initiative_factory.create_initiative(expediente="121/000013")
        first = initiative_factory.create_law(expediente="121/000013")
        second = initiative_factory.create_law(
            numero="8/2025", titulo="Ley 8/2025.", expediente="121/000013"
        )
        flows = build_flows([initiative], [first, second])
        matched = [f for f in flows if f.initiative is initiative]
        assert len(flows) == 2
        assert [f.key for f in matched] == ["law_2025_7"]


class TestFlowContents:
    """Test the events and metadata of each flow."""

    def test_law_milestones(self, initiative_factory):
        law = initiative_factory.create_law(fecha="04/03/2025")
        events = law_milestones(law)
        assert [(e.label, e.start) for e in events] == [
            ("Sanción real", date(2025, 3, 3)),
            ("Publicación en el BOE", date(2025, 3, 4)),
            ("Entrada en vigor", date(2025, 3, 24)),
        ]

    def test_no_publication_date_no_milestones(self, initiative_factory):
        assert law_milestones(initiative_factory.create_law(fecha="")) == []

    def test_merged_flow_is_ordered(self, initiative_factory, timeline_factory):
        initiative = initiative_factory.create_initiative(
            expediente="121/000014",
            presentation_date=date(2024, 1, 10),
            qualification_date=date(2024, 1, 16),
        )
        initiative.apply_timeline([
            timeline_factory.create_event("Pleno", date(2024, 11, 5)),
            timeline_factory.create_event("Aprobado"),
        ])
        law = initiative_factory.create_law(expediente="121/000014")
        (flow,) = build_flows([initiative], [law])
        labels = [e.label for e in flow.events]
        assert labels == [
            "Presentación",
            "Calificación",
            "Pleno",
            "Sanción real",
            "Publicación en el BOE",
            "Entrada en vigor",
            "Aprobado",
        ]
        assert flow.final_status == "approved"
        assert flow.stage == Stage.PUBLISHED

    def test_standalone_flow(self, initiative_factory):
        initiative = initiative_factory.create_initiative(
            expediente="122/000015",
            qualification_date=date(2024, 1, 16),
            status="En Comisión de Hacienda",
        )
        (flow,) = build_flows([initiative], [])
        assert flow.kind == "initiative"
        assert flow.key == "122/000015"
        assert flow.phase == "trabajo"
        assert flow.stage == Stage.COMMITTEE
        assert flow.final_status == "committee"

    def test_unkeyed_initiative(self, initiative_factory):
        (flow,) = build_flows([initiative_factory.create_initiative(expediente="")], [])
        assert flow.key == "unkeyed-0"

    @pytest.mark.parametrize("status, qualified, phase", [
        ("", False, "presentacion"),
        ("Pleno", True, "debate"),
        ("Comisión de Interior", True, "trabajo"),
        ("Enviado al Senado", True, "aprobacion"),
        ("", True, "trabajo"),
    ])
    def test_phase(self, initiative_factory, status, qualified, phase):
        initiative = initiative_factory.create_initiative(
            status=status, qualification_date=date(2024, 1, 1) if qualified else None
        )
        assert legislative_phase(initiative) == phase


class TestFlowSet:
    """Test counts and ordering of the whole flow set."""

    def test_every_item_exactly_once(self, initiative_factory):
        initiatives = [
            initiative_factory.create_initiative(expediente=f"121/00002{n}") for n in range(4)
        ]
        laws = [
            initiative_factory.create_law(expediente="121/000020"),
            initiative_factory.create_law(numero="9/2025", titulo="Ley 9/2025.",
                                          expediente="121/000022"),
            initiative_factory.create_law(numero="10/2025", titulo="Ley 10/2025."),
        ]
        flows = build_flows(initiatives, laws)
        assert len(flows) == 4 + 3 - 2
        keys = [f.key for f in flows]
        assert len(set(keys)) == len(keys)
        members = [f.initiative for f in flows if f.initiative]
        assert sorted(i.expediente for i in members) == [i.expediente for i in initiatives]

    def test_ordered_by_presentation_desc_dateless_last(self, initiative_factory):
        old = initiative_factory.create_initiative(presentation_date=date(2023, 1, 1))
        new = initiative_factory.create_initiative(presentation_date=date(2024, 1, 1))
        undated = initiative_factory.create_initiative()
        flows = build_flows([undated, old, new], [])
        assert [f.initiative for f in flows] == [new, old, undated]

    def test_ascending(self, initiative_factory):
        old = initiative_factory.create_initiative(presentation_date=date(2023, 1, 1))
        new = initiative_factory.create_initiative(presentation_date=date(2024, 1, 1))
        config = Config({"flows": {"sort_direction": "asc"}})
        flows = build_flows([new, old], [], config)
        assert [f.initiative for f in flows] == [old, new]

    def test_unknown_sort_field(self):
        with pytest.raises(ConfigError):
            sort_flows([], "title")

    def test_summary(self, initiative_factory):
        initiatives = [initiative_factory.create_initiative(expediente="121/000030"),
                       initiative_factory.create_initiative(status="Cerrado")]
        laws = [initiative_factory.create_law(expediente="121/000030")]
        summary = summarize_flows(build_flows(initiatives, laws))
        assert summary["total_flows"] == 2
        assert summary["law_flows"] == 1
        assert summary["matched_laws"] == 1
        assert summary["by_status"] == {"approved": 1, "closed": 1}


class TestFlowIsolation:
    """Test that one item failing never drops the others."""

    @pytest.mark.parametrize("fecha, labels", [
        ("31/12/9999", ["Sanción real", "Publicación en el BOE"]),
        ("01/01/0001", ["Publicación en el BOE", "Entrada en vigor"]),
    ])
    def test_milestones_at_calendar_edges(self, initiative_factory, fecha, labels):
        law = initiative_factory.create_law(fecha=fecha)
        assert [e.label for e in law_milestones(law)] == labels

    def test_failing_law_keeps_every_item(self, initiative_factory, monkeypatch):
        initiatives = [
            initiative_factory.create_initiative(expediente=f"121/00004{n}") for n in range(3)
        ]
        good = initiative_factory.create_law(expediente="121/000040")
        bad = initiative_factory.create_law(
            numero="8/2025", titulo="Ley 8/2025.", expediente="121/000041"
        )

        def explode(law, days=20):
            if law.law_number == "8":
                raise RuntimeError("bad milestones")
            return law_milestones(law, days)

        monkeypatch.setattr("components.flows.law_milestones", explode)
        ledger = ErrorLedger()
        flows = build_flows(initiatives, [good, bad], ledger=ledger)
        assert len(flows) == 3 + 2 - 1
        by_key = {f.key: f for f in flows}
        assert by_key["law_2025_8"].events == []
        assert by_key["law_2025_8"].initiative is None
        assert by_key["121/000041"].kind == "initiative"
        assert by_key["law_2025_7"].initiative is initiatives[0]
        (entry,) = ledger.errors
        assert (entry.stage, entry.index, entry.expediente) == ("flows", 1, "121/000041")

    def test_failing_initiative_keeps_its_flow(self, initiative_factory, monkeypatch):
        broken = initiative_factory.create_initiative(expediente="122/000050")
        fine = initiative_factory.create_initiative(expediente="122/000051")

        def explode(initiative):
            raise ValueError("unreadable status")

        monkeypatch.setattr("components.flows.classify_stage", explode)
        ledger = ErrorLedger()
        flows = build_flows([broken, fine], [], ledger=ledger)
        assert len(flows) == 2
        assert {f.final_status for f in flows} == {"unclassified"}
        assert len(ledger) == 2

    def test_law_without_identifier_gets_positional_key(self, initiative_factory):
        laws = [
            initiative_factory.create_law(numero="", titulo="Ley de vivienda.", fecha=""),
            initiative_factory.create_law(numero="", titulo="Ley de puertos.", fecha=""),
        ]
        keys = [f.key for f in build_flows([], laws)]
        assert sorted(keys) == ["unkeyed-law-0", "unkeyed-law-1"]
