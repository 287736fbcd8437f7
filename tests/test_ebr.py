"""Tests for the electronic batch record generator."""

import random
from datetime import datetime, timedelta
from xml.etree import ElementTree

import pytest
from mab_integration_demo.ebr import (
    BIOREACTOR_ID,
    COLUMN_ID,
    COMMENTS,
    EBR_FORMAT_VERSION,
    EBR_SYSTEM,
    ENTRY_TYPES,
    OPERATORS,
    PHASE_TEMPLATES,
    ProcessParameter,
    format_ebr_as_xml,
    generate_ebr_export,
    generate_material_addition,
    generate_operator_entry,
)

START = datetime(2024, 3, 15, 6, 0, 0)


@pytest.fixture
def export():
    return generate_ebr_export("B-2024-0342", START, random.Random(342))


class TestProcessParameter:
    """Tests for specification checks."""

    def test_within_limits(self):
        assert ProcessParameter("pH", 7.08, "pH", 7.1, 7.0, 7.2).in_spec

    def test_below_lower_limit(self):
        assert not ProcessParameter("pH", 6.9, "pH", 7.1, 7.0, 7.2).in_spec

    def test_above_upper_limit(self):
        assert not ProcessParameter("Max Pressure", 2.6, "bar", upper_limit=2.5).in_spec

    def test_limits_are_inclusive(self):
        assert ProcessParameter("CIP Duration", 60, "minutes", 60, 60, 90).in_spec

    def test_no_limits_is_in_spec(self):
        assert ProcessParameter("Note", 1.0, "").in_spec


class TestGenerateOperatorEntry:
    """Tests for operator entry content."""

    def test_signature_has_no_text(self):
        entry = generate_operator_entry(START, "signature", random.Random(1))
        assert entry.entry_type == "signature"
        assert entry.value is None

    def test_verification_has_no_text(self):
        entry = generate_operator_entry(START, "verification", random.Random(1))
        assert entry.value is None
        assert entry.to_dict()["value"] is None

    def test_comment_uses_canned_text(self):
        entry = generate_operator_entry(START, "comment", random.Random(3))
        assert (entry.operator_id, entry.operator_name) in OPERATORS
        assert entry.value in COMMENTS

    def test_comment_texts(self):
        assert "Inoculation completed successfully" in COMMENTS
        assert "Slight foaming observed, antifoam added" in COMMENTS
        assert len(COMMENTS) == 5


class TestGenerateMaterialAddition:
    """Tests for material charges."""

    def test_second_person_verification(self):
        addition = generate_material_addition(START, "feed", random.Random(9))
        assert addition.added_by == "OP-1247"
        assert addition.verified_by == "OP-2891"
        assert addition.verification_time == START + timedelta(minutes=5)

    def test_lot_number_format(self):
        addition = generate_material_addition(START, "media", random.Random(9))
        assert addition.lot_number.startswith("LOT-")
        assert len(addition.lot_number) == len("LOT-") + 6

    def test_unknown_material_type(self):
        with pytest.raises(KeyError):
            generate_material_addition(START, "unobtainium")


class TestGenerateEBRExport:
    """Tests for the assembled batch record."""

    def test_six_phases_in_recipe_order(self, export):
        assert [p.phase_id for p in export.phases] == [t["phase_id"] for t in PHASE_TEMPLATES]
        assert export.phases[0].phase_id == "PREP-001"
        assert export.phases[-1].phase_id == "CHR-PROTA-001"

    def test_equipment_assignment(self, export):
        assert all(p.equipment_id == BIOREACTOR_ID for p in export.phases[:-1])
        assert export.phases[-1].equipment_id == COLUMN_ID

    def test_end_date_is_last_phase_end(self, export):
        assert export.start_date == START
        assert export.end_date == START + timedelta(hours=109)

    def test_phase_times_follow_template(self, export):
        grow = export.phases[2]
        assert grow.start_time == START + timedelta(hours=7)
        assert grow.end_time == START + timedelta(hours=31)

    def test_every_phase_opens_with_signature(self, export):
        for phase in export.phases:
            assert phase.operator_entries[0].entry_type == "signature"
            assert phase.operator_entries[0].timestamp == phase.start_time
            assert all(e.entry_type in ENTRY_TYPES for e in phase.operator_entries)

    def test_only_comments_carry_text(self, export):
        for phase in export.phases:
            for entry in phase.operator_entries:
                assert (entry.value is not None) == (entry.entry_type == "comment")

    def test_entry_count(self, export):
        assert export.entry_count == 48

    def test_default_parameters_in_spec(self, export):
        for phase in export.phases:
            assert all(p.in_spec for p in phase.parameters)

    def test_to_dict_metadata(self, export):
        data = export.to_dict()
        assert data["metadata"]["export_system"] == EBR_SYSTEM
        assert data["metadata"]["format_version"] == EBR_FORMAT_VERSION
        assert data["start_date"] == "2024-03-15T06:00:00Z"
        assert len(data["phases"]) == 6
        assert data["phases"][5]["parameters"][1]["set_point"] is None


class TestFormatEBRAsXML:
    """Tests for the XML export."""

    def test_declaration_and_root(self, export):
        xml = format_ebr_as_xml(export)
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        root = ElementTree.fromstring(xml.split("\n", 1)[1])
        assert root.tag == "BatchRecord"
        assert root.findtext("BatchID") == "B-2024-0342"

    def test_phases_and_parameters(self, export):
        root = ElementTree.fromstring(format_ebr_as_xml(export).split("\n", 1)[1])
        phases = root.findall("Phases/Phase")
        assert [p.get("id") for p in phases] == [p.phase_id for p in export.phases]
        # Ampersand in the phase name is escaped
        assert phases[0].findtext("Name") == "Bioreactor Preparation & CIP"

        params = phases[0].findall("Parameters/Parameter")
        assert params[0].get("name") == "CIP Temperature"
        assert params[0].get("unit") == "degC"
        assert params[0].findtext("InSpec") == "true"

    def test_set_point_omitted_when_missing(self, export):
        root = ElementTree.fromstring(format_ebr_as_xml(export).split("\n", 1)[1])
        chrom = root.findall("Phases/Phase")[-1]
        pressure = chrom.findall("Parameters/Parameter")[1]
        assert pressure.get("name") == "Max Pressure"
        assert pressure.find("SetPoint") is None
        assert pressure.findtext("ActualValue") == "2.2"

    def test_out_of_spec_rendered_false(self, export):
        export.phases[0].parameters[0].actual_value = 90
        assert "<InSpec>false</InSpec>" in format_ebr_as_xml(export)
