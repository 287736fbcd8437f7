"""Tests for the ISA-88 process model."""

from datetime import datetime, timedelta

import pytest

from mab_integration_demo.isa88 import (
    PROCEDURE_ID,
    PROCESS_LEVELS,
    TIMELINE_CHECKPOINTS,
    get_phase_timeline,
    get_process_hierarchy,
    get_process_state_at_time,
)
from mab_integration_demo.isa95 import BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID

START = datetime(2024, 3, 15, 6, 0, 0)


class TestProcessHierarchy:
    """Tests for the recipe structure."""

    @pytest.fixture
    def procedure(self):
        return get_process_hierarchy()

    def test_unit_procedures(self, procedure):
        assert procedure.id == PROCEDURE_ID
        assert [u.id for u in procedure.children] == [
            "UP_BIOREACTOR_PREP",
            "UP_FED_BATCH_CULTURE",
            "UP_HARVEST",
            "UP_PROTEIN_A_CHROM",
        ]

    def test_levels(self, procedure):
        def walk(node, depth):
            assert node.level == PROCESS_LEVELS[depth]
            for child in node.children:
                walk(child, depth + 1)

        walk(procedure, 0)

    def test_unit_procedures_carry_equipment_and_duration(self, procedure):
        culture = procedure.find("UP_FED_BATCH_CULTURE")
        assert culture.equipment_id == BIOREACTOR_EQUIPMENT_ID
        assert culture.expected_duration == (80, 100)
        assert procedure.find("UP_PROTEIN_A_CHROM").equipment_id == COLUMN_EQUIPMENT_ID

    def test_find_phase(self, procedure):
        assert procedure.find("PH_ELUTION").name == "Product Elution"
        assert procedure.find("PH_UNKNOWN") is None

    def test_to_dict(self, procedure):
        data = procedure.to_dict()
        harvest = data["children"][2]
        assert harvest["expected_duration"] == {"min": 6, "max": 10, "unit": "hours"}
        phase = harvest["children"][0]["children"][0]
        assert phase["id"] == "PH_HARVEST_TRANSFER"
        assert "children" not in phase
        assert "equipment_id" not in data


class TestProcessStateAtTime:
    """Tests for time-to-phase resolution."""

    @pytest.mark.parametrize(
        "hours,phase_id",
        [
            (0, "PH_CIP_RINSE"),
            (0.5, "PH_CIP_RINSE"),
            (1, "PH_SIP_HOLD"),
            (6, "PH_SEED_TRANSFER"),
            (20, "PH_LOG_GROWTH"),
            (50, "PH_FED_BATCH_PRODUCTION"),
            (90, "PH_HARVEST_TRANSFER"),
            (98, "PH_LOAD"),
            (150, "PH_ELUTION"),
        ],
    )
    def test_phase_at(self, hours, phase_id):
        state = get_process_state_at_time(START + timedelta(hours=hours), START)
        assert state.full_context.endswith("." + phase_id)

    def test_context_names(self):
        state = get_process_state_at_time(START + timedelta(hours=50), START)
        assert state.current_procedure == "mAb-2847 Production Procedure"
        assert state.current_unit_procedure == "Fed-Batch Cell Culture"
        assert state.current_operation == "Production Phase"
        assert state.current_phase == "Fed-Batch Production"
        assert state.equipment_id == BIOREACTOR_EQUIPMENT_ID
        assert state.full_context == (
            "PROC_mAb_2847_PROD.UP_FED_BATCH_CULTURE.OP_PRODUCTION_PHASE."
            "PH_FED_BATCH_PRODUCTION"
        )

    def test_chromatography_on_column(self):
        state = get_process_state_at_time(START + timedelta(hours=100.5), START)
        assert state.current_phase == "Wash Step 1"
        assert state.equipment_id == COLUMN_EQUIPMENT_ID

    def test_before_batch_start(self):
        assert get_process_state_at_time(START - timedelta(minutes=1), START) is None


class TestPhaseTimeline:
    """Tests for the transition timeline."""

    def test_full_batch(self):
        timeline = get_phase_timeline(START, 105)
        assert len(timeline) == len(TIMELINE_CHECKPOINTS)
        assert timeline[0].timestamp == START

    def test_truncated_by_duration(self):
        timeline = get_phase_timeline(START, 24)
        assert len(timeline) == 7
        assert timeline[-1].current_phase == "Feed Initiation"

    def test_to_dict(self):
        data = get_phase_timeline(START, 1)[0].to_dict()
        assert data["timestamp"] == "2024-03-15T06:00:00Z"
        assert data["current_phase"] == "Pre-Rinse"
