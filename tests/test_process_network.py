"""Tests for the process hierarchy network."""

import pytest

from mab_integration_demo.isa95 import BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID
from mab_integration_demo.process_network import (
    ProcessStatus,
    get_critical_processes,
    get_process,
    get_process_children,
    get_process_connections,
    get_process_network,
    get_process_path,
    get_process_timeline,
    get_processes_by_equipment,
    get_processes_by_status,
    is_process_ready,
)


class TestProcessNetwork:
    """Tests for process nodes."""

    def test_thirteen_nodes(self):
        processes = get_process_network()
        assert len(processes) == 13
        assert processes[0].level == "Procedure"

    def test_parents_and_dependencies_resolve(self):
        ids = {p.id for p in get_process_network()}
        for proc in get_process_network():
            assert proc.parent_id is None or proc.parent_id in ids
            assert all(dep in ids for dep in proc.dependencies)

    def test_duration_prefers_actual(self):
        assert get_process("UP_PREP").duration == 4.2
        assert get_process("UP_HARVEST").duration == 8

    def test_to_dict(self):
        data = get_process("OP_CHR_ELUTION").to_dict()
        assert data["status"] == "NotStarted"
        assert data["duration"] == {"expected": 2, "actual": None, "unit": "hours"}
        assert data["metadata"] == {"critical_step": True, "qc_required": True}

    def test_get_unknown(self):
        assert get_process("NOPE") is None


class TestProcessLookups:
    """Tests for filtered views."""

    def test_by_equipment(self):
        column = get_processes_by_equipment(COLUMN_EQUIPMENT_ID)
        assert [p.id for p in column] == [
            "UP_CHROM", "OP_CHR_PREP", "OP_CHR_LOAD", "OP_CHR_ELUTION"
        ]
        assert len(get_processes_by_equipment(BIOREACTOR_EQUIPMENT_ID)) == 8

    def test_by_status(self):
        running = [p.id for p in get_processes_by_status(ProcessStatus.RUNNING)]
        assert running == ["PROC_mAb_2847", "UP_CULTURE", "OP_PROD", "PH_FED_BATCH"]
        assert get_processes_by_status(ProcessStatus.FAILED) == []

    def test_critical(self):
        assert len(get_critical_processes()) == 5

    def test_children(self):
        children = get_process_children("OP_PROD")
        assert [p.id for p in children] == ["PH_TEMP_SHIFT", "PH_FED_BATCH"]

    def test_path(self):
        assert [p.id for p in get_process_path("PH_FED_BATCH")] == [
            "PROC_mAb_2847", "UP_CULTURE", "OP_PROD", "PH_FED_BATCH"
        ]
        assert get_process_path("NOPE") == []


class TestProcessConnections:
    """Tests for derived edges."""

    def test_counts(self):
        connections = get_process_connections()
        assert sum(1 for c in connections if c.connection_type == "Hierarchy") == 12
        assert sum(1 for c in connections if c.connection_type == "Sequence") == 8

    def test_sequence_runs_dependency_to_process(self):
        sequences = [
            c.to_dict() for c in get_process_connections() if c.connection_type == "Sequence"
        ]
        assert {"from": "UP_PREP", "to": "UP_CULTURE", "connection_type": "Sequence"} in sequences


class TestProcessTimeline:
    """Tests for Gantt rows."""

    @pytest.fixture
    def timeline(self):
        return get_process_timeline()

    def test_only_unit_procedures_and_operations(self, timeline):
        assert len(timeline) == 10
        ids = [row["process_id"] for row in timeline]
        assert "PROC_mAb_2847" not in ids
        assert "PH_FED_BATCH" not in ids

    def test_completed_work_advances_clock(self, timeline):
        assert timeline[0]["start_time"] == 0
        assert timeline[0]["end_time"] == 4.2
        assert timeline[1]["start_time"] == 4.2
        assert timeline[1]["status"] == "Running"

    def test_pending_work_starts_at_current_position(self, timeline):
        harvest, chrom = timeline[2], timeline[3]
        assert harvest["status"] == "NotStarted"
        assert harvest["start_time"] == chrom["start_time"] == timeline[1]["end_time"]


class TestIsProcessReady:
    """Tests for readiness checks."""

    def test_pending_without_dependencies(self):
        assert is_process_ready("OP_CHR_PREP")

    def test_dependency_still_running(self):
        assert not is_process_ready("UP_HARVEST")

    def test_already_complete(self):
        assert not is_process_ready("UP_PREP")

    def test_unknown(self):
        assert not is_process_ready("NOPE")
