"""Tests for material flows, balances and genealogy."""

from datetime import datetime, timedelta

import pytest

from mab_integration_demo.isa95 import BIOREACTOR_EQUIPMENT_ID, COLUMN_EQUIPMENT_ID
from mab_integration_demo.material_flow import (
    HARVEST_TANK,
    POOL_TANK,
    Material,
    MaterialFlow,
    MaterialNotFoundError,
    build_material_genealogy,
    calculate_material_balance,
    generate_material_flows,
    get_material_flow_summary,
)

START = datetime(2024, 3, 15, 6, 0, 0)


@pytest.fixture
def flows():
    return generate_material_flows("B-2024-0342", START)


class TestGenerateMaterialFlows:
    """Tests for the batch's material movements."""

    def test_flow_count_and_ids(self, flows):
        assert len(flows) == 13
        assert [f.flow_id for f in flows] == [f"FLOW-{i}" for i in range(1, 14)]

    def test_time_ordered(self, flows):
        timestamps = [f.timestamp for f in flows]
        assert timestamps == sorted(timestamps)

    def test_feeds_have_flow_rate(self, flows):
        feeds = [f for f in flows if f.material.material_code == "FEED-GLU-01"]
        assert len(feeds) == 5
        assert all(f.flow_rate == 0.5 and f.flow_rate_unit == "L/hr" for f in feeds)

    def test_first_feed_before_temperature_shift(self, flows):
        feeds = [f for f in flows if f.material.material_code == "FEED-GLU-01"]
        assert feeds[0].phase_context.endswith("PH_FEED_INITIATION")
        assert feeds[1].phase_context.endswith("PH_FED_BATCH_PRODUCTION")

    def test_harvest_moves_through_tank(self, flows):
        harvest = [f for f in flows if f.material.material_id == "MAT-HARVEST-001"]
        assert [(f.from_equipment, f.to_equipment) for f in harvest] == [
            (BIOREACTOR_EQUIPMENT_ID, HARVEST_TANK),
            (HARVEST_TANK, COLUMN_EQUIPMENT_ID),
        ]
        assert harvest[0].material.lot_number == "B-2024-0342-HCCCF"

    def test_purified_pool(self, flows):
        pool = flows[-1]
        assert pool.material.material_id == "MAT-PURIFIED-001"
        assert pool.to_equipment == POOL_TANK
        assert pool.timestamp == START + timedelta(hours=103)

    def test_to_dict(self, flows):
        data = flows[0].to_dict()
        assert data["material"]["material_code"] == "MED-CHO-001"
        assert data["from_equipment"] is None
        assert data["flow_rate_unit"] is None
        assert data["timestamp"] == "2024-03-15T10:00:00Z"


class TestMaterialBalance:
    """Tests for equipment balances."""

    def test_bioreactor_pending_before_harvest(self, flows):
        balance = calculate_material_balance(
            BIOREACTOR_EQUIPMENT_ID, flows, START + timedelta(hours=50)
        )
        assert balance.balance_status == "Pending"
        assert balance.outputs == []
        assert balance.total_input == 1500 + 50 + 150 + 20 * 2

    def test_bioreactor_balanced_after_harvest(self, flows):
        balance = calculate_material_balance(
            BIOREACTOR_EQUIPMENT_ID, flows, START + timedelta(hours=105)
        )
        assert balance.total_input == 1800
        assert balance.total_output == 1820
        assert balance.accumulation == -20
        assert balance.balance_status == "Balanced"

    def test_column_unbalanced(self, flows):
        balance = calculate_material_balance(
            COLUMN_EQUIPMENT_ID, flows, START + timedelta(hours=105)
        )
        assert balance.total_input == 2120
        assert balance.total_output == 45
        assert balance.balance_status == "Unbalanced"

    def test_output_without_input_is_unbalanced(self):
        flow = MaterialFlow(
            flow_id="FLOW-1",
            from_equipment="TANK",
            to_equipment="OTHER",
            material=Material("M", "C", "Name", "Intermediate", 10, "L"),
            flow_type="Output",
            timestamp=START,
        )
        balance = calculate_material_balance("TANK", [flow], START)
        assert balance.balance_status == "Unbalanced"

    def test_to_dict_totals(self, flows):
        data = calculate_material_balance(
            BIOREACTOR_EQUIPMENT_ID, flows, START + timedelta(hours=105)
        ).to_dict()
        assert data["total_input"] == 1800
        assert data["unit"] == "L"


class TestMaterialGenealogy:
    """Tests for genealogy trees."""

    def test_purified_pool_parents(self, flows):
        genealogy = build_material_genealogy("MAT-PURIFIED-001", flows)
        assert genealogy.final_product.material_id == "MAT-PURIFIED-001"
        root = genealogy.genealogy_tree[0]
        assert root.source_equipment == COLUMN_EQUIPMENT_ID
        assert [p.material.material_id for p in root.parents] == [
            "MAT-BUF-001",
            "MAT-HARVEST-001",
            "MAT-BUF-002",
        ]

    def test_harvest_traces_to_bioreactor_inputs(self, flows):
        root = build_material_genealogy("MAT-PURIFIED-001", flows).genealogy_tree[0]
        harvest = root.parents[1]
        ids = [p.material.material_id for p in harvest.parents]
        assert ids[:3] == ["MAT-001", "MAT-002", "MAT-003"]
        assert len(ids) == 8

    def test_raw_material_is_leaf(self, flows):
        root = build_material_genealogy("MAT-001", flows).genealogy_tree[0]
        assert root.parents == []

    def test_unknown_material(self, flows):
        with pytest.raises(MaterialNotFoundError):
            build_material_genealogy("MAT-NOPE", flows)

    def test_cycle_terminates(self):
        material_a = Material("A", "A", "A", "Intermediate", 1, "L")
        material_b = Material("B", "B", "B", "Intermediate", 1, "L")
        flows = [
            MaterialFlow("F1", "T2", material_a, "Transfer", START, from_equipment="T1"),
            MaterialFlow("F2", "T1", material_b, "Transfer", START - timedelta(hours=1),
                         from_equipment="T2"),
            MaterialFlow("F3", "T2", material_a, "Transfer", START - timedelta(hours=2),
                         from_equipment="T1"),
        ]
        genealogy = build_material_genealogy("A", flows)
        assert genealogy.to_dict()["final_product"]["material_id"] == "A"


class TestMaterialFlowSummary:
    """Tests for volume summaries."""

    def test_totals(self, flows):
        summary = get_material_flow_summary(flows)
        assert summary["total_inputs"] == 3920
        assert summary["total_outputs"] == 1865

    def test_per_equipment(self, flows):
        summary = get_material_flow_summary(flows)["equipment_summary"]
        assert summary[BIOREACTOR_EQUIPMENT_ID] == {"inputs": 1800, "outputs": 1820}
        assert summary[COLUMN_EQUIPMENT_ID] == {"inputs": 2120, "outputs": 45}
