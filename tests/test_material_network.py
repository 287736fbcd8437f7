"""Tests for the material transformation network."""

from mab_integration_demo.equipment_network import HARVEST_TANK_ID
from mab_integration_demo.material_network import (
    NETWORK_MATERIAL_TYPES,
    QUALITY_STATUSES,
    build_material_flow_graph,
    calculate_overall_yield,
    find_materials_by_quality_status,
    find_materials_by_type,
    get_material_node,
    get_material_nodes,
    get_material_transformations,
    get_materials_at_location,
    get_quality_gate_status,
    trace_material_genealogy,
)


class TestMaterialNodes:
    """Tests for lots and intermediates."""

    def test_eight_nodes(self):
        nodes = get_material_nodes()
        assert len(nodes) == 8
        assert all(n.material_type in NETWORK_MATERIAL_TYPES for n in nodes)
        assert all(n.quality_status in QUALITY_STATUSES for n in nodes)

    def test_get_node(self):
        culture = get_material_node("MAT_CULTURE_001")
        assert culture.lot_number == "B-2024-0342-CULTURE"
        assert [s.parameter for s in culture.specifications] == ["Viability", "VCD", "Titer"]
        assert get_material_node("NOPE") is None

    def test_to_dict(self):
        data = get_material_node("MAT_WASTE_001").to_dict()
        assert data["lot_number"] is None
        assert data["specifications"] == []

    def test_transformations_reference_known_materials(self):
        ids = {n.id for n in get_material_nodes()}
        for trans in get_material_transformations():
            assert set(trans.input_materials) <= ids
            assert set(trans.output_materials) <= ids


class TestMaterialQueries:
    """Tests for material lookups."""

    def test_by_quality_status(self):
        pending = [m.id for m in find_materials_by_quality_status("Pending")]
        assert pending == ["MAT_POOL_001", "MAT_FINAL_001"]
        assert find_materials_by_quality_status("OutOfSpec") == []

    def test_by_type(self):
        assert len(find_materials_by_type("RawMaterial")) == 2
        assert [m.id for m in find_materials_by_type("FinalProduct")] == ["MAT_FINAL_001"]

    def test_at_location_substring(self):
        assert [m.id for m in get_materials_at_location(HARVEST_TANK_ID)] == ["MAT_HARVEST_001"]
        assert len(get_materials_at_location("SITE_A.STORAGE")) == 2
        assert get_materials_at_location("Nowhere") == []

    def test_quality_gates(self):
        assert get_quality_gate_status() == {"total": 4, "passed": 2, "failed": 0, "pending": 2}


class TestGenealogy:
    """Tests for one-step genealogy."""

    def test_culture(self):
        result = trace_material_genealogy("MAT_CULTURE_001")
        assert [m.id for m in result["ancestors"]] == [
            "MAT_MEDIA_001", "MAT_SEED_001", "MAT_FEED_001"
        ]
        assert [m.id for m in result["descendants"]] == ["MAT_HARVEST_001", "MAT_WASTE_001"]
        assert [t.transformation_id for t in result["transformations"]] == [
            "TRANS_001", "TRANS_002"
        ]

    def test_raw_material_has_no_ancestors(self):
        result = trace_material_genealogy("MAT_MEDIA_001")
        assert result["ancestors"] == []
        assert [m.id for m in result["descendants"]] == ["MAT_CULTURE_001"]

    def test_unknown_material(self):
        result = trace_material_genealogy("NOPE")
        assert result == {"ancestors": [], "descendants": [], "transformations": []}


class TestFlowGraphAndYield:
    """Tests for the flow graph and yield roll-up."""

    def test_flow_graph(self):
        graph = build_material_flow_graph()
        assert len(graph["nodes"]) == 8
        assert len(graph["edges"]) == 7
        assert {"MAT_CULTURE_001", "MAT_WASTE_001"} <= {e["to"] for e in graph["edges"]}

    def test_overall_yield_media_to_final(self):
        assert calculate_overall_yield("MAT_MEDIA_001", "MAT_FINAL_001") == 79.1

    def test_yield_single_step(self):
        assert calculate_overall_yield("MAT_HARVEST_001", "MAT_POOL_001") == 85.0

    def test_yield_to_self(self):
        assert calculate_overall_yield("MAT_POOL_001", "MAT_POOL_001") == 100.0

    def test_transformation_to_dict(self):
        data = get_material_transformations()[3].to_dict()
        assert data["quality_gate"] == {"required": True, "status": "Pending", "results": []}
        assert data["timestamp"] == "2024-03-21T14:00:00Z"
