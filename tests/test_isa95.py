"""Tests for the ISA-95 equipment hierarchy."""

import pytest

from mab_integration_demo.isa95 import (
    BIOREACTOR_EQUIPMENT_ID,
    COLUMN_EQUIPMENT_ID,
    EQUIPMENT_LEVELS,
    find_equipment_by_raw_id,
    get_equipment_by_id,
    get_equipment_hierarchy,
    get_equipment_instances,
    get_equipment_path,
    iter_hierarchy,
)


class TestEquipmentHierarchy:
    """Tests for the site hierarchy."""

    @pytest.fixture
    def hierarchy(self):
        return get_equipment_hierarchy()

    def test_root_is_site(self, hierarchy):
        assert hierarchy.id == "SITE_A"
        assert hierarchy.level == "Site"
        assert hierarchy.parent_id is None
        assert [c.id for c in hierarchy.children] == ["SITE_A.USP", "SITE_A.DSP"]

    def test_levels_descend_in_order(self, hierarchy):
        for node in iter_hierarchy(hierarchy):
            depth = EQUIPMENT_LEVELS.index(node.level)
            for child in node.children:
                assert EQUIPMENT_LEVELS.index(child.level) == depth + 1
                assert child.parent_id == node.id

    def test_node_count(self, hierarchy):
        # Site + 2 x (Area, ProcessCell, Unit, EquipmentModule)
        assert len(list(iter_hierarchy(hierarchy))) == 9

    def test_leaf_ids_extend_parent_ids(self, hierarchy):
        for node in iter_hierarchy(hierarchy):
            for child in node.children:
                assert child.id.startswith(node.id + ".")

    def test_path_to_bioreactor(self, hierarchy):
        assert get_equipment_path(hierarchy, BIOREACTOR_EQUIPMENT_ID) == [
            "Manufacturing Site A",
            "Upstream Processing",
            "Bioreactor Cell 1",
            "Bioreactor Unit 2001",
            "BR-2001-A",
        ]

    def test_path_unknown(self, hierarchy):
        assert get_equipment_path(hierarchy, "SITE_Z") is None

    def test_to_dict_nests_children(self, hierarchy):
        data = hierarchy.to_dict()
        leaf = data["children"][1]["children"][0]["children"][0]["children"][0]
        assert leaf["id"] == COLUMN_EQUIPMENT_ID
        assert leaf["equipment_class"] == "DSP_Chromatography"
        assert leaf["raw_mappings"]["ebr_equipment_id"] == "CHR-A-01"
        assert leaf["children"] == []
        assert "metadata" not in data


class TestEquipmentInstances:
    """Tests for flattened instances."""

    def test_two_instances(self):
        instances = get_equipment_instances()
        assert [i.short_id for i in instances] == ["BR-2001-A", "CHR-A-01"]

    def test_to_dict_groups_raw_ids(self):
        data = get_equipment_instances()[1].to_dict()
        assert data["raw_system_ids"]["ebr"] == "CHR-A-01"
        assert "CHR_A_FLOW_FI" in data["raw_system_ids"]["dcs"]

    def test_get_by_id(self):
        assert get_equipment_by_id(COLUMN_EQUIPMENT_ID).ebr_id == "CHR-A-01"
        assert get_equipment_by_id("nope") is None


class TestFindEquipmentByRawId:
    """Tests for raw identifier resolution."""

    @pytest.mark.parametrize(
        "system,raw_id,expected",
        [
            ("dcs", "BR001_PV_TEMP", BIOREACTOR_EQUIPMENT_ID),
            ("DCS", "REACTOR_1_TEMP_AI", BIOREACTOR_EQUIPMENT_ID),
            ("dcs", "COLUMN_01_PI", COLUMN_EQUIPMENT_ID),
            ("ebr", "BR-2001-A", BIOREACTOR_EQUIPMENT_ID),
            ("eBR", "CHR-A-01", COLUMN_EQUIPMENT_ID),
            ("lims", "SP-R2001-TOP", BIOREACTOR_EQUIPMENT_ID),
            ("LIMS", "VESSEL-CHR-POOL", COLUMN_EQUIPMENT_ID),
        ],
    )
    def test_exact_ids(self, system, raw_id, expected):
        assert find_equipment_by_raw_id(system, raw_id).equipment_id == expected

    def test_dcs_suffix_falls_back_to_loose_match(self):
        found = find_equipment_by_raw_id("dcs", "CHR_A_PRESS_01_ALARM")
        assert found.equipment_id == COLUMN_EQUIPMENT_ID

    def test_unknown_ebr_id(self):
        assert find_equipment_by_raw_id("ebr", "BR-9999") is None

    def test_empty_id(self):
        assert find_equipment_by_raw_id("dcs", "") is None

    def test_unknown_system(self):
        assert find_equipment_by_raw_id("erp", "BR-2001-A") is None
