"""Tests for attaching ISA-95/ISA-88 context to raw records."""

from datetime import datetime, timedelta

import pytest

from mab_integration_demo.batch import get_sample_batch_data
from mab_integration_demo.contextualize import (
    contextualize_dcs_point,
    contextualize_lims_result,
    format_equipment_path,
    format_process_context,
    format_spec_range,
    get_transformation_examples,
    group_tags_by_parameter,
)
from mab_integration_demo.dcs import DCSDataPoint
from mab_integration_demo.isa95 import get_equipment_instances
from mab_integration_demo import lims

START = datetime(2024, 3, 15, 6, 0, 0)


class TestFormatting:
    """Tests for display helpers."""

    def test_spec_range(self):
        assert format_spec_range(36.5, 37.5, "degC") == "36.5 - 37.5 degC"
        assert format_spec_range(80, None, "percent") == "> 80 percent"
        assert format_spec_range(None, 2.5, "bar") == "< 2.5 bar"
        assert format_spec_range(None, None, "g/L") == ""

    def test_equipment_path(self):
        path = format_equipment_path(get_equipment_instances()[0])
        assert path == "Site_A → USP → BR_Cell_1 → BR_Unit_2001 → BR-2001-A"
        assert format_equipment_path(None) == "Unknown"

    def test_process_context_before_start(self):
        assert format_process_context(None) == "Before batch start"


class TestContextualizeDCSPoint:
    """Tests for historian points."""

    def test_temperature_in_production(self):
        point = DCSDataPoint(START + timedelta(hours=50), "BR001_PV_TEMP", 36.85, "GOOD", "degC")
        record = contextualize_dcs_point(point, START)

        assert record.source_system == "DCS"
        assert record.standard_id == "PARAM_TEMP_CULTURE"
        assert record.parameter_name == "Culture Temperature"
        assert record.equipment_class == "USP_Bioreactor"
        assert record.equipment_path.endswith("BR-2001-A")
        assert record.process_context == (
            "Fed-Batch Cell Culture → Production Phase → Fed-Batch Production"
        )
        assert record.classification == "Critical"
        assert record.spec_range == "36.5 - 37.5 degC"
        assert record.in_spec

    def test_out_of_range(self):
        point = DCSDataPoint(START, "REACTOR_1_TEMP_AI", 38.2, "GOOD", "degC")
        assert not contextualize_dcs_point(point, START).in_spec

    def test_no_critical_range_is_in_spec(self):
        point = DCSDataPoint(START, "BR001_LVL_PERCENT", 99, "GOOD", "percent")
        record = contextualize_dcs_point(point, START)
        assert record.in_spec
        assert record.spec_range == ""

    def test_column_tag(self):
        point = DCSDataPoint(START + timedelta(hours=98), "COLUMN_01_PI", 1.2, "GOOD", "bar")
        record = contextualize_dcs_point(point, START)
        assert record.equipment_class == "DSP_Chromatography"
        assert record.full_context.endswith("PH_LOAD")

    def test_before_batch_start(self):
        point = DCSDataPoint(START - timedelta(hours=1), "BR001_PV_TEMP", 37, "GOOD", "degC")
        record = contextualize_dcs_point(point, START)
        assert record.process_context == "Before batch start"
        assert record.full_context == ""

    def test_unmapped_tag(self):
        point = DCSDataPoint(START, "XV_9999", 1, "GOOD", "")
        assert contextualize_dcs_point(point, START) is None


class TestContextualizeLIMSResult:
    """Tests for lab results."""

    @pytest.fixture
    def sample(self):
        return lims.LIMSSample(
            "CC24031234", "B-2024-0342", "In-Process Cell Count", "SP-R2001-TOP",
            START + timedelta(hours=24), "OP-1247",
        )

    @pytest.fixture
    def result(self):
        return lims.TestResult(
            "R-CC24031234-VCD", "CC24031234", "VCD-TRYPAN", "Viable Cell Density", 4.2,
            "E6 cells/mL", "Pass", "AN-2847", START + timedelta(hours=28),
            specification_min=0.2, specification_max=20,
        )

    def test_placed_at_collection_time(self, result, sample):
        record = contextualize_lims_result(result, sample, START)
        assert record.timestamp == sample.collection_time
        assert record.equipment_class == "USP_Bioreactor"
        assert record.standard_id == "PARAM_VCD"
        assert record.spec_range == "0.2 - 20 E6 cells/mL"
        assert record.in_spec

    def test_failed_result(self, result, sample):
        result.status = "Fail"
        assert not contextualize_lims_result(result, sample, START).in_spec

    def test_without_sample(self, result):
        record = contextualize_lims_result(result, None, START)
        assert record.timestamp == result.analysis_date
        assert record.equipment_path == "Unknown"

    def test_unmapped_test(self, result, sample):
        result.test_code = "OSMO-01"
        assert contextualize_lims_result(result, sample, START) is None


class TestBatchLevelHelpers:
    """Tests using a generated batch."""

    @pytest.fixture(scope="class")
    def batch(self):
        return get_sample_batch_data(seed=342, duration_hours=1, dcs_interval_seconds=900)

    def test_group_tags_by_parameter(self, batch):
        grouped = group_tags_by_parameter(batch.dcs.data_points)
        assert len(grouped) == 10
        assert grouped["PARAM_TEMP_CULTURE"] == [
            "BR001_PV_TEMP", "REACTOR_1_TEMP_AI", "TI_2001_JACKET"
        ]
        assert sorted(grouped["PARAM_PH"]) == ["BR001_PH_PV", "PH_AI_2001"]

    def test_group_skips_unmapped(self):
        points = [DCSDataPoint(START, "XV_9999", 1, "GOOD", "")]
        assert group_tags_by_parameter(points) == {}

    def test_transformation_examples(self, batch):
        examples = get_transformation_examples(batch)
        assert [e["title"] for e in examples] == [
            "Temperature Data Point",
            "LIMS Test Result",
            "Multiple Tag Names → Single Parameter",
        ]
        assert examples[0]["raw"]["tag_id"] == "BR001_PV_TEMP"
        assert examples[1]["structured"]["standard_id"] == "PARAM_VCD"
        assert len(examples[2]["raw"]["tags"]) == 2
        assert examples[2]["structured"]["standardized_id"] == "PARAM_PH"
