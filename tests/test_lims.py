"""Tests for the LIMS export generator."""

import random
from datetime import datetime, timedelta

import pytest
from mab_integration_demo.lims import (
    CSV_COLUMNS,
    LAB_SITE,
    RESULT_TYPES,
    format_lims_as_csv,
    generate_lims_export,
    generate_sample_id,
)

START = datetime(2024, 3, 15, 6, 0, 0)
END = START + timedelta(hours=105)


@pytest.fixture
def export():
    return generate_lims_export("B-2024-0342", START, END, random.Random(342))


class TestGenerateSampleId:
    """Tests for lab sample numbering."""

    def test_prefix_and_month(self):
        sample_id = generate_sample_id("Bioburden", START, random.Random(1))
        assert sample_id.startswith("BB2403")
        assert len(sample_id) == 10

    def test_unknown_type_uses_generic_prefix(self):
        assert generate_sample_id("Mystery", START, random.Random(1)).startswith("GN")


class TestGenerateLIMSExport:
    """Tests for sample and result generation."""

    def test_counts(self, export):
        assert len(export.samples) == 22
        assert len(export.in_process_results) == 25
        assert len(export.microbiology_results) == 6
        assert len(export.analytical_results) == 2
        assert len(export.all_results) == 33

    def test_lab_site_and_export_id(self, export):
        assert export.lab_site == LAB_SITE
        assert export.export_id.startswith("LIMS-EXP-")

    def test_titer_only_from_hour_48(self, export):
        titers = [r for r in export.in_process_results if r.test_code == "TITER-ELISA"]
        assert len(titers) == 3
        for result in titers:
            sample = export.get_sample(result.sample_id)
            assert sample.collection_time >= START + timedelta(hours=48)

    def test_every_result_references_a_sample(self, export):
        for result in export.all_results:
            sample = export.get_sample(result.sample_id)
            assert sample is not None
            assert sample.batch_id == "B-2024-0342"
            assert result.analysis_date >= sample.collection_time

    def test_status_follows_limits(self, export):
        for result in export.all_results:
            within = (
                result.specification_min is None or result.value >= result.specification_min
            ) and (result.specification_max is None or result.value <= result.specification_max)
            assert result.status == ("Pass" if within else "Fail")

    def test_final_samples_at_batch_end(self, export):
        final = [s for s in export.samples if s.sample_type.startswith("Final Product")]
        assert len(final) == 2
        assert all(s.collection_time == END for s in final)

    def test_final_results(self, export):
        purity, hmw = export.analytical_results
        assert purity.result_id == f"R-{purity.sample_id}-PURITY"
        assert hmw.result_id == f"R-{hmw.sample_id}-HMW"
        assert purity.analysis_date == hmw.analysis_date
        assert END + timedelta(hours=48) <= purity.analysis_date <= END + timedelta(hours=72)
        assert purity.approval_date == purity.analysis_date + timedelta(hours=8)
        for result in (purity, hmw):
            assert result.value == round(result.value, 2)

    def test_get_sample_unknown(self, export):
        assert export.get_sample("XX00000000") is None


class TestResultsFor:
    """Tests for result-type selection."""

    def test_known_types(self, export):
        for result_type in RESULT_TYPES:
            assert export.results_for(result_type) is getattr(export, f"{result_type}_results")

    def test_unknown_type(self, export):
        with pytest.raises(ValueError):
            export.results_for("chemistry")

    def test_to_dict_single_type(self, export):
        data = export.to_dict("microbiology")
        assert len(data["results"]) == 6
        assert "in_process_results" not in data

    def test_to_dict_all_types(self, export):
        data = export.to_dict()
        for result_type in RESULT_TYPES:
            assert f"{result_type}_results" in data
        assert data["samples"][0]["collection_time"].endswith("Z")


class TestFormatLIMSAsCSV:
    """Tests for the lab CSV export."""

    def test_header(self, export):
        lines = format_lims_as_csv(export, "in_process").split("\n")
        assert lines[0] == "# LIMS Export"
        assert lines[2] == f"# Lab Site: {LAB_SITE}"
        assert lines[4] == "# Result Type: IN_PROCESS"
        assert lines[5] == CSV_COLUMNS

    def test_one_row_per_result(self, export):
        lines = format_lims_as_csv(export, "analytical").split("\n")
        assert len(lines) == 6 + 2

    def test_missing_limits_render_empty(self, export):
        lines = format_lims_as_csv(export, "microbiology").split("\n")
        # Bioburden has only an upper limit
        fields = lines[6].split(",")
        assert fields[2] == "MICRO-BB-TSA"
        assert fields[6] == ""
        assert fields[7] == "10"

    def test_unknown_type(self, export):
        with pytest.raises(ValueError):
            format_lims_as_csv(export, "chemistry")
