"""Tests for coordinated batch generation and the export catalog."""

from datetime import timedelta

import pytest
from mab_integration_demo.batch import (
    EXPORT_VIEW_DCS_POINTS,
    PREVIEW_DCS_POINTS,
    generate_complete_batch,
    get_export_catalog,
    get_export_data,
    get_export_file,
    get_export_rows,
    get_sample_batch_data,
    get_sample_batch_preview,
    paginate,
)
from mab_integration_demo.config import SAMPLE_BATCH_ID, SAMPLE_BATCH_START


@pytest.fixture(scope="module")
def batch():
    """Short batch with a coarse DCS interval to keep tests fast."""
    return get_sample_batch_data(seed=342, duration_hours=2, dcs_interval_seconds=600)


class TestGenerateCompleteBatch:
    """Tests for generate_complete_batch."""

    def test_sample_batch_identity(self, batch):
        assert batch.batch_id == SAMPLE_BATCH_ID
        assert batch.start_time == SAMPLE_BATCH_START
        assert batch.end_time == SAMPLE_BATCH_START + timedelta(hours=2)

    def test_systems_share_batch_id(self, batch):
        assert batch.ebr.batch_id == batch.batch_id
        assert all(s.batch_id == batch.batch_id for s in batch.lims.samples)

    def test_summary(self, batch):
        summary = batch.summary()
        assert summary["dcs_points"] == 12 * 17
        assert summary["ebr_phases"] == 6
        assert summary["lims_samples"] == 22
        assert summary["lims_results"] == 33
        assert summary["start_time"] == "2024-03-15T06:00:00Z"

    def test_seeded_batches_match(self):
        a = generate_complete_batch(duration_hours=1, dcs_interval_seconds=900, seed=7)
        b = generate_complete_batch(duration_hours=1, dcs_interval_seconds=900, seed=7)
        assert a.batch_id == b.batch_id
        assert [p.value for p in a.dcs.data_points] == [p.value for p in b.dcs.data_points]
        assert [r.value for r in a.lims.all_results] == [r.value for r in b.lims.all_results]

    def test_generated_batch_id_format(self):
        batch = generate_complete_batch(duration_hours=1, dcs_interval_seconds=3600, seed=1)
        assert batch.batch_id.startswith("B-2024-")
        assert len(batch.batch_id) == len("B-2024-0000")

    def test_to_dict_sections(self, batch):
        data = batch.to_dict()
        assert set(data) == {"batch_id", "start_time", "end_time", "dcs", "ebr", "lims"}

    def test_preview_trims_dcs(self):
        preview = get_sample_batch_preview(seed=1, duration_hours=1, dcs_interval_seconds=60)
        assert len(preview.dcs.data_points) == PREVIEW_DCS_POINTS


class TestExportCatalog:
    """Tests for the export file catalog."""

    def test_five_files(self):
        catalog = get_export_catalog()
        assert [f.id for f in catalog] == [
            "dcs-001", "ebr-001", "lims-001", "lims-002", "lims-003"
        ]

    def test_filenames_carry_batch_id(self):
        files = {f.id: f for f in get_export_catalog("B-TEST")}
        assert files["ebr-001"].filename == "Syncade_BatchRecord_B-TEST.xml"
        assert files["dcs-001"].filename == "DeltaV_Historian_Export_2024-03-15_BR2001.csv"

    def test_system_filter_case_insensitive(self):
        assert [f.id for f in get_export_catalog(system="lims")] == [
            "lims-001", "lims-002", "lims-003"
        ]
        assert len(get_export_catalog(system="EBR")) == 1

    def test_system_filter_all(self):
        assert len(get_export_catalog(system="all")) == 5

    def test_unknown_system(self):
        assert get_export_catalog(system="SAP") == []

    def test_get_export_file(self):
        assert get_export_file("lims-002").format == "CSV"
        assert get_export_file("nope") is None


class TestExportContents:
    """Tests for export data and tabular rows."""

    def test_dcs_data(self, batch):
        data = get_export_data(batch, "dcs-001")
        assert len(data["data_points"]) == min(EXPORT_VIEW_DCS_POINTS, 12 * 17)

    def test_ebr_data(self, batch):
        assert get_export_data(batch, "ebr-001")["batch_id"] == SAMPLE_BATCH_ID

    def test_lims_data_by_file(self, batch):
        assert len(get_export_data(batch, "lims-002")["results"]) == 2
        assert len(get_export_data(batch, "lims-003")["results"]) == 6

    def test_unknown_export(self, batch):
        assert get_export_data(batch, "xyz") is None
        assert get_export_rows(batch, "xyz") is None

    def test_ebr_rows_one_per_parameter(self, batch):
        rows = get_export_rows(batch, "ebr-001")
        assert len(rows) == 15
        assert rows[0]["phase_id"] == "PREP-001"
        assert rows[0]["name"] == "CIP Temperature"

    def test_lims_rows(self, batch):
        rows = get_export_rows(batch, "lims-001")
        assert len(rows) == 25
        assert "test_code" in rows[0]


class TestPaginate:
    """Tests for page slicing."""

    def test_first_page(self):
        result = paginate(list(range(120)), page=1, per_page=50)
        assert result["rows"] == list(range(50))
        assert result["total_pages"] == 3
        assert result["total_rows"] == 120

    def test_last_page_partial(self):
        assert paginate(list(range(120)), page=3, per_page=50)["rows"] == list(range(100, 120))

    def test_page_clamped(self):
        assert paginate(list(range(10)), page=99, per_page=5)["page"] == 2
        assert paginate(list(range(10)), page=0, per_page=5)["page"] == 1

    def test_empty(self):
        result = paginate([])
        assert result["total_pages"] == 1
        assert result["rows"] == []
