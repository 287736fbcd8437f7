"""LIMS export generator.

Samples and test results for a batch as a QC laboratory system records them.
Location codes follow the lab's own conventions and do not line up with the
DCS tags or the eBR equipment ids.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

LAB_SITE = "QC Laboratory - Building 5"

LOCATION_CODES: Dict[str, List[str]] = {
    "bioreactor": ["LOC-B7-R2001", "AREA-USP-BR01", "BLDG7-SUITE2-BR-A"],
    "sampling_port": ["SP-R2001-TOP", "PORT-BR01-MID", "SAMPLE-USP-01"],
    "chromatography": ["CHR-B7-PA01", "DSP-AREA-PROTA", "BLDG7-CHR-SUITE1"],
    "hold_tank": ["TANK-DSP-01", "HT-PROTA-OUT", "VESSEL-CHR-POOL"],
}

SAMPLE_ID_PREFIXES = {
    "In-Process": "IP",
    "Bioburden": "BB",
    "Endotoxin": "ET",
    "Cell Count": "CC",
    "Product Titer": "PT",
    "Metabolite": "MB",
    "Purity": "PU",
    "Aggregate": "AG",
}

ANALYSTS = ["AN-2847", "AN-1092", "AN-3341", "AN-2156", "AN-4782"]

IN_PROCESS_HOURS = [4, 12, 24, 48, 72, 84]
MICROBIOLOGY_HOURS = [0, 48, 84]

RESULT_TYPES = ("analytical", "microbiology", "in_process")

CSV_COLUMNS = (
    "ResultID,SampleID,TestCode,TestName,Value,Unit,SpecMin,SpecMax,Status,"
    "Analyst,AnalysisDate,ApprovedBy,ApprovalDate"
)


# =============================================================================
# Record types
# =============================================================================


@dataclass
class LIMSSample:
    """Physical sample drawn from the process."""

    sample_id: str
    batch_id: str
    sample_type: str
    sample_point: str
    collection_time: datetime
    collected_by: str
    status: str = "Completed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sample_id": self.sample_id,
            "batch_id": self.batch_id,
            "sample_type": self.sample_type,
            "sample_point": self.sample_point,
            "collection_time": self.collection_time.isoformat() + "Z",
            "collected_by": self.collected_by,
            "status": self.status,
        }


@dataclass
class TestResult:
    """Result of one test method on one sample."""

    result_id: str
    sample_id: str
    test_code: str
    test_name: str
    value: float
    unit: str
    status: str
    analyst: str
    analysis_date: datetime
    specification_min: Optional[float] = None
    specification_max: Optional[float] = None
    approved_by: Optional[str] = None
    approval_date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result_id": self.result_id,
            "sample_id": self.sample_id,
            "test_code": self.test_code,
            "test_name": self.test_name,
            "value": self.value,
            "unit": self.unit,
            "specification_min": self.specification_min,
            "specification_max": self.specification_max,
            "status": self.status,
            "analyst": self.analyst,
            "analysis_date": self.analysis_date.isoformat() + "Z",
            "approved_by": self.approved_by,
            "approval_date": (
                self.approval_date.isoformat() + "Z" if self.approval_date else None
            ),
        }


@dataclass
class LIMSExport:
    """Everything the lab exported for a batch."""

    export_id: str
    export_date: datetime
    lab_site: str
    samples: List[LIMSSample] = field(default_factory=list)
    analytical_results: List[TestResult] = field(default_factory=list)
    microbiology_results: List[TestResult] = field(default_factory=list)
    in_process_results: List[TestResult] = field(default_factory=list)

    def results_for(self, result_type: str) -> List[TestResult]:
        if result_type not in RESULT_TYPES:
            raise ValueError(f"Unknown result type: {result_type}")
        return getattr(self, f"{result_type}_results")

    @property
    def all_results(self) -> List[TestResult]:
        return self.in_process_results + self.microbiology_results + self.analytical_results

    def get_sample(self, sample_id: str) -> Optional[LIMSSample]:
        return next((s for s in self.samples if s.sample_id == sample_id), None)

    def to_dict(self, result_type: Optional[str] = None) -> Dict[str, Any]:
        data = {
            "export_id": self.export_id,
            "export_date": self.export_date.isoformat() + "Z",
            "lab_site": self.lab_site,
            "samples": [s.to_dict() for s in self.samples],
        }
        if result_type:
            data["results"] = [r.to_dict() for r in self.results_for(result_type)]
        else:
            for name in RESULT_TYPES:
                data[f"{name}_results"] = [r.to_dict() for r in self.results_for(name)]
        return data


# =============================================================================
# Generation
# =============================================================================


def generate_sample_id(
    sample_type: str, date: datetime, rng: Optional[random.Random] = None
) -> str:
    """Lab sample number: type prefix, YYMM, four random digits."""
    rng = rng or random
    prefix = SAMPLE_ID_PREFIXES.get(sample_type, "GN")
    return f"{prefix}{date:%y%m}{rng.randint(0, 9999):04d}"


def _location(area: str, rng) -> str:
    return rng.choice(LOCATION_CODES[area])


def _result(
    sample: LIMSSample,
    suffix: str,
    test_code: str,
    test_name: str,
    value: float,
    unit: str,
    status: str,
    analysis_date: datetime,
    rng,
    spec_min: Optional[float] = None,
    spec_max: Optional[float] = None,
    approved_by: Optional[str] = None,
    approval_date: Optional[datetime] = None,
) -> TestResult:
    return TestResult(
        result_id=f"R-{sample.sample_id}-{suffix}",
        sample_id=sample.sample_id,
        test_code=test_code,
        test_name=test_name,
        value=value,
        unit=unit,
        specification_min=spec_min,
        specification_max=spec_max,
        status=status,
        analyst=rng.choice(ANALYSTS),
        analysis_date=analysis_date,
        approved_by=approved_by,
        approval_date=approval_date,
    )


def _pass_fail(ok: bool) -> str:
    return "Pass" if ok else "Fail"


def _generate_in_process(
    batch_id: str, start_time: datetime, hour: int, rng
) -> Tuple[List[LIMSSample], List[TestResult]]:
    samples: List[LIMSSample] = []
    results: List[TestResult] = []
    collection_time = start_time + timedelta(hours=hour)

    # Cell count at every timepoint
    cc = LIMSSample(
        sample_id=generate_sample_id("Cell Count", collection_time, rng),
        batch_id=batch_id,
        sample_type="In-Process Cell Count",
        sample_point=_location("sampling_port", rng),
        collection_time=collection_time,
        collected_by="OP-1247",
    )
    samples.append(cc)
    analysis = collection_time + timedelta(hours=rng.uniform(2, 6))
    approval = analysis + timedelta(hours=1)

    vcd = round(0.3 * 2 ** (hour / 20) * (0.9 + rng.random() * 0.2), 2)
    results.append(
        _result(cc, "VCD", "VCD-TRYPAN", "Viable Cell Density", vcd, "E6 cells/mL",
                _pass_fail(0.2 <= vcd <= 20), analysis, rng, spec_min=0.2, spec_max=20,
                approved_by="SUP-1847", approval_date=approval)
    )
    viability = round(85 + rng.random() * 10, 1)
    results.append(
        _result(cc, "VIAB", "VIAB-TRYPAN", "Cell Viability", viability, "percent",
                _pass_fail(viability >= 80), analysis, rng, spec_min=80,
                approved_by="SUP-1847", approval_date=approval)
    )

    # Metabolites once the culture is established
    if hour >= 12:
        mb = LIMSSample(
            sample_id=generate_sample_id("Metabolite", collection_time, rng),
            batch_id=batch_id,
            sample_type="Metabolite Analysis",
            sample_point=_location("sampling_port", rng),
            collection_time=collection_time,
            collected_by="OP-1247",
        )
        samples.append(mb)
        analysis = collection_time + timedelta(hours=rng.uniform(6, 24))

        glucose = round(max(0.5, 4.5 - (hour / 84) * 3.5 + (rng.random() - 0.5)), 2)
        results.append(
            _result(mb, "GLU", "METAB-GLU", "Glucose Concentration", glucose, "g/L",
                    _pass_fail(0.5 <= glucose <= 6.0), analysis, rng, spec_min=0.5, spec_max=6.0)
        )
        lactate = round((hour / 84) * 2.5 + rng.random() * 0.5, 2)
        results.append(
            _result(mb, "LAC", "METAB-LAC", "Lactate Concentration", lactate, "g/L",
                    _pass_fail(lactate <= 3.5), analysis, rng, spec_max=3.5)
        )

    # Titer only during production
    if hour >= 48:
        pt = LIMSSample(
            sample_id=generate_sample_id("Product Titer", collection_time, rng),
            batch_id=batch_id,
            sample_type="Product Titer",
            sample_point=_location("bioreactor", rng),
            collection_time=collection_time,
            collected_by="OP-2891",
        )
        samples.append(pt)
        analysis = collection_time + timedelta(hours=rng.uniform(24, 72))

        titer = round(0.5 + ((hour - 48) / 36) * 2.5 + (rng.random() - 0.5) * 0.3, 3)
        results.append(
            _result(pt, "TITER", "TITER-ELISA", "Product Titer by ELISA", titer, "g/L",
                    _pass_fail(titer >= 0.5), analysis, rng, spec_min=0.5,
                    approved_by="SUP-2941", approval_date=analysis + timedelta(hours=4))
        )

    return samples, results


def _generate_microbiology(
    batch_id: str, start_time: datetime, hour: int, rng
) -> Tuple[List[LIMSSample], List[TestResult]]:
    collection_time = start_time + timedelta(hours=hour)
    samples: List[LIMSSample] = []
    results: List[TestResult] = []

    bb = LIMSSample(
        sample_id=generate_sample_id("Bioburden", collection_time, rng),
        batch_id=batch_id,
        sample_type="Bioburden",
        sample_point=_location("sampling_port", rng),
        collection_time=collection_time,
        collected_by="OP-1653",
    )
    samples.append(bb)
    analysis = collection_time + timedelta(hours=rng.uniform(48, 120))
    cfu = int(rng.random() * 5)
    results.append(
        _result(bb, "BB", "MICRO-BB-TSA", "Bioburden - Total Aerobic Count", cfu, "CFU/mL",
                _pass_fail(cfu <= 10), analysis, rng, spec_max=10,
                approved_by="SUP-MICRO-01", approval_date=analysis + timedelta(hours=24))
    )

    et = LIMSSample(
        sample_id=generate_sample_id("Endotoxin", collection_time, rng),
        batch_id=batch_id,
        sample_type="Endotoxin",
        sample_point=_location("sampling_port", rng),
        collection_time=collection_time,
        collected_by="OP-1653",
    )
    samples.append(et)
    endotoxin = round(rng.random() * 0.05, 3)
    results.append(
        _result(et, "ET", "ENDO-LAL", "Endotoxin by LAL", endotoxin, "EU/mL",
                _pass_fail(endotoxin <= 0.5), collection_time + timedelta(hours=24), rng,
                spec_max=0.5, approved_by="SUP-MICRO-01",
                approval_date=collection_time + timedelta(hours=30))
    )

    return samples, results


def _generate_final(
    batch_id: str, end_time: datetime, rng
) -> Tuple[List[LIMSSample], List[TestResult]]:
    samples: List[LIMSSample] = []
    results: List[TestResult] = []

    # Both final assays are reported together
    delay = rng.uniform(48, 72)
    tests = [
        ("Purity", "Final Product - Purity", "PURITY", "PURITY-SEC-HPLC",
         "Purity by SEC-HPLC (Monomer)", 96 + rng.random() * 2, 95, None),
        ("Aggregate", "Final Product - Aggregates", "HMW", "AGG-SEC-HPLC-HMW",
         "High Molecular Weight Species", 1.5 + rng.random(), None, 3.0),
    ]
    for id_type, sample_type, suffix, code, name, raw_value, spec_min, spec_max in tests:
        sample = LIMSSample(
            sample_id=generate_sample_id(id_type, end_time, rng),
            batch_id=batch_id,
            sample_type=sample_type,
            sample_point=_location("hold_tank", rng),
            collection_time=end_time,
            collected_by="OP-2891",
        )
        samples.append(sample)
        analysis = end_time + timedelta(hours=delay)
        value = round(raw_value, 2)
        ok = (spec_min is None or value >= spec_min) and (spec_max is None or value <= spec_max)
        results.append(
            _result(sample, suffix, code, name, value, "percent", _pass_fail(ok), analysis,
                    rng, spec_min=spec_min, spec_max=spec_max, approved_by="SUP-ANAL-02",
                    approval_date=analysis + timedelta(hours=8))
        )

    return samples, results


def generate_lims_export(
    batch_id: str,
    start_time: datetime,
    end_time: datetime,
    rng: Optional[random.Random] = None,
) -> LIMSExport:
    """Generate all samples and results for a batch."""
    rng = rng or random
    export = LIMSExport(
        export_id=f"LIMS-EXP-{int(datetime.now().timestamp() * 1000)}",
        export_date=datetime.now().replace(microsecond=0),
        lab_site=LAB_SITE,
    )

    for hour in IN_PROCESS_HOURS:
        samples, results = _generate_in_process(batch_id, start_time, hour, rng)
        export.samples.extend(samples)
        export.in_process_results.extend(results)

    for hour in MICROBIOLOGY_HOURS:
        samples, results = _generate_microbiology(batch_id, start_time, hour, rng)
        export.samples.extend(samples)
        export.microbiology_results.extend(results)

    samples, results = _generate_final(batch_id, end_time, rng)
    export.samples.extend(samples)
    export.analytical_results.extend(results)

    logger.debug(
        f"Generated LIMS export for {batch_id}: {len(export.samples)} samples, "
        f"{len(export.all_results)} results"
    )
    return export


# =============================================================================
# Formatting
# =============================================================================


def _fmt(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat() + "Z"
    return str(value)


def format_lims_as_csv(export: LIMSExport, result_type: str) -> str:
    """Render one result list as the lab's CSV export."""
    results = export.results_for(result_type)
    lines = [
        "# LIMS Export",
        f"# Export ID: {export.export_id}",
        f"# Lab Site: {export.lab_site}",
        f"# Export Date: {export.export_date.isoformat()}Z",
        f"# Result Type: {result_type.upper()}",
        CSV_COLUMNS,
    ]
    for r in results:
        lines.append(
            ",".join(
                _fmt(v)
                for v in (
                    r.result_id,
                    r.sample_id,
                    r.test_code,
                    f'"{r.test_name}"',
                    r.value,
                    r.unit,
                    r.specification_min,
                    r.specification_max,
                    r.status,
                    r.analyst,
                    r.analysis_date,
                    r.approved_by,
                    r.approval_date,
                )
            )
        )
    return "\n".join(lines)
