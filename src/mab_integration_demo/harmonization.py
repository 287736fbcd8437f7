"""Parameter harmonization.

Maps raw system parameters (DCS tags, LIMS test codes) onto a single set of
standard parameters with one name, one unit and one criticality each.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

CATEGORIES = ("Process", "Equipment", "Quality", "Material")
CLASSIFICATIONS = ("Critical", "NonCritical", "Informational")


@dataclass(frozen=True)
class CriticalRange:
    min: Optional[float] = None
    max: Optional[float] = None
    target: Optional[float] = None

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in (("min", self.min), ("max", self.max),
                                  ("target", self.target)) if v is not None}


@dataclass(frozen=True)
class StandardParameter:
    standard_id: str
    standard_name: str
    category: str
    classification: str
    standard_unit: str
    description: str
    alternate_units: tuple = ()
    critical_range: Optional[CriticalRange] = None

    @property
    def is_critical(self) -> bool:
        return self.classification == "Critical"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "standard_id": self.standard_id,
            "standard_name": self.standard_name,
            "category": self.category,
            "classification": self.classification,
            "standard_unit": self.standard_unit,
            "alternate_units": list(self.alternate_units),
            "description": self.description,
            "critical_ranges": self.critical_range.to_dict() if self.critical_range else None,
        }


@dataclass(frozen=True)
class ParameterMapping:
    raw_system_id: str
    raw_parameter_name: str
    raw_unit: str
    system: str  # DCS, eBR, LIMS
    standard_parameter: StandardParameter
    conversion_factor: Optional[float] = None
    conversion_offset: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw_system_id": self.raw_system_id,
            "raw_parameter_name": self.raw_parameter_name,
            "raw_unit": self.raw_unit,
            "system": self.system,
            "standard_id": self.standard_parameter.standard_id,
            "standard_name": self.standard_parameter.standard_name,
            "conversion_factor": self.conversion_factor,
            "conversion_offset": self.conversion_offset,
        }


# =============================================================================
# Standard parameters
# =============================================================================

STANDARD_PARAMETERS: List[StandardParameter] = [
    StandardParameter("PARAM_TEMP_CULTURE", "Culture Temperature", "Process", "Critical",
                      "degC", "Cell culture temperature", ("degF", "K"),
                      CriticalRange(36.5, 37.5, 37.0)),
    StandardParameter("PARAM_PH", "pH", "Process", "Critical", "pH", "Culture pH value",
                      critical_range=CriticalRange(7.0, 7.2, 7.1)),
    StandardParameter("PARAM_DO", "Dissolved Oxygen", "Process", "Critical", "percent",
                      "Dissolved oxygen saturation", critical_range=CriticalRange(30, 40, 35)),
    StandardParameter("PARAM_AGITATION", "Agitation Speed", "Equipment", "Critical", "RPM",
                      "Impeller rotation speed", critical_range=CriticalRange(45, 55, 50)),
    StandardParameter("PARAM_PRESSURE", "Vessel Pressure", "Equipment", "NonCritical", "bar",
                      "Vessel internal pressure", ("psi", "kPa")),
    StandardParameter("PARAM_LEVEL", "Liquid Level", "Equipment", "NonCritical", "percent",
                      "Liquid level in vessel", ("L", "cm")),
    StandardParameter("PARAM_FLOW_O2", "Oxygen Flow Rate", "Process", "Critical", "SLPM",
                      "Oxygen gas flow rate", ("L/min", "mL/min")),
    StandardParameter("PARAM_FLOW_CO2", "Carbon Dioxide Flow Rate", "Process", "NonCritical",
                      "SLPM", "CO2 gas flow rate", ("L/min", "mL/min")),
    StandardParameter("PARAM_FLOW_FEED", "Feed Flow Rate", "Process", "Critical", "L/hr",
                      "Nutrient feed flow rate", ("mL/min", "L/day")),
    StandardParameter("PARAM_VCD", "Viable Cell Density", "Quality", "Critical",
                      "E6 cells/mL", "Concentration of viable cells"),
    StandardParameter("PARAM_VIABILITY", "Cell Viability", "Quality", "Critical", "percent",
                      "Percentage of viable cells", critical_range=CriticalRange(min=80)),
    StandardParameter("PARAM_GLUCOSE", "Glucose Concentration", "Material", "Critical", "g/L",
                      "Glucose concentration in media", ("mM",), CriticalRange(0.5, 6.0)),
    StandardParameter("PARAM_LACTATE", "Lactate Concentration", "Material", "NonCritical",
                      "g/L", "Lactate concentration in media", ("mM",),
                      CriticalRange(max=3.5)),
    StandardParameter("PARAM_TITER", "Product Titer", "Quality", "Critical", "g/L",
                      "Product concentration", ("mg/mL",), CriticalRange(min=0.5)),
    StandardParameter("PARAM_CHR_PRESSURE", "Column Pressure", "Equipment", "Critical", "bar",
                      "Chromatography column pressure", ("psi", "MPa"),
                      CriticalRange(max=2.5)),
    StandardParameter("PARAM_CHR_FLOW", "Column Flow Rate", "Process", "Critical", "L/hr",
                      "Chromatography flow rate", ("mL/min", "cm/hr")),
    StandardParameter("PARAM_PURITY", "Product Purity", "Quality", "Critical", "percent",
                      "Product purity by SEC-HPLC", critical_range=CriticalRange(min=95)),
    StandardParameter("PARAM_AGGREGATES", "Aggregate Content", "Quality", "Critical",
                      "percent", "High molecular weight species",
                      critical_range=CriticalRange(max=3.0)),
]

_BY_ID = {p.standard_id: p for p in STANDARD_PARAMETERS}

# (raw id, raw name, raw unit, system, standard id)
_RAW_MAPPINGS = [
    ("BR001_PV_TEMP", "BR001 Process Temperature", "degC", "DCS", "PARAM_TEMP_CULTURE"),
    ("REACTOR_1_TEMP_AI", "Reactor 1 Temperature Analog Input", "degC", "DCS",
     "PARAM_TEMP_CULTURE"),
    ("TI_2001_JACKET", "TI-2001 Jacket Temperature", "degC", "DCS", "PARAM_TEMP_CULTURE"),
    ("PH_AI_2001", "pH Analog Input 2001", "pH", "DCS", "PARAM_PH"),
    ("BR001_PH_PV", "BR001 pH Process Value", "pH", "DCS", "PARAM_PH"),
    ("DO_2001_PV", "DO-2001 Process Value", "percent", "DCS", "PARAM_DO"),
    ("BR001_DO_MEAS", "BR001 DO Measurement", "percent", "DCS", "PARAM_DO"),
    ("REACTOR_1_AGIT_SPEED", "Reactor 1 Agitation Speed", "RPM", "DCS", "PARAM_AGITATION"),
    ("BR001_STIR_PV", "BR001 Stirrer Process Value", "RPM", "DCS", "PARAM_AGITATION"),
    ("BR001_LVL_PERCENT", "BR001 Level Percent", "percent", "DCS", "PARAM_LEVEL"),
    ("LI_2001_VESSEL", "LI-2001 Vessel Level", "percent", "DCS", "PARAM_LEVEL"),
    ("O2_FLOW_FI_2001", "O2 Flow Indicator 2001", "SLPM", "DCS", "PARAM_FLOW_O2"),
    ("CO2_FLOW_2001", "CO2 Flow 2001", "SLPM", "DCS", "PARAM_FLOW_CO2"),
    ("FEED_FLOW_2001", "Feed Flow 2001", "L/hr", "DCS", "PARAM_FLOW_FEED"),
    ("CHR_A_PRESS_01", "Chromatography A Pressure 01", "bar", "DCS", "PARAM_CHR_PRESSURE"),
    ("COLUMN_01_PI", "Column 01 Pressure Indicator", "bar", "DCS", "PARAM_CHR_PRESSURE"),
    ("CHR_A_FLOW_FI", "Chromatography A Flow Indicator", "L/hr", "DCS", "PARAM_CHR_FLOW"),
    ("VCD-TRYPAN", "Viable Cell Density by Trypan Blue", "E6 cells/mL", "LIMS", "PARAM_VCD"),
    ("VIAB-TRYPAN", "Viability by Trypan Blue", "percent", "LIMS", "PARAM_VIABILITY"),
    ("METAB-GLU", "Metabolite - Glucose", "g/L", "LIMS", "PARAM_GLUCOSE"),
    ("METAB-LAC", "Metabolite - Lactate", "g/L", "LIMS", "PARAM_LACTATE"),
    ("TITER-ELISA", "Product Titer by ELISA", "g/L", "LIMS", "PARAM_TITER"),
    ("PURITY-SEC-HPLC", "Purity by SEC-HPLC (Monomer)", "percent", "LIMS", "PARAM_PURITY"),
    ("AGG-SEC-HPLC-HMW", "High Molecular Weight Species by SEC-HPLC", "percent", "LIMS",
     "PARAM_AGGREGATES"),
]


def get_parameter_mappings() -> List[ParameterMapping]:
    return [
        ParameterMapping(raw_id, raw_name, raw_unit, system, _BY_ID[standard_id])
        for raw_id, raw_name, raw_unit, system, standard_id in _RAW_MAPPINGS
    ]


# =============================================================================
# Lookups and conversion
# =============================================================================


def find_standard_parameter(raw_system_id: str, system: str) -> Optional[ParameterMapping]:
    """Mapping for a raw id within one system, or None if unmapped."""
    return next(
        (
            m for m in get_parameter_mappings()
            if m.raw_system_id == raw_system_id and m.system == system
        ),
        None,
    )


def convert_to_standard_value(raw_value: float, mapping: ParameterMapping) -> float:
    """Apply factor then offset, rounded for display (2 dp for pH, else 1)."""
    value = raw_value
    if mapping.conversion_factor is not None:
        value *= mapping.conversion_factor
    if mapping.conversion_offset is not None:
        value += mapping.conversion_offset

    decimals = 2 if mapping.standard_parameter.standard_unit == "pH" else 1
    return round(value, decimals)


def get_all_standard_parameters() -> List[StandardParameter]:
    return list(STANDARD_PARAMETERS)


def get_standard_parameter(standard_id: str) -> Optional[StandardParameter]:
    return _BY_ID.get(standard_id)


def group_parameters_by_category() -> Dict[str, List[StandardParameter]]:
    grouped: Dict[str, List[StandardParameter]] = {c: [] for c in CATEGORIES}
    for param in STANDARD_PARAMETERS:
        grouped[param.category].append(param)
    return grouped


def get_critical_parameters() -> List[StandardParameter]:
    return [p for p in STANDARD_PARAMETERS if p.is_critical]


def get_mappings_for_parameter(standard_id: str) -> List[ParameterMapping]:
    """Every raw id, across systems, that feeds one standard parameter."""
    return [
        m for m in get_parameter_mappings()
        if m.standard_parameter.standard_id == standard_id
    ]
