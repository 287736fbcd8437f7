"""Demo phases for the integration walkthrough.

Phase 1: Raw data - disconnected DCS, eBR and LIMS exports
Phase 2: Structured data - ISA-95/ISA-88 semantic layer
Phase 3: Knowledge graph - equipment, process and material networks
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List


class DemoPhase(IntEnum):
    """Walkthrough phases, in presentation order."""

    RAW = 1  # Siloed exports, inconsistent naming
    STRUCTURED = 2  # Standardized hierarchies and parameters
    KNOWLEDGE = 3  # Connected networks and canned queries

    @property
    def slug(self) -> str:
        return self.name.lower()

    @property
    def title(self) -> str:
        return _TITLES[self]

    @classmethod
    def from_slug(cls, slug: str) -> "DemoPhase":
        """Resolve a phase from its slug or number ('raw', '2', ...)."""
        value = str(slug).strip().lower()
        if value.isdigit():
            return cls(int(value))
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown demo phase: {slug}") from None


_TITLES = {
    DemoPhase.RAW: "Raw Data",
    DemoPhase.STRUCTURED: "Structured Data",
    DemoPhase.KNOWLEDGE: "Knowledge Graph",
}


@dataclass
class PhaseSection:
    """A tab shown within a phase and the API route that feeds it."""

    slug: str
    title: str
    api_path: str


def get_sections_for_phase(phase: DemoPhase) -> List[PhaseSection]:
    """Get the tabs shown for a given phase."""
    if phase == DemoPhase.RAW:
        return [
            PhaseSection("exports", "System Exports", "/api/exports"),
            PhaseSection("preview", "Batch Preview", "/api/batch/preview"),
            PhaseSection("dashboard", "Live Batch Dashboard", "/api/batch-data"),
        ]

    if phase == DemoPhase.STRUCTURED:
        return [
            PhaseSection("equipment", "ISA-95 Equipment", "/api/structured/equipment"),
            PhaseSection("process", "ISA-88 Process", "/api/structured/process"),
            PhaseSection("materials", "Material Flow", "/api/structured/materials"),
            PhaseSection("parameters", "Parameters", "/api/structured/parameters"),
            PhaseSection("comparison", "Before / After", "/api/structured/comparison"),
        ]

    return [
        PhaseSection("graph", "Knowledge Graph", "/api/knowledge/graph"),
        PhaseSection("equipment-network", "Equipment Network", "/api/knowledge/equipment"),
        PhaseSection("process-network", "Process Network", "/api/knowledge/process"),
        PhaseSection("material-network", "Material Network", "/api/knowledge/materials"),
        PhaseSection("flow", "Process Flow", "/api/knowledge/flow"),
        PhaseSection("queries", "Queries", "/api/knowledge/queries"),
    ]


def get_next_phase(phase: DemoPhase) -> DemoPhase:
    """Phase that follows, or the last phase when already there."""
    return DemoPhase(min(phase + 1, max(DemoPhase)))


def get_previous_phase(phase: DemoPhase) -> DemoPhase:
    """Phase that precedes, or the first phase when already there."""
    return DemoPhase(max(phase - 1, min(DemoPhase)))
