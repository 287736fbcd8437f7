"""Tests for demo phase navigation."""

import pytest

from mab_integration_demo.phases import (
    DemoPhase,
    get_next_phase,
    get_previous_phase,
    get_sections_for_phase,
)


class TestDemoPhase:
    """Tests for the phase enum."""

    def test_order(self):
        assert list(DemoPhase) == [DemoPhase.RAW, DemoPhase.STRUCTURED, DemoPhase.KNOWLEDGE]

    def test_slug_and_title(self):
        assert DemoPhase.RAW.slug == "raw"
        assert DemoPhase.KNOWLEDGE.title == "Knowledge Graph"

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("raw", DemoPhase.RAW),
            ("Structured", DemoPhase.STRUCTURED),
            (" knowledge ", DemoPhase.KNOWLEDGE),
            ("2", DemoPhase.STRUCTURED),
            (3, DemoPhase.KNOWLEDGE),
        ],
    )
    def test_from_slug(self, value, expected):
        assert DemoPhase.from_slug(value) == expected

    @pytest.mark.parametrize("value", ["graph", "0", "4", ""])
    def test_from_slug_invalid(self, value):
        with pytest.raises(ValueError):
            DemoPhase.from_slug(value)


class TestPhaseNavigation:
    """Tests for next/previous stepping."""

    def test_next(self):
        assert get_next_phase(DemoPhase.RAW) == DemoPhase.STRUCTURED
        assert get_next_phase(DemoPhase.STRUCTURED) == DemoPhase.KNOWLEDGE

    def test_next_clamps_at_end(self):
        assert get_next_phase(DemoPhase.KNOWLEDGE) == DemoPhase.KNOWLEDGE

    def test_previous(self):
        assert get_previous_phase(DemoPhase.KNOWLEDGE) == DemoPhase.STRUCTURED

    def test_previous_clamps_at_start(self):
        assert get_previous_phase(DemoPhase.RAW) == DemoPhase.RAW


class TestSections:
    """Tests for the tabs shown per phase."""

    def test_raw_sections(self):
        paths = [s.api_path for s in get_sections_for_phase(DemoPhase.RAW)]
        assert paths == ["/api/exports", "/api/batch/preview", "/api/batch-data"]

    def test_structured_sections(self):
        sections = get_sections_for_phase(DemoPhase.STRUCTURED)
        assert len(sections) == 5
        assert all(s.api_path.startswith("/api/structured/") for s in sections)

    def test_knowledge_sections(self):
        sections = get_sections_for_phase(DemoPhase.KNOWLEDGE)
        assert [s.slug for s in sections][0] == "graph"
        assert all(s.api_path.startswith("/api/knowledge/") for s in sections)

    def test_slugs_unique(self):
        for phase in DemoPhase:
            slugs = [s.slug for s in get_sections_for_phase(phase)]
            assert len(slugs) == len(set(slugs))
