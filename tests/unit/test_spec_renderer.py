"""Tests for deterministic spec rendering (sections, placeholders, cell escaping)."""

import re

from flowspec.application.dtos.analysis import ConnectorInfo, FlowAnalysisResult
from flowspec.application.dtos.workflow import SpecMetadata
from flowspec.application.services import (
    BLANK,
    analyze_package,
    parse_package,
    render_package_spec,
    render_spec,
)
from flowspec.application.services.spec_renderer import cell

SECTIONS = [
    "## 1. Overview",
    "## 2. Connectors",
    "## 3. Triggers",
    "## 4. Actions",
    "## 5. Failure Impact",
    "## 6. Open Questions",
    "## 7. Change History",
]


def _meta(version: int = 1, **overrides) -> SpecMetadata:
    values = {
        "solution_name": "Finance",
        "package_name": "Invoice Intake",
        "version_number": version,
        "created_at": "2024-05-02 09:30 UTC",
        "package_created_at": "2024-05-01T10:00:00Z",
    }
    values.update(overrides)
    return SpecMetadata(**values)


def _section(document: str, heading: str) -> str:
    start = document.index(heading)
    end = document.find("\n---\n", start)
    return document[start:] if end == -1 else document[start:end]


def test_render_is_deterministic(sample_package: bytes) -> None:
    [analysis] = analyze_package(parse_package(sample_package), [])
    assert render_spec(analysis, _meta()) == render_spec(analysis, _meta())


def test_empty_analysis_has_every_section_with_placeholders() -> None:
    document = render_spec(FlowAnalysisResult(flow_id="f", flow_display_name=None), _meta())
    positions = [document.index(heading) for heading in SECTIONS]
    assert positions == sorted(positions)
    table_rows = [line for line in document.splitlines() if line.startswith("|")]
    assert table_rows
    assert all(re.fullmatch(r"\|.*\|", row) for row in table_rows)
    for heading in SECTIONS[1:6]:
        assert BLANK in _section(document, heading)
    assert document.endswith("\n") and not document.endswith("\n\n")


def test_header_falls_back_to_package_name() -> None:
    document = render_spec(FlowAnalysisResult(flow_id="f", flow_display_name=None), _meta())
    assert document.startswith("# Business Flow Specification: Invoice Intake\n")
    assert "- Version: v1" in document


def test_cell_escapes_delimiter() -> None:
    assert cell("A|B") == "A\\|B"


def test_cell_escapes_backslash_before_delimiter() -> None:
    # A literal backslash-pipe stays distinguishable from an escaped pipe.
    assert cell("a\\|b") == "a\\\\\\|b"
    assert cell("C:\\flows\\") == "C:\\\\flows\\\\"
    assert cell("a\\|b") != cell("a|b")


def test_cell_collapses_lines() -> None:
    assert cell("line one\r\n  line two\nthree") == "line one line two three"
    assert cell(None) == BLANK
    assert cell("   ") == BLANK
    assert cell(0) == "0"


def test_connector_name_with_delimiter_is_recoverable() -> None:
    analysis = FlowAnalysisResult(
        flow_id="f",
        flow_display_name="Flow",
        connectors=(ConnectorInfo("shared_x", "Sales | EU\nteam", "x"),),
    )
    section = _section(render_spec(analysis, _meta()), "## 2. Connectors")
    row = next(line for line in section.splitlines() if "shared_x" in line)
    assert "Sales \\| EU team" in row
    assert "Sales \\| EU team".replace("\\|", "|") == "Sales | EU team"


def test_end_to_end_document(sample_package: bytes) -> None:
    [analysis] = analyze_package(parse_package(sample_package), [])
    document = render_spec(analysis, _meta())
    triggers = _section(document, "## 3. Triggers")
    assert "15" in triggers and "Minute" in triggers
    questions = _section(document, "## 6. Open Questions")
    question_rows = [line for line in questions.splitlines() if line.startswith("| ") and line[2].isdigit()]
    assert len(question_rows) == 3
    assert "When_a_file_is_created" in questions
    assert "Send_an_email" in questions


def test_change_history_reason_by_version() -> None:
    empty = FlowAnalysisResult(flow_id="f", flow_display_name="Flow")
    first = _section(render_spec(empty, _meta(1)), "## 7. Change History")
    second = _section(render_spec(empty, _meta(2)), "## 7. Change History")
    custom = _section(render_spec(empty, _meta(3, change_reason="new approver")), "## 7. Change History")
    assert "| v1 | 2024-05-02 09:30 UTC | initial creation |" in first
    assert "| v2 | 2024-05-02 09:30 UTC | update |" in second
    assert "new approver" in custom


def test_package_spec_joins_flows_in_order() -> None:
    flows = [
        FlowAnalysisResult(flow_id="a", flow_display_name="Alpha"),
        FlowAnalysisResult(flow_id="b", flow_display_name="Beta"),
    ]
    document = render_package_spec(flows, _meta())
    assert document.index("Specification: Alpha") < document.index("Specification: Beta")
    assert document.count("## 7. Change History") == 2
