"""Deterministic markdown specification rendering.

render_spec() turns one flow's analysis into a fixed-structure document:
a header and seven numbered sections, always present and always in the
same order. The output is diffed by reviewers across versions, so the
same inputs must reproduce the same bytes: nothing here reads the clock,
iterates an unordered collection or depends on locale.
"""

import re
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from flowspec.application.dtos.analysis import FlowAnalysisResult
from flowspec.application.dtos.workflow import SpecMetadata

BLANK = "―"
SECTION_SEPARATOR = "\n\n---\n\n"
INITIAL_CHANGE_REASON = "initial creation"
UPDATE_CHANGE_REASON = "update"

_LINE_BREAKS = re.compile(r"[ \t]*(?:\r\n|\r|\n)+[ \t]*")


def cell(value: Any) -> str:
    """Render a value as a single-line table cell.

    None, empty and whitespace-only values become the blank marker; '\\' is
    escaped first, then '|' as '\\|', so unescaping is unambiguous. Line
    breaks collapse to a single space.
    """
    if value is None:
        return BLANK
    text = value.isoformat() if isinstance(value, datetime) else str(value)
    text = text.strip()
    if not text:
        return BLANK
    text = _LINE_BREAKS.sub(" ", text)
    return text.replace("\\", "\\\\").replace("|", "\\|")


def _inline(value: Any) -> str:
    """Single-line text outside tables (headings, list items)."""
    if value is None or not str(value).strip():
        return BLANK
    return _LINE_BREAKS.sub(" ", str(value).strip())


def _row(values: Sequence[Any]) -> str:
    return "| " + " | ".join(cell(v) for v in values) + " |"


def _table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join("---" for _ in headers) + "|",
    ]
    if rows:
        lines.extend(_row(r) for r in rows)
    else:
        lines.append(_row([None] * len(headers)))
    return "\n".join(lines)


def default_change_reason(version_number: int) -> str:
    return INITIAL_CHANGE_REASON if version_number <= 1 else UPDATE_CHANGE_REASON


def _summary(items: Sequence[tuple[str | None, str | None]]) -> str | None:
    """Join business meanings, falling back to the operation id, with ', '."""
    parts = [meaning or fallback for meaning, fallback in items if meaning or fallback]
    return ", ".join(parts) if parts else None


def _header(analysis: FlowAnalysisResult, meta: SpecMetadata) -> str:
    title = analysis.flow_display_name or meta.package_name
    return "\n".join(
        [
            f"# Business Flow Specification: {_inline(title)}",
            "",
            f"- Solution: {_inline(meta.solution_name)}",
            f"- Package: {_inline(meta.package_name)}",
            f"- Version: v{meta.version_number}",
        ]
    )


def _overview(analysis: FlowAnalysisResult, meta: SpecMetadata) -> str:
    trigger_summary = _summary(
        [
            (t.skill_match.business_meaning if t.skill_match else None, t.operation_id)
            for t in analysis.triggers
        ]
    )
    action_summary = _summary(
        [
            (a.skill_match.business_meaning if a.skill_match else None, a.operation_id)
            for a in analysis.actions
        ]
    )
    rows = [
        ("Flow name", analysis.flow_display_name),
        ("Package name", meta.package_name),
        ("Exported at", meta.package_created_at),
        ("Triggers", trigger_summary),
        ("Actions", action_summary),
        ("Connectors", str(len(analysis.connectors))),
    ]
    return "## 1. Overview\n\n" + _table(["Item", "Value"], rows)


def _connectors(analysis: FlowAnalysisResult) -> str:
    rows = [
        (i, c.connector_id, c.display_name, c.api_name)
        for i, c in enumerate(analysis.connectors, start=1)
    ]
    return "## 2. Connectors\n\n" + _table(
        ["#", "Connector ID", "Display name", "API name"], rows
    )


def _triggers(analysis: FlowAnalysisResult) -> str:
    rows = [
        (
            i,
            t.name,
            t.type,
            t.connector_id,
            t.operation_id,
            t.recurrence.describe() if t.recurrence else None,
            t.skill_match.business_meaning if t.skill_match else None,
        )
        for i, t in enumerate(analysis.triggers, start=1)
    ]
    return "## 3. Triggers\n\n" + _table(
        ["#", "Name", "Type", "Connector", "Operation", "Recurrence", "Business meaning"],
        rows,
    )


def _actions(analysis: FlowAnalysisResult) -> str:
    rows = [
        (
            i,
            a.name,
            a.type,
            a.connector_id,
            a.operation_id,
            ", ".join(a.depends_on),
            a.skill_match.business_meaning if a.skill_match else None,
        )
        for i, a in enumerate(analysis.actions, start=1)
    ]
    return "## 4. Actions\n\n" + _table(
        ["#", "Name", "Type", "Connector", "Operation", "Depends on", "Business meaning"],
        rows,
    )


def _failure_impact(analysis: FlowAnalysisResult) -> str:
    items: list[tuple[str, str, str]] = []
    for t in analysis.triggers:
        impact = t.skill_match.failure_impact if t.skill_match else None
        if impact and impact.strip():
            items.append((t.name, "trigger", impact))
    for a in analysis.actions:
        impact = a.skill_match.failure_impact if a.skill_match else None
        if impact and impact.strip():
            items.append((a.name, "action", impact))
    rows = [(i, *item) for i, item in enumerate(items, start=1)]
    return "## 5. Failure Impact\n\n" + _table(
        ["#", "Target", "Kind", "Impact on failure"], rows
    )


def _questions(analysis: FlowAnalysisResult) -> str:
    rows = [
        (i, q.category.value, q.target, q.question, q.reason)
        for i, q in enumerate(analysis.questions, start=1)
    ]
    return "## 6. Open Questions\n\n" + _table(
        ["#", "Category", "Target", "Question", "Reason"], rows
    )


def _change_history(meta: SpecMetadata) -> str:
    reason = meta.change_reason or default_change_reason(meta.version_number)
    rows = [(f"v{meta.version_number}", meta.created_at, reason)]
    return "## 7. Change History\n\n" + _table(["Version", "Date", "Reason"], rows)


def render_spec(analysis: FlowAnalysisResult, meta: SpecMetadata) -> str:
    """Render the specification for one flow. Ends with a single newline."""
    sections = [
        _header(analysis, meta),
        _overview(analysis, meta),
        _connectors(analysis),
        _triggers(analysis),
        _actions(analysis),
        _failure_impact(analysis),
        _questions(analysis),
        _change_history(meta),
    ]
    return SECTION_SEPARATOR.join(sections) + "\n"


def render_package_spec(
    analyses: Sequence[FlowAnalysisResult], meta: SpecMetadata
) -> str:
    """Render every flow of a package into one document, separated by rules."""
    documents = [render_spec(analysis, meta).rstrip("\n") for analysis in analyses]
    return SECTION_SEPARATOR.join(documents) + "\n"
