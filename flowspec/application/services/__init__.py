"""Application services: package parsing, flow analysis, spec rendering."""

from flowspec.application.services.flow_analyzer import (
    FlowAnalyzer,
    SkillMatcher,
    analyze_package,
    flatten_actions,
)
from flowspec.application.services.package_parser import (
    package_from_document,
    package_to_document,
    parse_package,
    read_package_documents,
)
from flowspec.application.services.spec_renderer import (
    BLANK,
    render_package_spec,
    render_spec,
)

__all__ = [
    "BLANK",
    "FlowAnalyzer",
    "SkillMatcher",
    "analyze_package",
    "flatten_actions",
    "package_from_document",
    "package_to_document",
    "parse_package",
    "read_package_documents",
    "render_package_spec",
    "render_spec",
]
