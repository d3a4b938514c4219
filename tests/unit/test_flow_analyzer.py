"""Tests for flow analysis: skill matching, flattening and question generation."""

from flowspec.application.dtos.analysis import FlowAnalysisResult, count_questions
from flowspec.application.dtos.skill_definition import SkillDefinitionRecord
from flowspec.application.services import FlowAnalyzer, SkillMatcher, analyze_package, parse_package
from flowspec.shared.enums import NodeKind, QuestionCategory


def _skill(connector_id: str, action_name: str | None = None, meaning: str = "meaning", impact: str | None = None):
    return SkillDefinitionRecord(
        id=f"id-{connector_id}",
        connector_id=connector_id,
        action_name=action_name,
        business_meaning=meaning,
        failure_impact=impact,
    )


def test_composite_key_wins_over_connector_default() -> None:
    matcher = SkillMatcher(
        [_skill("shared_x", None, "default"), _skill("shared_x/opA", "opA", "scoped")]
    )
    match = matcher.match("shared_x", "opA")
    assert match is not None
    assert match.business_meaning == "scoped"
    assert match.action_name == "opA"


def test_action_name_match_before_connector_default() -> None:
    matcher = SkillMatcher(
        [_skill("shared_x", None, "default"), _skill("shared_x", "opB", "by name")]
    )
    assert matcher.match("shared_x", "opB").business_meaning == "by name"
    assert matcher.match("shared_x", "other").business_meaning == "default"


def test_no_match_and_no_connector() -> None:
    matcher = SkillMatcher([_skill("shared_x", "opA")])
    assert matcher.match("shared_x", "opZ") is None
    assert matcher.match(None, "opA") is None
    assert matcher.match("", "opA") is None


def test_end_to_end_scenario_questions(sample_package: bytes) -> None:
    """One unknown recurring trigger and one unknown action give exactly three questions."""
    [result] = analyze_package(parse_package(sample_package), [])
    assert len(result.connectors) == 2
    assert len(result.triggers) == 1
    assert len(result.actions) == 1
    assert len(result.questions) == 3
    categories = [q.category for q in result.questions]
    assert categories == [QuestionCategory.TRIGGER, QuestionCategory.TRIGGER, QuestionCategory.ACTION]
    recurrence = result.questions[1]
    assert "15" in recurrence.question
    assert "Minute" in recurrence.question


def test_recurrence_question_emitted_even_when_matched(sample_package: bytes) -> None:
    skills = [_skill("shared_onedrive/OnNewFilesV2", "OnNewFilesV2"), _skill("shared_office365")]
    [result] = analyze_package(parse_package(sample_package), skills)
    assert len(result.questions) == 1
    assert result.questions[0].target == "When_a_file_is_created"
    assert "15" in result.questions[0].question


def test_nested_action_inherits_container(make_package, make_flow) -> None:
    """An action inside scope S without runAfter depends on S; top-level runAfter is kept."""
    flow = make_flow(
        actions={
            "First": {"type": "Compose"},
            "S": {
                "type": "Scope",
                "runAfter": {"First": ["Succeeded"]},
                "actions": {
                    "Inner": {"type": "Compose"},
                    "Inner2": {"type": "Compose", "runAfter": {"Inner": ["Succeeded"]}},
                },
            },
        }
    )
    [result] = analyze_package(parse_package(make_package({"f": flow})), [])
    by_name = {a.name: a for a in result.actions}
    assert [a.name for a in result.actions] == ["First", "S", "Inner", "Inner2"]
    assert by_name["First"].depends_on == ()
    assert by_name["S"].depends_on == ("First",)
    assert by_name["S"].kind == NodeKind.SCOPE
    assert by_name["Inner"].depends_on == ("S",)
    assert by_name["Inner2"].depends_on == ("Inner",)


def test_control_nodes_raise_no_questions(make_package, make_flow) -> None:
    flow = make_flow(actions={"Compose": {"type": "Compose"}, "Loop": {"type": "Until"}})
    [result] = analyze_package(parse_package(make_package({"f": flow})), [])
    assert result.questions == ()


def test_connector_display_name_from_manifest(make_package) -> None:
    """Connection references resolve to the connector resource's display name."""
    api_id = "/providers/Microsoft.PowerApps/apis/shared_onedrive"
    data = make_package(
        resources={
            "r1": {
                "type": "Microsoft.PowerApps/apis",
                "id": api_id,
                "details": {"displayName": "OneDrive for Business"},
            }
        }
    )
    [result] = FlowAnalyzer([]).analyze(parse_package(data))
    names = {c.connector_id: c.display_name for c in result.connectors}
    assert names["shared_onedrive"] == "OneDrive for Business"
    assert names["shared_office365"] == "office365"


def test_result_survives_dict_round_trip(sample_package: bytes) -> None:
    results = analyze_package(parse_package(sample_package), [_skill("shared_office365")])
    rebuilt = [FlowAnalysisResult.from_dict(r.to_dict()) for r in results]
    assert rebuilt == results
    assert count_questions(rebuilt) == 2
