"""DTOs for flow analysis results.

Produced fresh by the analyzer for every run and never mutated. to_dict()
and from_dict() convert to and from plain JSON values so a result can be
memoized in a workflow run's state and rebuilt on replay.
"""

from dataclasses import asdict, dataclass
from typing import Any

from flowspec.domain.entities import Recurrence
from flowspec.shared.enums import NodeKind, QuestionCategory


@dataclass(frozen=True)
class SkillMatch:
    """The one skill definition matched to a trigger or action."""

    connector_id: str
    action_name: str | None
    business_meaning: str | None
    failure_impact: str | None


@dataclass(frozen=True)
class ConnectorInfo:
    """A connection reference resolved to a human-readable connector name."""

    connector_id: str
    display_name: str | None
    api_name: str | None


@dataclass(frozen=True)
class TriggerInfo:
    name: str
    type: str | None
    connector_id: str | None
    operation_id: str | None
    recurrence: Recurrence | None
    skill_match: SkillMatch | None


@dataclass(frozen=True)
class ActionInfo:
    """A flattened action with its resolved dependency set."""

    name: str
    type: str | None
    kind: NodeKind
    connector_id: str | None
    operation_id: str | None
    depends_on: tuple[str, ...]
    skill_match: SkillMatch | None


@dataclass(frozen=True)
class Question:
    """An open item for a human to clarify."""

    category: QuestionCategory
    target: str
    question: str
    reason: str


@dataclass(frozen=True)
class FlowAnalysisResult:
    """Analysis of one flow: connectors, triggers, flattened actions, questions."""

    flow_id: str
    flow_display_name: str | None
    connectors: tuple[ConnectorInfo, ...] = ()
    triggers: tuple[TriggerInfo, ...] = ()
    actions: tuple[ActionInfo, ...] = ()
    questions: tuple[Question, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for action in data["actions"]:
            action["kind"] = NodeKind(action["kind"]).value
            action["depends_on"] = list(action["depends_on"])
        for question in data["questions"]:
            question["category"] = QuestionCategory(question["category"]).value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FlowAnalysisResult":
        return cls(
            flow_id=data["flow_id"],
            flow_display_name=data.get("flow_display_name"),
            connectors=tuple(ConnectorInfo(**c) for c in data.get("connectors", [])),
            triggers=tuple(
                TriggerInfo(
                    name=t["name"],
                    type=t.get("type"),
                    connector_id=t.get("connector_id"),
                    operation_id=t.get("operation_id"),
                    recurrence=Recurrence(**t["recurrence"]) if t.get("recurrence") else None,
                    skill_match=_match_from_dict(t.get("skill_match")),
                )
                for t in data.get("triggers", [])
            ),
            actions=tuple(
                ActionInfo(
                    name=a["name"],
                    type=a.get("type"),
                    kind=NodeKind(a.get("kind", NodeKind.ACTION.value)),
                    connector_id=a.get("connector_id"),
                    operation_id=a.get("operation_id"),
                    depends_on=tuple(a.get("depends_on", [])),
                    skill_match=_match_from_dict(a.get("skill_match")),
                )
                for a in data.get("actions", [])
            ),
            questions=tuple(
                Question(
                    category=QuestionCategory(q["category"]),
                    target=q["target"],
                    question=q["question"],
                    reason=q["reason"],
                )
                for q in data.get("questions", [])
            ),
        )


def _match_from_dict(data: dict[str, Any] | None) -> SkillMatch | None:
    return SkillMatch(**data) if data else None


def count_questions(results: list[FlowAnalysisResult]) -> int:
    """Total number of open questions across flow results."""
    return sum(len(result.questions) for result in results)
