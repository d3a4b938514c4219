"""Flow analysis: connector resolution, tree flattening, skill matching, questions.

Pure given its inputs. The skill definitions are passed in as a list of
records; the analyzer never queries the knowledge base itself.
"""

from collections import defaultdict
from collections.abc import Iterable, Iterator

from flowspec.application.dtos.analysis import (
    ActionInfo,
    ConnectorInfo,
    FlowAnalysisResult,
    Question,
    SkillMatch,
    TriggerInfo,
)
from flowspec.application.dtos.skill_definition import (
    SkillDefinitionRecord,
    build_connector_key,
)
from flowspec.domain.entities import FlowDefinition, FlowNode, Package, PackageManifest
from flowspec.shared.enums import QuestionCategory
from flowspec.shared.telemetry.logging import get_logger
from flowspec.shared.telemetry.tracing import add_span_attributes, traced

logger = get_logger(__name__)

UNREGISTERED_REASON = "No skill definition is registered for this connector and operation."
RECURRENCE_REASON = "The recurrence schedule needs business confirmation."


class SkillMatcher:
    """Index over skill definitions with the match precedence rules.

    Precedence, first match wins:
    1. record whose connector_id is the composite key "connector/operation";
    2. record for the connector whose action_name equals the operation;
    3. connector-level default (record for the connector with no action_name);
    4. no match.
    """

    def __init__(self, records: Iterable[SkillDefinitionRecord]) -> None:
        self._by_connector: dict[str, list[SkillDefinitionRecord]] = defaultdict(list)
        for record in records:
            self._by_connector[record.connector_id].append(record)

    def match(
        self, connector_id: str | None, operation_id: str | None
    ) -> SkillMatch | None:
        if not connector_id:
            return None
        if operation_id:
            composite = self._by_connector.get(build_connector_key(connector_id, operation_id))
            if composite:
                return _to_match(composite[0])
        candidates = self._by_connector.get(connector_id, [])
        if operation_id:
            for record in candidates:
                if record.action_name == operation_id:
                    return _to_match(record)
        for record in candidates:
            if not record.action_name:
                return _to_match(record)
        return None


def _to_match(record: SkillDefinitionRecord) -> SkillMatch:
    return SkillMatch(
        connector_id=record.connector_id,
        action_name=record.action_name,
        business_meaning=record.business_meaning,
        failure_impact=record.failure_impact,
    )


def flatten_actions(
    nodes: Iterable[FlowNode], inherited: tuple[str, ...] = ()
) -> Iterator[tuple[FlowNode, tuple[str, ...]]]:
    """Yield (node, depends_on) in pre-order.

    A node with no runAfter entries inherits ``inherited``: empty at the top
    level, the enclosing container's name for nested nodes.
    """
    for node in nodes:
        yield node, node.run_after or inherited
        yield from flatten_actions(node.children, (node.name,))
        yield from flatten_actions(node.else_children, (node.name,))


def resolve_connectors(
    flow: FlowDefinition, manifest: PackageManifest
) -> tuple[ConnectorInfo, ...]:
    """Resolve each connection reference to a display name via the manifest resources."""
    connectors = []
    for ref in flow.connection_references:
        resource = manifest.find_connector_resource(ref.connection_id)
        display_name = resource.display_name if resource and resource.display_name else None
        connectors.append(
            ConnectorInfo(
                connector_id=ref.key,
                display_name=display_name or ref.api_name,
                api_name=ref.api_name,
            )
        )
    return tuple(connectors)


def _trigger_questions(trigger: TriggerInfo) -> list[Question]:
    questions = []
    if trigger.skill_match is None:
        operation = trigger.operation_id or trigger.type or "unknown operation"
        questions.append(
            Question(
                category=QuestionCategory.TRIGGER,
                target=trigger.name,
                question=(
                    f'What is the business purpose of trigger "{trigger.name}" ({operation})?'
                ),
                reason=UNREGISTERED_REASON,
            )
        )
    if trigger.recurrence is not None:
        questions.append(
            Question(
                category=QuestionCategory.TRIGGER,
                target=trigger.name,
                question=(
                    f'Trigger "{trigger.name}" runs every {trigger.recurrence.interval} '
                    f"{trigger.recurrence.frequency}. Does this interval meet the "
                    "business requirements?"
                ),
                reason=RECURRENCE_REASON,
            )
        )
    return questions


def _action_questions(action: ActionInfo) -> list[Question]:
    # Control-flow nodes (scopes, conditions, compose) have no connector and
    # nothing to ask about.
    if action.skill_match is not None or not action.connector_id:
        return []
    operation = action.operation_id or action.type or "unknown operation"
    return [
        Question(
            category=QuestionCategory.ACTION,
            target=action.name,
            question=(
                f'What is the business purpose of action "{action.name}" '
                f"({action.connector_id}/{operation})?"
            ),
            reason=UNREGISTERED_REASON,
        )
    ]


class FlowAnalyzer:
    """Analyzes the flows of a package against a fixed set of skill definitions."""

    def __init__(self, skill_definitions: Iterable[SkillDefinitionRecord]) -> None:
        self._matcher = SkillMatcher(skill_definitions)

    def analyze_flow(
        self, flow: FlowDefinition, manifest: PackageManifest
    ) -> FlowAnalysisResult:
        triggers = tuple(
            TriggerInfo(
                name=trigger.name,
                type=trigger.type,
                connector_id=trigger.host.connection_name,
                operation_id=trigger.host.operation_id,
                recurrence=trigger.recurrence,
                skill_match=self._matcher.match(
                    trigger.host.connection_name, trigger.host.operation_id
                ),
            )
            for trigger in flow.triggers
        )
        actions = tuple(
            ActionInfo(
                name=node.name,
                type=node.type,
                kind=node.kind,
                connector_id=node.host.connection_name,
                operation_id=node.host.operation_id,
                depends_on=depends_on,
                skill_match=self._matcher.match(
                    node.host.connection_name, node.host.operation_id
                ),
            )
            for node, depends_on in flatten_actions(flow.actions)
        )
        questions: list[Question] = []
        for trigger_info in triggers:
            questions.extend(_trigger_questions(trigger_info))
        for action_info in actions:
            questions.extend(_action_questions(action_info))
        return FlowAnalysisResult(
            flow_id=flow.flow_id,
            flow_display_name=flow.display_name,
            connectors=resolve_connectors(flow, manifest),
            triggers=triggers,
            actions=actions,
            questions=tuple(questions),
        )

    @traced("flow_analyzer.analyze")
    def analyze(self, package: Package) -> list[FlowAnalysisResult]:
        """Return one result per flow, in package flow order."""
        results = [self.analyze_flow(flow, package.manifest) for flow in package.flows]
        question_count = sum(len(r.questions) for r in results)
        add_span_attributes(flow_count=len(results), question_count=question_count)
        logger.debug(
            "Analyzed package %r: %d flow(s), %d question(s)",
            package.name,
            len(results),
            question_count,
        )
        return results


def analyze_package(
    package: Package, skill_definitions: Iterable[SkillDefinitionRecord]
) -> list[FlowAnalysisResult]:
    """Analyze every flow of package against skill_definitions."""
    return FlowAnalyzer(skill_definitions).analyze(package)
