"""Parsed package entities (immutable).

A Package is the typed view of an exported Power Automate archive: the
root manifest, and one FlowDefinition per flow listed in the flow-asset
manifest. Each entity keeps the JSON object it was built from in ``raw``
so fields this model does not name are preserved.
"""

from dataclasses import dataclass, field
from typing import Any

from flowspec.shared.enums import NodeKind

CONNECTOR_RESOURCE_TYPE = "Microsoft.PowerApps/apis"


@dataclass(frozen=True)
class PackageResource:
    """One entry of the root manifest's resources map."""

    key: str
    type: str | None
    id: str | None
    display_name: str | None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_connector(self) -> bool:
        return self.type == CONNECTOR_RESOURCE_TYPE


@dataclass(frozen=True)
class PackageManifest:
    """Root manifest metadata plus its resources."""

    display_name: str | None
    description: str | None
    created_time: str | None
    telemetry_id: str | None
    creator: str | None
    source_environment: str | None
    resources: tuple[PackageResource, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def find_connector_resource(self, resource_id: str | None) -> PackageResource | None:
        """Return the connector API resource whose id equals resource_id."""
        if not resource_id:
            return None
        for resource in self.resources:
            if resource.id == resource_id and resource.is_connector:
                return resource
        return None


@dataclass(frozen=True)
class OperationHost:
    """inputs.host of a trigger or action: which connection and operation it calls."""

    connection_name: str | None = None
    operation_id: str | None = None
    api_id: str | None = None


@dataclass(frozen=True)
class Recurrence:
    """Trigger recurrence schedule (e.g. interval 15, frequency 'Minute')."""

    frequency: str
    interval: int | str

    def describe(self) -> str:
        return f"{self.interval} {self.frequency}"


@dataclass(frozen=True)
class FlowTrigger:
    """A top-level trigger of a flow."""

    name: str
    type: str | None
    host: OperationHost
    recurrence: Recurrence | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class FlowNode:
    """A node in a flow's action tree.

    ``children`` holds the nested body: the ``actions`` of a scope or loop,
    the true branch of a condition, or the cases of a switch in order.
    ``else_children`` holds ``else.actions`` of a condition or the switch
    default. Plain actions have neither.
    """

    name: str
    kind: NodeKind
    type: str | None
    host: OperationHost
    run_after: tuple[str, ...] = ()
    children: tuple["FlowNode", ...] = ()
    else_children: tuple["FlowNode", ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class ConnectionReference:
    """Maps a flow-local connection key to a global connector identity."""

    key: str
    api_name: str | None
    connection_id: str | None
    connection_name: str | None = None
    tier: str | None = None
    source: str | None = None


@dataclass(frozen=True)
class FlowDefinition:
    """One flow: triggers, action tree, connection references and lookup maps."""

    flow_id: str
    name: str | None
    display_name: str | None
    api_id: str | None
    triggers: tuple[FlowTrigger, ...] = ()
    actions: tuple[FlowNode, ...] = ()
    connection_references: tuple[ConnectionReference, ...] = ()
    apis_map: dict[str, Any] = field(default_factory=dict, compare=False)
    connections_map: dict[str, Any] = field(default_factory=dict, compare=False)
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class Package:
    """A parsed package: manifest and one or more flows in asset order."""

    manifest: PackageManifest
    flows: tuple[FlowDefinition, ...]

    @property
    def name(self) -> str:
        """Package display name, falling back to the first flow's display name."""
        if self.manifest.display_name:
            return self.manifest.display_name
        for flow in self.flows:
            if flow.display_name:
                return flow.display_name
        return "package"
