"""Domain entities: the typed, immutable view of a parsed automation package."""

from flowspec.domain.entities.package import (
    ConnectionReference,
    FlowDefinition,
    FlowNode,
    FlowTrigger,
    OperationHost,
    Package,
    PackageManifest,
    PackageResource,
    Recurrence,
)

__all__ = [
    "ConnectionReference",
    "FlowDefinition",
    "FlowNode",
    "FlowTrigger",
    "OperationHost",
    "Package",
    "PackageManifest",
    "PackageResource",
    "Recurrence",
]
