"""Power Automate package parsing.

Decodes an exported package ZIP into a typed Package. Required entries:
``manifest.json``, ``Microsoft.Flow/flows/manifest.json`` (its
``flowAssets.assetPaths`` lists the flow ids) and, per flow id,
``Microsoft.Flow/flows/<id>/definition.json``. ``apisMap.json`` and
``connectionsMap.json`` beside each definition are optional.

Parsing is a pure transform with no validation beyond structural presence.
The parsed package can be turned back into its JSON documents
(package_to_document) and rebuilt from them (package_from_document); the
workflow stores the documents and rebuilds the typed package on replay.
"""

import io
import json
import zipfile
from typing import Any

from flowspec.domain.entities import (
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
from flowspec.domain.exceptions import MalformedPackageException
from flowspec.shared.enums import NodeKind
from flowspec.shared.telemetry.tracing import traced

ROOT_MANIFEST = "manifest.json"
FLOWS_DIR = "Microsoft.Flow/flows"
FLOWS_MANIFEST = f"{FLOWS_DIR}/manifest.json"

_CONDITION_TYPES = frozenset({"if", "switch"})
_LOOP_TYPES = frozenset({"foreach", "until"})
_SCOPE_TYPES = frozenset({"scope"})


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _read_json(archive: zipfile.ZipFile, entry: str, *, required: bool) -> Any:
    try:
        raw = archive.read(entry)
    except KeyError:
        if required:
            raise MalformedPackageException(entry, "entry not found in archive") from None
        return {}
    except zipfile.BadZipFile as e:
        raise MalformedPackageException(entry, f"corrupt entry ({e})") from e
    try:
        # utf-8-sig: exported JSON files often start with a BOM
        return json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedPackageException(entry, f"invalid JSON ({e})") from e


def _flow_ids(flows_manifest: Any) -> list[str]:
    paths = _as_dict(_as_dict(flows_manifest).get("flowAssets")).get("assetPaths")
    if not isinstance(paths, list) or not paths:
        raise MalformedPackageException(
            FLOWS_MANIFEST, "flowAssets.assetPaths must list at least one flow"
        )
    return [str(p) for p in paths]


def read_package_documents(data: bytes) -> dict[str, Any]:
    """Read the raw JSON documents of a package archive.

    Returns {"manifest": ..., "flows": [{"flow_id", "definition", "apis_map",
    "connections_map"}, ...]}. Raises MalformedPackageException naming the
    missing or invalid entry.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise MalformedPackageException("<archive>", "not a ZIP archive") from e
    with archive:
        manifest = _read_json(archive, ROOT_MANIFEST, required=True)
        flows_manifest = _read_json(archive, FLOWS_MANIFEST, required=True)
        flows = []
        for flow_id in _flow_ids(flows_manifest):
            base = f"{FLOWS_DIR}/{flow_id}"
            flows.append(
                {
                    "flow_id": flow_id,
                    "definition": _read_json(archive, f"{base}/definition.json", required=True),
                    "apis_map": _read_json(archive, f"{base}/apisMap.json", required=False),
                    "connections_map": _read_json(
                        archive, f"{base}/connectionsMap.json", required=False
                    ),
                }
            )
    return {"manifest": manifest, "flows": flows}


def _node_kind(node_type: str | None) -> NodeKind:
    lowered = (node_type or "").lower()
    if lowered in _CONDITION_TYPES:
        return NodeKind.CONDITION
    if lowered in _LOOP_TYPES:
        return NodeKind.LOOP
    if lowered in _SCOPE_TYPES:
        return NodeKind.SCOPE
    return NodeKind.ACTION


def _build_host(definition: dict[str, Any]) -> OperationHost:
    host = _as_dict(_as_dict(definition.get("inputs")).get("host"))
    return OperationHost(
        connection_name=_as_str(host.get("connectionName")),
        operation_id=_as_str(host.get("operationId")),
        api_id=_as_str(host.get("apiId")),
    )


def _build_nodes(actions: Any) -> tuple[FlowNode, ...]:
    return tuple(
        _build_node(name, _as_dict(definition))
        for name, definition in _as_dict(actions).items()
    )


def _build_node(name: str, definition: dict[str, Any]) -> FlowNode:
    node_type = _as_str(definition.get("type"))
    kind = _node_kind(node_type)
    if (node_type or "").lower() == "switch":
        children: tuple[FlowNode, ...] = ()
        for case in _as_dict(definition.get("cases")).values():
            children += _build_nodes(_as_dict(case).get("actions"))
        else_children = _build_nodes(_as_dict(definition.get("default")).get("actions"))
    else:
        children = _build_nodes(definition.get("actions"))
        else_children = _build_nodes(_as_dict(definition.get("else")).get("actions"))
    return FlowNode(
        name=name,
        kind=kind,
        type=node_type,
        host=_build_host(definition),
        run_after=tuple(_as_dict(definition.get("runAfter")).keys()),
        children=children,
        else_children=else_children,
        raw=definition,
    )


def _build_recurrence(definition: dict[str, Any]) -> Recurrence | None:
    recurrence = _as_dict(definition.get("recurrence")) or _as_dict(
        definition.get("evaluatedRecurrence")
    )
    frequency = _as_str(recurrence.get("frequency"))
    interval = recurrence.get("interval")
    if frequency is None or interval is None or isinstance(interval, (dict, list)):
        return None
    return Recurrence(frequency=frequency, interval=interval)


def _build_trigger(name: str, definition: dict[str, Any]) -> FlowTrigger:
    return FlowTrigger(
        name=name,
        type=_as_str(definition.get("type")),
        host=_build_host(definition),
        recurrence=_build_recurrence(definition),
        raw=definition,
    )


def _build_connection_references(refs: Any) -> tuple[ConnectionReference, ...]:
    result = []
    for key, ref in _as_dict(refs).items():
        ref = _as_dict(ref)
        result.append(
            ConnectionReference(
                key=key,
                api_name=_as_str(ref.get("apiName")),
                connection_id=_as_str(ref.get("id")),
                connection_name=_as_str(ref.get("connectionName")),
                tier=_as_str(ref.get("tier")),
                source=_as_str(ref.get("source")),
            )
        )
    return tuple(result)


def _build_flow(document: dict[str, Any]) -> FlowDefinition:
    definition = _as_dict(document.get("definition"))
    properties = _as_dict(definition.get("properties"))
    logic = _as_dict(properties.get("definition"))
    return FlowDefinition(
        flow_id=str(document.get("flow_id") or definition.get("name") or ""),
        name=_as_str(definition.get("name")),
        display_name=_as_str(properties.get("displayName")),
        api_id=_as_str(properties.get("apiId")),
        triggers=tuple(
            _build_trigger(name, _as_dict(trigger))
            for name, trigger in _as_dict(logic.get("triggers")).items()
        ),
        actions=_build_nodes(logic.get("actions")),
        connection_references=_build_connection_references(
            properties.get("connectionReferences")
        ),
        apis_map=_as_dict(document.get("apis_map")),
        connections_map=_as_dict(document.get("connections_map")),
        raw=definition,
    )


def _build_manifest(manifest: dict[str, Any]) -> PackageManifest:
    details = _as_dict(manifest.get("details"))
    resources = tuple(
        PackageResource(
            key=key,
            type=_as_str(_as_dict(resource).get("type")),
            id=_as_str(_as_dict(resource).get("id")),
            display_name=_as_str(
                _as_dict(_as_dict(resource).get("details")).get("displayName")
            ),
            raw=_as_dict(resource),
        )
        for key, resource in _as_dict(manifest.get("resources")).items()
    )
    return PackageManifest(
        display_name=_as_str(details.get("displayName")),
        description=_as_str(details.get("description")),
        created_time=_as_str(details.get("createdTime")),
        telemetry_id=_as_str(details.get("packageTelemetryId")),
        creator=_as_str(details.get("creator")),
        source_environment=_as_str(details.get("sourceEnvironment")),
        resources=resources,
        raw=manifest,
    )


def package_from_document(document: dict[str, Any]) -> Package:
    """Build a typed Package from the documents returned by read_package_documents."""
    return Package(
        manifest=_build_manifest(_as_dict(document.get("manifest"))),
        flows=tuple(
            _build_flow(_as_dict(flow)) for flow in document.get("flows") or []
        ),
    )


def package_to_document(package: Package) -> dict[str, Any]:
    """Return the JSON documents a Package was built from (inverse of package_from_document)."""
    return {
        "manifest": package.manifest.raw,
        "flows": [
            {
                "flow_id": flow.flow_id,
                "definition": flow.raw,
                "apis_map": flow.apis_map,
                "connections_map": flow.connections_map,
            }
            for flow in package.flows
        ],
    }


@traced("package_parser.parse")
def parse_package(data: bytes) -> Package:
    """Parse package archive bytes into a Package.

    Raises:
        MalformedPackageException: A required entry is missing, the payload is
            not a ZIP, or an entry is not valid JSON.
    """
    return package_from_document(read_package_documents(data))
