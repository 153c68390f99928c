"""
Manifest generation

Projects the live capability registry into a versioned description for one
caller context, and into the reduced tool-definition view used for LLM
tool calling. Nothing is persisted: every call recomputes from the
registry, in registry (insertion) order.

Serialized shape (model_dump(mode="json")):
    {
      "schema_version": "0.1.0",
      "application": {"name": ..., "version": ...},
      "capabilities": [
        {"name", "description", "input_schema", "output_schema",
         "side_effect", "permissions", "concurrency",
         "available", "unavailable_reason"}
      ],
      "generated_at": "2026-01-31T12:34:56.789Z"
    }
"""

import logging
from typing import Any, Callable, Dict, List, Mapping

from capbus.core.capabilities.contracts import Contract, to_json_schema
from capbus.core.capabilities.definition import CapabilityDefinition
from capbus.core.capabilities.models import (
    AppContext,
    ApplicationInfo,
    CapabilityManifest,
    ManifestCapabilityEntry,
    ToolDefinition,
)
from capbus.util.timestamps import iso_timestamp

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "0.1.0"

SchemaConverter = Callable[[Contract], Dict[str, Any]]


def generate_manifest(
    capabilities: Mapping[str, CapabilityDefinition],
    context: AppContext,
    app_info: ApplicationInfo,
    schema_converter: SchemaConverter = to_json_schema,
    schema_version: str = SCHEMA_VERSION
) -> CapabilityManifest:
    """
    Build a manifest for the given caller context

    Args:
        capabilities: Registry mapping (iteration order is preserved)
        context: Caller context passed to each is_available predicate
        app_info: Application name/version
        schema_converter: Contract -> JSON-Schema projection
        schema_version: Manifest format version

    Returns:
        CapabilityManifest
    """
    entries: List[ManifestCapabilityEntry] = []

    for cap in capabilities.values():
        availability = cap.check_availability(context)
        entries.append(ManifestCapabilityEntry(
            name=cap.name,
            description=cap.description,
            input_schema=schema_converter(cap.input),
            output_schema=schema_converter(cap.output),
            side_effect=cap.side_effect,
            permissions=list(cap.permissions),
            concurrency=cap.concurrency,
            available=availability.available,
            unavailable_reason=availability.unavailable_reason,
        ))

    logger.debug(
        f"Generated manifest for {app_info.name}: "
        f"{sum(1 for e in entries if e.available)}/{len(entries)} available"
    )

    return CapabilityManifest(
        schema_version=schema_version,
        application=app_info,
        capabilities=entries,
        generated_at=iso_timestamp(),
    )


def manifest_to_tool_definitions(manifest: CapabilityManifest) -> List[ToolDefinition]:
    """Available capabilities only, projected to {name, description, input_schema}"""
    return [
        ToolDefinition(
            name=entry.name,
            description=entry.description,
            input_schema=entry.input_schema,
        )
        for entry in manifest.capabilities
        if entry.available
    ]
