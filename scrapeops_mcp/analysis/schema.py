from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from scrapeops_mcp.utils import drop_none

NO_SCHEMA_STATUS = "no_schema"

USAGE_TIPS: tuple[str, ...] = (
    'Fields marked "required": true are expected on most pages of this type.',
    'Use the "null_value" as the default when a field cannot be found.',
    'Fields with "type": "list" contain arrays — check the "items" sub-schema for the array element structure.',
    'Fields with "type": "object" are nested — check the "properties" sub-schema.',
    'Fields with "enum" should be constrained to the listed values.',
    "Use this schema with the extract_data tool (LLM mode) for automatic extraction.",
)


@dataclass
class SchemaSummary:
    total_fields: int = 0
    required_fields: int = 0
    optional_fields: int = 0
    field_types: dict[str, int] = field(default_factory=dict)
    top_level_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_fields": self.total_fields,
            "required_fields": self.required_fields,
            "optional_fields": self.optional_fields,
            "field_types": dict(self.field_types),
            "top_level_fields": list(self.top_level_fields),
        }


def summarize_schema(schema: Mapping[str, Any]) -> SchemaSummary:
    """Сводка только по полям верхнего уровня; вложенные items/properties не обходим."""
    summary = SchemaSummary()
    for name, definition in schema.items():
        summary.total_fields += 1
        summary.top_level_fields.append(name)
        if not definition or not isinstance(definition, Mapping):
            continue
        field_type = definition.get("type") or "unknown"
        summary.field_types[field_type] = summary.field_types.get(field_type, 0) + 1
        if definition.get("required") is True:
            summary.required_fields += 1
        else:
            summary.optional_fields += 1
    return summary


def schema_response(
    url: str,
    page_type: str,
    schema_data: Mapping[str, Any],
    classification: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    if schema_data.get("status") == NO_SCHEMA_STATUS:
        return drop_none({
            "success": False,
            "url": url,
            "page_type": page_type,
            "error": f"No pre-built schema available for page type: {page_type}",
            "supported_types": schema_data.get("supported_types"),
            "classification": classification,
            "recommendation": (
                "This page type does not have a pre-built schema. Use the identify_data_sources tool to discover "
                "available data fields, or provide one of the supported page types."
            ),
        })

    schema = schema_data.get("schema") or {}
    summary = summarize_schema(schema if isinstance(schema, Mapping) else {})
    return drop_none({
        "success": True,
        "url": url,
        "page_type": page_type,
        "classification": classification,
        "schema": schema_data.get("schema"),
        "summary": summary.to_dict(),
        "usage": {
            "description": f"Use this schema as a template for extracting structured data from {page_type} pages.",
            "tips": list(USAGE_TIPS),
        },
    })
