"""Extraction prompt for filling one dependency level of properties."""

import json
from typing import Any

from piece_agent.application.agent_tools.property_options import PropertyDetail

EXTRACTION_PROMPT = """
You are an expert at understanding API schemas and filling out properties based on user instructions.

**TASK**:
- Fill out the properties "{property_names}" based on the user's instructions.
- Output must be a valid JSON object matching the schema.

**USER INSTRUCTIONS**:
{instruction}

{existing_values}

{property_details}

**RULES** (MUST FOLLOW):
- For dropdown, multi-select dropdown, and static dropdown properties: Select values ONLY from the provided options array. Use the 'value' field from the option objects.
- For array properties: Select values ONLY from the provided options array if specified.
- For dynamic properties: Select values ONLY from the provided options array if specified.
- Options format: [{{ "label": string, "value": string | object | number | boolean }}]
- For DATE_TIME properties: Use ISO format (YYYY-MM-DDTHH:mm:ss.sssZ)
- Use actual values from the user instructions to determine property values.
- Use already filled values as context for consistency.
- Required properties: MUST include all, even if missing from instructions. Infer reasonable defaults or look for hints if possible.
- Optional properties: Skip if no information is available - do not invent values.
- Do not add extra properties outside the requested ones.
- Ensure output is parseable JSON without additional text.
"""


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def build_existing_values_section(existing_values: dict[str, Any]) -> str:
    return f"""
**ALREADY FILLED VALUES** (use for context and consistency):
{_to_json(existing_values)}
"""


def build_property_details_section(details: list[PropertyDetail]) -> str:
    sections = []
    for detail in details:
        content = f"- Name: {detail.name}\n  Type: {detail.type.value}"
        if detail.description:
            content += f"\n  Description: {detail.description}"
        if detail.options:
            options = [o.model_dump() for o in detail.options]
            content += f"\n  Options: {_to_json(options)}"
        if detail.default_value is not None:
            default = detail.default_value if isinstance(detail.default_value, str) else _to_json(detail.default_value)
            content += f"\n  Expected Schema/Default: {default}"
        sections.append(content)
    joined = "\n\n".join(sections)
    return f"""
**PROPERTY DETAILS**:
{joined}
"""


def build_extraction_prompt(
    instruction: str,
    property_names: list[str],
    details: list[PropertyDetail],
    existing_values: dict[str, Any],
) -> str:
    """Prompt for one level: instruction, filled values, property details, rules."""
    return EXTRACTION_PROMPT.format(
        property_names='", "'.join(property_names),
        instruction=instruction,
        existing_values=build_existing_values_section(existing_values) if existing_values else "",
        property_details=build_property_details_section(details) if details else "",
    )
