"""Parse structured-output text from a provider into a validated object."""

import json
from typing import Any

from pydantic import BaseModel, ValidationError

from piece_agent.domain.errors import ModelGenerationError


def parse_structured_output(text: str, schema: type[BaseModel]) -> dict[str, Any]:
    """Decode *text* as JSON and validate it against *schema*.

    Returns the object keyed by property names (aliases), without fields the
    model did not produce.

    Raises:
        ModelGenerationError: ``parse_failed=True`` when *text* is not JSON,
            ``parse_failed=False`` when it is JSON that fails validation.

    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ModelGenerationError(f"Model output is not valid JSON: {e}", text=text, parse_failed=True) from e
    if not isinstance(data, dict):
        raise ModelGenerationError("Model output is not a JSON object", text=text)
    try:
        validated = schema.model_validate(data)
    except ValidationError as e:
        raise ModelGenerationError(f"Model output does not match schema: {e}", text=text) from e
    return validated.model_dump(by_alias=True, exclude_unset=True)
