"""Property Resolver - fill action properties level by level with the LLM."""

import asyncio
import json
import logging
from typing import Any

from pydantic import BaseModel

from piece_agent.application.agent_tools.property_options import (
    PropertyDetail,
    PropertyOptionsLoader,
    ResolutionContext,
    build_property_detail,
)
from piece_agent.application.agent_tools.property_schema import (
    PropertySchema,
    PropertySchemaBuilder,
    build_object_model,
)
from piece_agent.application.agent_tools.prompts import build_extraction_prompt
from piece_agent.domain.entities.piece import (
    CHOICE_TYPES,
    MULTI_SELECT_TYPES,
    PieceAction,
    PieceProperty,
    PropertyType,
)
from piece_agent.domain.entities.tool_execution import ExecuteToolOperation, FieldControlMode
from piece_agent.domain.errors import ModelGenerationError
from piece_agent.domain.ports.llm import LLMPort
from piece_agent.domain.services.dropdown_matcher import match_dropdown_value

logger = logging.getLogger(__name__)

# Never extracted from the instruction: auth is predefined, markdown is display-only
SKIPPED_TYPES = frozenset(
    {
        PropertyType.BASIC_AUTH,
        PropertyType.OAUTH2,
        PropertyType.CUSTOM_AUTH,
        PropertyType.MARKDOWN,
    }
)

JSON_FENCE_OPEN = "```json"
JSON_FENCE_CLOSE = "```"


def seed_resolved_input(operation: ExecuteToolOperation) -> dict[str, Any]:
    """Initial accumulator: auth plus predefined CHOOSE_YOURSELF / LEAVE_EMPTY fields."""
    resolved: dict[str, Any] = {}
    predefined = operation.predefined_input
    if predefined is None:
        return resolved
    if predefined.auth:
        resolved["auth"] = predefined.auth
    for name, field in predefined.fields.items():
        if field.mode == FieldControlMode.CHOOSE_YOURSELF:
            resolved[name] = field.value
        elif field.mode == FieldControlMode.LEAVE_EMPTY:
            resolved[name] = None
    return resolved


def _prompt_context(resolved: dict[str, Any]) -> dict[str, Any]:
    """Already-filled values shown to the model. Auth stays out of the prompt."""
    return {key: value for key, value in resolved.items() if key != "auth"}


def recover_fenced_json(error: ModelGenerationError) -> dict[str, Any] | None:
    """Object from a parse failure whose text is one ```json fenced block, else None."""
    text = error.text
    if not error.parse_failed or not text:
        return None
    if not (text.startswith(JSON_FENCE_OPEN) and text.endswith(JSON_FENCE_CLOSE)):
        return None
    inner = text[len(JSON_FENCE_OPEN):-len(JSON_FENCE_CLOSE)]
    try:
        parsed = json.loads(inner)
    except json.JSONDecodeError as e:
        raise ModelGenerationError(f"Fenced JSON is not parseable: {e}", text=text, parse_failed=True) from e
    if not isinstance(parsed, dict):
        raise ModelGenerationError("Fenced JSON is not an object", text=text, parse_failed=True)
    return parsed


def reconcile_choices(extracted: dict[str, Any], details: list[PropertyDetail]) -> dict[str, Any]:
    """Snap choice-type values onto their option lists. Multi-selects per element."""
    reconciled = dict(extracted)
    for detail in details:
        if not detail.options or detail.name not in reconciled:
            continue
        value = reconciled[detail.name]
        if value is None:
            continue
        if detail.type in MULTI_SELECT_TYPES and isinstance(value, list):
            reconciled[detail.name] = [match_dropdown_value(item, detail.options) for item in value]
        else:
            reconciled[detail.name] = match_dropdown_value(value, detail.options)
    return reconciled


class PropertyResolver:
    """Resolves an action's properties from a natural-language instruction.

    Levels run strictly in order; level N+1 is prepared only after level N's
    values are merged. Within a level, schemas and details are prepared
    concurrently. One model call per level with fillable properties.
    """

    def __init__(
        self,
        llm: LLMPort,
        options_loader: PropertyOptionsLoader,
        schema_builder: PropertySchemaBuilder | None = None,
    ) -> None:
        self._llm = llm
        self._options = options_loader
        self._schemas = schema_builder or PropertySchemaBuilder(options_loader)

    async def resolve(
        self,
        levels: dict[int, list[str]],
        instruction: str,
        action: PieceAction,
        model: str | None,
        operation: ExecuteToolOperation,
    ) -> dict[str, Any]:
        """Resolved input for the action: predefined values plus extracted ones."""
        resolved = seed_resolved_input(operation)
        for depth in sorted(levels):
            resolved = await self.resolve_level(depth, levels[depth], instruction, action, model, operation, resolved)
        return resolved

    async def resolve_level(
        self,
        depth: int,
        property_names: list[str],
        instruction: str,
        action: PieceAction,
        model: str | None,
        operation: ExecuteToolOperation,
        resolved: dict[str, Any],
    ) -> dict[str, Any]:
        """Return a new accumulator with this level's properties merged in."""
        to_fill = [
            name
            for name in property_names
            if name not in resolved and action.props[name].type not in SKIPPED_TYPES
        ]
        if not to_fill:
            logger.debug("Level %d: nothing to fill", depth)
            return resolved

        context = ResolutionContext(operation=operation, resolved_input=dict(resolved))
        prepared = await asyncio.gather(
            *(self._prepare(name, action.props[name], context) for name in to_fill)
        )
        schemas = {name: schema for name, (schema, _) in zip(to_fill, prepared)}
        details = [detail for _, detail in prepared]

        level_model = build_object_model(f"{action.name}_level_{depth}", schemas, extra="forbid")
        prompt = build_extraction_prompt(instruction, to_fill, details, _prompt_context(resolved))
        logger.debug("Level %d: extracting %s", depth, to_fill)

        extracted = await self._generate(prompt, level_model, model)
        return {**resolved, **reconcile_choices(extracted, details)}

    async def _prepare(
        self,
        name: str,
        prop: PieceProperty,
        context: ResolutionContext,
    ) -> tuple[PropertySchema, PropertyDetail]:
        options = None
        if prop.type in CHOICE_TYPES:
            options = await self._options.dropdown_options(name, prop, context)
        schema = await self._schemas.build(name, prop, context, options=options)
        return schema, build_property_detail(name, prop, options)

    async def _generate(self, prompt: str, level_model: type[BaseModel], model: str | None) -> dict[str, Any]:
        try:
            result = await self._llm.generate_object(prompt=prompt, schema=level_model, model=model)
            return result.output
        except ModelGenerationError as e:
            recovered = recover_fenced_json(e)
            if recovered is None:
                raise
            logger.info("Recovered object from fenced JSON output")
            return recovered
