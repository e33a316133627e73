"""Option loading and per-property prompt details."""

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from piece_agent.domain.entities.piece import (
    CHOICE_TYPES,
    LOADED_CHOICE_TYPES,
    STATIC_CHOICE_TYPES,
    DropdownOption,
    DropdownState,
    PieceProperty,
    PropertyType,
)
from piece_agent.domain.entities.tool_execution import ExecuteToolOperation
from piece_agent.domain.ports.pieces import PropertyOptionsPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionContext:
    """What option loading may read: the operation and a snapshot of resolved input."""

    operation: ExecuteToolOperation
    resolved_input: dict[str, Any] = field(default_factory=dict)


@dataclass
class PropertyDetail:
    """Property description embedded in the extraction prompt."""

    name: str
    type: PropertyType
    description: str | None = None
    options: list[DropdownOption] | None = None
    default_value: Any = None


class PropertyOptionsLoader:
    """Reads static options from declarations and loads live ones via the props port."""

    def __init__(self, props: PropertyOptionsPort) -> None:
        self._props = props

    async def _execute_props(self, property_name: str, context: ResolutionContext) -> dict[str, Any]:
        return await self._props.execute_props(
            property_name=property_name,
            operation=context.operation,
            input=dict(context.resolved_input),
        )

    async def dropdown_options(
        self,
        property_name: str,
        prop: PieceProperty,
        context: ResolutionContext,
    ) -> list[DropdownOption]:
        """Options for a choice-type property. Loading failures yield an empty list."""
        if prop.type in STATIC_CHOICE_TYPES:
            return list(prop.options.options) if prop.options else []
        if prop.type not in LOADED_CHOICE_TYPES:
            return []
        try:
            response = await self._execute_props(property_name, context)
            state = DropdownState.model_validate(response.get("options") or {})
        except ValidationError as e:
            logger.warning("Malformed options for %s: %s", property_name, e)
            return []
        except Exception as e:
            logger.warning("Loading options for %s failed: %s", property_name, e)
            return []
        return state.options

    async def dynamic_properties(
        self,
        property_name: str,
        context: ResolutionContext,
    ) -> dict[str, PieceProperty] | None:
        """Sub-property declarations of a DYNAMIC property, or None when disabled.

        Entries that are not valid property declarations are skipped.
        """
        response = await self._execute_props(property_name, context)
        raw = response.get("options")
        if not isinstance(raw, dict) or "disabled" in raw:
            return None
        declared: dict[str, PieceProperty] = {}
        for key, value in raw.items():
            if isinstance(value, PieceProperty):
                declared[key] = value
                continue
            if not isinstance(value, dict) or "type" not in value:
                continue
            try:
                declared[key] = PieceProperty.model_validate(value)
            except ValidationError as e:
                logger.debug("Skipping malformed sub-property %s.%s: %s", property_name, key, e)
        return declared


def build_property_detail(
    property_name: str,
    prop: PieceProperty,
    options: list[DropdownOption] | None = None,
) -> PropertyDetail:
    """Prompt detail for a property; options attached for choice types only."""
    return PropertyDetail(
        name=property_name,
        type=prop.type,
        description=prop.description,
        options=list(options or []) if prop.type in CHOICE_TYPES else None,
        default_value=prop.default_value,
    )
