"""Property Schema - synthesize a pydantic validation schema per property type.

Dispatch is one closed table over PropertyType. Choice types enumerate
labels when they are known and fall back to an open union otherwise, so a
missing option list never blocks extraction.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, TypeAdapter, create_model

from piece_agent.application.agent_tools.property_options import PropertyOptionsLoader, ResolutionContext
from piece_agent.domain.entities.piece import (
    MULTI_SELECT_TYPES,
    DropdownOption,
    PieceProperty,
    PropertyType,
)
from piece_agent.domain.errors import UnsupportedPropertyTypeError

logger = logging.getLogger(__name__)

OpenObject = dict[str, Any]
# Whole numbers stay int; smart-mode union picks the exact type
Number = Union[StrictInt, StrictFloat]

TEXT_TYPES = frozenset(
    {
        PropertyType.SHORT_TEXT,
        PropertyType.LONG_TEXT,
        PropertyType.MARKDOWN,
        PropertyType.DATE_TIME,
        PropertyType.FILE,
        PropertyType.COLOR,
        PropertyType.CUSTOM,
    }
)
SINGLE_CHOICE_TYPES = frozenset({PropertyType.DROPDOWN, PropertyType.STATIC_DROPDOWN})
OBJECT_TYPES = frozenset({PropertyType.OBJECT, PropertyType.JSON})
UNSUPPORTED_TYPES = frozenset(
    {
        PropertyType.SECRET_TEXT,
        PropertyType.BASIC_AUTH,
        PropertyType.OAUTH2,
        PropertyType.CUSTOM_AUTH,
    }
)

# JSON-schema type name -> annotation, for object descriptors found in default values
_DESCRIPTOR_TYPES: dict[str, Any] = {
    "number": Number,
    "integer": Number,
    "boolean": StrictBool,
    "array": list[Any],
}


@dataclass(frozen=True)
class PropertySchema:
    """Validation schema for one property: annotation + description + required flag.

    Optional properties are nullable and default to None, so absence is valid.
    """

    annotation: Any
    description: str | None = None
    required: bool = True

    @property
    def field_annotation(self) -> Any:
        return self.annotation if self.required else Optional[self.annotation]

    def field(self, alias: str) -> tuple[Any, Any]:
        """(annotation, FieldInfo) pair for create_model."""
        default = ... if self.required else None
        return self.field_annotation, Field(default, alias=alias, description=self.description)

    def validate(self, value: Any) -> Any:
        """Validate a single value against this schema."""
        return TypeAdapter(self.field_annotation).validate_python(value)


def _model_name(name: str) -> str:
    return re.sub(r"\W", "_", name) or "Model"


def build_object_model(
    name: str,
    schemas: dict[str, PropertySchema],
    extra: str = "forbid",
) -> type[BaseModel]:
    """Object model over named property schemas.

    Property names become aliases so that any key (``json``, ``model_config``,
    names with dashes) is usable. Dump with ``by_alias=True``.
    """
    fields = {f"field_{i}": schema.field(alias=key) for i, (key, schema) in enumerate(schemas.items())}
    return create_model(_model_name(name), __config__=ConfigDict(extra=extra), **fields)


def schema_from_default(name: str, default_value: Any) -> type[BaseModel] | None:
    """Field-accurate model from a ``{type: "object", properties, required}`` descriptor."""
    if not isinstance(default_value, dict):
        return None
    properties = default_value.get("properties")
    if default_value.get("type") != "object" or not isinstance(properties, dict):
        return None
    required = default_value.get("required")
    required_fields = set(required) if isinstance(required, list) else set()
    schemas: dict[str, PropertySchema] = {}
    for field_name, field_def in properties.items():
        field_def = field_def if isinstance(field_def, dict) else {}
        schemas[field_name] = PropertySchema(
            annotation=_DESCRIPTOR_TYPES.get(field_def.get("type"), StrictStr),
            description=field_def.get("description"),
            required=field_name in required_fields,
        )
    return build_object_model(name, schemas, extra="allow")


def _join_description(description: str | None, hint: str | None) -> str | None:
    if description and hint:
        return f"{description}\n{hint}"
    return description or hint


class PropertySchemaBuilder:
    """Maps a property declaration (plus live option data) to a PropertySchema."""

    def __init__(self, options_loader: PropertyOptionsLoader) -> None:
        self._options = options_loader

    async def build(
        self,
        property_name: str,
        prop: PieceProperty,
        context: ResolutionContext,
        options: list[DropdownOption] | None = None,
    ) -> PropertySchema:
        """Schema for one property.

        ``options`` may carry already-loaded dropdown options; otherwise they
        are loaded here when the type needs them.

        Raises:
            UnsupportedPropertyTypeError: Auth and secret types.

        """
        annotation, hint = await self._annotation(property_name, prop, context, options)
        return PropertySchema(
            annotation=annotation,
            description=_join_description(prop.description, hint),
            required=prop.required,
        )

    async def _annotation(
        self,
        property_name: str,
        prop: PieceProperty,
        context: ResolutionContext,
        options: list[DropdownOption] | None,
    ) -> tuple[Any, str | None]:
        prop_type = prop.type
        if prop_type in TEXT_TYPES:
            return StrictStr, None
        if prop_type in SINGLE_CHOICE_TYPES:
            if options is None:
                options = await self._options.dropdown_options(property_name, prop, context)
            labels = tuple(o.label for o in options if isinstance(o.label, str) and o.label)
            if labels:
                return Literal[labels], None
            return Union[StrictStr, StrictInt, StrictFloat, OpenObject], None
        if prop_type in MULTI_SELECT_TYPES:
            return Union[list[StrictStr], list[OpenObject]], None
        if prop_type == PropertyType.NUMBER:
            return Number, None
        if prop_type == PropertyType.CHECKBOX:
            return StrictBool, None
        if prop_type == PropertyType.ARRAY:
            return list[StrictStr], None
        if prop_type in OBJECT_TYPES:
            return self._object_annotation(property_name, prop.default_value)
        if prop_type == PropertyType.DYNAMIC:
            return await self._dynamic_annotation(property_name, context), None
        raise UnsupportedPropertyTypeError(prop_type.value)

    def _object_annotation(self, property_name: str, default_value: Any) -> tuple[Any, str | None]:
        if default_value is None:
            return OpenObject, None
        model = schema_from_default(f"{property_name}_default", default_value)
        if model is not None:
            return model, None
        hint = default_value if isinstance(default_value, str) else json.dumps(default_value, default=str)
        return OpenObject, f"Expected structure: {hint}"

    async def _dynamic_annotation(self, property_name: str, context: ResolutionContext) -> Any:
        declared = await self._options.dynamic_properties(property_name, context)
        if declared is None:
            return OpenObject
        schemas: dict[str, PropertySchema] = {}
        for key, sub_prop in declared.items():
            try:
                schemas[key] = await self.build(key, sub_prop, context)
            except UnsupportedPropertyTypeError as e:
                logger.debug("Skipping sub-property %s.%s: %s", property_name, key, e)
        return build_object_model(f"{property_name}_props", schemas, extra="allow")
