"""Piece metadata - actions and their declared properties."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PropertyType(str, Enum):
    """Closed taxonomy of property types a piece action can declare."""

    SHORT_TEXT = "SHORT_TEXT"
    LONG_TEXT = "LONG_TEXT"
    MARKDOWN = "MARKDOWN"
    DATE_TIME = "DATE_TIME"
    FILE = "FILE"
    COLOR = "COLOR"
    DROPDOWN = "DROPDOWN"
    STATIC_DROPDOWN = "STATIC_DROPDOWN"
    MULTI_SELECT_DROPDOWN = "MULTI_SELECT_DROPDOWN"
    STATIC_MULTI_SELECT_DROPDOWN = "STATIC_MULTI_SELECT_DROPDOWN"
    NUMBER = "NUMBER"
    ARRAY = "ARRAY"
    OBJECT = "OBJECT"
    JSON = "JSON"
    DYNAMIC = "DYNAMIC"
    CHECKBOX = "CHECKBOX"
    CUSTOM = "CUSTOM"
    SECRET_TEXT = "SECRET_TEXT"
    BASIC_AUTH = "BASIC_AUTH"
    OAUTH2 = "OAUTH2"
    CUSTOM_AUTH = "CUSTOM_AUTH"


STATIC_CHOICE_TYPES = frozenset({PropertyType.STATIC_DROPDOWN, PropertyType.STATIC_MULTI_SELECT_DROPDOWN})
LOADED_CHOICE_TYPES = frozenset({PropertyType.DROPDOWN, PropertyType.MULTI_SELECT_DROPDOWN})
MULTI_SELECT_TYPES = frozenset({PropertyType.MULTI_SELECT_DROPDOWN, PropertyType.STATIC_MULTI_SELECT_DROPDOWN})
CHOICE_TYPES = STATIC_CHOICE_TYPES | LOADED_CHOICE_TYPES


class DropdownOption(BaseModel):
    """One selectable value with its human-readable label."""

    label: str
    value: Any = None


class DropdownState(BaseModel):
    """Option set returned for a dropdown (static or loaded)."""

    disabled: bool = False
    options: list[DropdownOption] = []
    placeholder: str | None = None


class PieceProperty(BaseModel):
    """Declared input slot of a piece action."""

    type: PropertyType
    display_name: str = ""
    description: str | None = None
    required: bool = False
    default_value: Any = None
    # Names of properties whose resolved values change this property's options or shape
    refreshers: list[str] = []
    options: DropdownState | None = None  # Static dropdowns only

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)


class PieceAction(BaseModel):
    """Action declaration. Property order is declaration order."""

    name: str
    display_name: str = ""
    description: str = ""
    props: dict[str, PieceProperty] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class PieceMetadata(BaseModel):
    """One published version of a piece and its actions."""

    name: str
    version: str
    display_name: str = ""
    piece_type: str = "OFFICIAL"  # "OFFICIAL" | "CUSTOM"
    actions: dict[str, PieceAction] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)
