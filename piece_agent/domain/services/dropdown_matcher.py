"""Dropdown Matcher - snap model output onto an authoritative option list.

Ladder, first match wins:
1. option value equal by content
2. label equal (case-insensitive)
3. extracted text contains a label (case-insensitive)
4. both are mappings sharing one key with an equal value
5. first option

Step 5 always commits to a valid option. It can hide a wrong pick, so it
is logged as ``dropdown_value_fallback``.
"""

import json
from typing import Any

import structlog

from piece_agent.domain.entities.piece import DropdownOption

log = structlog.get_logger()


def _normalize_numbers(value: Any) -> Any:
    # 2.0 and 2 are the same JSON number
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _normalize_numbers(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize_numbers(v) for v in value]
    return value


def _canonical(value: Any) -> str:
    return json.dumps(_normalize_numbers(value), sort_keys=True, default=str)


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value, default=str)


def match_dropdown_value(extracted: Any, options: list[DropdownOption]) -> Any:
    """Return the option value that best matches *extracted*."""
    if not options:
        return extracted

    wanted = _canonical(extracted)
    for option in options:
        if _canonical(option.value) == wanted:
            return option.value

    text = _as_text(extracted).lower()
    for option in options:
        if option.label.lower() == text:
            return option.value

    for option in options:
        if option.label and option.label.lower() in text:
            return option.value

    if isinstance(extracted, dict):
        for option in options:
            if not isinstance(option.value, dict):
                continue
            if any(key in option.value and option.value[key] == val for key, val in extracted.items()):
                return option.value

    log.warning(
        "dropdown_value_fallback",
        extracted=text[:200],
        chosen=options[0].label,
        option_count=len(options),
    )
    return options[0].value
