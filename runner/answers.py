"""Answer heuristics.

Text boxes get a fixed placeholder. For radio buttons and dropdowns the
longest option wins: on this quiz the correct answer is usually the most
detailed one.
"""
import logging
from typing import Iterable, Optional

from config import TEXT_PLACEHOLDER
from extractor import FieldGroup, FieldKind

logger = logging.getLogger(__name__)


def longest_value(values: Iterable[str]) -> Optional[str]:
    """Longest string, first one on ties. None when empty."""
    best = None
    for value in values:
        if best is None or len(value) > len(best):
            best = value
    return best


def select_answers(groups: Iterable[FieldGroup], placeholder: str = TEXT_PLACEHOLDER) -> dict[str, str]:
    payload: dict[str, str] = {}
    for group in groups:
        if not group.values:
            continue
        if group.kind == FieldKind.TEXT:
            value = placeholder
        else:
            value = longest_value(group.values)
        logger.debug("%s %s -> %r", group.kind.value, group.name, value)
        payload[group.name] = value
    return payload
