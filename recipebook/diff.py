"""Decide whether a partial update actually changes a stored recipe."""

from __future__ import annotations

from typing import Callable, Dict, Sequence

from .models import Recipe, RecipeChanges

Comparator = Callable[[object, object], bool]


def _scalar_equal(current: object, incoming: object) -> bool:
    return current == incoming


def _sequence_equal(current: object, incoming: object) -> bool:
    # Order matters: ["salt", "flour"] is a different recipe from ["flour", "salt"].
    if current is None or incoming is None:
        return current is incoming
    current_items: Sequence = list(current)  # type: ignore[call-overload]
    incoming_items: Sequence = list(incoming)  # type: ignore[call-overload]
    if len(current_items) != len(incoming_items):
        return False
    return all(a == b for a, b in zip(current_items, incoming_items))


COMPARATORS: Dict[str, Comparator] = {
    "name": _scalar_equal,
    "description": _scalar_equal,
    "ingredients": _sequence_equal,
    "instructions": _scalar_equal,
    "image": _scalar_equal,
}


def changed_fields(current: Recipe, changes: RecipeChanges) -> Dict[str, object]:
    """Return the supplied fields whose value differs from ``current``."""

    differing: Dict[str, object] = {}
    for key, incoming in changes.supplied().items():
        compare = COMPARATORS[key]
        if not compare(getattr(current, key), incoming):
            differing[key] = incoming
    return differing


def has_changes(current: Recipe, changes: RecipeChanges) -> bool:
    return bool(changed_fields(current, changes))


__all__ = ["COMPARATORS", "changed_fields", "has_changes"]
