"""
Modify Change Lists - Attribute diffs between a before-image and an update.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping
from enum import Enum


class Operation(Enum):
    """Modify operation applied to one attribute."""
    ADD = "add"
    DELETE = "delete"
    REPLACE = "replace"


# Structural attributes never touched by a diff.
IMMUTABLE: FrozenSet[str] = frozenset({"dn", "objectclass", "uuid"})


def _as_values(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


@dataclass(frozen=True)
class Change:
    """
    A single modification of one attribute.

    An empty `values` list on a DELETE removes the whole attribute.
    """
    operation: Operation
    attribute: str
    values: List[Any] = field(default_factory=list)

    @classmethod
    def add(cls, attribute: str, value: Any) -> "Change":
        return cls(Operation.ADD, attribute, _as_values(value))

    @classmethod
    def delete(cls, attribute: str, value: Any = None) -> "Change":
        return cls(Operation.DELETE, attribute, _as_values(value))

    @classmethod
    def replace(cls, attribute: str, value: Any) -> "Change":
        return cls(Operation.REPLACE, attribute, _as_values(value))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation.value,
            "modification": {self.attribute: list(self.values)},
        }


def diff_changes(
    before: Mapping[str, Any],
    update: Mapping[str, Any],
    immutable: FrozenSet[str] = IMMUTABLE,
) -> List[Change]:
    """
    Compute the change list turning `before` into `before + update`.

    Rules:
    - None in the update deletes the attribute
    - any other value replaces it
    - values equal to the before-image are skipped
    - callables and immutable attributes are skipped
    - deleting an attribute the before-image does not have is a no-op

    Args:
        before: Current attribute values of the entry
        update: Partial update supplied by the caller
        immutable: Attribute names never modified

    Returns:
        List of changes (empty when nothing differs)
    """
    changes: List[Change] = []

    for attribute, value in update.items():
        if attribute.lower() in immutable or callable(value):
            continue
        if before.get(attribute) == value:
            continue

        if value is None:
            if attribute in before:
                changes.append(Change.delete(attribute))
        else:
            changes.append(Change.replace(attribute, value))

    return changes


def limit_changes(before: Mapping[str, Any], update: Mapping[str, Any]) -> List[Change]:
    """
    Compute the change list for a quota limit.

    A field whose new value is falsy while the current one is set is
    deleted; every other differing field is replaced.
    """
    changes: List[Change] = []

    for attribute, value in update.items():
        if attribute.lower() in ("dn", "objectclass") or callable(value):
            continue
        current = before.get(attribute)
        if current == value:
            continue

        if current and not value:
            changes.append(Change.delete(attribute))
        elif value is not None:
            changes.append(Change.replace(attribute, value))

    return changes
