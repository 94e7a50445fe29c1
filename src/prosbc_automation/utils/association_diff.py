"""Association change-set planner.

Compares the associations currently shown on a NAP edit page against a
desired set of sub-resource ids and produces the add/remove calls needed to
get there.  Associations can only be changed one item at a time through
their dedicated endpoints, never through the NAP update form.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from prosbc_automation.model.nap import Association


@dataclass
class AssociationChangeSet:
    """Planned association changes for one kind.

    Attributes:
        kind: Association kind.
        add: Sub-resource ids to add, in requested order.
        remove: Sub-resource ids to remove, in current table order.
    """

    kind: str
    add: list[str] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        """True when nothing needs to change."""
        return not self.add and not self.remove


def plan_association_changes(
    kind: str,
    current: Iterable[Association],
    desired: Iterable[str],
    *,
    allow_remove: bool = True,
) -> AssociationChangeSet:
    """Compute the calls needed to reach *desired* from *current*.

    Args:
        kind: Association kind being planned.
        current: Associations currently linked.
        desired: Target sub-resource ids (duplicates ignored).
        allow_remove: If ``False``, links absent from *desired* are kept.

    Returns:
        An :class:`AssociationChangeSet`.
    """
    current_ids = [a.id for a in current]
    current_set = set(current_ids)
    wanted: list[str] = []
    for item in desired:
        item = str(item)
        if item not in wanted:
            wanted.append(item)
    wanted_set = set(wanted)

    changes = AssociationChangeSet(kind=kind)
    changes.add = [i for i in wanted if i not in current_set]
    if allow_remove:
        changes.remove = [i for i in current_ids if i not in wanted_set]
    return changes
