"""Identity and path allocation for rendered nodes.

Every node gets two addresses:
- a rendering id, unique across the flattened graph
- a dotted step path, the key used to look the step up in run state
"""
from dataclasses import dataclass, replace
from typing import Collection, Optional


def allocate_id(
    candidate_id: str,
    level_allocated_ids: Collection[str],
    rank_index: int,
) -> str:
    """Return candidate_id, or candidate_id suffixed with its rank if already taken."""
    if candidate_id not in level_allocated_ids:
        return candidate_id
    node_id = f"{candidate_id}-{rank_index}"
    # A literal step id may already look like a suffixed one
    while node_id in level_allocated_ids:
        rank_index += 1
        node_id = f"{candidate_id}-{rank_index}"
    return node_id


def allocate_path(parent_path: Optional[str], local_id: str) -> str:
    """Append a local id to a dotted step path."""
    if not parent_path:
        return local_id
    return f"{parent_path}.{local_id}"


@dataclass(frozen=True)
class BuildContext:
    """Position of a step sequence in the nesting hierarchy.

    Passed by value through the recursion so sibling calls never share
    allocation state. ``taken_ids`` holds the ids already allocated in
    enclosing levels, which a nested level must not reuse.
    """

    parent_group_id: Optional[str] = None
    id_prefix: str = ""
    path_prefix: str = ""
    taken_ids: frozenset[str] = frozenset()

    @property
    def in_group(self) -> bool:
        return self.parent_group_id is not None

    def node_id(self, local_id: str) -> str:
        """Rendering id for a local id at this level."""
        if not self.id_prefix:
            return local_id
        return f"{self.id_prefix}_{local_id}"

    def allocate(
        self,
        step_id: str,
        level_allocated_ids: Collection[str],
        rank_index: int,
    ) -> tuple[str, str]:
        """Allocate the rendering id and step path for a step at this level."""
        taken = self.taken_ids.union(level_allocated_ids)
        node_id = allocate_id(self.node_id(step_id), taken, rank_index)
        local_id = node_id[len(self.id_prefix) + 1:] if self.id_prefix else node_id
        return node_id, allocate_path(self.path_prefix, local_id)

    def child(
        self,
        group_id: str,
        group_path: str,
        taken_ids: Collection[str] = (),
    ) -> "BuildContext":
        """Context for the step graph nested inside a group node."""
        return replace(
            self,
            parent_group_id=group_id,
            id_prefix=group_id,
            path_prefix=group_path,
            taken_ids=self.taken_ids.union(taken_ids, (group_id,)),
        )
