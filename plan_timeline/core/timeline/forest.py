from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from plan_timeline.core.errors import PreconditionError
from plan_timeline.core.model import PlanningItem


@dataclass
class TreeNode:
    item: PlanningItem
    parent: Optional[str] = None
    children: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.item.id


@dataclass(frozen=True)
class Forest:
    """Arena of tree nodes keyed by item id. Parent/child links are ids, not references."""

    nodes_by_id: dict[str, TreeNode]
    roots: list[str]

    def node(self, node_id: str) -> TreeNode:
        return self.nodes_by_id[node_id]

    def __len__(self) -> int:
        return len(self.nodes_by_id)


def build_forest(items: Iterable[PlanningItem], *, check_cycles: bool = False) -> Forest:
    """Link items into a forest via their parent ids.

    Siblings and roots keep their relative input order. The caller guarantees the
    parent graph is acyclic unless ``check_cycles`` is set.
    """

    nodes_by_id: dict[str, TreeNode] = {}
    for item in items:
        if item.id in nodes_by_id:
            raise PreconditionError(
                code="E_DUPLICATE_ID",
                message=f"duplicate item id: {item.id}",
                path=f"items[{item.id}]",
            )
        nodes_by_id[item.id] = TreeNode(item=item)

    roots: list[str] = []
    for nid, node in nodes_by_id.items():
        parent_id = node.item.parent_id
        if not parent_id:
            roots.append(nid)
            continue
        parent = nodes_by_id.get(parent_id)
        if parent is None:
            raise PreconditionError(
                code="E_UNKNOWN_PARENT",
                message=f"parent references unknown id: {parent_id}",
                path=f"items[{nid}].parent",
            )
        node.parent = parent_id
        parent.children.append(nid)

    if check_cycles:
        cycles = find_parent_cycles({nid: n.item.parent_id for nid, n in nodes_by_id.items()})
        if cycles:
            raise PreconditionError(
                code="E_PARENT_CYCLE",
                message="parent cycle detected: " + " -> ".join(cycles[0] + [cycles[0][0]]),
                path=f"items[{cycles[0][0]}].parent",
            )

    return Forest(nodes_by_id=nodes_by_id, roots=roots)


def find_parent_cycles(parent_by_id: dict[str, str]) -> list[list[str]]:
    """Return each cycle of the parent relation once, in discovery order.

    Every id has at most one parent, so walking parent chains with a
    visited set finds all cycles in linear time. Unknown parents end a chain.
    """

    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {nid: WHITE for nid in parent_by_id}
    cycles: list[list[str]] = []

    for start in parent_by_id:
        path: list[str] = []
        cur: Optional[str] = start
        while cur is not None and state.get(cur) == WHITE:
            state[cur] = GRAY
            path.append(cur)
            parent = parent_by_id[cur]
            cur = parent if parent in parent_by_id else None
        if cur is not None and state.get(cur) == GRAY:
            cycles.append(path[path.index(cur):])
        for nid in path:
            state[nid] = BLACK

    return cycles
