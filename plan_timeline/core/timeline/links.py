from __future__ import annotations

from typing import Iterable

from plan_timeline.core.errors import PreconditionError
from plan_timeline.core.model import PlanningItem, TaskKind, VisualLink
from plan_timeline.core.timeline.forest import Forest, TreeNode
from plan_timeline.core.timeline.materialize import task_id


def retarget_link(source: PlanningItem, target: PlanningItem) -> str:
    """Return the task id a finish-to-start link from ``source`` should point at.

    Best effort, for display only: when the source finishes after the target
    started, a link to the target's main task would point into the middle of its
    bar. Point instead at the first working fragment of the target that starts
    no earlier than the source finishes. If there is none, keep the main task.
    """

    default = task_id(target.id, TaskKind.MAIN)
    if len(target.activities) < 2 or not source.activities:
        return default

    source_end = source.activities[-1].end
    if source_end <= target.activities[0].start:
        return default

    for position, activity in enumerate(target.activities):
        if activity.start >= source_end and not activity.is_waiting:
            return task_id(target.id, TaskKind.ACTIVITY, position)
    return default


def build_links(forest: Forest, order: Iterable[TreeNode]) -> list[VisualLink]:
    """Create one link per dependency, numbered in the order items are visited.

    A dependency of item ``t`` on item ``s`` becomes the link ``s -> t``.
    """

    links: list[VisualLink] = []
    for node in order:
        item = node.item
        for dep_id in item.dependency_ids:
            dep = forest.nodes_by_id.get(dep_id)
            if dep is None:
                raise PreconditionError(
                    code="E_UNKNOWN_DEPENDENCY",
                    message=f"dependencies references unknown id: {dep_id}",
                    path=f"items[{item.id}].dependencies",
                )
            links.append(
                VisualLink(
                    id=len(links),
                    source=task_id(dep.id, TaskKind.MAIN),
                    target=retarget_link(dep.item, item),
                )
            )
    return links
