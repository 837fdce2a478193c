from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Iterator, Optional

from plan_timeline.core.errors import TimelineInvariantError
from plan_timeline.core.model import VisualTask
from plan_timeline.core.timeline.forest import Forest, TreeNode


def iter_preorder(forest: Forest) -> Iterator[TreeNode]:
    """Yield every node before its children, siblings in input order."""

    stack: list[Iterator[str]] = [iter(forest.roots)]
    while stack:
        nid = next(stack[-1], None)
        if nid is None:
            stack.pop()
            continue
        node = forest.node(nid)
        yield node
        stack.append(iter(node.children))


def iter_postorder(forest: Forest) -> Iterator[TreeNode]:
    """Yield every node after all of its children, siblings in input order."""

    for root_id in forest.roots:
        root = forest.node(root_id)
        stack: list[tuple[TreeNode, Iterator[str]]] = [(root, iter(root.children))]
        while stack:
            node, children = stack[-1]
            child_id = next(children, None)
            if child_id is None:
                stack.pop()
                yield node
                continue
            child = forest.node(child_id)
            stack.append((child, iter(child.children)))


def sequence_tasks(tasks: Iterable[VisualTask]) -> Iterator[VisualTask]:
    """Order tasks so that each one follows its parent task.

    Siblings keep their relative input order, so a list that already satisfies
    the ordering comes back unchanged. Duplicate ids and dangling parent ids are
    rejected before the first task is yielded; tasks stuck in a parent cycle
    are reported once the stack drains.
    """

    pending = list(tasks)
    seen: set[str] = set()
    for t in pending:
        if t.id in seen:
            raise TimelineInvariantError(
                code="I_DUPLICATE_TASK_ID",
                message=f"task id emitted more than once: {t.id}",
                path=t.id,
            )
        seen.add(t.id)

    top: list[VisualTask] = []
    children: dict[str, list[VisualTask]] = defaultdict(list)
    for t in pending:
        if t.parent is None:
            top.append(t)
        elif t.parent not in seen:
            raise TimelineInvariantError(
                code="I_UNKNOWN_PARENT_TASK",
                message=f"task {t.id} references unknown parent task: {t.parent}",
                path=t.id,
            )
        else:
            children[t.parent].append(t)

    emitted = 0
    stack: list[Iterator[VisualTask]] = [iter(top)]
    while stack:
        task: Optional[VisualTask] = next(stack[-1], None)
        if task is None:
            stack.pop()
            continue
        yield task
        emitted += 1
        stack.append(iter(children.get(task.id, ())))

    if emitted != len(pending):
        raise TimelineInvariantError(
            code="I_UNREACHABLE_TASK",
            message=f"{len(pending) - emitted} task(s) are not reachable from a top-level task",
        )
