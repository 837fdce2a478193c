from __future__ import annotations

from dataclasses import replace
from typing import Iterator, Optional

from plan_timeline.core.config.settings import Settings
from plan_timeline.core.contributors.directory import (
    ContributorDirectory,
    assignees_to_contributors,
)
from plan_timeline.core.errors import TimelineInvariantError
from plan_timeline.core.model import Interval, TaskIssue, TaskKind, VisualTask
from plan_timeline.core.timeline.aggregate import SpanIndex
from plan_timeline.core.timeline.forest import Forest, TreeNode
from plan_timeline.core.timeline.traversal import iter_preorder


def task_id(item_id: str, kind: TaskKind, position: Optional[int] = None) -> str:
    """Return the task id for an item.

    These ids are a public contract: renderers and stored chart state key on them.
    """

    if (kind is TaskKind.ACTIVITY) != (position is not None):
        raise TimelineInvariantError(
            code="I_TASK_ID_ARGS",
            message=f"activity position must be given exactly for activity tasks (kind={kind.value})",
            path=item_id,
        )

    if kind is TaskKind.MAIN:
        return item_id
    if kind is TaskKind.AGGREGATE_ONLY:
        return f"{item_id}/only"
    if kind is TaskKind.ACTIVITY:
        return f"{item_id}/{position}"
    raise TimelineInvariantError(
        code="I_UNKNOWN_TASK_KIND", message=f"unknown task kind: {kind!r}", path=item_id
    )


def needs_aggregate_only_task(node: TreeNode, spans: SpanIndex) -> bool:
    """Whether the main task's span hides what the item itself did.

    The main task of a parent shows the span of the item and all sub-items;
    an extra aggregate-only task then shows just the item's own activities.
    """

    activities = node.item.activities
    if not node.children or not activities:
        return False
    if len(activities) > 1:
        return True

    own = spans.own_span(node.id)
    overall = spans.aggregate_span(node.id)
    if own is None or overall is None:
        raise TimelineInvariantError(
            code="I_SPAN_MISSING",
            message="item has activities but no aggregated time span",
            path=node.id,
        )
    return own != overall


def make_issue(
    node: TreeNode, directory: ContributorDirectory, settings: Settings
) -> TaskIssue:
    item = node.item
    return TaskIssue(
        id=item.id,
        url=f"{settings.base_url}issue/{item.id}" if settings.base_url else "",
        is_resolved=item.is_resolved,
        type_id=item.custom_fields.get(settings.type_field_id, ""),
        state_id=item.custom_fields.get(settings.state_field_id, ""),
        has_sub_issues=len(node.children) > 0,
        total_num_activities=sum(1 for a in item.activities if not a.is_waiting),
        # The empty assignee is never in the directory.
        assignee=directory.get(item.assignee),
    )


def materialize_node(
    node: TreeNode,
    spans: SpanIndex,
    *,
    timestamp: int,
    directory: ContributorDirectory,
    settings: Settings,
) -> list[VisualTask]:
    """Return the tasks of a single item: main, optional aggregate-only, activities."""

    item = node.item
    activities = item.activities
    issue = make_issue(node, directory, settings)
    split = len(activities) > 1

    single = activities[0] if len(activities) == 1 else None
    main = VisualTask(
        id=task_id(item.id, TaskKind.MAIN),
        kind=TaskKind.MAIN,
        text=item.summary,
        issue=issue,
        parent=item.parent_id or None,
        contributors=(
            assignees_to_contributors(single.assignees, directory) if single is not None else ()
        ),
        is_waiting=single.is_waiting if single is not None else False,
        **_timing(spans.aggregate_span(item.id), timestamp),
    )

    aggregate_only: Optional[VisualTask] = None
    if needs_aggregate_only_task(node, spans):
        own = spans.own_span(item.id)
        if own is None:
            raise TimelineInvariantError(
                code="I_SPAN_MISSING",
                message="aggregate-only task requested for an item without own span",
                path=item.id,
            )
        aggregate_only = replace(
            main,
            id=task_id(item.id, TaskKind.AGGREGATE_ONLY),
            kind=TaskKind.AGGREGATE_ONLY,
            parent=main.id,
            **_timing(own, timestamp),
        )

    if not split:
        return [main] if aggregate_only is None else [main, aggregate_only]

    if aggregate_only is None:
        main = replace(main, render_split=True)
        anchor = main
        tasks = [main]
    else:
        aggregate_only = replace(aggregate_only, render_split=True)
        anchor = aggregate_only
        tasks = [main, aggregate_only]

    non_waiting_index = 0
    for position, activity in enumerate(activities):
        tasks.append(
            replace(
                main,
                id=task_id(item.id, TaskKind.ACTIVITY, position),
                kind=TaskKind.ACTIVITY,
                parent=anchor.id,
                render_split=False,
                contributors=assignees_to_contributors(activity.assignees, directory),
                is_waiting=activity.is_waiting,
                index=None if activity.is_waiting else non_waiting_index,
                **_timing(Interval(activity.start, activity.end), timestamp),
            )
        )
        if not activity.is_waiting:
            non_waiting_index += 1
    return tasks


def materialize_tasks(
    forest: Forest,
    spans: SpanIndex,
    *,
    timestamp: int,
    directory: ContributorDirectory,
    settings: Optional[Settings] = None,
) -> Iterator[VisualTask]:
    """Yield the tasks of all items in pre-order, each item's own tasks first."""

    settings = settings or Settings()
    for node in iter_preorder(forest):
        yield from materialize_node(
            node, spans, timestamp=timestamp, directory=directory, settings=settings
        )


def _timing(span: Optional[Interval], timestamp: int) -> dict[str, object]:
    if span is None:
        return {"start": None, "end": None, "is_in_future": False}
    return {"start": span.start, "end": span.end, "is_in_future": span.end > timestamp}
