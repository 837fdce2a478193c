from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Optional

from plan_timeline.core.config.settings import Settings
from plan_timeline.core.contributors.directory import ContributorDirectory
from plan_timeline.core.errors import PreconditionError
from plan_timeline.core.model import PlanningItem, TimelineData
from plan_timeline.core.timeline.aggregate import aggregate_spans
from plan_timeline.core.timeline.forest import build_forest
from plan_timeline.core.timeline.links import build_links
from plan_timeline.core.timeline.materialize import materialize_tasks
from plan_timeline.core.timeline.traversal import iter_preorder, sequence_tasks

logger = logging.getLogger(__name__)


def build_timeline(
    items: Iterable[PlanningItem],
    *,
    timestamp: int,
    directory: ContributorDirectory,
    settings: Optional[Settings] = None,
    check_cycles: bool = False,
) -> TimelineData:
    """Transform planning items into ordered timeline tasks and links.

    Pure: inputs are not modified and every call recomputes from scratch.
    Raises PreconditionError on referential integrity violations
    (unknown parent, dependency or contributor, parent cycle) without returning
    partial output.
    """

    forest = build_forest(items, check_cycles=check_cycles)
    reached = sum(1 for _ in iter_preorder(forest))
    if reached != len(forest):
        # Only items on or below a parent cycle are unreachable from the roots.
        raise PreconditionError(
            code="E_PARENT_CYCLE",
            message=f"{len(forest) - reached} item(s) are not reachable from a root item",
            path="items",
        )
    spans = aggregate_spans(forest)

    emitted = materialize_tasks(
        forest, spans, timestamp=timestamp, directory=directory, settings=settings
    )
    tasks = list(sequence_tasks(emitted))
    links = build_links(forest, iter_preorder(forest))

    if logger.isEnabledFor(logging.DEBUG):
        kinds = Counter(t.kind.value for t in tasks)
        logger.debug(
            "timeline: %d item(s) -> %d task(s) %s, %d link(s)",
            len(forest),
            len(tasks),
            dict(sorted(kinds.items())),
            len(links),
        )
    return TimelineData(tasks=tasks, links=links)
