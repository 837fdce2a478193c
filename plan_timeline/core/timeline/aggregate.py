from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from plan_timeline.core.model import Interval, PlanningItem
from plan_timeline.core.timeline.forest import Forest
from plan_timeline.core.timeline.traversal import iter_postorder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpanIndex:
    """Own and aggregate time spans per item id.

    Populated once by :func:`aggregate_spans`; ids without any span are absent.
    """

    own: dict[str, Interval]
    aggregate: dict[str, Interval]

    def own_span(self, item_id: str) -> Optional[Interval]:
        return self.own.get(item_id)

    def aggregate_span(self, item_id: str) -> Optional[Interval]:
        return self.aggregate.get(item_id)


def own_span(item: PlanningItem) -> Optional[Interval]:
    if not item.activities:
        return None
    return Interval(
        start=min(a.start for a in item.activities),
        end=max(a.end for a in item.activities),
    )


def aggregate_spans(forest: Forest) -> SpanIndex:
    """Compute each node's span and the union with all of its descendants.

    Post-order: a child's aggregate is final before its parent is visited.
    """

    own: dict[str, Interval] = {}
    aggregate: dict[str, Interval] = {}

    for node in iter_postorder(forest):
        span = own_span(node.item)
        if span is not None:
            own[node.id] = span

        contributing = [span] if span is not None else []
        contributing.extend(aggregate[c] for c in node.children if c in aggregate)
        if contributing:
            aggregate[node.id] = Interval(
                start=min(s.start for s in contributing),
                end=max(s.end for s in contributing),
            )

    logger.debug(
        "aggregated spans: %d node(s), %d with own span, %d scheduled",
        len(forest),
        len(own),
        len(aggregate),
    )
    return SpanIndex(own=own, aggregate=aggregate)
