import random

from plan_timeline.core.errors import TimelineInvariantError
from plan_timeline.core.model import ActivityInterval, PlanningItem, TaskIssue, TaskKind, VisualTask
from plan_timeline.core.timeline.aggregate import aggregate_spans
from plan_timeline.core.timeline.forest import build_forest
from plan_timeline.core.timeline.materialize import materialize_tasks
from plan_timeline.core.timeline.traversal import sequence_tasks


_ISSUE = TaskIssue(
    id="i", url="", is_resolved=False, type_id="", state_id="", has_sub_issues=False, total_num_activities=0
)


def _task(tid: str, parent=None) -> VisualTask:
    return VisualTask(id=tid, kind=TaskKind.MAIN, text=tid, issue=_ISSUE, parent=parent)


def _assert_parents_first(tasks):
    position = {t.id: i for i, t in enumerate(tasks)}
    for t in tasks:
        if t.parent is not None:
            assert position[t.parent] < position[t.id], t.id


def _materialized():
    items = [
        PlanningItem(id="b", summary="b", activities=(ActivityInterval(0, 2), ActivityInterval(5, 8))),
        PlanningItem(id="a", summary="a", parent_id="b", activities=(ActivityInterval(2, 5),)),
        PlanningItem(id="g", summary="g", parent_id="a"),
        PlanningItem(id="c", summary="c", activities=(ActivityInterval(1, 2), ActivityInterval(3, 4))),
    ]
    forest = build_forest(items)
    return list(materialize_tasks(forest, aggregate_spans(forest), timestamp=0, directory={}))


def test_sequence_is_identity_on_materializer_output():
    tasks = _materialized()
    assert list(sequence_tasks(tasks)) == tasks
    _assert_parents_first(tasks)


def test_sequence_repairs_any_input_order():
    tasks = _materialized()
    rng = random.Random(1234)
    for _ in range(20):
        shuffled = list(tasks)
        rng.shuffle(shuffled)
        ordered = list(sequence_tasks(shuffled))
        assert sorted(t.id for t in ordered) == sorted(t.id for t in tasks)
        _assert_parents_first(ordered)


def test_sequence_keeps_sibling_order():
    tasks = [_task("c2", "p"), _task("p"), _task("c1", "p"), _task("q")]
    assert [t.id for t in sequence_tasks(tasks)] == ["p", "c2", "c1", "q"]


def test_sequence_rejects_unknown_parent():
    try:
        list(sequence_tasks([_task("a", "missing")]))
        assert False, "expected TimelineInvariantError"
    except TimelineInvariantError as e:
        assert e.code == "I_UNKNOWN_PARENT_TASK"


def test_sequence_rejects_duplicate_ids():
    try:
        list(sequence_tasks([_task("a"), _task("a")]))
        assert False, "expected TimelineInvariantError"
    except TimelineInvariantError as e:
        assert e.code == "I_DUPLICATE_TASK_ID"


def test_sequence_rejects_parent_cycles():
    try:
        list(sequence_tasks([_task("root"), _task("x", "y"), _task("y", "x")]))
        assert False, "expected TimelineInvariantError"
    except TimelineInvariantError as e:
        assert e.code == "I_UNREACHABLE_TASK"


def test_sequence_handles_deep_chains():
    tasks = [_task("t0")] + [_task(f"t{i}", f"t{i - 1}") for i in range(1, 5000)]
    tasks.reverse()
    ordered = list(sequence_tasks(tasks))
    assert [t.id for t in ordered] == [f"t{i}" for i in range(5000)]
