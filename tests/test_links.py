from plan_timeline.core.errors import PreconditionError
from plan_timeline.core.model import ActivityInterval, PlanningItem
from plan_timeline.core.timeline.forest import build_forest
from plan_timeline.core.timeline.links import build_links, retarget_link
from plan_timeline.core.timeline.traversal import iter_preorder


def _act(start: int, end: int, waiting: bool = False) -> ActivityInterval:
    return ActivityInterval(start=start, end=end, is_waiting=waiting)


def _item(iid: str, *activities: ActivityInterval, deps: tuple[str, ...] = (), parent: str = "") -> PlanningItem:
    return PlanningItem(id=iid, summary=iid, parent_id=parent, activities=activities, dependency_ids=deps)


def test_retarget_to_first_working_fragment_after_source_end():
    x = _item("x", _act(0, 10))
    y = _item("y", _act(5, 9, waiting=True), _act(12, 20))
    assert retarget_link(x, y) == "y/1"


def test_retarget_skips_waiting_fragments_after_source_end():
    x = _item("x", _act(0, 10))
    y = _item("y", _act(5, 9), _act(10, 11, waiting=True), _act(11, 14), _act(15, 16))
    assert retarget_link(x, y) == "y/2"


def test_no_retarget_when_source_ends_before_target_starts():
    x = _item("x", _act(0, 5))
    y = _item("y", _act(5, 9), _act(12, 20))
    assert retarget_link(x, y) == "y"


def test_no_retarget_for_single_activity_target_or_unscheduled_source():
    x = _item("x", _act(0, 10))
    assert retarget_link(x, _item("y", _act(5, 20))) == "y"
    assert retarget_link(_item("x"), _item("y", _act(5, 9), _act(12, 20))) == "y"


def test_no_retarget_when_no_working_fragment_follows():
    x = _item("x", _act(0, 30))
    y = _item("y", _act(5, 9), _act(12, 20))
    assert retarget_link(x, y) == "y"

    x2 = _item("x2", _act(0, 10))
    y2 = _item("y2", _act(5, 9), _act(12, 20, waiting=True))
    assert retarget_link(x2, y2) == "y2"


def test_retarget_is_idempotent():
    x = _item("x", _act(0, 10))
    y = _item("y", _act(5, 9, waiting=True), _act(12, 20))
    first = retarget_link(x, y)
    assert retarget_link(x, y) == first


def test_build_links_numbers_links_in_preorder():
    forest = build_forest(
        [
            _item("c", _act(0, 3), deps=("a", "b"), parent="p"),
            _item("p"),
            _item("a", _act(0, 10)),
            _item("b", _act(0, 1), _act(2, 3), deps=("a",)),
        ]
    )
    links = build_links(forest, iter_preorder(forest))

    assert [(l.id, l.source, l.target) for l in links] == [
        (0, "a", "c"),
        (1, "b", "c"),
        (2, "a", "b"),
    ]
    assert all(l.type == "0" for l in links)


def test_build_links_unknown_dependency():
    forest = build_forest([_item("a", deps=("ghost",))])
    try:
        build_links(forest, iter_preorder(forest))
        assert False, "expected PreconditionError"
    except PreconditionError as e:
        assert e.code == "E_UNKNOWN_DEPENDENCY"
