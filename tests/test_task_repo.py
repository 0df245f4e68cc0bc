# tests/test_task_repo.py

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from tactical_planner.core.errors import CycleError, NotFoundError, ValidationError
from tactical_planner.planning.task_models import ImportanceLevel
from tactical_planner.planning.task_repo import TaskRepository

from .conftest import T0


def _add(repo: TaskRepository, title: str, **kwargs):
    kwargs.setdefault("required_time", 1.0)
    kwargs.setdefault("ideal_deadline", T0 + timedelta(hours=3))
    kwargs.setdefault("importance_level", ImportanceLevel.MEDIUM)
    return repo.create(title=title, **kwargs)


def _ancestors(repo: TaskRepository, task_id: str) -> list[str]:
    out: list[str] = []
    current = repo.get_by_id(task_id)
    while current is not None and current.parent_task_id is not None:
        assert current.parent_task_id not in out, "parent chain must not loop"
        out.append(current.parent_task_id)
        current = repo.get_by_id(current.parent_task_id)
    return out


def test_create_assigns_id_and_created_at(tasks: TaskRepository) -> None:
    task = _add(tasks, "  Write report  ", required_time=2.5, importance_level=2)

    assert task.id == "t1"
    assert task.title == "Write report"
    assert task.required_time == 2.5
    assert task.importance_level is ImportanceLevel.HIGH
    assert task.created_at == T0
    assert task.parent_task_id is None
    assert task.links_to == ()
    assert tasks.get_by_id("t1") == task


@pytest.mark.parametrize(
    "field, value",
    [
        ("required_time", -0.5),
        ("required_time", float("nan")),
        ("required_time", "2"),
        ("importance_level", 0),
        ("importance_level", 5),
        ("importance_level", True),
        ("title", "   "),
        ("ideal_deadline", "tomorrow"),
    ],
)
def test_create_rejects_invalid_fields(tasks: TaskRepository, field: str, value) -> None:
    kwargs = {"title": "x", "required_time": 1.0, "ideal_deadline": T0}
    kwargs[field] = value
    with pytest.raises(ValidationError):
        tasks.create(**kwargs)
    assert tasks.count() == 0


def test_create_with_unknown_parent_fails(tasks: TaskRepository) -> None:
    with pytest.raises(NotFoundError):
        _add(tasks, "orphan", parent_task_id="missing")


def test_zero_required_time_is_allowed(tasks: TaskRepository) -> None:
    assert _add(tasks, "quick", required_time=0).required_time == 0.0


def test_update_changes_only_given_fields(tasks: TaskRepository) -> None:
    task = _add(tasks, "a")
    updated = tasks.update(task.id, required_time=4, importance_level=ImportanceLevel.MUST)

    assert updated.required_time == 4.0
    assert updated.importance_level is ImportanceLevel.MUST
    assert updated.title == "a"
    assert updated.created_at == task.created_at
    assert tasks.get_by_id(task.id) == updated


def test_update_validates_and_reports_unknown_id(tasks: TaskRepository) -> None:
    task = _add(tasks, "a")
    with pytest.raises(ValidationError):
        tasks.update(task.id, required_time=-1)
    with pytest.raises(ValidationError):
        tasks.update(task.id, importance_level=7)
    with pytest.raises(NotFoundError):
        tasks.update("nope", title="b")
    assert tasks.get_by_id(task.id) == task


def test_update_rejects_parent_cycles(tasks: TaskRepository) -> None:
    a = _add(tasks, "a")
    b = _add(tasks, "b", parent_task_id=a.id)
    c = _add(tasks, "c", parent_task_id=b.id)

    with pytest.raises(CycleError):
        tasks.update(a.id, parent_task_id=c.id)
    with pytest.raises(CycleError):
        tasks.update(a.id, parent_task_id=a.id)

    for t in tasks.list_all():
        assert t.id not in _ancestors(tasks, t.id)
    assert tasks.get_by_id(a.id).parent_task_id is None


def test_reparent_moves_between_child_lists(tasks: TaskRepository) -> None:
    a = _add(tasks, "a")
    b = _add(tasks, "b")
    c = _add(tasks, "c", parent_task_id=a.id)

    tasks.update(c.id, parent_task_id=b.id)
    assert [t.id for t in tasks.get_subtasks(a.id)] == []
    assert [t.id for t in tasks.get_subtasks(b.id)] == [c.id]

    tasks.update(c.id, parent_task_id=None)
    assert [t.id for t in tasks.get_root_tasks()] == [a.id, b.id, c.id]


def test_siblings_keep_creation_order_after_reparent(tasks: TaskRepository) -> None:
    p = _add(tasks, "p")
    first = _add(tasks, "first")
    second = _add(tasks, "second", parent_task_id=p.id)

    tasks.update(first.id, parent_task_id=p.id)
    assert [t.title for t in tasks.get_subtasks(p.id)] == ["first", "second"]
    assert second.id in {t.id for t in tasks.get_subtasks(p.id)}


def test_delete_cascades_and_prunes_links(tasks: TaskRepository) -> None:
    root = _add(tasks, "root")
    child = _add(tasks, "child", parent_task_id=root.id)
    grandchild = _add(tasks, "grandchild", parent_task_id=child.id)
    other = _add(tasks, "other")
    tasks.add_link(other.id, grandchild.id)
    tasks.add_link(other.id, root.id)
    tasks.add_link(grandchild.id, other.id)

    removed = tasks.delete(root.id)

    assert set(removed) == {root.id, child.id, grandchild.id}
    assert [t.id for t in tasks.list_all()] == [other.id]
    assert tasks.get_by_id(other.id).links_to == ()
    assert tasks.get_root_tasks() == [tasks.get_by_id(other.id)]
    for t in tasks.list_all():
        assert t.parent_task_id is None or tasks.get_by_id(t.parent_task_id) is not None


def test_delete_unknown_task_fails(tasks: TaskRepository) -> None:
    with pytest.raises(NotFoundError):
        tasks.delete("missing")


def test_links_are_directional_and_idempotent(tasks: TaskRepository) -> None:
    a = _add(tasks, "a")
    b = _add(tasks, "b")

    tasks.add_link(a.id, b.id)
    tasks.add_link(a.id, b.id)
    assert tasks.get_by_id(a.id).links_to == (b.id,)
    assert tasks.get_by_id(b.id).links_to == ()
    assert [t.id for t in tasks.get_linked_from(b.id)] == [a.id]

    # Link cycles are fine.
    tasks.add_link(b.id, a.id)
    assert tasks.get_by_id(b.id).links_to == (a.id,)

    tasks.remove_link(a.id, b.id)
    tasks.remove_link(a.id, b.id)
    assert tasks.get_by_id(a.id).links_to == ()
    assert tasks.get_linked_from(b.id) == []


def test_link_errors(tasks: TaskRepository) -> None:
    a = _add(tasks, "a")
    with pytest.raises(ValidationError):
        tasks.add_link(a.id, a.id)
    with pytest.raises(NotFoundError):
        tasks.add_link(a.id, "missing")
    with pytest.raises(NotFoundError):
        tasks.remove_link("missing", a.id)


def test_links_do_not_affect_hierarchy(tasks: TaskRepository) -> None:
    a = _add(tasks, "a")
    b = _add(tasks, "b")
    tasks.add_link(a.id, b.id)

    tasks.delete(a.id)
    assert tasks.get_by_id(b.id) is not None


def test_task_tree_is_depth_first_in_creation_order(tasks: TaskRepository) -> None:
    r1 = _add(tasks, "r1")
    r2 = _add(tasks, "r2")
    c1 = _add(tasks, "c1", parent_task_id=r1.id)
    c2 = _add(tasks, "c2", parent_task_id=r1.id)
    g1 = _add(tasks, "g1", parent_task_id=c1.id)
    tasks.add_link(r2.id, g1.id)

    tree = tasks.get_task_tree()

    assert [n.task.title for n in tree] == ["r1", "r2"]
    assert [n.task.title for n in tree[0].children] == ["c1", "c2"]
    assert [n.task.title for n in tree[0].children[0].children] == ["g1"]
    assert tree[0].children[1].children == []
    assert tree[0].children[0].children[0].linked_from == (r2.id,)
    assert c2.id == tree[0].children[1].id


def test_task_tree_terminates_on_corrupt_cycle(tasks: TaskRepository) -> None:
    root = _add(tasks, "root")
    a = _add(tasks, "a", parent_task_id=root.id)
    b = _add(tasks, "b", parent_task_id=a.id)

    # Simulate a corrupted store: a's parent points to its own child.
    corrupt = [root, replace(a, parent_task_id=b.id), b]
    tasks.restore(corrupt)

    tree = tasks.get_task_tree()
    assert [n.task.title for n in tree] == ["root"]
    assert tree[0].children == []

    # Cascade delete on the looped part still terminates.
    removed = tasks.delete(a.id)
    assert set(removed) == {a.id, b.id}


def test_restore_repairs_dangling_references(tasks: TaskRepository) -> None:
    a = _add(tasks, "a")
    b = _add(tasks, "b")
    saved = [
        replace(a, parent_task_id="gone", links_to=("gone", a.id, b.id)),
        b,
    ]

    tasks.restore(saved)

    restored = tasks.get_by_id(a.id)
    assert restored.parent_task_id is None
    assert restored.links_to == (b.id,)
    assert [t.id for t in tasks.get_root_tasks()] == [a.id, b.id]


def test_restore_rejects_duplicate_ids(tasks: TaskRepository) -> None:
    a = _add(tasks, "a")
    with pytest.raises(ValidationError):
        tasks.restore([a, a])


def test_delete_matching_detaches_surviving_children(tasks: TaskRepository) -> None:
    parent = _add(tasks, "parent", importance_level=ImportanceLevel.OPTIONAL)
    must_child = _add(tasks, "must", importance_level=ImportanceLevel.MUST, parent_task_id=parent.id)
    other_child = _add(tasks, "other", importance_level=ImportanceLevel.HIGH, parent_task_id=parent.id)

    removed = tasks.delete_matching(lambda t: t.importance_level != ImportanceLevel.MUST)

    assert set(removed) == {parent.id, other_child.id}
    survivor = tasks.get_by_id(must_child.id)
    assert survivor.parent_task_id is None
    assert tasks.get_root_tasks() == [survivor]


def test_get_subtasks_of_unknown_task_is_empty(tasks: TaskRepository) -> None:
    assert tasks.get_subtasks("missing") == []
