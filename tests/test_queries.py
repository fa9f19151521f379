from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from familytree.layout import Position, SavedLayout, SavedNode
from familytree.queries import (
    ensure_user_tree,
    fetch_saved_layout,
    fetch_tree_persons,
    store_saved_layout,
    tree_title_for,
)


@dataclass
class _FakeResult:
    rows: list[tuple[Any, ...]]

    def fetchall(self) -> list[tuple[Any, ...]]:
        return list(self.rows)

    def fetchone(self) -> tuple[Any, ...] | None:
        return self.rows[0] if self.rows else None


class _FakeConn:
    def __init__(
        self,
        *,
        person_rows: list[tuple[Any, ...]] = (),
        relationship_rows: list[tuple[Any, ...]] = (),
        tree_rows: list[tuple[Any, ...]] = (),
        layout_rows: list[tuple[Any, ...]] = (),
    ) -> None:
        self._person_rows = list(person_rows)
        self._relationship_rows = list(relationship_rows)
        self._tree_rows = list(tree_rows)
        self._layout_rows = list(layout_rows)
        self.executed: list[tuple[str, tuple]] = []

    def execute(self, query: str, params: tuple = ()) -> _FakeResult:
        q = " ".join((query or "").split()).lower()
        self.executed.append((q, params))

        if q.startswith("select id, first_name") and "from person" in q:
            return _FakeResult(self._person_rows)

        if q.startswith("select id, type, person_one_id") and "from relationship" in q:
            ids = set(params[0])
            return _FakeResult([r for r in self._relationship_rows if r[2] in ids or r[3] in ids])

        if q.startswith("select id, title, created_by_id") and "from family_tree" in q:
            return _FakeResult(self._tree_rows)

        if q.startswith("insert into family_tree"):
            tid, title, owner = params
            return _FakeResult([(tid, title, owner, None, None)])

        if q.startswith("select data from tree_layout"):
            return _FakeResult(self._layout_rows)

        if q.startswith("insert into tree_layout"):
            return _FakeResult([])

        raise AssertionError(f"Unexpected query: {query}")


def _person_row(pid: str, first_name: str) -> tuple[Any, ...]:
    return (pid, first_name, "Doe", date(1970, 7, 10), None, "MALE", None, None, "u1", "t1")


def test_fetch_tree_persons_attaches_both_sides() -> None:
    conn = _FakeConn(
        person_rows=[_person_row("A", "John"), _person_row("B", "Michael")],
        relationship_rows=[
            ("r1", "PARENT", "A", "B", "t1"),
            ("r2", "MARRIED", "A", "OUTSIDER", "t1"),
        ],
    )
    persons = fetch_tree_persons(conn, "t1")

    a, b = persons
    assert (a.id, a.first_name, a.birth_date) == ("A", "John", date(1970, 7, 10))
    assert [r.id for r in a.relationships_as_one] == ["r1", "r2"]
    assert a.relationships_as_two == []
    assert [r.id for r in b.relationships_as_two] == ["r1"]
    assert b.relationships_as_one == []


def test_fetch_tree_persons_empty_skips_relationship_query() -> None:
    conn = _FakeConn()
    assert fetch_tree_persons(conn, "t1") == []
    assert not any("from relationship" in q for q, _ in conn.executed)


def test_ensure_user_tree_creates_once() -> None:
    conn = _FakeConn()
    tree = ensure_user_tree(conn, "u1", "Jan")
    assert tree["title"] == "Jan's Tree"
    assert tree["created_by_id"] == "u1"

    existing = ("t9", "Old", "u1", "slug123456", None)
    conn = _FakeConn(tree_rows=[existing])
    assert ensure_user_tree(conn, "u1", "Jan")["id"] == "t9"
    assert not any(q.startswith("insert") for q, _ in conn.executed)


def test_tree_title_for_unnamed_user() -> None:
    assert tree_title_for(None) == "Unnamed's Tree"


def test_fetch_saved_layout() -> None:
    assert fetch_saved_layout(_FakeConn(), "t1") == SavedLayout.empty()

    blob = {"nodes": [{"id": "A", "position": {"x": 1, "y": 2}}], "edges": []}
    saved = fetch_saved_layout(_FakeConn(layout_rows=[(blob,)]), "t1")
    assert saved.nodes == [SavedNode(id="A", position=Position(x=1, y=2))]


def test_store_saved_layout_writes_blob() -> None:
    conn = _FakeConn()
    store_saved_layout(conn, "t1", SavedLayout(nodes=[SavedNode(id="A", position=Position(x=1, y=2))]))

    q, params = conn.executed[-1]
    assert q.startswith("insert into tree_layout")
    assert params[0] == "t1"
    assert params[1].obj == {"nodes": [{"id": "A", "position": {"x": 1, "y": 2}}], "edges": []}
