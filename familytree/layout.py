"""Generation-level layout for the family tree diagram.

Turns persons (with their relationship collections) plus an optional saved
layout into positioned nodes and drawable edges. Everything here is pure:
no I/O, no shared state, safe to call from any number of request threads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

import networkx as nx

from .models import Person, RelationshipType

NODE_SPACING_X = 200
NODE_SPACING_Y = 150

_PARENT_COLOR = "#3b82f6"
_MARRIED_COLOR = "#f59e42"

EDGE_KIND_PARENT = "parent"
EDGE_KIND_MARRIED = "married"


@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass(frozen=True)
class SavedNode:
    id: str
    position: Position


@dataclass(frozen=True)
class SavedEdge:
    id: str
    source: str
    target: str


@dataclass
class SavedLayout:
    nodes: list[SavedNode] = field(default_factory=list)
    edges: list[SavedEdge] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "SavedLayout":
        return cls()

    def positions(self) -> dict[str, Position]:
        """Return id -> saved position; the first entry for an id wins."""
        out: dict[str, Position] = {}
        for node in self.nodes:
            out.setdefault(node.id, node.position)
        return out


@dataclass
class LayoutNode:
    id: str
    position: Position
    data: dict[str, Any]
    type: str = "person"
    # None leaves dragging up to the renderer's default.
    draggable: Optional[bool] = None


@dataclass
class LayoutEdge:
    id: str
    source: str
    target: str
    kind: str
    type: str
    source_handle: str
    target_handle: str
    style: dict[str, Any]
    animated: bool = False
    marker_end: Optional[dict[str, Any]] = None


@dataclass
class TreeLayout:
    nodes: list[LayoutNode] = field(default_factory=list)
    edges: list[LayoutEdge] = field(default_factory=list)


NodeDataFactory = Callable[[Person], Mapping[str, Any]]


# ---------------------------------------------------------------------------
# Generation levels
# ---------------------------------------------------------------------------


def _parent_ids(person: Person) -> list[str]:
    return [
        rel.person_one_id
        for rel in person.relationships_as_two
        if rel.type == RelationshipType.PARENT.value and rel.person_two_id == person.id
    ]


def _index_by_id(persons: Iterable[Person]) -> dict[str, Person]:
    by_id: dict[str, Person] = {}
    for p in persons:
        by_id.setdefault(p.id, p)
    return by_id


def _parent_graph(by_id: dict[str, Person]) -> nx.DiGraph:
    """Directed parent -> child graph over the known persons."""

    graph = nx.DiGraph()
    graph.add_nodes_from(by_id)
    for pid, person in by_id.items():
        graph.add_edges_from((q, pid) for q in _parent_ids(person) if q in by_id)
    return graph


def compute_levels(persons: list[Person]) -> dict[str, int]:
    """Return person id -> generation level.

    level = 0 without parents, else max(level(parent) + 1). Parents missing
    from ``persons`` are ignored, so they count as 0 for their branch.

    Members of a parent cycle share one level: one more than their deepest
    parent outside the cycle (0 if none), plus the cycle's size. A lone
    cycle of k persons therefore sits at level k, the level a walk around
    it reaches before meeting its starting person again. Runs in time
    linear in persons plus relationships.
    """

    graph = _parent_graph(_index_by_id(persons))
    # One node per strongly connected component; acyclic by construction.
    dag = nx.condensation(graph)

    component_levels: dict[int, int] = {}
    for component in nx.topological_sort(dag):
        members = dag.nodes[component]["members"]
        base = max((component_levels[up] + 1 for up in dag.predecessors(component)), default=0)
        cyclic = len(members) > 1 or any(graph.has_edge(m, m) for m in members)
        component_levels[component] = base + len(members) if cyclic else base

    mapping = dag.graph["mapping"]
    return {p.id: component_levels[mapping[p.id]] for p in persons}


def _generations(persons: list[Person]) -> list[tuple[int, list[Person]]]:
    levels = compute_levels(persons)
    grouped: dict[int, list[Person]] = {}
    for p in persons:
        grouped.setdefault(levels[p.id], []).append(p)
    return sorted(grouped.items())


def _default_positions(persons: list[Person]) -> list[tuple[Person, Position]]:
    """Centred row per generation, in ascending level order."""

    out: list[tuple[Person, Position]] = []
    for level, people in _generations(persons):
        start_x = -(len(people) * NODE_SPACING_X) // 2
        for index, person in enumerate(people):
            x = start_x + index * NODE_SPACING_X + NODE_SPACING_X // 2
            out.append((person, Position(x=x, y=level * NODE_SPACING_Y)))
    return out


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------


def _parent_edge(parent_id: str, child_id: str) -> LayoutEdge:
    return LayoutEdge(
        id=f"parent-{parent_id}-{child_id}",
        source=parent_id,
        target=child_id,
        kind=EDGE_KIND_PARENT,
        type="smoothstep",
        source_handle="parent-source",
        target_handle="child-target",
        style={"stroke": _PARENT_COLOR, "strokeWidth": 2},
        marker_end={"type": "arrow", "color": _PARENT_COLOR},
    )


def _married_edge(one_id: str, two_id: str, *, read_only: bool) -> LayoutEdge:
    return LayoutEdge(
        id=f"married-{one_id}-{two_id}",
        source=one_id,
        target=two_id,
        kind=EDGE_KIND_MARRIED,
        type="straight" if read_only else "smoothstep",
        source_handle="married-left",
        target_handle="married-right",
        style={"stroke": _MARRIED_COLOR, "strokeWidth": 2, "strokeDasharray": "6 3"},
        animated=True,
    )


def derive_edges(persons: list[Person], *, read_only: bool = False) -> list[LayoutEdge]:
    """Parent edges first, then married edges (one per unordered pair).

    Relationships pointing at persons outside ``persons`` are skipped.
    """

    known = {p.id for p in persons}

    parent_edges: list[LayoutEdge] = []
    married_edges: list[LayoutEdge] = []
    married_pairs: set[tuple[str, str]] = set()

    for person in persons:
        for rel in person.relationships_as_one:
            one, two = rel.person_one_id, rel.person_two_id
            if one not in known or two not in known:
                continue

            if rel.type == RelationshipType.PARENT.value:
                parent_edges.append(_parent_edge(one, two))
            elif rel.type == RelationshipType.MARRIED.value:
                key = (one, two) if one <= two else (two, one)
                if key in married_pairs:
                    continue
                married_pairs.add(key)
                married_edges.append(_married_edge(one, two, read_only=read_only))

    return parent_edges + married_edges


# ---------------------------------------------------------------------------
# Layouts
# ---------------------------------------------------------------------------


def derive_layout(
    persons: list[Person],
    saved_layout: SavedLayout | None = None,
    node_data: NodeDataFactory | None = None,
) -> TreeLayout:
    """Editable layout: generation defaults, overridden per node by saved positions.

    ``node_data`` lets the caller attach its own entries (hooks, flags) to
    every node's data payload next to ``person``.
    """

    saved_positions = (saved_layout or SavedLayout.empty()).positions()

    nodes: list[LayoutNode] = []
    for person, default in _default_positions(persons):
        data: dict[str, Any] = {"person": person}
        if node_data is not None:
            data.update(node_data(person))
        nodes.append(
            LayoutNode(
                id=person.id,
                position=saved_positions.get(person.id, default),
                data=data,
            )
        )

    return TreeLayout(nodes=nodes, edges=derive_edges(persons))


def _read_only_node(person: Person, position: Position) -> LayoutNode:
    return LayoutNode(
        id=person.id,
        position=position,
        data={"person": person, "readOnly": True, "onDelete": None},
        draggable=False,
    )


def derive_read_only_layout(persons: list[Person], saved_layout: SavedLayout | None = None) -> TreeLayout:
    """Layout for the shared view.

    With no saved nodes every person gets its generation default. Otherwise
    only persons present in the saved layout are placed, at their saved
    position and in saved order; the rest are left out.
    """

    saved = saved_layout or SavedLayout.empty()
    nodes: list[LayoutNode] = []

    if not saved.nodes:
        for person, position in _default_positions(persons):
            nodes.append(_read_only_node(person, position))
    else:
        by_id = _index_by_id(persons)
        placed: set[str] = set()
        for saved_node in saved.nodes:
            person = by_id.get(saved_node.id)
            if person is None or person.id in placed:
                continue
            placed.add(person.id)
            nodes.append(_read_only_node(person, saved_node.position))

    return TreeLayout(nodes=nodes, edges=derive_edges(persons, read_only=True))
