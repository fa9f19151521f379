from __future__ import annotations

from datetime import date
from typing import Any

from .layout import LayoutEdge, LayoutNode, Position, TreeLayout
from .models import Person, Relationship
from .person_data import calculate_age, format_date_range


def _iso(d: date | None) -> str | None:
    return d.isoformat() if d else None


def relationship_to_public(rel: Relationship) -> dict[str, Any]:
    return {
        "id": rel.id,
        "type": rel.type,
        "person_one_id": rel.person_one_id,
        "person_two_id": rel.person_two_id,
        "family_tree_id": rel.family_tree_id,
    }


def person_to_public(
    person: Person,
    *,
    include_relationships: bool = True,
    today: date | None = None,
) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": person.id,
        "first_name": person.first_name,
        "last_name": person.last_name,
        "display_name": person.display_name,
        "birth_date": _iso(person.birth_date),
        "death_date": _iso(person.death_date),
        "gender": person.gender,
        "photo_path": person.photo_path,
        "biography": person.biography,
        "family_tree_id": person.family_tree_id,
        "age": calculate_age(person.birth_date, person.death_date, today=today),
        "lifespan": format_date_range(person.birth_date, person.death_date),
    }
    if include_relationships:
        out["relationships_as_one"] = [relationship_to_public(r) for r in person.relationships_as_one]
        out["relationships_as_two"] = [relationship_to_public(r) for r in person.relationships_as_two]
    return out


def _position_to_json(pos: Position) -> dict[str, float]:
    return {"x": pos.x, "y": pos.y}


def node_to_json(node: LayoutNode) -> dict[str, Any]:
    """React Flow node shape; a Person in the data payload is serialised in place."""

    data: dict[str, Any] = {}
    for key, value in node.data.items():
        if isinstance(value, Person):
            data[key] = person_to_public(value)
        elif callable(value):
            # Hooks only make sense in-process.
            continue
        else:
            data[key] = value

    out: dict[str, Any] = {
        "id": node.id,
        "type": node.type,
        "position": _position_to_json(node.position),
        "data": data,
    }
    if node.draggable is not None:
        out["draggable"] = node.draggable
    return out


def edge_to_json(edge: LayoutEdge) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": edge.id,
        "source": edge.source,
        "target": edge.target,
        "kind": edge.kind,
        "type": edge.type,
        "sourceHandle": edge.source_handle,
        "targetHandle": edge.target_handle,
        "style": dict(edge.style),
    }
    if edge.animated:
        out["animated"] = True
    if edge.marker_end is not None:
        out["markerEnd"] = dict(edge.marker_end)
    return out


def layout_to_json(layout: TreeLayout) -> dict[str, Any]:
    return {
        "nodes": [node_to_json(n) for n in layout.nodes],
        "edges": [edge_to_json(e) for e in layout.edges],
    }
