from __future__ import annotations

from datetime import date

from familytree.layout import derive_layout, derive_read_only_layout
from familytree.models import Person, Relationship
from familytree.serialize import edge_to_json, layout_to_json, node_to_json, person_to_public


def test_person_to_public(fixed_today: date) -> None:
    rel = Relationship(id="r1", type="PARENT", person_one_id="p1", person_two_id="p2", family_tree_id="t1")
    p = Person(
        id="p1",
        first_name="John",
        last_name="Doe",
        birth_date=date(1940, 1, 15),
        gender="MALE",
        family_tree_id="t1",
        relationships_as_one=[rel],
    )
    out = person_to_public(p, today=fixed_today)

    assert out["display_name"] == "John Doe"
    assert out["birth_date"] == "1940-01-15"
    assert out["death_date"] is None
    assert out["age"] == 86
    assert out["lifespan"] == "1940 - present"
    assert out["relationships_as_one"] == [
        {"id": "r1", "type": "PARENT", "person_one_id": "p1", "person_two_id": "p2", "family_tree_id": "t1"}
    ]
    assert out["relationships_as_two"] == []

    assert "relationships_as_one" not in person_to_public(p, include_relationships=False)


def test_editable_node_json_drops_callables(persons_factory) -> None:
    persons = persons_factory(["A"])
    layout = derive_layout(persons, node_data=lambda p: {"onEdit": lambda: None, "selected": False})
    out = node_to_json(layout.nodes[0])

    assert out["id"] == "A"
    assert out["type"] == "person"
    assert out["position"] == {"x": 0, "y": 0}
    assert out["data"]["person"]["id"] == "A"
    assert out["data"]["selected"] is False
    assert "onEdit" not in out["data"]
    assert "draggable" not in out


def test_read_only_node_json(persons_factory) -> None:
    out = node_to_json(derive_read_only_layout(persons_factory(["A"])).nodes[0])
    assert out["draggable"] is False
    assert out["data"]["readOnly"] is True
    assert out["data"]["onDelete"] is None


def test_edge_json_uses_react_flow_keys(persons_factory) -> None:
    persons = persons_factory(["A", "B", "C"], [("PARENT", "A", "C"), ("MARRIED", "A", "B")])
    parent, married = (edge_to_json(e) for e in derive_layout(persons).edges)

    assert parent == {
        "id": "parent-A-C",
        "source": "A",
        "target": "C",
        "kind": "parent",
        "type": "smoothstep",
        "sourceHandle": "parent-source",
        "targetHandle": "child-target",
        "style": {"stroke": "#3b82f6", "strokeWidth": 2},
        "markerEnd": {"type": "arrow", "color": "#3b82f6"},
    }
    assert married["animated"] is True
    assert married["kind"] == "married"
    assert "markerEnd" not in married


def test_layout_to_json_empty() -> None:
    assert layout_to_json(derive_layout([])) == {"nodes": [], "edges": []}
