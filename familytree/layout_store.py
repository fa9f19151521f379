"""Saved layout blobs: ``{nodes: [{id, position: {x, y}}], edges: [{id, source, target}]}``."""

from __future__ import annotations

import json
import logging
from typing import Any

from .layout import Position, SavedEdge, SavedLayout, SavedNode, TreeLayout

log = logging.getLogger(__name__)


def _as_number(value: Any) -> float | None:
    # bool is an int subclass; a position of True/False is garbage.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _parse_node(raw: Any) -> SavedNode | None:
    if not isinstance(raw, dict):
        return None
    node_id = raw.get("id")
    pos = raw.get("position")
    if not isinstance(node_id, str) or not node_id or not isinstance(pos, dict):
        return None
    x = _as_number(pos.get("x"))
    y = _as_number(pos.get("y"))
    if x is None or y is None:
        return None
    return SavedNode(id=node_id, position=Position(x=x, y=y))


def _parse_edge(raw: Any) -> SavedEdge | None:
    if not isinstance(raw, dict):
        return None
    parts = (raw.get("id"), raw.get("source"), raw.get("target"))
    if not all(isinstance(p, str) and p for p in parts):
        return None
    return SavedEdge(id=parts[0], source=parts[1], target=parts[2])


def parse_saved_layout(raw: Any) -> SavedLayout:
    """Build a SavedLayout from a stored blob.

    Accepts the decoded JSON value (jsonb columns come back as dicts) or a JSON
    string. Anything unreadable yields an empty layout; unreadable entries
    are skipped one by one.
    """

    if raw is None:
        return SavedLayout.empty()

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            log.warning("Ignoring saved layout that is not valid JSON")
            return SavedLayout.empty()

    if not isinstance(raw, dict):
        log.warning("Ignoring saved layout of type %s", type(raw).__name__)
        return SavedLayout.empty()

    raw_nodes = raw.get("nodes") if isinstance(raw.get("nodes"), list) else []
    raw_edges = raw.get("edges") if isinstance(raw.get("edges"), list) else []

    nodes = [n for n in (_parse_node(r) for r in raw_nodes) if n is not None]
    edges = [e for e in (_parse_edge(r) for r in raw_edges) if e is not None]

    skipped = (len(raw_nodes) - len(nodes)) + (len(raw_edges) - len(edges))
    if skipped:
        log.warning("Skipped %d malformed saved layout entries", skipped)

    return SavedLayout(nodes=nodes, edges=edges)


def saved_layout_to_json(saved: SavedLayout) -> dict[str, Any]:
    return {
        "nodes": [
            {"id": n.id, "position": {"x": n.position.x, "y": n.position.y}}
            for n in saved.nodes
        ],
        "edges": [{"id": e.id, "source": e.source, "target": e.target} for e in saved.edges],
    }


def snapshot_layout(layout: TreeLayout) -> SavedLayout:
    """Reduce a rendered layout to what gets persisted: positions and edge endpoints."""

    return SavedLayout(
        nodes=[SavedNode(id=n.id, position=n.position) for n in layout.nodes],
        edges=[SavedEdge(id=e.id, source=e.source, target=e.target) for e in layout.edges],
    )
