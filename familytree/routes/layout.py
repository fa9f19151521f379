"""Editable diagram layout for the caller's tree."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ..auth import get_current_user
from ..db import db_conn
from ..layout import Position, SavedEdge, SavedLayout, SavedNode, derive_layout
from ..queries import ensure_user_tree, fetch_owned_persons, fetch_saved_layout, fetch_user_tree, store_saved_layout
from ..serialize import layout_to_json

log = logging.getLogger(__name__)

router = APIRouter(tags=["layout"])


class PositionBody(BaseModel):
    x: float
    y: float


class SavedNodeBody(BaseModel):
    id: str = Field(min_length=1)
    position: PositionBody


class SavedEdgeBody(BaseModel):
    id: str = Field(min_length=1)
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)


class SavedLayoutBody(BaseModel):
    nodes: list[SavedNodeBody] = Field(default_factory=list)
    edges: list[SavedEdgeBody] = Field(default_factory=list)

    def to_saved_layout(self) -> SavedLayout:
        return SavedLayout(
            nodes=[SavedNode(id=n.id, position=Position(x=n.position.x, y=n.position.y)) for n in self.nodes],
            edges=[SavedEdge(id=e.id, source=e.source, target=e.target) for e in self.edges],
        )


@router.get("/layout")
def get_layout(request: Request) -> dict[str, Any]:
    """Nodes and edges for the editor, honouring the tree's saved positions."""
    user = get_current_user(request)

    with db_conn() as conn:
        tree = fetch_user_tree(conn, user["id"])
        persons = fetch_owned_persons(conn, user["id"])
        saved = fetch_saved_layout(conn, tree["id"]) if tree else SavedLayout.empty()

    out = layout_to_json(derive_layout(persons, saved))
    out["tree_id"] = tree["id"] if tree else None
    return out


@router.put("/layout")
def save_layout(body: SavedLayoutBody, request: Request) -> dict[str, Any]:
    user = get_current_user(request)
    saved = body.to_saved_layout()

    with db_conn() as conn:
        tree = ensure_user_tree(conn, user["id"], user.get("name"))
        store_saved_layout(conn, tree["id"], saved)
        conn.commit()

    log.info("Saved layout for tree %s (%d nodes, %d edges)", tree["id"], len(saved.nodes), len(saved.edges))
    return {"ok": True, "tree_id": tree["id"], "nodes": len(saved.nodes), "edges": len(saved.edges)}
