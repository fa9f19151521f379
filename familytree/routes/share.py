"""Share links: slug creation for the owner, public read-only view for everyone."""

from __future__ import annotations

import logging
import secrets
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from ..auth import get_current_user
from ..db import db_conn
from ..layout import derive_read_only_layout
from ..queries import fetch_saved_layout, fetch_tree, fetch_tree_by_share_slug, fetch_tree_persons
from ..serialize import layout_to_json

log = logging.getLogger(__name__)

router = APIRouter(tags=["share"])

_SHARE_SLUG_LENGTH = 10
_SHARE_SLUG_ATTEMPTS = 5


def _new_share_slug() -> str:
    # token_urlsafe(8) yields 11 url-safe characters.
    return secrets.token_urlsafe(8)[:_SHARE_SLUG_LENGTH]


@router.post("/trees/{tree_id}/share")
def create_share_slug(tree_id: str, request: Request) -> dict[str, Any]:
    """Return the tree's share slug, generating one on first call."""
    user = get_current_user(request)

    with db_conn() as conn:
        tree = fetch_tree(conn, tree_id)
        if tree is None or tree["created_by_id"] != user["id"]:
            raise HTTPException(status_code=404, detail="Tree not found")

        if tree["share_slug"]:
            return {"share_slug": tree["share_slug"]}

        slug = _new_share_slug()
        for _ in range(_SHARE_SLUG_ATTEMPTS):
            if fetch_tree_by_share_slug(conn, slug) is None:
                break
            slug = _new_share_slug()

        conn.execute(
            "UPDATE family_tree SET share_slug = %s WHERE id = %s",
            (slug, tree_id),
        )
        conn.commit()

    log.info("Shared tree %s as %s", tree_id, slug)
    return {"share_slug": slug}


@router.get("/share/{slug}")
def shared_tree(slug: str) -> dict[str, Any]:
    """Public, read-only rendering of a shared tree."""

    with db_conn() as conn:
        tree = fetch_tree_by_share_slug(conn, slug)
        if tree is None:
            raise HTTPException(status_code=404, detail="Family tree not found or not shared")
        persons = fetch_tree_persons(conn, tree["id"])
        saved = fetch_saved_layout(conn, tree["id"])

    out = layout_to_json(derive_read_only_layout(persons, saved))
    created_at = tree["created_at"]
    out["title"] = tree["title"]
    out["created_at"] = created_at.isoformat() if created_at else None
    return out
