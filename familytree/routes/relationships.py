from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from ..auth import get_current_user
from ..db import db_conn
from ..models import RelationshipType
from ..queries import _new_id, fetch_owned_person, fetch_person_relationships
from ..serialize import relationship_to_public

log = logging.getLogger(__name__)

router = APIRouter(tags=["relationships"])


class RelationshipCreate(BaseModel):
    type: Literal["PARENT", "MARRIED"]
    # PARENT: person_one is the parent.
    person_one_id: str
    person_two_id: str


class RelationshipDelete(BaseModel):
    source: str
    target: str
    type: Literal["PARENT", "MARRIED"]


@router.get("/relationships")
def list_relationships(
    request: Request,
    person_id: str = Query(min_length=1, max_length=64),
) -> list[dict[str, Any]]:
    user = get_current_user(request)

    with db_conn() as conn:
        if fetch_owned_person(conn, person_id, user["id"]) is None:
            raise HTTPException(status_code=404, detail="Person not found or unauthorized")
        rels = fetch_person_relationships(conn, person_id)

    return [relationship_to_public(r) for r in rels]


@router.post("/relationships")
def create_relationship(body: RelationshipCreate, request: Request) -> dict[str, Any]:
    user = get_current_user(request)
    one, two = body.person_one_id, body.person_two_id
    if one == two:
        raise HTTPException(status_code=400, detail="A person cannot be related to themselves")

    with db_conn() as conn:
        person_one = fetch_owned_person(conn, one, user["id"])
        person_two = fetch_owned_person(conn, two, user["id"])
        if person_one is None or person_two is None:
            raise HTTPException(status_code=404, detail="Person not found or unauthorized")

        existing = {
            (r.type, r.person_one_id, r.person_two_id)
            for r in fetch_person_relationships(conn, one)
        }
        if body.type == RelationshipType.PARENT.value:
            if (body.type, one, two) in existing:
                raise HTTPException(status_code=409, detail="Relationship already exists")
            if (body.type, two, one) in existing:
                raise HTTPException(status_code=400, detail="Child is already a parent of this person")
        elif (body.type, one, two) in existing or (body.type, two, one) in existing:
            raise HTTPException(status_code=409, detail="Relationship already exists")

        rel_id = _new_id()
        conn.execute(
            """
            INSERT INTO relationship (id, type, person_one_id, person_two_id, family_tree_id)
            VALUES (%s, %s, %s, %s, %s)
            """.strip(),
            (rel_id, body.type, one, two, person_one.family_tree_id),
        )
        conn.commit()

    log.info("Created %s relationship %s (%s -> %s)", body.type, rel_id, one, two)
    return {
        "id": rel_id,
        "type": body.type,
        "person_one_id": one,
        "person_two_id": two,
        "family_tree_id": person_one.family_tree_id,
    }


@router.delete("/relationships")
def delete_relationship(body: RelationshipDelete, request: Request) -> dict[str, Any]:
    """Delete by endpoints; a MARRIED edge matches in either orientation."""
    user = get_current_user(request)

    with db_conn() as conn:
        if fetch_owned_person(conn, body.source, user["id"]) is None:
            raise HTTPException(status_code=404, detail="Person not found or unauthorized")

        if body.type == RelationshipType.MARRIED.value:
            cur = conn.execute(
                """
                DELETE FROM relationship
                WHERE type = %s
                  AND ((person_one_id = %s AND person_two_id = %s)
                    OR (person_one_id = %s AND person_two_id = %s))
                """.strip(),
                (body.type, body.source, body.target, body.target, body.source),
            )
        else:
            cur = conn.execute(
                """
                DELETE FROM relationship
                WHERE type = %s AND person_one_id = %s AND person_two_id = %s
                """.strip(),
                (body.type, body.source, body.target),
            )
        deleted = cur.rowcount
        conn.commit()

    log.info("Deleted %d %s relationship(s) %s -> %s", deleted, body.type, body.source, body.target)
    return {"ok": True, "deleted": deleted}
