"""Person CRUD for the caller's own tree."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..auth import get_current_user
from ..db import db_conn
from ..models import RelationshipType
from ..person_data import map_person_form
from ..queries import _new_id, ensure_user_tree, fetch_owned_person, fetch_owned_persons
from ..serialize import person_to_public

log = logging.getLogger(__name__)

router = APIRouter(tags=["persons"])


class PersonForm(BaseModel):
    first_name: str
    last_name: Optional[str] = None
    birth_date: Optional[str] = None
    death_date: Optional[str] = None
    gender: Optional[str] = None
    notes: Optional[str] = None
    photo_path: Optional[str] = None


class PersonCreate(PersonForm):
    # When set, the new person is recorded as this person's child.
    parent_id: Optional[str] = None


def _form_values(body: PersonForm) -> dict[str, Any]:
    return map_person_form(
        first_name=body.first_name,
        last_name=body.last_name,
        birth_date=body.birth_date,
        death_date=body.death_date,
        gender=body.gender,
        notes=body.notes,
        photo_path=body.photo_path,
    )


@router.get("/persons")
def list_persons(request: Request) -> list[dict[str, Any]]:
    """All persons of the caller, oldest first, with both relationship collections."""
    user = get_current_user(request)

    with db_conn() as conn:
        persons = fetch_owned_persons(conn, user["id"])

    return [person_to_public(p) for p in persons]


@router.post("/persons")
def create_person(body: PersonCreate, request: Request) -> dict[str, Any]:
    user = get_current_user(request)
    values = _form_values(body)

    with db_conn() as conn:
        if body.parent_id and fetch_owned_person(conn, body.parent_id, user["id"]) is None:
            raise HTTPException(status_code=404, detail="Parent not found")

        tree = ensure_user_tree(conn, user["id"], user.get("name"))
        person_id = _new_id()
        conn.execute(
            """
            INSERT INTO person (id, first_name, last_name, birth_date, death_date, gender,
                                photo_path, biography, created_by_id, family_tree_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """.strip(),
            (
                person_id,
                values["first_name"],
                values["last_name"],
                values["birth_date"],
                values["death_date"],
                values["gender"],
                values["photo_path"],
                values["biography"],
                user["id"],
                tree["id"],
            ),
        )
        if body.parent_id:
            conn.execute(
                """
                INSERT INTO relationship (id, type, person_one_id, person_two_id, family_tree_id)
                VALUES (%s, %s, %s, %s, %s)
                """.strip(),
                (_new_id(), RelationshipType.PARENT.value, body.parent_id, person_id, tree["id"]),
            )
        conn.commit()

        person = fetch_owned_person(conn, person_id, user["id"])

    log.info("Created person %s in tree %s", person_id, tree["id"])
    return person_to_public(person, include_relationships=False)


@router.put("/persons/{person_id}")
def update_person(person_id: str, body: PersonForm, request: Request) -> dict[str, Any]:
    user = get_current_user(request)
    values = _form_values(body)

    with db_conn() as conn:
        if fetch_owned_person(conn, person_id, user["id"]) is None:
            raise HTTPException(status_code=404, detail="Person not found or unauthorized")

        conn.execute(
            """
            UPDATE person
            SET first_name = %s, last_name = %s, birth_date = %s, death_date = %s,
                gender = %s, photo_path = %s, biography = %s
            WHERE id = %s
            """.strip(),
            (
                values["first_name"],
                values["last_name"],
                values["birth_date"],
                values["death_date"],
                values["gender"],
                values["photo_path"],
                values["biography"],
                person_id,
            ),
        )
        conn.commit()

        person = fetch_owned_person(conn, person_id, user["id"])

    return person_to_public(person, include_relationships=False)


@router.delete("/persons/{person_id}")
def delete_person(person_id: str, request: Request) -> dict[str, Any]:
    """Delete a person together with every relationship touching it."""
    user = get_current_user(request)

    with db_conn() as conn:
        if fetch_owned_person(conn, person_id, user["id"]) is None:
            raise HTTPException(status_code=404, detail="Person not found or unauthorized")

        conn.execute(
            "DELETE FROM relationship WHERE person_one_id = %s OR person_two_id = %s",
            (person_id, person_id),
        )
        conn.execute("DELETE FROM person WHERE id = %s", (person_id,))
        conn.commit()

    log.info("Deleted person %s", person_id)
    return {"ok": True}
