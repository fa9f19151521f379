from __future__ import annotations

import uuid
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from .layout import SavedLayout
from .layout_store import parse_saved_layout, saved_layout_to_json
from .models import Person, Relationship

_PERSON_COLUMNS = """
    id, first_name, last_name, birth_date, death_date, gender,
    photo_path, biography, created_by_id, family_tree_id
""".strip()


def _new_id() -> str:
    return uuid.uuid4().hex


def _row_to_person(r: tuple[Any, ...]) -> Person:
    (
        pid,
        first_name,
        last_name,
        birth_date,
        death_date,
        gender,
        photo_path,
        biography,
        created_by_id,
        family_tree_id,
    ) = tuple(r)
    return Person(
        id=pid,
        first_name=first_name,
        last_name=last_name,
        birth_date=birth_date,
        death_date=death_date,
        gender=gender,
        photo_path=photo_path,
        biography=biography,
        created_by_id=created_by_id,
        family_tree_id=family_tree_id,
    )


def _row_to_relationship(r: tuple[Any, ...]) -> Relationship:
    rid, rtype, one_id, two_id, tree_id = tuple(r)
    return Relationship(
        id=rid,
        type=rtype,
        person_one_id=one_id,
        person_two_id=two_id,
        family_tree_id=tree_id,
    )


def _attach_relationships(conn: psycopg.Connection, persons: list[Person]) -> list[Person]:
    """Fill ``relationships_as_one`` / ``relationships_as_two`` for every person."""

    if not persons:
        return persons

    ids = [p.id for p in persons]
    rows = conn.execute(
        """
        SELECT id, type, person_one_id, person_two_id, family_tree_id
        FROM relationship
        WHERE person_one_id = ANY(%s) OR person_two_id = ANY(%s)
        ORDER BY created_at, id
        """.strip(),
        (ids, ids),
    ).fetchall()

    by_id = {p.id: p for p in persons}
    for r in rows:
        rel = _row_to_relationship(r)
        if rel.person_one_id in by_id:
            by_id[rel.person_one_id].relationships_as_one.append(rel)
        if rel.person_two_id in by_id:
            by_id[rel.person_two_id].relationships_as_two.append(rel)
    return persons


def fetch_owned_persons(conn: psycopg.Connection, user_id: str) -> list[Person]:
    """All persons created by ``user_id`` in creation order, relationships attached."""

    rows = conn.execute(
        f"""
        SELECT {_PERSON_COLUMNS}
        FROM person
        WHERE created_by_id = %s
        ORDER BY created_at, id
        """.strip(),
        (user_id,),
    ).fetchall()
    return _attach_relationships(conn, [_row_to_person(r) for r in rows])


def fetch_tree_persons(conn: psycopg.Connection, tree_id: str) -> list[Person]:
    rows = conn.execute(
        f"""
        SELECT {_PERSON_COLUMNS}
        FROM person
        WHERE family_tree_id = %s
        ORDER BY created_at, id
        """.strip(),
        (tree_id,),
    ).fetchall()
    return _attach_relationships(conn, [_row_to_person(r) for r in rows])


def fetch_owned_person(conn: psycopg.Connection, person_id: str, user_id: str) -> Person | None:
    row = conn.execute(
        f"""
        SELECT {_PERSON_COLUMNS}
        FROM person
        WHERE id = %s AND created_by_id = %s
        """.strip(),
        (person_id, user_id),
    ).fetchone()
    return _row_to_person(row) if row else None


def fetch_person_relationships(conn: psycopg.Connection, person_id: str) -> list[Relationship]:
    rows = conn.execute(
        """
        SELECT id, type, person_one_id, person_two_id, family_tree_id
        FROM relationship
        WHERE person_one_id = %s OR person_two_id = %s
        ORDER BY created_at, id
        """.strip(),
        (person_id, person_id),
    ).fetchall()
    return [_row_to_relationship(r) for r in rows]


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------


def _tree_row_to_dict(r: tuple[Any, ...]) -> dict[str, Any]:
    tid, title, created_by_id, share_slug, created_at = tuple(r)
    return {
        "id": tid,
        "title": title,
        "created_by_id": created_by_id,
        "share_slug": share_slug,
        "created_at": created_at,
    }


def fetch_user_tree(conn: psycopg.Connection, user_id: str) -> dict[str, Any] | None:
    row = conn.execute(
        """
        SELECT id, title, created_by_id, share_slug, created_at
        FROM family_tree
        WHERE created_by_id = %s
        ORDER BY created_at, id
        LIMIT 1
        """.strip(),
        (user_id,),
    ).fetchone()
    return _tree_row_to_dict(row) if row else None


def fetch_tree(conn: psycopg.Connection, tree_id: str) -> dict[str, Any] | None:
    row = conn.execute(
        """
        SELECT id, title, created_by_id, share_slug, created_at
        FROM family_tree
        WHERE id = %s
        """.strip(),
        (tree_id,),
    ).fetchone()
    return _tree_row_to_dict(row) if row else None


def fetch_tree_by_share_slug(conn: psycopg.Connection, slug: str) -> dict[str, Any] | None:
    row = conn.execute(
        """
        SELECT id, title, created_by_id, share_slug, created_at
        FROM family_tree
        WHERE share_slug = %s
        """.strip(),
        (slug,),
    ).fetchone()
    return _tree_row_to_dict(row) if row else None


def tree_title_for(user_name: str | None) -> str:
    return f"{user_name or 'Unnamed'}'s Tree"


def create_tree(conn: psycopg.Connection, user_id: str, user_name: str | None) -> dict[str, Any]:
    row = conn.execute(
        """
        INSERT INTO family_tree (id, title, created_by_id)
        VALUES (%s, %s, %s)
        RETURNING id, title, created_by_id, share_slug, created_at
        """.strip(),
        (_new_id(), tree_title_for(user_name), user_id),
    ).fetchone()
    return _tree_row_to_dict(row)


def ensure_user_tree(conn: psycopg.Connection, user_id: str, user_name: str | None) -> dict[str, Any]:
    """Return the user's tree, creating it on first use. Caller commits."""
    tree = fetch_user_tree(conn, user_id)
    if tree is not None:
        return tree
    return create_tree(conn, user_id, user_name)


# ---------------------------------------------------------------------------
# Saved layouts
# ---------------------------------------------------------------------------


def fetch_saved_layout(conn: psycopg.Connection, tree_id: str) -> SavedLayout:
    row = conn.execute(
        "SELECT data FROM tree_layout WHERE family_tree_id = %s",
        (tree_id,),
    ).fetchone()
    if not row:
        return SavedLayout.empty()
    return parse_saved_layout(row[0])


def store_saved_layout(conn: psycopg.Connection, tree_id: str, saved: SavedLayout) -> None:
    conn.execute(
        """
        INSERT INTO tree_layout (family_tree_id, data)
        VALUES (%s, %s)
        ON CONFLICT (family_tree_id) DO UPDATE
          SET data = EXCLUDED.data,
              updated_at = now()
        """.strip(),
        (tree_id, Jsonb(saved_layout_to_json(saved))),
    )
