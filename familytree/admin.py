"""CLI admin tool for the family tree database.

Usage:
    python -m familytree.admin init-db
    python -m familytree.admin create-user --email=jan@example.com --name="Jan" --password=Secret123
    python -m familytree.admin list-users
    python -m familytree.admin backfill-trees
    python -m familytree.admin show-layout --email=jan@example.com [--read-only] [--snapshot]
"""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path

import psycopg

from .auth import hash_password, validate_password
from .layout import derive_layout, derive_read_only_layout
from .layout_store import saved_layout_to_json, snapshot_layout
from .queries import (
    _new_id,
    create_tree,
    fetch_owned_persons,
    fetch_saved_layout,
    fetch_user_tree,
    tree_title_for,
)
from .serialize import layout_to_json

_SCHEMA_SQL = Path(__file__).resolve().parent.parent / "sql" / "schema.sql"


def _get_db_url() -> str:
    url = os.environ.get("DATABASE_URL", "")
    if not url:
        raise SystemExit("DATABASE_URL not set")
    return url


def _ensure_schema(conn: psycopg.Connection) -> None:
    if _SCHEMA_SQL.exists():
        conn.execute(_SCHEMA_SQL.read_text(encoding="utf-8"))
        conn.commit()


def cmd_init_db(args: argparse.Namespace) -> None:
    if not _SCHEMA_SQL.exists():
        raise SystemExit(f"Schema file not found: {_SCHEMA_SQL}")
    with psycopg.connect(_get_db_url()) as conn:
        _ensure_schema(conn)
    print("Schema applied.")


def cmd_create_user(args: argparse.Namespace) -> None:
    pw_err = validate_password(args.password)
    if pw_err:
        raise SystemExit(f"Weak password: {pw_err}")

    email = args.email.strip().lower()
    pw_hash = hash_password(args.password)
    with psycopg.connect(_get_db_url()) as conn:
        _ensure_schema(conn)

        row = conn.execute(
            """
            INSERT INTO users (id, email, name, password_hash)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (email) DO UPDATE
              SET password_hash = EXCLUDED.password_hash,
                  name = COALESCE(EXCLUDED.name, users.name)
            RETURNING id, name
            """,
            (_new_id(), email, args.name, pw_hash),
        ).fetchone()
        user_id, name = row

        if fetch_user_tree(conn, user_id) is None:
            create_tree(conn, user_id, name)
        conn.commit()
    print(f"User '{email}' created/updated.")


def cmd_list_users(args: argparse.Namespace) -> None:
    with psycopg.connect(_get_db_url()) as conn:
        _ensure_schema(conn)
        rows = conn.execute(
            """
            SELECT u.id, u.email, u.name,
                   (SELECT COUNT(*) FROM person p WHERE p.created_by_id = u.id) AS persons,
                   (SELECT t.share_slug FROM family_tree t WHERE t.created_by_id = u.id
                    ORDER BY t.created_at LIMIT 1) AS share_slug
            FROM users u
            ORDER BY u.created_at, u.id
            """
        ).fetchall()

    if not rows:
        print("No users.")
        return
    print(f"{'ID':<33} {'Email':<30} {'Name':<20} {'Persons':<8} {'Share':<12}")
    print("-" * 106)
    for uid, email, name, persons, slug in rows:
        print(f"{uid:<33} {email:<30} {(name or '-'):<20} {persons:<8} {(slug or '-'):<12}")


def cmd_backfill_trees(args: argparse.Namespace) -> None:
    """Give every user who has persons but no tree a tree, and attach their records to it."""
    with psycopg.connect(_get_db_url()) as conn:
        _ensure_schema(conn)
        users = conn.execute("SELECT id, email, name FROM users ORDER BY created_at, id").fetchall()

        filled = 0
        for user_id, email, name in users:
            person_ids = [
                r[0]
                for r in conn.execute(
                    "SELECT id FROM person WHERE created_by_id = %s", (user_id,)
                ).fetchall()
            ]
            if not person_ids:
                continue

            tree = fetch_user_tree(conn, user_id)
            if tree is None:
                tree_id = _new_id()
                conn.execute(
                    "INSERT INTO family_tree (id, title, created_by_id) VALUES (%s, %s, %s)",
                    (tree_id, tree_title_for(name), user_id),
                )
            else:
                tree_id = tree["id"]

            conn.execute(
                "UPDATE person SET family_tree_id = %s WHERE created_by_id = %s AND family_tree_id IS NULL",
                (tree_id, user_id),
            )
            conn.execute(
                """
                UPDATE relationship SET family_tree_id = %s
                WHERE person_one_id = ANY(%s) AND family_tree_id IS NULL
                """,
                (tree_id, person_ids),
            )
            filled += 1
            print(f"Backfilled family tree for {email}")

        conn.commit()
    print(f"Backfill complete ({filled} users).")


def cmd_show_layout(args: argparse.Namespace) -> None:
    with psycopg.connect(_get_db_url()) as conn:
        row = conn.execute("SELECT id FROM users WHERE email = %s", (args.email.strip().lower(),)).fetchone()
        if not row:
            raise SystemExit(f"User '{args.email}' not found.")
        user_id = row[0]
        tree = fetch_user_tree(conn, user_id)
        persons = fetch_owned_persons(conn, user_id)
        saved = fetch_saved_layout(conn, tree["id"]) if tree else None

    derive = derive_read_only_layout if args.read_only else derive_layout
    layout = derive(persons, saved)
    if args.snapshot:
        # Same shape PUT /layout accepts, for seeding or restoring a tree.
        out = saved_layout_to_json(snapshot_layout(layout))
    else:
        out = layout_to_json(layout)
    print(json.dumps(out, indent=2))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Family tree admin CLI")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("init-db", help="Create tables from sql/schema.sql")

    p = sub.add_parser("create-user", help="Create or update a user (and their tree)")
    p.add_argument("--email", required=True)
    p.add_argument("--password", required=True)
    p.add_argument("--name", default=None)

    sub.add_parser("list-users", help="List all users")

    sub.add_parser("backfill-trees", help="Create missing trees and attach orphaned persons")

    p = sub.add_parser("show-layout", help="Print the derived diagram layout for a user as JSON")
    p.add_argument("--email", required=True)
    p.add_argument("--read-only", action="store_true", help="Use the shared-view layout")
    p.add_argument("--snapshot", action="store_true", help="Print only positions and edge endpoints")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    dispatch = {
        "init-db": cmd_init_db,
        "create-user": cmd_create_user,
        "list-users": cmd_list_users,
        "backfill-trees": cmd_backfill_trees,
        "show-layout": cmd_show_layout,
    }
    dispatch[args.command](args)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
