"""Prepare the configured database: create it if missing, then its tables."""
from __future__ import annotations

import argparse
import sys
from urllib.parse import urlsplit, urlunsplit

import psycopg
from psycopg import sql

from lendgate.core.settings import settings


def is_sqlite(uri: str) -> bool:
    return uri.strip().strip("'\"").startswith("sqlite")


def normalize_to_psycopg(uri: str) -> str:
    """Return a Postgres URI that psycopg.connect() accepts.

    Surrounding quotes are stripped and SQLAlchemy driver suffixes such as
    ``postgresql+psycopg`` are reduced to ``postgresql``.
    """
    uri = (uri or "").strip().strip("'\"")
    if not uri:
        raise ValueError("DATABASE_URL is empty")
    parts = urlsplit(uri)
    scheme = parts.scheme.split("+", 1)[0]
    if scheme != "postgresql":
        raise ValueError(f"Not a Postgres URL: {uri!r}")
    return urlunsplit((scheme, parts.netloc, parts.path, parts.query, parts.fragment))


def maintenance_target(db_url: str) -> tuple[str, str]:
    """Return ``(admin_url, database_name)``; the admin URL points at ``postgres``."""
    parts = urlsplit(normalize_to_psycopg(db_url))
    target_db = parts.path.lstrip("/") or "postgres"
    if parts.netloc:
        admin_url = urlunsplit(("postgresql", parts.netloc, "/postgres", parts.query, ""))
    else:
        admin_url = "postgresql:///postgres"
    return admin_url, target_db


def ensure_database_exists(db_url: str) -> bool:
    """Create the Postgres database if needed; return True when it was created."""
    admin_url, target_db = maintenance_target(db_url)
    with psycopg.connect(admin_url, autocommit=True) as conn, conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (target_db,))
        if cur.fetchone() is not None:
            print(f"[ensure_db] database {target_db} already exists")
            return False
        cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(target_db)))
        print(f"[ensure_db] created database {target_db}")
        return True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ensure the configured database exists")
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to the effective settings URL)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create all tables from the ORM models after the database exists.",
    )
    args = parser.parse_args(argv)

    raw_url = args.url or settings.effective_database_url
    try:
        if not is_sqlite(raw_url):
            ensure_database_exists(raw_url)
        if args.create_tables:
            from lendgate.db.session import create_tables

            create_tables()
            print("[ensure_db] tables created")
    except (ValueError, psycopg.Error) as exc:
        print(f"[ensure_db] ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
