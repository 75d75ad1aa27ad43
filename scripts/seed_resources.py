import argparse
import os
from pathlib import Path
from typing import Optional

from app.db import session as db_session
from app.db.catalog import CURATED_RESOURCES, seed_resources


def resolve_db_path(override: Optional[str]) -> Path:
    if override:
        return Path(override).expanduser().resolve()
    env_path = os.getenv("DB_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path("./diabetes_companion.db").resolve()


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Load the curated diabetes resource catalog into the SQLite DB."
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Override SQLite DB path. Defaults to DB_PATH env or app default.",
    )
    parser.add_argument(
        "--append",
        action="store_true",
        help="Keep existing resources instead of clearing them first.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the catalog only; do not write.",
    )
    args = parser.parse_args()

    db_path = resolve_db_path(args.db_path)
    print(f"Target DB: {db_path}")
    if args.dry_run:
        for entry in CURATED_RESOURCES:
            print(f"  [{entry['category']}] {entry['title']}")
        return 0

    db_session.configure_database(str(db_path))
    db_session.create_tables()
    db = db_session.SessionLocal()
    try:
        if not args.append:
            print("Clearing existing resources.")
        count = seed_resources(db, replace=not args.append)
    finally:
        db.close()
    print(f"Added resources: {count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
