#!/usr/bin/env python3
"""Migration script to bring a legacy persisted store to schema version 1.

Data saved before schema versioning has no ``schemaVersion`` field and may
use legacy shapes:
- ``worker_id`` / ``opening_balance`` style field names
- long-form status strings ("Present", "Half", "Absent") instead of P/H/A
- a single ``categoryId`` per subcategory instead of ``categoryIds``

The same normalization runs automatically whenever the store is loaded;
this script lets it be run (and inspected) ahead of time. A timestamped
copy of the raw data is written before anything is changed. Running it on
an already migrated store does nothing.

Usage:
    python migrations/migrate_legacy_store.py [--db-path PATH]
"""

import logging
import sys
from pathlib import Path

# Add src to path so we can import workledger modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from workledger.domain.migration import (
    PRIMARY_KEY,
    SchemaMigrationGate,
    SchemaState,
    schema_state,
)
from workledger.storage.factories import create_sqlite_store


def migrate_database(database_path: str | None = None) -> None:
    """Migrate the persisted store if it is unversioned.

    Args:
        database_path: Path to database file. If None, uses default location.
    """
    kv = create_sqlite_store(database_path=database_path)
    kv.connect()

    try:
        raw = kv.get(PRIMARY_KEY)
        if raw is None:
            print("Nothing to migrate: no persisted store found")
            return

        if isinstance(raw, dict) and schema_state(raw) is SchemaState.CURRENT:
            print(f"Migration already applied: store is at schema version {raw['schemaVersion']}")
            return

        print("Starting migration: normalizing legacy store...")
        store = SchemaMigrationGate(kv).load()
        print(f"  Workers: {len(store.workers)}")
        print(f"  Categories: {len(store.categories)}")
        print(f"  Subcategories: {len(store.subcategories)}")
        print(f"  Entries: {len(store.entries)}")
        print(f"  Payments: {len(store.payments)}")
        print("Migration completed successfully!")
    finally:
        kv.disconnect()


def main():
    """Main entry point for migration script."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Migrate a legacy workledger store to the current schema"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="Path to database file (overrides WORKLEDGER_DB_PATH environment variable)",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        migrate_database(database_path=args.db_path)
        return 0
    except Exception as e:
        print(f"\nMigration failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
