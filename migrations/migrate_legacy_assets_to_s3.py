#!/usr/bin/env python3
"""
Migration script to move legacy (local disk) analysis media to S3.

Reads normally migrate lazily; this script migrates every analysis still
marked storage_type='local' in one pass. Files missing from
LEGACY_MEDIA_ROOT are reported and left as they are.

Usage: python migrations/migrate_legacy_assets_to_s3.py [--limit N]
"""

import argparse
import sys

from migration_utils import get_settings, run_migration


def main(limit=None):
    settings = get_settings()

    from cyclofit.shared.analyses.service import AnalysisService
    from cyclofit.shared.auth.database import SessionLocal
    from cyclofit.shared.storage.object_store import get_object_store

    db = SessionLocal()
    try:
        service = AnalysisService(db, get_object_store(settings), settings)
        stats = service.migrate_legacy_assets(limit=limit)
    finally:
        db.close()

    print(f"   Analyses scanned: {stats['analyses']}")
    print(f"   Assets migrated:  {stats['migrated']}")
    print(f"   Files missing:    {stats['missing']}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--limit", type=int, default=None, help="Only process the first N legacy analyses")
    args = parser.parse_args()
    try:
        run_migration("legacy assets to S3", lambda: main(args.limit))
    except Exception:
        import traceback
        traceback.print_exc()
        sys.exit(1)
