#!/usr/bin/env python3
"""
Re-index uploaded photos that have no face record.

Usage:
    python reindex_faces.py
    python reindex_faces.py --batch-size 200
"""

import argparse
import sys
import os

# Add parent directory to path to import backend modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError

from snapmatch.core.config import settings
from snapmatch.core.logging import setup_logging
from snapmatch.tasks.face_reconcile import run_reconcile_pass


def main():
    parser = argparse.ArgumentParser(description="Re-index photos missing a face record")
    parser.add_argument("--batch-size", type=int, default=50, help="Photos per pass (default: 50)")
    args = parser.parse_args()

    setup_logging()

    if not settings.face_search_enabled:
        print("❌ Face search is not configured (S3_BUCKET and AWS_REKOGNITION_COLLECTION_ID)")
        sys.exit(1)

    try:
        counts = run_reconcile_pass(batch_size=args.batch_size)
    except SQLAlchemyError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    if not counts:
        print("✅ No uploaded photo is waiting for a face record")
        return

    for status, count in sorted(counts.items()):
        print(f"   {status}: {count}")
    print(f"✅ Processed {sum(counts.values())} photo(s)")


if __name__ == "__main__":
    main()
