#!/usr/bin/env python3
"""
Bulk-ingest a directory of PDF files through the upload pipeline.

Each file goes through the same validate, dedupe, chunk, embed and store
steps as POST /upload. Duplicates and unreadable files are reported and
skipped.

Run: python scripts/ingest_pdfs.py path/to/pdfs
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def ingest_directory(directory: Path) -> bool:
    from optiassist.config import get_settings
    from optiassist.db.postgres import close_db, get_session_maker, init_db
    from optiassist.errors import DuplicateDocumentError, ServiceError
    from optiassist.main import build_services

    pdfs = sorted(p for p in directory.iterdir() if p.suffix.lower() == ".pdf")
    if not pdfs:
        print(f"No PDF files found in {directory}")
        return True

    try:
        await init_db()
    except Exception as e:
        print(f"ERROR: Database initialization failed: {e}")
        return False

    services = build_services(get_settings(), get_session_maker())
    ingested = skipped = failed = 0

    try:
        for i, path in enumerate(pdfs, 1):
            print(f"[{i}/{len(pdfs)}] {path.name}...")
            try:
                result = await services.ingestion.ingest(path.name, path.read_bytes())
            except DuplicateDocumentError:
                print("      SKIP: already uploaded")
                skipped += 1
                continue
            except ServiceError as e:
                print(f"      FAIL: {e.public_message} ({e.message})")
                failed += 1
                continue
            print(f"      OK: {result.chunks_created} chunks")
            ingested += 1
    finally:
        await close_db()

    print()
    print(f"Ingested {ingested}, skipped {skipped}, failed {failed}")
    return failed == 0


def main():
    parser = argparse.ArgumentParser(description="Bulk-ingest PDF files")
    parser.add_argument("directory", type=Path)
    args = parser.parse_args()

    if not args.directory.is_dir():
        parser.error(f"{args.directory} is not a directory")

    success = asyncio.run(ingest_directory(args.directory))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
