#!/usr/bin/env python3
"""
Populate the flat seed table with the Optical-Assist reference sentences.

This script:
1. Connects to PostgreSQL and makes sure the schema exists
2. Embeds each sentence of SEED_DOCUMENTS with the hosted embedding model
3. Inserts one seed_documents row per sentence

Run: python scripts/seed_corpus.py

Prerequisites:
- DATABASE_URL points at a PostgreSQL instance with pgvector available
- OPENAI_API_KEY is set
"""

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


async def seed() -> bool:
    from optiassist.config import get_settings
    from optiassist.db.postgres import close_db, get_session_maker, init_db
    from optiassist.errors import ServiceError
    from optiassist.llm.api_base import RetryPolicy
    from optiassist.pipelines.seed import SEED_DOCUMENTS, seed_corpus
    from optiassist.rag.embedding import EmbeddingClient
    from optiassist.rag.store import PgVectorStore

    settings = get_settings()

    print("=" * 60)
    print("Optical-Assist Seed Corpus")
    print("=" * 60)
    print()

    print("[1/3] Initializing database...")
    try:
        await init_db()
        print("      Database connected.")
    except Exception as e:
        print(f"      ERROR: Database initialization failed: {e}")
        return False

    print("[2/3] Configuring embedding client...")
    embedder = EmbeddingClient(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimension=settings.embedding_dimension,
        base_url=settings.openai_base_url,
        timeout=settings.http_timeout_seconds,
        retry_policy=RetryPolicy(max_attempts=max(settings.embedding_max_attempts, 3)),
    )
    store = PgVectorStore(
        get_session_maker(),
        dimension=settings.embedding_dimension,
        metric=settings.distance_metric,
    )
    print(f"      Model: {embedder.model} ({embedder.dimension}-dim)")

    print(f"[3/3] Embedding {len(SEED_DOCUMENTS)} documents...")
    try:
        inserted = await seed_corpus(store, embedder)
    except ServiceError as e:
        print(f"      ERROR: Seeding stopped: {e.message}")
        return False
    finally:
        await close_db()

    print()
    print("=" * 60)
    print(f"SUCCESS: Seeded {inserted} documents.")
    print("=" * 60)
    return True


def main():
    success = asyncio.run(seed())
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
