"""Run the semantic indexing job from the command line.

    python reindex.py            # embed and upsert every person and project
    python reindex.py --prune    # also delete rows whose slug is gone upstream
"""

import argparse
import asyncio
import sys

from ai.embeddings import embed_texts
from lookbook.content import get_content_client
from lookbook.db import dispose_engine, ensure_schema, get_session_maker
from lookbook.logging_config import setup_logging
from lookbook.pipelines.indexing import SemanticIndexer


async def run(prune: bool) -> int:
    setup_logging()
    try:
        await ensure_schema()
        indexer = SemanticIndexer(get_session_maker(), get_content_client(), embed_texts)
        report = await indexer.run(prune=prune)
    except Exception as e:
        print(f"\n❌ Indexing failed: {e}")
        return 1
    finally:
        await dispose_engine()

    print(f"✓ Indexed {report.people} people and {report.projects} projects")
    if prune:
        print(f"✓ Pruned {report.pruned['people']} people and {report.pruned['projects']} projects")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Rebuild the semantic search index")
    parser.add_argument("--prune", action="store_true", help="delete index rows missing upstream")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.prune)))


if __name__ == "__main__":
    main()
