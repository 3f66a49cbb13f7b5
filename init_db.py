"""Initialize the database schema for the semantic index and event log.

Creates the pgvector extension, the ``people_index``/``projects_index``
tables with their ivfflat indexes, and ``sharepack_events``. Existing rows
are kept. Run this before the first indexing job.
"""

import asyncio
import sys

from lookbook.config import settings
from lookbook.db import dispose_engine, ensure_schema
from lookbook.models import Base


async def init_database():
    """Create all database tables."""
    print(f"Initializing database: {settings.db.url.split('@')[-1]}")
    await ensure_schema()
    print("✓ Enabled pgvector extension")
    print("✓ Created tables and vector indexes")
    print(f"Tables: {', '.join(Base.metadata.tables.keys())}")


async def main():
    """Main entry point."""
    try:
        await init_database()
    except Exception as e:
        print(f"\n❌ Error initializing database: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
