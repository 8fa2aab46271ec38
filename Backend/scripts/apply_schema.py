#!/usr/bin/env python3
"""
Apply the news pipeline schema (Infra/supabase/*.sql) in filename order.

Every statement in the migration files is idempotent (IF NOT EXISTS /
ON CONFLICT DO NOTHING), so re-running is safe.
"""

import asyncio
import sys
from pathlib import Path

# Path setup
THIS_FILE = Path(__file__).resolve()
SCRIPTS_DIR = THIS_FILE.parent
BACKEND_DIR = SCRIPTS_DIR.parent
REPO_ROOT = BACKEND_DIR.parent

if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from app.config import settings
from app.core.logging import configure_logging, get_logger
from services.db_service import create_db_pool, execute_with_conn, fetchval_with_conn

configure_logging(service_name="script")
logger = get_logger()

MIGRATIONS_DIR = REPO_ROOT / "Infra" / "supabase"
EXPECTED_TABLES = (
    "original_article",
    "article_symbol",
    "category",
    "transformed_article",
    "processing_error",
    "transform_queue",
    "news_summary",
    "news_story",
)


async def apply_schema() -> int:
    print("\n=== Applying News Pipeline Schema ===\n")

    sql_files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not sql_files:
        print(f"   ✗ No SQL files found in {MIGRATIONS_DIR}")
        return 1

    print("1. Initializing database connection...")
    pool = await create_db_pool(settings)
    print("   ✓ Database connected\n")

    try:
        print("2. Applying migrations...")
        async with pool.acquire() as conn:
            for sql_file in sql_files:
                sql_content = sql_file.read_text(encoding="utf-8")
                await execute_with_conn(conn, sql_content, timeout=120)
                logger.info("schema_file_applied", file=sql_file.name, bytes=len(sql_content))
                print(f"   ✓ {sql_file.name}")
        print()

        print("3. Verifying tables...")
        missing = []
        async with pool.acquire() as conn:
            for table in EXPECTED_TABLES:
                exists = await fetchval_with_conn(
                    conn,
                    """
                    SELECT COUNT(*)
                    FROM information_schema.tables
                    WHERE table_schema = 'public' AND table_name = $1
                    """,
                    table,
                )
                if not exists:
                    missing.append(table)
        if missing:
            print(f"   ⚠ Missing tables: {', '.join(missing)}\n")
            return 1
        print(f"   ✓ All {len(EXPECTED_TABLES)} tables present\n")
    finally:
        await pool.close()

    print("=== Schema Complete ===\n")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(apply_schema()))
    except KeyboardInterrupt:
        print("\n\nSchema apply interrupted by user.")
    except Exception as e:
        print(f"\n\n✗ Schema apply failed: {e}")
        logger.exception("schema_apply_failed", error=str(e))
        sys.exit(1)
