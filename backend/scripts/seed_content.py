"""Seed the configured content store with the bundled defaults.

Usage: python scripts/seed_content.py [--force]
"""
import argparse
import asyncio
import sys

from portfolio_api.config import Settings
from portfolio_api.db import create_db_and_tables, create_engine, make_sessionmaker
from portfolio_api.logging_config import configure_logging
from portfolio_api.sections import create_section_store, seed_sections


async def run(force: bool) -> int:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    engine = create_engine(settings.database_url) if settings.database_url else None
    try:
        if engine is not None:
            await create_db_and_tables(engine)
        store = create_section_store(settings, make_sessionmaker(engine) if engine else None)
        result = await seed_sections(store, force=force)
    finally:
        if engine is not None:
            await engine.dispose()
    print(f"Seeding completed. Inserted: {result.inserted}, Updated: {result.updated}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--force", action="store_true", help="overwrite sections that already exist")
    args = parser.parse_args()
    try:
        return asyncio.run(run(args.force))
    except Exception as e:
        print("Failed to seed:", e, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
