"""
Load creator records into the database.

Usage:
    python -m app.seed data/creators.sample.json
"""
import asyncio
import json
import logging
import sys
from pathlib import Path

from app.db.database import async_session, init_db
from app.services.creator_repository import CreatorRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("app.seed")


async def seed(path: Path) -> int:
    records = json.loads(path.read_text())
    await init_db()
    return await CreatorRepository(async_session).upsert_creators(records)


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        return
    path = Path(sys.argv[1])
    if not path.exists():
        logger.error("File not found: %s", path)
        sys.exit(1)
    count = asyncio.run(seed(path))
    logger.info("Seeded %d creators from %s", count, path)


if __name__ == "__main__":
    main()
