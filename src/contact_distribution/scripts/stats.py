"""Print distribution statistics: global, one batch, or one worker."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from contact_distribution.core.config import Settings
from contact_distribution.core.db_factory import create_database
from contact_distribution.service import DistributionService


async def run_stats(batch_id: str | None, worker_id: str | None) -> int:
    settings = Settings()
    db = create_database(settings)
    await db.connect()

    try:
        service = DistributionService(db, settings)
        if batch_id:
            response = await service.get_batch_stats(batch_id)
        elif worker_id:
            response = await service.get_worker_stats(worker_id)
        else:
            response = await service.get_global_stats()
    finally:
        await db.close()

    if not response.success:
        print(f"Error: {response.message}", file=sys.stderr)
        return 1

    for key, value in response.data.model_dump(mode="json").items():
        print(f"  {key:<26} {value}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--batch", dest="batch_id", help="Batch id")
    group.add_argument("--worker", dest="worker_id", help="Worker id")
    args = parser.parse_args()

    logging.basicConfig(
        level=Settings().log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run_stats(args.batch_id, args.worker_id)))


if __name__ == "__main__":
    main()
