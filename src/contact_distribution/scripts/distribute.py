"""Ingest a CSV/XLSX contact file and split it across the active workers."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from contact_distribution.core.config import Settings
from contact_distribution.core.db_factory import create_database
from contact_distribution.core.models import BatchMetadata, IngestResult
from contact_distribution.service import DistributionService


async def run_ingest(file_path: Path, uploaded_by: str | None) -> int:
    settings = Settings()
    db = create_database(settings)
    await db.connect()

    try:
        service = DistributionService(db, settings)
        response = await service.ingest_file(
            file_path,
            metadata=BatchMetadata(
                file_name=file_path.name,
                original_file_name=file_path.name,
                uploaded_by=uploaded_by,
            ),
        )
    finally:
        await db.close()

    if not response.success:
        print(f"Distribution failed: {response.message}", file=sys.stderr)
        return 1

    result: IngestResult = response.data
    print(f"Batch:   {result.batch_id}")
    print(f"Items:   {result.total_items}")
    print(f"Workers: {result.total_workers}")
    for d in result.distributions:
        print(f"  {d.name:<30} {d.email:<35} {d.items_count:>6}  list={d.sub_list_id}")
    for report in result.inconsistencies:
        print(
            f"  RECONCILE worker={report.worker_id} list={report.sub_list_id}: {report.reason}",
            file=sys.stderr,
        )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("file", type=Path, help="CSV or XLSX file with First Name, Phone, Notes")
    parser.add_argument("--uploaded-by", default=None, help="User reference stored on the batch")
    args = parser.parse_args()

    logging.basicConfig(
        level=Settings().log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run_ingest(args.file, args.uploaded_by)))


if __name__ == "__main__":
    main()
