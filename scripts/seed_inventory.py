"""
Seed the dashboard sections and the built-in metric inventory from CLI.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from app.services.inventory_seeder import get_inventory_seeder
from db.session import dispose_engine


async def _run(uploaded_by: str | None) -> dict[str, object]:
    try:
        result = await get_inventory_seeder().seed(uploaded_by=uploaded_by)
    finally:
        await dispose_engine()

    summary = result.ingestion
    return {
        "sections_seeded": result.sections_seeded,
        "job_id": str(summary.job_id) if summary.job_id else None,
        "status": summary.status,
        "total_rows": summary.total_rows,
        "rows_processed": summary.rows_processed,
        "rows_failed": summary.rows_failed,
        "errors": [error.to_dict() for error in summary.validation_errors],
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed dashboard sections and metric inventory.")
    parser.add_argument(
        "--uploaded-by",
        dest="uploaded_by",
        default="seed",
        help="Name recorded on the upload job.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    payload = asyncio.run(_run(args.uploaded_by))
    print(json.dumps(payload, indent=2))
    return 0 if payload["status"] == "COMPLETED" else 1


if __name__ == "__main__":
    raise SystemExit(main())
