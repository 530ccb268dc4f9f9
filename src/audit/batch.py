"""
src/audit/batch.py
===================
Batch Sweep CLI — Audit Agent

Run with:
    python -m src.audit.batch

Audits every pending ledger row once, in sheet order, then exits.
No HTTP server and no cache-refresh scheduler are started.
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

from src.config import ConfigError, Settings
from src.runtime import build_runtime

logger = logging.getLogger("auditagent.audit.batch")


async def run_batch(settings: Settings) -> tuple[int, int]:
    runtime = await build_runtime(settings)
    succeeded, failed = await runtime.service.handle_sweep()
    logger.info("Batch audit finished — %d succeeded, %d failed.", succeeded, failed)
    return succeeded, failed


def main() -> int:
    load_dotenv()
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("%s", exc)
        return 1

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    asyncio.run(run_batch(settings))
    return 0


if __name__ == "__main__":
    sys.exit(main())
