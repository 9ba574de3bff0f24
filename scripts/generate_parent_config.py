#!/usr/bin/env python3
"""
Generate parent.config for one cache server straight from the database
Usage: python scripts/generate_parent_config.py odol-atsmid-chi-01 --output parent.config
"""
import sys
import asyncio
import argparse
import logging
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from atscfg.core.database import AsyncSessionLocal, engine
from atscfg.core.exceptions import ATSConfigError
from atscfg.core.init import setup_logging
from atscfg.services.parent_config_service import ParentConfigService

logger = logging.getLogger(__name__)


async def generate(id_or_host: str) -> str:
    """Render parent.config inside a single read-only transaction"""
    try:
        async with AsyncSessionLocal() as db:
            async with db.begin():
                return await ParentConfigService.generate(db, id_or_host)
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate ATS parent.config for a cache server")
    parser.add_argument("id_or_host", help="server ID or host name")
    parser.add_argument("-o", "--output", help="write to this file instead of stdout")
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    args = parser.parse_args()

    setup_logging(args.log_level)

    try:
        text = asyncio.run(generate(args.id_or_host))
    except ATSConfigError as e:
        logger.error(str(e))
        return 1

    if args.output:
        Path(args.output).write_text(text)
        logger.info(f"Wrote {args.output}")
    else:
        sys.stdout.write(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
