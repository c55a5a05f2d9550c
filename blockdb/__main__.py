"""
Diagnostic dump of a block store: python -m blockdb

Configured through the environment (see BlockStoreConfig.from_env).
"""

import asyncio
import logging

from blockdb.block_store import BlockStore
from blockdb.config import BlockStoreConfig

logger = logging.getLogger("blockdb")


async def main() -> None:
    config = BlockStoreConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    async with await BlockStore.open(config) as store:
        dumped = await store.debug_dump()
        logger.info("%d block(s) in %s", dumped, config.location)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
