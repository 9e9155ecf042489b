from __future__ import annotations

import asyncio
import logging
import sys

from .config import load_settings
from .service import FeedService
from .types import ConnectionStatus


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _main() -> ConnectionStatus:
    settings = load_settings()
    configure_logging(settings.log_level)
    service = FeedService(settings)
    return await service.run()


def main() -> None:
    try:
        status = asyncio.run(_main())
    except KeyboardInterrupt:
        return
    if status == ConnectionStatus.ERROR:
        sys.exit(1)


if __name__ == "__main__":
    main()
