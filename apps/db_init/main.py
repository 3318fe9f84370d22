"""One-off entry point that creates the database schema and exits."""

from __future__ import annotations

import asyncio

from libs.db import init_db
from libs.logging import setup_logging


def main() -> None:
    setup_logging()
    asyncio.run(init_db())


if __name__ == "__main__":
    main()
