from __future__ import annotations

import logging

NOISY_LIBRARIES = (
    "sqlalchemy.engine",
    "httpx",
    "uvicorn.access",
)


def configure_logging(level_name: str = "WARNING") -> logging.Logger:
    """Install a single formatted root handler at *level_name*."""
    level = getattr(logging, level_name.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s %(message)s",
        force=True,
    )
    for lib in NOISY_LIBRARIES:
        logging.getLogger(lib).setLevel(max(level, logging.WARNING))

    return logging.getLogger("kidsafe")
