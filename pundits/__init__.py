"""Multi-provider AI match prediction core: orchestration, parsing, settlement."""

import logging

__version__ = "0.1.0"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging the same way for CLI jobs and workers."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
