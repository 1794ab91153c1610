"""Logging setup and batch refresh reporting."""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.sync_orchestrator import RefreshAllReport


logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure application logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def log_refresh_all_summary(report: "RefreshAllReport") -> None:
    """Log the outcome of a refresh-all run.

    Args:
        report: Aggregate batch result.
    """
    logger.info("=== Refresh All Summary ===")
    logger.info(f"Successful: {report.succeeded}/{report.attempted} KBs")
    logger.info(f"Total pages refreshed: {report.total_pages}")

    if report.failed:
        logger.error(f"Failed: {report.failed} KBs")
        for failure in report.failures:
            logger.error(f"  - {failure.kb_name}: {failure.error}")
