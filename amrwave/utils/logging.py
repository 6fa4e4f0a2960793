import sys
from typing import Optional, Union
from pathlib import Path

from loguru import logger

BANNER_WIDTH = 60


def setup_logging(level="INFO", show_time=True, log_file: Optional[Union[str, Path]] = None):
    """Configure loguru for the project.

    Parameters
    ----------
    level : str
        Logging level (DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL)
    show_time : bool
        Whether to show timestamps in the output.
    log_file : str or Path, optional
        Additional plain-text sink (no colours), e.g. inside the output
        directory of a run.
    """
    logger.remove()

    location = "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>"
    if show_time:
        log_format = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            f"{location} - <level>{{message}}</level>"
        )
    else:
        log_format = f"<level>{{level: <8}}</level> | {location} - <level>{{message}}</level>"

    logger.add(sys.stderr, format=log_format, level=level, colorize=True)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, format=log_format, level=level, colorize=False)

    return logger


def log_banner(title: str, level: str = "INFO") -> None:
    """Log a section title framed by '=' rules."""
    logger.log(level, "=" * BANNER_WIDTH)
    logger.log(level, title)
    logger.log(level, "=" * BANNER_WIDTH)


# Default setup
setup_logging()
