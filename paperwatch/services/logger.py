import sys
from pathlib import Path
from typing import Optional
from loguru import logger
from paperwatch.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

def setup_logging(level: Optional[str] = None, log_file: Optional[Path] = None):
    """Console at LOG_LEVEL, plus a rotating DEBUG file unless LOG_FILE is empty."""
    logger.remove()
    logger.add(sys.stderr, level=level or settings.LOG_LEVEL, format=CONSOLE_FORMAT)

    log_file = log_file or settings.log_file_path
    if log_file is not None:
        logger.add(log_file, rotation="10 MB", retention=5, level="DEBUG")

setup_logging()
