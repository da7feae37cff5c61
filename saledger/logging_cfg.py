"""saledger.logging_cfg - one-call helper for consistent logging settings."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union


LOG_FORMAT  = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(
    level:   Union[str, int] = "INFO",
    log_dir: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """Configure the saledger logger to log to console and optional file.

    Returns the path to the log file if written, else None.
    """
    level_num = (
        getattr(logging, str(level).upper(), logging.INFO)
        if isinstance(level, str)
        else level
    )

    logger = logging.getLogger("saledger")
    for h in logger.handlers[:]:
        logger.removeHandler(h)
    logger.setLevel(level_num)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = Path(log_dir) / f"saledger_{ts}.log"
        fh = logging.FileHandler(log_path)
        fh.setFormatter(formatter)
        logger.addHandler(fh)
        return log_path
    return None
