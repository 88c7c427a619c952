import sys
import logging
from pathlib import Path
from typing import Optional

from mcwrapper.local.config import effective_settings as config

LOG_FILE_NAME = "wrapper.log"


class MainFormatter(logging.Formatter):
    """Formats wrapper records with timestamp, level and logger name."""

    def __init__(self) -> None:
        super().__init__('%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s')


def setup_logging(console_level: int = logging.INFO, logs_dir: Optional[Path] = None) -> None:
    """
    Configures the root logger for the wrapper.
    This sets up handlers for the console and a log file, clearing any
    previously configured handlers to prevent duplication.

    The child processes write to the console directly and are not routed
    through these handlers.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param logs_dir: Directory for the log file. Defaults to the configured LOGS_DIR.
    """
    logs_dir = Path(logs_dir) if logs_dir is not None else config.LOGS_DIR

    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    #* --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    #* --- File Handler (always enabled for all levels) ---
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(logs_dir / LOG_FILE_NAME, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(MainFormatter())
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.error(f"Failed to initialize file logging handler: {e}. Logging to file will be disabled.")
