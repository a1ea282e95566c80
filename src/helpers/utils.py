import logging
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(level=logging.INFO):
    """
    Configures root logger for console output.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


def write_to_file(message: str, log_file: str | Path, mode: str):
    with open(log_file, mode, encoding="utf-8") as f:
        f.write(message)
