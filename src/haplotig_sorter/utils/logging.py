"""
Logging utilities for HaplotigSorter.
Console at INFO (DEBUG with --verbose), log.txt at DEBUG, shared with pool workers through a queue.
"""

import logging
import multiprocessing
import sys
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(output_dir: Path, verbose: bool = False):
    """
    Route all records through a multiprocessing queue to stdout and output_dir/log.txt.
    Python warnings (e.g. EmptyResultWarning) are captured into the same handlers.

    :param output_dir: Directory to save log.txt.
    :param verbose: Emit DEBUG records on the console as well.
    :return: Tuple (queue for pool workers, running QueueListener).
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    log_file = output_dir / "log.txt"
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    queue = multiprocessing.Manager().Queue(-1)
    listener = QueueListener(queue, console_handler, file_handler, respect_handler_level=True)
    listener.start()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(QueueHandler(queue))
    logging.captureWarnings(True)

    root.info(f"Logging initialized. Log file: {log_file}")
    return queue, listener


def worker_configurer(queue):
    """
    Configure a pool worker to log to the central queue.
    """
    root = logging.getLogger()
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(QueueHandler(queue))
    root.setLevel(logging.DEBUG)
