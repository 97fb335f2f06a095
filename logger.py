"""
Central logging configuration for the EC2 manager.

Every module logs through get_logger(). Records at INFO and above are also
kept in an in-memory operations log that the dashboard renders.
"""

import logging
from collections import deque

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
ROOT_LOGGER_NAME = "ec2-manager"


class OperationsLog(logging.Handler):
    """Bounded list of formatted log lines shown in the dashboard console."""

    def __init__(self, maxlen=200):
        super().__init__(level=logging.INFO)
        self.entries = deque(maxlen=maxlen)
        self.setFormatter(logging.Formatter("%(asctime)s %(message)s", "%H:%M:%S"))

    def emit(self, record):
        self.entries.append(self.format(record))

    def clear(self):
        self.entries.clear()

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(list(self.entries))


operations_log = OperationsLog()


def get_logger(name=None):
    """
    Returns a configured logger instance.

    Args:
        name (str): Child logger name, e.g. "controller". None returns the root app logger.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        root.setLevel(logging.INFO)
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(console_handler)
        root.addHandler(operations_log)

    if name:
        return root.getChild(name)
    return root
