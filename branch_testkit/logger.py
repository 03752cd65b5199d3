import logging
from typing import Optional

from branch_testkit.config import LogConfig


class LogManager:
    @staticmethod
    def get_logger(name: str) -> logging.Logger:
        return logging.getLogger(name)

    @staticmethod
    def configure(config: Optional[LogConfig] = None) -> None:
        """Install the root handler once per process.

        Entry points call this before doing any work; library modules only
        ever call ``get_logger``.
        """
        config = config or LogConfig()
        level = logging.getLevelName(config.level)
        if not isinstance(level, int):
            level = logging.INFO
        logging.basicConfig(level=level, format=config.format)
        # kubernetes' urllib3 pool is chatty at DEBUG
        logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
