from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


class LoggerFactory:
    @staticmethod
    def create(
        name: str, log_file: Optional[Path] = None, level: str = "WARNING"
    ) -> logging.Logger:
        """Attach stderr (and optional rotating file) handlers once per logger.

        Components log under their class names, so the entry points pass an
        empty name to configure the root logger.
        """
        logger = logging.getLogger(name)
        if logger.handlers:
            return logger

        logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s"
        )

        # stderr only: stdout is the status line itself.
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

        if log_file is not None:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        return logger
