"""
logger.py

Default behavior:
- Logs are stored in the directory named by the `LOG_DIR` environment
  variable (or `./logs` if unset).
- Main log file: `service.log`, mirrored to the console (the hosting
  platform collects stdout).
- Rotates at midnight, archives to `daily_logs/YYYY-MM-DD.log`, keeps the
  newest 14 days.
- Log format: `%(asctime)s | %(levelname)s | %(name)s | %(message)s`
"""

import logging
import os
import re
import shutil
import sys
from dataclasses import dataclass
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from typing import List, Tuple

# -----------------------------
# Configuration
# -----------------------------

@dataclass(frozen=True)
class LoggerConfig:
    """
    Immutable configuration for the logging system.
    """
    log_dir_env: str = "LOG_DIR"
    default_log_dir: str = "logs"
    main_log_filename: str = "service.log"
    daily_logs_subdir: str = "daily_logs"
    prune_keep: int = 14
    rotate_when: str = "midnight"
    date_filename_regex: str = r"^\d{4}-\d{2}-\d{2}(?:_\d+)?\.log$"
    formatter: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    formatter_datefmt: str = "%Y-%m-%d %H:%M:%S"


# -----------------------------
# Helpers
# -----------------------------

class DailyLogPruner:
    """
    Prunes older daily logs, keeping only the newest `keep` files.
    """
    def __init__(self, daily_dir: str, pattern: re.Pattern, keep: int) -> None:
        self._daily_dir = daily_dir
        self._pattern = pattern
        self._keep = keep

    def prune(self) -> None:
        candidates: List[Tuple[float, str]] = []
        try:
            names = os.listdir(self._daily_dir)
        except FileNotFoundError:
            return
        for fname in names:
            if self._pattern.match(fname):
                path = os.path.join(self._daily_dir, fname)
                try:
                    candidates.append((os.path.getmtime(path), path))
                except FileNotFoundError:
                    pass

        candidates.sort(key=lambda x: x[0], reverse=True)

        for _, path in candidates[self._keep:]:
            try:
                os.remove(path)
            except OSError:
                pass


class DateBasedRotator:
    """
    Rotator hook for TimedRotatingFileHandler: moves the rotated file to
    daily_logs/<date>.log (suffixing on collision) and prunes old ones.
    """

    def __init__(self, daily_dir: str, pruner: DailyLogPruner) -> None:
        self._daily_dir = daily_dir
        self._pruner = pruner

    def __call__(self, source: str, dest: str) -> None:
        try:
            ts = os.path.getmtime(source)
        except FileNotFoundError:
            return

        date_str = datetime.fromtimestamp(ts).strftime("%Y-%m-%d")
        final_path = os.path.join(self._daily_dir, f"{date_str}.log")
        suffix = 1
        while os.path.exists(final_path):
            final_path = os.path.join(self._daily_dir, f"{date_str}_{suffix}.log")
            suffix += 1

        try:
            shutil.move(source, final_path)
        except FileNotFoundError:
            return

        self._pruner.prune()


class LoggerFactory:
    def __init__(self, cfg: LoggerConfig) -> None:
        self._cfg = cfg
        self._log_dir = os.getenv(cfg.log_dir_env, cfg.default_log_dir)
        self._daily_dir = os.path.join(self._log_dir, cfg.daily_logs_subdir)
        os.makedirs(self._daily_dir, exist_ok=True)

        pruner = DailyLogPruner(
            daily_dir=self._daily_dir,
            pattern=re.compile(cfg.date_filename_regex),
            keep=cfg.prune_keep,
        )
        self._rotator = DateBasedRotator(self._daily_dir, pruner)

        root = logging.getLogger()
        if not any(getattr(h, "_is_shared", False) for h in root.handlers):
            for h in self._build_handlers():
                h._is_shared = True
                root.addHandler(h)
            root.setLevel(logging.INFO)

    def _build_handlers(self) -> List[logging.Handler]:
        fmt = logging.Formatter(self._cfg.formatter, datefmt=self._cfg.formatter_datefmt)

        file_handler = TimedRotatingFileHandler(
            os.path.join(self._log_dir, self._cfg.main_log_filename),
            when=self._cfg.rotate_when,
            backupCount=0,
            encoding="utf-8",
        )
        file_handler.rotator = self._rotator
        file_handler.setFormatter(fmt)

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(fmt)
        return [file_handler, console]

    def get_logger(self, name: str = "global_logger", level: int = logging.INFO) -> logging.Logger:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = True
        for h in list(logger.handlers):
            logger.removeHandler(h)
        return logger


# -----------------------------
# Public API
# -----------------------------

__LOGGER_FACTORY = LoggerFactory(LoggerConfig())

def get_logger(name: str = "global_logger", level=logging.INFO) -> logging.Logger:
    return __LOGGER_FACTORY.get_logger(name=name, level=level)
