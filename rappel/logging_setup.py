from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE = "rappel.log"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable: all rappel logs, everything else
    (Qt, captured py.warnings) only at ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("rappel."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    log_dir: str | Path,
    *,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler (filtered) plus a full log file in `log_dir`.

    Call this once, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)
    return log_file
