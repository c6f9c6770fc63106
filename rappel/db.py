from __future__ import annotations
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

APP_NAME = "Rappel"
TASKS_FILE = "tasks.json"
CONFIG_FILE = "config.json"
HOME_ENV = "RAPPEL_HOME"


class StorageError(Exception):
    pass


class StorageReadError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass


def data_dir(app_name: str = APP_NAME) -> Path:
    # Cross-platform local app data dir
    # macOS: ~/Library/Application Support/Rappel
    # Windows: %APPDATA%\Rappel
    # Linux: ~/.local/share/Rappel
    override = _get_env(HOME_ENV, "")
    if override:
        d = Path(override).expanduser()
    else:
        home = Path.home()
        if _is_macos():
            base = home / "Library" / "Application Support"
        elif _is_windows():
            base = Path(_get_env("APPDATA", str(home)))
        else:
            base = home / ".local" / "share"
        d = base / app_name
    d.mkdir(parents=True, exist_ok=True)
    return d


def tasks_path() -> Path:
    return data_dir() / TASKS_FILE


def config_path() -> Path:
    return data_dir() / CONFIG_FILE


class FileBackend:
    """
    Durable store for the serialized task list: one file, rewritten whole.

    `read_all` returns None when the file does not exist yet. Writes go to a
    temporary sibling first and are moved into place with os.replace, so a
    crash mid-write leaves the previous file intact.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def read_all(self) -> Optional[bytes]:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageReadError(f"cannot read {self.path}: {e}") from e

    def write_all(self, data: bytes) -> None:
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".tasks-", suffix=".tmp", dir=str(self.path.parent))
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageWriteError(f"cannot write {self.path}: {e}") from e
        logger.debug("Wrote %d bytes to %s", len(data), self.path)


def _is_windows() -> bool:
    import sys
    return sys.platform.startswith("win")


def _is_macos() -> bool:
    import sys
    return sys.platform == "darwin"


def _get_env(k: str, default: str) -> str:
    return os.environ.get(k, default)
