import json
import logging
import os
from typing import Any, Dict, Optional

from .models import SettingsModel


logger = logging.getLogger("buyer_intake.config")

SETTINGS_ENV = "BUYER_INTAKE_SETTINGS"

DEFAULT_SETTINGS = {
    "rate_limits": {
        "create": {"max_requests": 5, "window_seconds": 60},
        "update": {"max_requests": 10, "window_seconds": 60},
        "import": {"max_requests": 2, "window_seconds": 300},
    },
    "max_import_rows": 200,
    "tag_separator": ",",
}


def settings_path() -> str:
    return os.environ.get(SETTINGS_ENV) or os.path.join(os.path.dirname(__file__), "settings.json")


class SettingsFile:
    """JSON settings on disk, re-read only when the file's mtime moves."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._mtime: Optional[float] = None
        self._settings: Optional[Dict[str, Any]] = None

    def read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            self.write(DEFAULT_SETTINGS)
        mtime = os.path.getmtime(self.path)
        if self._settings is None or mtime != self._mtime:
            with open(self.path, "r", encoding="utf-8") as f:
                self._settings = SettingsModel.model_validate(json.load(f)).model_dump()
            self._mtime = mtime
        return self._settings

    def write(self, data: Dict[str, Any]) -> Dict[str, Any]:
        # raises before anything touches the file
        settings = SettingsModel.model_validate(data).model_dump()
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=2)
        self._mtime = os.path.getmtime(self.path)
        self._settings = settings
        logger.info(json.dumps({"event": "settings_saved", "path": self.path}))
        return settings


_FILES: Dict[str, SettingsFile] = {}


def _file() -> SettingsFile:
    path = settings_path()
    if path not in _FILES:
        _FILES[path] = SettingsFile(path)
    return _FILES[path]


def load_settings() -> Dict[str, Any]:
    return _file().read()


def save_settings(data: Dict[str, Any]) -> Dict[str, Any]:
    return _file().write(data)
