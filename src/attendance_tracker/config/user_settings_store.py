from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

_LOGGER = logging.getLogger(__name__)

DEFAULT_APP_NAME = os.getenv("APP_NAME", "School Attendance Tracker")
DOCUMENTS_PATH = Path(os.path.expanduser("~")) / "Documents"
DEFAULT_POINTER_DIR = DOCUMENTS_PATH / DEFAULT_APP_NAME
DEFAULT_SETTINGS_FILENAME = "user_settings.json"

DEFAULT_SETTINGS: Dict[str, Any] = {
	"remote_api_url": None,
	"auto_sync": True,
	"academic_year": None,
	"app_data_dir": str(DEFAULT_POINTER_DIR),
}


@dataclass
class UserSettingsStore:
	"""Load and persist user-configurable settings in a JSON file.

	A pointer file in ``pointer_dir`` remembers where the app data directory
	lives; the settings file inside that directory wins over the pointer.
	"""

	pointer_dir: Path = field(default_factory=lambda: DEFAULT_POINTER_DIR)
	settings_filename: str = DEFAULT_SETTINGS_FILENAME
	_data: Dict[str, Any] = field(init=False, default_factory=dict)
	app_data_dir: Path = field(init=False)
	settings_file: Path = field(init=False)

	def __post_init__(self) -> None:
		self.pointer_dir = Path(self.pointer_dir).expanduser()
		self.pointer_dir.mkdir(parents=True, exist_ok=True)
		self.reload()

	# ------------------------------------------------------------------
	# Public API
	# ------------------------------------------------------------------
	@property
	def data(self) -> Dict[str, Any]:
		return dict(self._data)

	def get(self, key: str, default: Any = None) -> Any:
		value = self._data.get(key)
		return default if value is None else value

	def reload(self) -> None:
		pointer_data = self._load_json(self.pointer_dir / self.settings_filename)

		app_data_raw = pointer_data.get("app_data_dir") or str(self.pointer_dir)
		self.app_data_dir = Path(app_data_raw).expanduser()
		self.app_data_dir.mkdir(parents=True, exist_ok=True)

		self.settings_file = self.app_data_dir / self.settings_filename
		file_data = self._load_json(self.settings_file)

		combined = dict(DEFAULT_SETTINGS)
		combined.update(pointer_data)
		combined.update(file_data)
		combined["app_data_dir"] = str(self.app_data_dir)
		self._data = self._normalize(combined)

	def update(self, **kwargs: Any) -> Dict[str, Any]:
		new_data = dict(self._data)

		new_dir = kwargs.pop("app_data_dir", None)
		if new_dir:
			new_data["app_data_dir"] = str(Path(new_dir).expanduser())

		for key, value in kwargs.items():
			if key in DEFAULT_SETTINGS:
				new_data[key] = value
			else:
				_LOGGER.warning("Ignoring unknown setting %r", key)

		self._data = self._normalize(new_data)

		app_data_dir = Path(self._data["app_data_dir"])
		if app_data_dir != self.app_data_dir:
			self.app_data_dir = app_data_dir
			self.app_data_dir.mkdir(parents=True, exist_ok=True)
			self.settings_file = self.app_data_dir / self.settings_filename

		self._persist()
		return dict(self._data)

	# ------------------------------------------------------------------
	# Internal helpers
	# ------------------------------------------------------------------
	def _persist(self) -> None:
		pointer_path = self.pointer_dir / self.settings_filename
		with pointer_path.open("w", encoding="utf-8") as handle:
			json.dump({"app_data_dir": self._data["app_data_dir"]}, handle, indent=2)

		with self.settings_file.open("w", encoding="utf-8") as handle:
			json.dump(self._data, handle, indent=2, ensure_ascii=False)

	@staticmethod
	def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
		url = data.get("remote_api_url")
		data["remote_api_url"] = url.strip() if isinstance(url, str) and url.strip() else None

		year = data.get("academic_year")
		try:
			data["academic_year"] = int(year) if year not in (None, "") else None
		except (TypeError, ValueError):
			_LOGGER.warning("Ignoring invalid academic year %r", year)
			data["academic_year"] = None

		data["auto_sync"] = bool(data.get("auto_sync", True))
		return data

	@staticmethod
	def _load_json(path: Path) -> Dict[str, Any]:
		try:
			if path.exists():
				with path.open("r", encoding="utf-8") as handle:
					loaded = json.load(handle)
				if isinstance(loaded, dict):
					return loaded
				_LOGGER.warning("Ignoring settings file %s: not a JSON object", path)
		except (OSError, ValueError) as exc:
			_LOGGER.warning("Could not read settings file %s: %s", path, exc)
		return {}
